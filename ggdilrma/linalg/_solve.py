import numpy as np
from packaging import version

from ..errors import SingularSystem

IS_NUMPY_GE_2 = version.parse(np.__version__) >= version.parse("2")


def solve(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    r"""Solve batched linear systems ``a @ x = b``.

    ``b`` may be a batch of vectors, i.e. ``b.ndim == a.ndim - 1``,
    regardless of the version of NumPy.

    Args:
        a (numpy.ndarray):
            Coefficient matrices with shape of (\*, n, n).
        b (numpy.ndarray):
            Right-hand sides with shape of (\*, n) or (\*, n, k).

    Returns:
        numpy.ndarray of solutions with same shape as ``b``.

    Raises:
        SingularSystem: If any of ``a`` is singular or the solution is not finite.
    """
    requires_new_axis = IS_NUMPY_GE_2 and a.ndim == b.ndim + 1

    if requires_new_axis:
        b = b[..., np.newaxis]

    try:
        x = np.linalg.solve(a, b)
    except np.linalg.LinAlgError as e:
        raise SingularSystem("Linear system is singular.") from e

    if not np.all(np.isfinite(x)):
        raise SingularSystem("Solution of linear system is not finite.")

    if requires_new_axis:
        x = x[..., 0]

    return x
