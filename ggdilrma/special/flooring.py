import numpy as np

EPS = np.finfo(np.float64).eps


def identity(input: np.ndarray) -> np.ndarray:
    r"""Identity function."""
    return input


def max_flooring(input: np.ndarray, eps: float = EPS) -> np.ndarray:
    r"""Max flooring operation.

    Args:
        input (numpy.ndarray):
            Non-negative tensor to be floored.
        eps (float):
            Lower bound. Default: machine epsilon of ``float64``.

    Returns:
        numpy.ndarray of ``max(input, eps)``. The shape is same as ``input``.
    """
    return np.maximum(input, eps)
