import numpy as np
import pytest

from ggdilrma.errors import SingularSystem
from ggdilrma.linalg import solve

parameters_batch_size = [1, 4]
parameters_n_channels = [1, 2, 3]


@pytest.mark.parametrize("batch_size", parameters_batch_size)
@pytest.mark.parametrize("n_channels", parameters_n_channels)
def test_solve(batch_size: int, n_channels: int):
    rng = np.random.default_rng(0)

    A = rng.standard_normal((batch_size, n_channels, n_channels))
    A = A + 1j * rng.standard_normal((batch_size, n_channels, n_channels))
    A = A + n_channels * np.eye(n_channels)

    # batch of vectors
    b = rng.standard_normal((batch_size, n_channels)) + 1j * rng.standard_normal(
        (batch_size, n_channels)
    )
    x = solve(A, b)

    assert x.shape == b.shape
    assert np.allclose(A @ x[..., np.newaxis], b[..., np.newaxis])

    # batch of matrices
    B = rng.standard_normal((batch_size, n_channels, 2))
    X = solve(A, B)

    assert X.shape == B.shape
    assert np.allclose(A @ X, B)


def test_solve_singular():
    A = np.zeros((3, 2, 2), dtype=np.complex128)
    A[1] = np.eye(2)
    b = np.ones((3, 2), dtype=np.complex128)

    with pytest.raises(SingularSystem) as exc_info:
        solve(A, b)

    assert isinstance(exc_info.value, np.linalg.LinAlgError)


def test_solve_not_finite():
    A = np.tile(np.eye(2), (3, 1, 1))
    A[0, 0, 0] = np.nan
    b = np.ones((3, 2))

    with pytest.raises(SingularSystem):
        solve(A, b)
