from typing import Callable, Optional

import numpy as np
import pytest

from ggdilrma.bss._update_spatial_model import update_by_ip1, update_by_projected_ip1
from ggdilrma.special.flooring import max_flooring

parameters = [(17, 20)]
parameters_n_sources = [1, 2, 3]
parameters_beta = [1.5, 2, 3]
parameters_flooring_fn = [max_flooring, None]


def compute_gauss_objective(
    demix_filter: np.ndarray, input: np.ndarray, model: np.ndarray
) -> np.ndarray:
    n_frames = input.shape[-1]

    Y = demix_filter @ input.transpose(1, 0, 2)  # (n_bins, n_sources, n_frames)
    Y = Y.transpose(1, 0, 2)
    _, logdet = np.linalg.slogdet(demix_filter)
    loss = np.sum(np.abs(Y) ** 2 / model, axis=(0, 2))

    return loss - 2 * n_frames * logdet


def create_problem(n_bins: int, n_frames: int, n_sources: int):
    n_channels = n_sources

    rng = np.random.default_rng(42)

    real = rng.standard_normal((n_channels, n_bins, n_frames))
    imag = rng.standard_normal((n_channels, n_bins, n_frames))
    X = real + 1j * imag
    real = rng.standard_normal((n_bins, n_sources, n_channels))
    imag = rng.standard_normal((n_bins, n_sources, n_channels))
    W = real + 1j * imag
    R = rng.random((n_sources, n_bins, n_frames)) + 0.1
    L = rng.random((n_sources, n_bins, n_frames)) + 0.1

    return X, W, R, L


def compute_weighted_covariance(input: np.ndarray, weight: np.ndarray) -> np.ndarray:
    n_frames = input.shape[-1]

    X = input.transpose(1, 0, 2)  # (n_bins, n_channels, n_frames)
    X_Hermite = X.transpose(0, 2, 1).conj()
    weight = weight.transpose(1, 0, 2)  # (n_bins, n_sources, n_frames)
    weighted_X = weight[:, :, np.newaxis, :] * X[:, np.newaxis, :, :]

    return (weighted_X @ X_Hermite[:, np.newaxis, :, :]) / n_frames


def projected_ip1_by_loop(
    demix_filter: np.ndarray,
    input: np.ndarray,
    model: np.ndarray,
    scale: np.ndarray,
    beta: float,
    correction: bool = True,
) -> np.ndarray:
    # straightforward loop over bins with rows of demixing matrices
    W = demix_filter.copy()
    n_bins, n_sources, _ = W.shape
    n_frames = input.shape[-1]
    E = np.eye(n_sources)

    for src_idx in range(n_sources):
        for bin_idx in range(n_bins):
            X_i = input[:, bin_idx, :]  # (n_channels, n_frames)
            R_in = model[src_idx, bin_idx]
            H = X_i / scale[src_idx, bin_idx]

            w = W[bin_idx, src_idx, :]
            q = (w @ H).conj()
            coeff = np.sqrt(beta) / (2 * np.sqrt(n_frames * np.sum(np.abs(q) ** beta)))

            F = np.zeros((n_sources, n_sources), dtype=np.complex128)

            for frame_idx in range(n_frames):
                x = X_i[:, frame_idx]
                F += np.abs(q[frame_idx]) / R_in[frame_idx] ** 2 * np.outer(x, x.conj())

            Hq = H @ q
            G = np.linalg.norm(q) ** 2 * (H @ H.conj().T) + F - np.outer(Hq, Hq.conj())
            G = coeff * G

            w_mm = np.linalg.solve(W[bin_idx] @ G, E[:, src_idx])
            w = w.conj()

            if correction:
                w = 2 * (w_mm.conj() @ G @ w) / (w_mm.conj() @ G @ w_mm).real * w_mm - w
            else:
                w = w_mm

            y = w.conj() @ X_i
            w = w * (2 * n_frames / (beta * np.sum(np.abs(y) / R_in))) ** (1 / beta)

            W[bin_idx, src_idx, :] = w.conj()

    return W


@pytest.mark.parametrize("n_bins, n_frames", parameters)
@pytest.mark.parametrize("n_sources", parameters_n_sources)
@pytest.mark.parametrize("flooring_fn", parameters_flooring_fn)
def test_update_by_ip1(
    n_bins: int,
    n_frames: int,
    n_sources: int,
    flooring_fn: Optional[Callable[[np.ndarray], np.ndarray]],
):
    X, W, R, _ = create_problem(n_bins, n_frames, n_sources)

    D = compute_weighted_covariance(X, 1 / R)
    loss = compute_gauss_objective(W, X, R)

    W_updated = update_by_ip1(W, D, flooring_fn=flooring_fn, overwrite=False)
    loss_updated = compute_gauss_objective(W_updated, X, R)

    assert W_updated.shape == (n_bins, n_sources, n_sources)
    assert not np.shares_memory(W, W_updated)
    assert np.all(loss_updated <= loss + 1e-8 * np.abs(loss))

    # w_{in}^{H} D_{in} w_{in} = 1 for each updated filter
    for src_idx in range(n_sources):
        w = W_updated[:, src_idx, :]
        wDw = np.einsum("im,imn,in->i", w, D[:, src_idx], w.conj())

        assert np.allclose(wDw.real, 1)


@pytest.mark.parametrize("n_bins, n_frames", parameters)
@pytest.mark.parametrize("n_sources", parameters_n_sources)
@pytest.mark.parametrize("beta", parameters_beta)
@pytest.mark.parametrize("flooring_fn", parameters_flooring_fn)
def test_update_by_projected_ip1(
    n_bins: int,
    n_frames: int,
    n_sources: int,
    beta: float,
    flooring_fn: Optional[Callable[[np.ndarray], np.ndarray]],
):
    X, W, R, L = create_problem(n_bins, n_frames, n_sources)

    W_expected = projected_ip1_by_loop(W, X, R, L, beta)
    W_updated = update_by_projected_ip1(W, X, R, L, beta, flooring_fn=flooring_fn, overwrite=False)

    assert W_updated.shape == (n_bins, n_sources, n_sources)
    assert not np.shares_memory(W, W_updated)
    assert np.allclose(W_updated, W_expected)


@pytest.mark.parametrize("n_bins, n_frames", parameters)
@pytest.mark.parametrize("beta", parameters_beta)
def test_projected_row_is_written(n_bins: int, n_frames: int, beta: float):
    n_sources = 2
    X, W, R, L = create_problem(n_bins, n_frames, n_sources)

    W_projected = projected_ip1_by_loop(W, X, R, L, beta)
    W_plain = projected_ip1_by_loop(W, X, R, L, beta, correction=False)

    W_overwritten = W.copy()
    W_updated = update_by_projected_ip1(W_overwritten, X, R, L, beta)

    assert np.shares_memory(W_overwritten, W_updated)
    assert np.allclose(W_updated, W_projected)
    assert not np.allclose(W_updated[:, 0], W_plain[:, 0])
