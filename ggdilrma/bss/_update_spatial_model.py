import functools
from typing import Callable, Optional

import numpy as np

from ..linalg import solve
from ..special.flooring import EPS, identity, max_flooring

__all__ = [
    "update_by_ip1",
    "update_by_projected_ip1",
]


def update_by_ip1(
    demix_filter: np.ndarray,
    weighted_covariance: np.ndarray,
    flooring_fn: Optional[Callable[[np.ndarray], np.ndarray]] = functools.partial(
        max_flooring, eps=EPS
    ),
    overwrite: bool = True,
) -> np.ndarray:
    r"""Update demixing filters by iterative projection.

    Demixing filters are updated sequentially for :math:`n=1,\ldots,N` as follows:

    .. math::
        \boldsymbol{w}_{in}
        &\leftarrow\left(\boldsymbol{W}_{i}\boldsymbol{D}_{in}\right)^{-1}
        \boldsymbol{e}_{n}, \\
        \boldsymbol{w}_{in}
        &\leftarrow\frac{\boldsymbol{w}_{in}}
        {\sqrt{\boldsymbol{w}_{in}^{\mathsf{H}}\boldsymbol{D}_{in}\boldsymbol{w}_{in}}}.

    Args:
        demix_filter (numpy.ndarray):
            Demixing filters to be updated.
            The shape is (n_bins, n_sources, n_channels).
        weighted_covariance (numpy.ndarray):
            Weighted covariance matrix.
            The shape is (n_bins, n_sources, n_channels, n_channels).
        flooring_fn (callable, optional):
            A flooring function for numerical stability.
            This function is expected to return the same shape tensor as the input.
            If you explicitly set ``flooring_fn=None``,
            the identity function (``lambda x: x``) is used.
            Default: ``functools.partial(max_flooring, eps=EPS)``.
        overwrite (bool):
            Overwrite ``demix_filter`` if ``overwrite=True``.
            Default: ``True``.

    Returns:
        numpy.ndarray of updated demixing filters.
        The shape is (n_bins, n_sources, n_channels).

    Raises:
        SingularSystem: If :math:`\boldsymbol{W}_{i}\boldsymbol{D}_{in}` is singular.
    """
    if flooring_fn is None:
        flooring_fn = identity

    if overwrite:
        W = demix_filter
    else:
        W = demix_filter.copy()

    U = weighted_covariance

    n_bins, n_sources, n_channels = W.shape

    E = np.eye(n_sources, n_channels)  # (n_sources, n_channels)
    E = np.tile(E, reps=(n_bins, 1, 1))  # (n_bins, n_sources, n_channels)

    for src_idx in range(n_sources):
        U_n = U[:, src_idx, :, :]
        e_n = E[:, src_idx, :]

        WU = W @ U_n
        w_n = solve(WU, e_n)  # (n_bins, n_channels)
        wUw = np.real(_quadratic(w_n, U_n, w_n))
        wUw = np.maximum(wUw, 0)
        denom = np.sqrt(wUw)
        denom = flooring_fn(denom)
        w_n_Hermite = w_n.conj() / denom[:, np.newaxis]
        W[:, src_idx, :] = w_n_Hermite

    return W


def update_by_projected_ip1(
    demix_filter: np.ndarray,
    input: np.ndarray,
    model: np.ndarray,
    auxiliary_scale: np.ndarray,
    beta: float,
    flooring_fn: Optional[Callable[[np.ndarray], np.ndarray]] = functools.partial(
        max_flooring, eps=EPS
    ),
    overwrite: bool = True,
) -> np.ndarray:
    r"""Update demixing filters by iterative projection with projected correction.

    For :math:`n=1,\ldots,N`, mixtures are normalized by the auxiliary scale
    :math:`\boldsymbol{h}_{ij}=\boldsymbol{x}_{ij}/l_{ijn}`, and

    .. math::
        q_{ij}
        &= \left(\boldsymbol{w}_{in}^{\mathsf{H}}\boldsymbol{h}_{ij}\right)^{*}, \\
        \boldsymbol{G}_{in}
        &= c_{in}\left(
        \|\boldsymbol{q}_{i}\|^{2}\sum_{j}\boldsymbol{h}_{ij}\boldsymbol{h}_{ij}^{\mathsf{H}}
        + \sum_{j}\frac{|q_{ij}|}{r_{ijn}^{2}}\boldsymbol{x}_{ij}\boldsymbol{x}_{ij}^{\mathsf{H}}
        - \left(\sum_{j}q_{ij}\boldsymbol{h}_{ij}\right)
        \left(\sum_{j}q_{ij}\boldsymbol{h}_{ij}\right)^{\mathsf{H}}
        \right), \\
        c_{in}
        &= \frac{\sqrt{\beta}}{2\sqrt{J\sum_{j}|q_{ij}|^{\beta}}}.

    Then,

    .. math::
        \boldsymbol{w}_{in}^{\mathrm{mm}}
        &= \left(\boldsymbol{W}_{i}\boldsymbol{G}_{in}\right)^{-1}\boldsymbol{e}_{n}, \\
        \boldsymbol{w}_{in}
        &\leftarrow 2\frac{{\boldsymbol{w}_{in}^{\mathrm{mm}}}^{\mathsf{H}}
        \boldsymbol{G}_{in}\boldsymbol{w}_{in}}
        {{\boldsymbol{w}_{in}^{\mathrm{mm}}}^{\mathsf{H}}
        \boldsymbol{G}_{in}\boldsymbol{w}_{in}^{\mathrm{mm}}}
        \boldsymbol{w}_{in}^{\mathrm{mm}} - \boldsymbol{w}_{in}, \\
        \boldsymbol{w}_{in}
        &\leftarrow\left(\frac{2J}{\beta\displaystyle\sum_{j}
        |\boldsymbol{w}_{in}^{\mathsf{H}}\boldsymbol{x}_{ij}|/r_{ijn}}\right)^{\frac{1}{\beta}}
        \boldsymbol{w}_{in}.

    Args:
        demix_filter (numpy.ndarray):
            Demixing filters to be updated.
            The shape is (n_bins, n_sources, n_channels).
        input (numpy.ndarray):
            The mixture signal in frequency-domain.
            The shape is (n_channels, n_bins, n_frames).
        model (numpy.ndarray):
            Source model :math:`r_{ijn}`.
            The shape is (n_sources, n_bins, n_frames).
        auxiliary_scale (numpy.ndarray):
            Auxiliary scale :math:`l_{ijn}`.
            The shape is (n_sources, n_bins, n_frames).
        beta (float):
            Shape parameter of generalized Gaussian distribution.
        flooring_fn (callable, optional):
            A flooring function for numerical stability.
            If you explicitly set ``flooring_fn=None``,
            the identity function (``lambda x: x``) is used.
            Default: ``functools.partial(max_flooring, eps=EPS)``.
        overwrite (bool):
            Overwrite ``demix_filter`` if ``overwrite=True``.
            Default: ``True``.

    Returns:
        numpy.ndarray of updated demixing filters.
        The shape is (n_bins, n_sources, n_channels).

    Raises:
        SingularSystem: If :math:`\boldsymbol{W}_{i}\boldsymbol{G}_{in}` is singular.
    """
    if flooring_fn is None:
        flooring_fn = identity

    if overwrite:
        W = demix_filter
    else:
        W = demix_filter.copy()

    X = input.transpose(1, 0, 2)  # (n_bins, n_channels, n_frames)
    X_Hermite = X.transpose(0, 2, 1).conj()

    n_bins, n_sources, n_channels = W.shape
    n_frames = X.shape[-1]

    E = np.eye(n_sources, n_channels)
    E = np.tile(E, reps=(n_bins, 1, 1))

    for src_idx in range(n_sources):
        R_n = model[src_idx]  # (n_bins, n_frames)
        L_n = auxiliary_scale[src_idx]
        e_n = E[:, src_idx, :]

        H = X / L_n[:, np.newaxis, :]  # (n_bins, n_channels, n_frames)
        H_Hermite = H.transpose(0, 2, 1).conj()
        w_n = W[:, src_idx, :].conj()  # (n_bins, n_channels)

        # q_{ij} = (w_{in}^{H} h_{ij})^{*}
        q = (w_n[:, np.newaxis, :].conj() @ H)[:, 0, :].conj()  # (n_bins, n_frames)
        q_abs = np.abs(q)

        coeff = np.sqrt(n_frames * np.sum(q_abs**beta, axis=-1))
        coeff = np.sqrt(beta) / (2 * flooring_fn(coeff))
        norm_q = np.sum(q_abs**2, axis=-1)

        HH = H @ H_Hermite
        F = ((q_abs / R_n**2)[:, np.newaxis, :] * X) @ X_Hermite
        Hq = H @ q[:, :, np.newaxis]  # (n_bins, n_channels, 1)
        HqqH = Hq @ Hq.transpose(0, 2, 1).conj()

        G = norm_q[:, np.newaxis, np.newaxis] * HH + F - HqqH
        G = coeff[:, np.newaxis, np.newaxis] * G

        w_mm = solve(W @ G, e_n)  # (n_bins, n_channels)

        num = _quadratic(w_mm, G, w_n)
        denom = np.real(_quadratic(w_mm, G, w_mm))
        denom = flooring_fn(np.maximum(denom, 0))
        w_n = 2 * (num / denom)[:, np.newaxis] * w_mm - w_n

        y = (w_n[:, np.newaxis, :].conj() @ X)[:, 0, :]  # (n_bins, n_frames)
        yR = flooring_fn(np.sum(np.abs(y) / R_n, axis=-1))
        scale = (2 * n_frames / (beta * yR)) ** (1 / beta)
        w_n = w_n * scale[:, np.newaxis]

        W[:, src_idx, :] = w_n.conj()

    return W


def _quadratic(x: np.ndarray, A: np.ndarray, y: np.ndarray) -> np.ndarray:
    # x^H A y for batches of vectors
    xAy = x[:, np.newaxis, :].conj() @ A @ y[:, :, np.newaxis]

    return xAy[:, 0, 0]
