import enum
import functools
import math
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from .bss._validation import check_mixture, check_n_iter, check_shape
from .bss.ilrma import GGDILRMA, GGDILRMABase, PartitionedGGDILRMA
from .errors import InvalidArgument, ShapeMismatch
from .special.flooring import EPS, max_flooring
from .utils._logging import logger

__all__ = ["Variant", "run"]


class Variant(str, enum.Enum):
    r"""Parameterization of the source model.

    - ``NO_PARTITION``: each source owns ``n_basis`` bases.
    - ``PARTITION``: ``n_basis`` bases are shared among sources via latent variables.
    """

    NO_PARTITION = "no_partition"
    PARTITION = "partition"


def _to_variant(variant: Union[str, Variant]) -> Variant:
    try:
        return Variant(variant)
    except ValueError as e:
        raise InvalidArgument(
            "variant should be one of {}, but {} is given.".format(
                [v.value for v in Variant], variant
            )
        ) from e


def run(
    input: np.ndarray,
    variant: Union[str, Variant] = Variant.NO_PARTITION,
    n_iter: int = 100,
    n_basis: Optional[int] = None,
    compute_cost: bool = False,
    normalize: bool = True,
    beta: float = 3,
    domain: Optional[float] = None,
    demix_filter: Optional[np.ndarray] = None,
    basis: Optional[np.ndarray] = None,
    activation: Optional[np.ndarray] = None,
    latent: Optional[np.ndarray] = None,
    rng: Optional[np.random.Generator] = None,
    callbacks: Optional[
        Union[Callable[[GGDILRMABase], None], List[Callable[[GGDILRMABase], None]]]
    ] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    r"""Separate a frequency-domain mixture by GGD-ILRMA.

    Unlike the estimator classes, this function takes frequency-first tensors.

    Args:
        input (numpy.ndarray):
            The mixture signal with shape of (n_bins, n_frames, n_channels).
        variant (str or Variant):
            ``"no_partition"`` or ``"partition"``. Default: ``"no_partition"``.
        n_iter (int):
            The number of iterations. Should be positive. Default: ``100``.
        n_basis (int, optional):
            Number of NMF bases. If ``None``, ``ceil(n_frames / 10)`` is used.
        compute_cost (bool):
            Compute the negative log-likelihood before and after each iteration.
            Default: ``False``.
        normalize (bool):
            Normalize demixing filters and NMF parameters at each iteration.
            Default: ``True``.
        beta (float):
            Shape parameter in generalized Gaussian distribution. Default: ``3``.
        domain (float, optional):
            Domain parameter. If ``None``, ``beta`` is used.
        demix_filter (numpy.ndarray, optional):
            Initial demixing filters with shape of (n_sources, n_channels, n_bins).
        basis (numpy.ndarray, optional):
            Initial bases with shape of (n_bins, n_basis, n_sources) for ``"no_partition"``
            and (n_bins, n_basis) for ``"partition"``.
        activation (numpy.ndarray, optional):
            Initial activations with shape of (n_basis, n_frames, n_sources)
            for ``"no_partition"`` and (n_basis, n_frames) for ``"partition"``.
        latent (numpy.ndarray, optional):
            Initial latent variables with shape of (n_sources, n_basis).
            Only for ``"partition"``.
        rng (numpy.random.Generator, optional):
            Random number generator to initialize NMF.
        callbacks (callable or list[callable], optional):
            Callback functions called with the estimator before separation
            and at each iteration.

    Returns:
        Tuple of separated signal with shape of (n_bins, n_frames, n_sources),
        cost with shape of (n_iter + 1,), and demixing filters
        with shape of (n_sources, n_channels, n_bins).
        The cost is filled with ``nan`` when ``compute_cost=False``.

    Raises:
        ShapeMismatch: If shapes of given tensors are inconsistent.
        InvalidArgument: If ``variant`` is unknown or a hyperparameter is not positive.
        SingularSystem: If a demixing filter update fails.
    """
    variant = _to_variant(variant)
    check_n_iter(n_iter, allow_zero=False)

    if input.ndim != 3:
        raise ShapeMismatch(
            "Mixture should be 3D tensor (n_bins, n_frames, n_channels), "
            "but {}D tensor is given.".format(input.ndim)
        )

    X = input.transpose(2, 0, 1)  # (n_channels, n_bins, n_frames)
    n_channels, n_bins, n_frames = check_mixture(X)
    n_sources = n_channels

    if n_basis is None:
        n_basis = math.ceil(n_frames / 10)

    if variant is Variant.NO_PARTITION:
        cls = GGDILRMA
    else:
        cls = PartitionedGGDILRMA

    ilrma = cls(
        n_basis,
        beta=beta,
        domain=domain,
        flooring_fn=functools.partial(max_flooring, eps=EPS),
        callbacks=callbacks,
        normalization=normalize,
        record_loss=compute_cost,
        rng=rng,
    )

    kwargs = _collect_initial_values(
        variant,
        (n_sources, n_channels, n_bins, n_frames, n_basis),
        demix_filter=demix_filter,
        basis=basis,
        activation=activation,
        latent=latent,
    )

    logger.debug("Run {} on mixture of shape {}.", variant.value, input.shape)

    Y = ilrma(X, n_iter=n_iter, **kwargs)

    output = Y.transpose(1, 2, 0)
    W = ilrma.demix_filter.transpose(1, 2, 0)

    if compute_cost:
        cost = np.asarray(ilrma.loss, dtype=np.float64)
    else:
        cost = np.full((n_iter + 1,), np.nan)

    return output, cost, W


def _collect_initial_values(
    variant: Variant,
    sizes: Tuple[int, int, int, int, int],
    demix_filter: Optional[np.ndarray] = None,
    basis: Optional[np.ndarray] = None,
    activation: Optional[np.ndarray] = None,
    latent: Optional[np.ndarray] = None,
) -> Dict[str, np.ndarray]:
    r"""Check shapes of initial values and convert them to the layout of estimators.

    Args:
        variant (Variant):
            Parameterization of the source model.
        sizes (tuple of int):
            ``(n_sources, n_channels, n_bins, n_frames, n_basis)``.

    Returns:
        Dictionary of initial values passed to estimator as keyword arguments.
    """
    n_sources, n_channels, n_bins, n_frames, n_basis = sizes
    kwargs = {}

    if demix_filter is not None:
        check_shape(
            "demix_filter",
            demix_filter,
            (n_sources, n_channels, n_bins),
            ("n_sources", "n_channels", "n_bins"),
        )
        kwargs["demix_filter"] = demix_filter.transpose(2, 0, 1)

    if variant is Variant.NO_PARTITION:
        if latent is not None:
            raise InvalidArgument("latent is available only for partition variant.")

        if basis is not None:
            check_shape(
                "basis", basis, (n_bins, n_basis, n_sources), ("n_bins", "n_basis", "n_sources")
            )
            kwargs["basis"] = basis.transpose(2, 0, 1)

        if activation is not None:
            check_shape(
                "activation",
                activation,
                (n_basis, n_frames, n_sources),
                ("n_basis", "n_frames", "n_sources"),
            )
            kwargs["activation"] = activation.transpose(2, 0, 1)

        return kwargs

    # partition variant shares the layout of estimator class
    if basis is not None:
        check_shape("basis", basis, (n_bins, n_basis), ("n_bins", "n_basis"))
        kwargs["basis"] = basis

    if activation is not None:
        check_shape("activation", activation, (n_basis, n_frames), ("n_basis", "n_frames"))
        kwargs["activation"] = activation

    if latent is not None:
        check_shape("latent", latent, (n_sources, n_basis), ("n_sources", "n_basis"))
        kwargs["latent"] = latent

    return kwargs
