import functools
from typing import Callable, List, Optional, Union

import numpy as np

from ..errors import InvalidArgument
from ..special.flooring import EPS, identity, max_flooring
from ..utils._logging import logger
from ..utils.flooring import choose_flooring_fn
from ._update_spatial_model import update_by_ip1, update_by_projected_ip1
from ._validation import check_mixture, check_n_iter, check_positive, check_shape
from .base import IterativeMethodBase, State

__all__ = ["GGDILRMABase", "GGDILRMA", "PartitionedGGDILRMA"]

normalization_methods = ["power"]


class GGDILRMABase(IterativeMethodBase):
    r"""Base class of independent low-rank matrix analysis (ILRMA)
    on a generalized Gaussian distribution.

    We assume :math:`y_{ijn}` follows a generalized Gaussian distribution.

    .. math::
        p(y_{ijn})
        = \frac{\beta}{2\pi r_{ijn}\Gamma\left(\frac{2}{\beta}\right)}
        \exp\left\{-\left(\frac{|y_{ijn}|^{2}}{r_{ijn}}\right)^{\frac{\beta}{2}}\right\},

    where :math:`r_{ijn}=\bar{r}_{ijn}^{2/\rho}` and
    :math:`\bar{r}_{ijn}` is given by NMF. Subclasses define :math:`\bar{r}_{ijn}`.

    Args:
        n_basis (int):
            Number of NMF bases.
        beta (float):
            Shape parameter in generalized Gaussian distribution. Default: ``3``.
        domain (float, optional):
            Domain parameter :math:`\rho`. If ``None``, ``beta`` is used.
            Default: ``None``.
        flooring_fn (callable, optional):
            A flooring function for numerical stability.
            This function is expected to return the same shape tensor as the input.
            If you explicitly set ``flooring_fn=None``,
            the identity function (``lambda x: x``) is used.
            Default: ``functools.partial(max_flooring, eps=EPS)``.
        callbacks (callable or list[callable], optional):
            Callback functions. Each function is called before separation and at each iteration.
            Default: ``None``.
        normalization (bool or str):
            Normalization of demixing filters and NMF parameters.
            ``True`` is same as ``power``. Default: ``True``.
        record_loss (bool):
            Record the loss at each iteration of the update algorithm if ``record_loss=True``.
            Default: ``True``.
        rng (numpy.random.Generator, optional):
            Random number generator. This is mainly used to randomly initialize NMF.
            If ``None`` is given, ``np.random.default_rng()`` is used.
            Default: ``None``.
    """

    def __init__(
        self,
        n_basis: int,
        beta: float = 3,
        domain: Optional[float] = None,
        flooring_fn: Optional[Callable[[np.ndarray], np.ndarray]] = functools.partial(
            max_flooring, eps=EPS
        ),
        callbacks: Optional[
            Union[Callable[["GGDILRMABase"], None], List[Callable[["GGDILRMABase"], None]]]
        ] = None,
        normalization: Union[bool, str] = True,
        record_loss: bool = True,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        super().__init__(callbacks=callbacks, record_loss=record_loss)

        if isinstance(n_basis, bool) or not isinstance(n_basis, (int, np.integer)):
            raise InvalidArgument("n_basis should be integer, but {} is given.".format(n_basis))

        check_positive("n_basis", n_basis)
        check_positive("beta", beta)

        if domain is None:
            domain = beta

        check_positive("domain", domain)

        if type(normalization) is str:
            if normalization not in normalization_methods:
                raise InvalidArgument("Normalization {} is not supported.".format(normalization))
        elif type(normalization) is not bool:
            raise InvalidArgument(
                "normalization should be bool or str, but {} is given.".format(normalization)
            )

        self.n_basis = n_basis
        self.beta = beta
        self.domain = domain
        self.normalization = normalization

        if flooring_fn is None:
            self.flooring_fn = identity
        else:
            self.flooring_fn = flooring_fn

        self.input = None

        if rng is None:
            rng = np.random.default_rng()

        self.rng = rng

    def __call__(
        self, input: np.ndarray, n_iter: int = 100, initial_call: bool = True, **kwargs
    ) -> np.ndarray:
        r"""Separate a frequency-domain multichannel signal.

        Args:
            input (numpy.ndarray):
                The mixture signal in frequency-domain.
                The shape is (n_channels, n_bins, n_frames).
            n_iter (int):
                The number of iterations of demixing filter updates.
                Default: ``100``.
            initial_call (bool):
                If ``True``, perform callbacks (and computation of loss if necessary)
                before iterations.
            kwargs:
                Initial values of ``demix_filter``, ``basis``, ``activation``,
                and ``latent`` (only for partitioning function).

        Returns:
            numpy.ndarray of the separated signal in frequency-domain.
            The shape is (n_sources, n_bins, n_frames).
        """
        check_mixture(input)
        check_n_iter(n_iter)

        self.input = input.astype(np.complex128)

        self._reset(flooring_fn=self.flooring_fn, **kwargs)

        logger.debug("Start {} with {} iterations.", repr(self), n_iter)

        super().__call__(n_iter=n_iter, initial_call=initial_call)

        n_sources, n_bins, n_frames = self.output.shape

        if self.record_loss:
            logger.info(
                "{} done: {} iterations, {} sources, {} bins, {} frames, loss={:.6e}.",
                self.__class__.__name__,
                self.n_iter_done,
                n_sources,
                n_bins,
                n_frames,
                self.loss[-1],
            )
        else:
            logger.info(
                "{} done: {} iterations, {} sources, {} bins, {} frames.",
                self.__class__.__name__,
                self.n_iter_done,
                n_sources,
                n_bins,
                n_frames,
            )

        return self.output

    def _reset(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
        **kwargs,
    ) -> None:
        r"""Reset attributes by given initial values.

        Args:
            flooring_fn (callable or str, optional):
                A flooring function for numerical stability.
                This function is expected to return the same shape tensor as the input.
                If you explicitly set ``flooring_fn=None``,
                the identity function (``lambda x: x``) is used.
                If ``self`` is given as str, ``self.flooring_fn`` is used.
                Default: ``self``.
            kwargs:
                Initial values of demixing filters and NMF parameters.
        """
        assert self.input is not None, "Specify data!"

        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        unknown_keys = set(kwargs.keys()) - set(self.initial_value_keys)

        if len(unknown_keys) > 0:
            raise InvalidArgument(
                "Unknown initial values {} are given to {}.".format(
                    sorted(unknown_keys), self.__class__.__name__
                )
            )

        X = self.input

        n_channels, n_bins, n_frames = X.shape
        n_sources = n_channels  # n_channels == n_sources

        self.n_sources, self.n_channels = n_sources, n_channels
        self.n_bins, self.n_frames = n_bins, n_frames

        demix_filter = kwargs.pop("demix_filter", None)

        if demix_filter is None:
            W = np.eye(n_sources, n_channels, dtype=np.complex128)
            W = np.tile(W, reps=(n_bins, 1, 1))
        else:
            check_shape(
                "demix_filter",
                demix_filter,
                (n_bins, n_sources, n_channels),
                ("n_bins", "n_sources", "n_channels"),
            )
            # To avoid overwriting ``demix_filter`` given by keyword arguments.
            W = demix_filter.astype(np.complex128)

        self.demix_filter = W
        self.update_output(flooring_fn=flooring_fn)

        self._init_nmf(flooring_fn=flooring_fn, rng=self.rng, **kwargs)
        self.update_model(flooring_fn=flooring_fn)

        self.n_iter_done = 0
        self.state = State.INITIALIZED

        if self.record_loss:
            self.loss = []

    def _init_nmf(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
        rng: Optional[np.random.Generator] = None,
        **kwargs,
    ) -> None:
        r"""Initialize NMF parameters."""
        raise NotImplementedError("Implement '_init_nmf' method.")

    @property
    def initial_value_keys(self) -> List[str]:
        return ["demix_filter", "basis", "activation"]

    def separate(self, input: np.ndarray, demix_filter: np.ndarray) -> np.ndarray:
        r"""Separate ``input`` using ``demixing_filter``.

        .. math::
            \boldsymbol{y}_{ij}
            = \boldsymbol{W}_{i}\boldsymbol{x}_{ij}

        Args:
            input (numpy.ndarray):
                The mixture signal in frequency-domain.
                The shape is (n_channels, n_bins, n_frames).
            demix_filter (numpy.ndarray):
                The demixing filters to separate ``input``.
                The shape is (n_bins, n_sources, n_channels).

        Returns:
            numpy.ndarray of the separated signal in frequency-domain.
            The shape is (n_sources, n_bins, n_frames).
        """
        X, W = input, demix_filter
        Y = W @ X.transpose(1, 0, 2)
        output = Y.transpose(1, 0, 2)

        return output

    def update_output(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Recompute separated signal and its power from current demixing filters.

        .. math::
            p_{ijn} = \max(|y_{ijn}|^{\beta}, \epsilon)
        """
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        Y = self.separate(self.input, demix_filter=self.demix_filter)

        self.output = Y
        self.power = flooring_fn(np.abs(Y) ** self.beta)

    def reconstruct_nmf(self, *args, **kwargs) -> np.ndarray:
        r"""Reconstruct NMF."""
        raise NotImplementedError("Implement 'reconstruct_nmf' method.")

    def update_model(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Recompute source model :math:`\bar{r}_{ijn}` from current NMF parameters."""
        raise NotImplementedError("Implement 'update_model' method.")

    def update_once(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update NMF parameters and demixing filters once.

        Args:
            flooring_fn (callable or str, optional):
                A flooring function for numerical stability.
                This function is expected to return the same shape tensor as the input.
                If you explicitly set ``flooring_fn=None``,
                the identity function (``lambda x: x``) is used.
                If ``self`` is given as str, ``self.flooring_fn`` is used.
                Default: ``self``.
        """
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        self.update_source_model(flooring_fn=flooring_fn)
        self.update_spatial_model(flooring_fn=flooring_fn)

        if self.normalization:
            self.normalize(flooring_fn=flooring_fn)

    def update_source_model(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update NMF parameters by MM algorithm."""
        raise NotImplementedError("Implement 'update_source_model' method.")

    def update_spatial_model(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update demixing filters once."""
        raise NotImplementedError("Implement 'update_spatial_model' method.")

    def normalize(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Normalize demixing filters and NMF parameters.

        Args:
            flooring_fn (callable or str, optional):
                A flooring function for numerical stability.
                This function is expected to return the same shape tensor as the input.
                If you explicitly set ``flooring_fn=None``,
                the identity function (``lambda x: x``) is used.
                If ``self`` is given as str, ``self.flooring_fn`` is used.
                Default: ``self``.

        .. note::
            This normalization increases the computational stability,
            but the monotonic decrease of the loss may be lost
            because of numerical errors in this normalization.
        """
        normalization = self.normalization
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        assert normalization, "Set normalization."

        if type(normalization) is bool:
            # when normalization is True
            normalization = "power"

        if normalization == "power":
            self.normalize_by_power(flooring_fn=flooring_fn)
        else:
            raise NotImplementedError("Normalization {} is not implemented.".format(normalization))

    def normalize_by_power(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Normalize demixing filters and NMF parameters by power.

        Demixing filters are normalized by

        .. math::
            \boldsymbol{w}_{in}
            \leftarrow\frac{\boldsymbol{w}_{in}}{\lambda_{n}},

        where

        .. math::
            \lambda_{n}
            = \sqrt{\frac{1}{IJ}\sum_{i,j}p_{ijn}}.

        Then, :math:`p_{ijn}` is recomputed from the rescaled filters
        and :math:`\bar{r}_{ijn}` is divided by :math:`\lambda_{n}^{2}`
        via NMF parameters (see ``rescale_nmf``).

        .. note::
            The loss is unchanged only when :math:`\beta=\rho=2`.
            Otherwise, this normalization changes the loss
            and the monotonic decrease is not expected.
        """
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        P = self.power
        P_mean = np.mean(P, axis=(-2, -1))
        lamb = np.sqrt(flooring_fn(P_mean))

        W = self.demix_filter
        W = W / lamb[np.newaxis, :, np.newaxis]
        self.demix_filter = W
        self.update_output(flooring_fn=flooring_fn)

        self.rescale_nmf(lamb**2, flooring_fn=flooring_fn)
        self.update_model(flooring_fn=flooring_fn)

    def rescale_nmf(
        self,
        scale: np.ndarray,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Divide source model of each source by ``scale`` via NMF parameters."""
        raise NotImplementedError("Implement 'rescale_nmf' method.")

    def compute_loss(self) -> float:
        r"""Compute loss :math:`\mathcal{L}`.

        :math:`\mathcal{L}` is given as follows:

        .. math::
            \mathcal{L}
            = \sum_{i,j,n}\left(\frac{p_{ijn}}{\bar{r}_{ijn}^{\beta/\rho}}
            + \frac{2}{\rho}\log\bar{r}_{ijn}\right)
            - 2J\sum_{i}\log\max(|\det\boldsymbol{W}_{i}|, \epsilon),

        where :math:`p_{ijn}=|y_{ijn}|^{\beta}`.
        This is the negative log-likelihood up to constants,
        which is real and bounded below.

        Returns:
            Computed loss.
        """
        beta, p = self.beta, self.domain
        n_frames = self.n_frames

        P, R = self.power, self.model
        loss = P / (R ** (beta / p)) + (2 / p) * np.log(R)

        logdet = self.compute_logdet(self.demix_filter)  # (n_bins,)
        loss = np.sum(loss) - 2 * n_frames * np.sum(logdet)

        return loss.item()

    def compute_logdet(self, demix_filter: np.ndarray) -> np.ndarray:
        r"""Compute log-determinant of demixing filter.

        Args:
            demix_filter (numpy.ndarray):
                Demixing filters with shape of (n_bins, n_sources, n_channels).

        Returns:
            numpy.ndarray of computed log-determinant values floored at ``log(EPS)``.
        """
        _, logdet = np.linalg.slogdet(demix_filter)  # (n_bins,)

        return np.maximum(logdet, np.log(EPS))


class GGDILRMA(GGDILRMABase):
    r"""Independent low-rank matrix analysis (ILRMA) on a generalized Gaussian distribution
    without partitioning function.

    Each source has its own ``n_basis`` bases, i.e.

    .. math::
        \bar{r}_{ijn}
        = \sum_{k}t_{ikn}v_{kjn}.

    Demixing filters are updated by iterative projection
    with the projected correction (see ``update_by_projected_ip1``).

    Args:
        n_basis (int):
            Number of NMF bases of each source.
        beta (float):
            Shape parameter in generalized Gaussian distribution. Default: ``3``.
        domain (float, optional):
            Domain parameter :math:`\rho`. If ``None``, ``beta`` is used.
            Default: ``None``.
        flooring_fn (callable, optional):
            A flooring function for numerical stability.
            Default: ``functools.partial(max_flooring, eps=EPS)``.
        callbacks (callable or list[callable], optional):
            Callback functions. Each function is called before separation and at each iteration.
            Default: ``None``.
        normalization (bool or str):
            Normalization of demixing filters and NMF parameters. Default: ``True``.
        record_loss (bool):
            Record the loss at each iteration of the update algorithm if ``record_loss=True``.
            Default: ``True``.
        rng (numpy.random.Generator, optional):
            Random number generator to initialize NMF. Default: ``None``.

    Examples:
        .. code-block:: python

            >>> n_channels, n_bins, n_frames = 2, 257, 128
            >>> spectrogram_mix = np.random.randn(n_channels, n_bins, n_frames) \
            ...     + 1j * np.random.randn(n_channels, n_bins, n_frames)

            >>> ilrma = GGDILRMA(n_basis=2, beta=3, rng=np.random.default_rng(42))
            >>> spectrogram_est = ilrma(spectrogram_mix, n_iter=100)
            >>> print(spectrogram_mix.shape, spectrogram_est.shape)
            (2, 257, 128), (2, 257, 128)
    """

    def __repr__(self) -> str:
        s = "GGDILRMA("
        s += "n_basis={n_basis}"
        s += ", beta={beta}"
        s += ", domain={domain}"
        s += ", normalization={normalization}"
        s += ", record_loss={record_loss}"
        s += ")"

        return s.format(**self.__dict__)

    def _init_nmf(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
        rng: Optional[np.random.Generator] = None,
        basis: Optional[np.ndarray] = None,
        activation: Optional[np.ndarray] = None,
    ) -> None:
        r"""Initialize NMF.

        Args:
            flooring_fn (callable or str, optional):
                A flooring function for numerical stability.
                If ``self`` is given as str, ``self.flooring_fn`` is used.
                Default: ``self``.
            rng (numpy.random.Generator, optional):
                Random number generator. If ``None`` is given,
                ``np.random.default_rng()`` is used.
                Default: ``None``.
            basis (numpy.ndarray, optional):
                Initial basis with shape of (n_sources, n_bins, n_basis).
            activation (numpy.ndarray, optional):
                Initial activation with shape of (n_sources, n_basis, n_frames).
        """
        n_basis = self.n_basis
        n_sources = self.n_sources
        n_bins, n_frames = self.n_bins, self.n_frames

        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        if rng is None:
            rng = np.random.default_rng()

        if basis is None:
            T = rng.random((n_sources, n_bins, n_basis))
        else:
            check_shape(
                "basis", basis, (n_sources, n_bins, n_basis), ("n_sources", "n_bins", "n_basis")
            )
            # To avoid overwriting.
            T = basis.astype(np.float64)

        if activation is None:
            V = rng.random((n_sources, n_basis, n_frames))
        else:
            check_shape(
                "activation",
                activation,
                (n_sources, n_basis, n_frames),
                ("n_sources", "n_basis", "n_frames"),
            )
            V = activation.astype(np.float64)

        self.basis, self.activation = flooring_fn(T), flooring_fn(V)

    def _reset(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
        **kwargs,
    ) -> None:
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        super()._reset(flooring_fn=flooring_fn, **kwargs)

        self.update_auxiliary_scale(flooring_fn=flooring_fn)

    def reconstruct_nmf(self, basis: np.ndarray, activation: np.ndarray) -> np.ndarray:
        r"""Reconstruct NMF.

        Args:
            basis (numpy.ndarray):
                Basis matrix with shape of (n_sources, n_bins, n_basis).
            activation (numpy.ndarray):
                Activation matrix with shape of (n_sources, n_basis, n_frames).

        Returns:
            numpy.ndarray of reconstructed NMF.
            The shape is (n_sources, n_bins, n_frames).
        """
        T, V = basis, activation

        return T @ V

    def update_model(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        R = self.reconstruct_nmf(self.basis, self.activation)
        self.model = flooring_fn(R)

    def update_source_model(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update NMF bases, activations, and auxiliary scale by MM algorithm.

        NMF parameters of each source only depend on the power of the same source,
        so all sources are updated at once.
        """
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        self.update_basis_mm(flooring_fn=flooring_fn)
        self.update_activation_mm(flooring_fn=flooring_fn)
        self.update_auxiliary_scale(flooring_fn=flooring_fn)

    def update_basis_mm(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update NMF bases by MM algorithm.

        Update :math:`t_{ikn}` as follows:

        .. math::
            t_{ikn}
            \leftarrow\left[
            \frac{\beta}{2}
            \frac{\displaystyle\sum_{j}\frac{v_{kjn}}
            {\bar{r}_{ijn}^{\frac{\beta+\rho}{\rho}}}p_{ijn}}
            {\displaystyle\sum_{j}\frac{v_{kjn}}{\bar{r}_{ijn}}}
            \right]^{\frac{\rho}{\beta+\rho}}t_{ikn}.
        """
        p = self.domain
        beta = self.beta
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        p_bp = p / (beta + p)
        bp_p = (beta + p) / p

        P, R = self.power, self.model
        T, V = self.basis, self.activation
        V_transpose = V.transpose(0, 2, 1)

        num = (beta / 2) * ((P / R**bp_p) @ V_transpose)
        denom = (1 / R) @ V_transpose

        T = ((num / denom) ** p_bp) * T
        T = flooring_fn(T)

        self.basis = T
        self.update_model(flooring_fn=flooring_fn)

    def update_activation_mm(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update NMF activations by MM algorithm.

        Update :math:`v_{kjn}` as follows:

        .. math::
            v_{kjn}
            \leftarrow\left[
            \frac{\beta}{2}
            \frac{\displaystyle\sum_{i}\frac{t_{ikn}}
            {\bar{r}_{ijn}^{\frac{\beta+\rho}{\rho}}}p_{ijn}}
            {\displaystyle\sum_{i}\frac{t_{ikn}}{\bar{r}_{ijn}}}
            \right]^{\frac{\rho}{\beta+\rho}}v_{kjn}.
        """
        p = self.domain
        beta = self.beta
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        p_bp = p / (beta + p)
        bp_p = (beta + p) / p

        P, R = self.power, self.model
        T, V = self.basis, self.activation
        T_transpose = T.transpose(0, 2, 1)

        num = (beta / 2) * (T_transpose @ (P / R**bp_p))
        denom = T_transpose @ (1 / R)

        V = ((num / denom) ** p_bp) * V
        V = flooring_fn(V)

        self.activation = V
        self.update_model(flooring_fn=flooring_fn)

    def update_auxiliary_scale(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update auxiliary scale used to normalize mixtures in demixing filter updates.

        .. math::
            l_{ijn}
            = \left(|y_{ijn}|^{4-\beta}\bar{r}_{ijn}^{\beta}\right)^{\frac{1}{4}}

        The modulus of :math:`y_{ijn}` is used so that :math:`l_{ijn}` is real
        for any :math:`\beta`.
        """
        beta = self.beta
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        Y, R = self.output, self.model
        Y_abs = flooring_fn(np.abs(Y))
        L = ((Y_abs ** (4 - beta)) * (R**beta)) ** (1 / 4)

        self.auxiliary_scale = flooring_fn(L)

    def update_spatial_model(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update demixing filters once using projected iterative projection.

        See ``update_by_projected_ip1`` for the auxiliary matrix :math:`\boldsymbol{G}_{in}`
        built from :math:`\boldsymbol{x}_{ij}/l_{ijn}` and :math:`\bar{r}_{ijn}`.
        """
        beta = self.beta
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        X, W = self.input, self.demix_filter
        R, L = self.model, self.auxiliary_scale

        self.demix_filter = update_by_projected_ip1(W, X, R, L, beta, flooring_fn=flooring_fn)
        self.update_output(flooring_fn=flooring_fn)

    def rescale_nmf(
        self,
        scale: np.ndarray,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Rescale NMF bases.

        .. math::
            t_{ikn}
            \leftarrow\frac{t_{ikn}}{\lambda_{n}^{2}}
        """
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        T = self.basis
        T = T / scale[:, np.newaxis, np.newaxis]

        self.basis = flooring_fn(T)


class PartitionedGGDILRMA(GGDILRMABase):
    r"""Independent low-rank matrix analysis (ILRMA) on a generalized Gaussian distribution
    with partitioning function.

    ``n_basis`` bases are shared among sources and softly assigned to them
    by latent variables :math:`z_{nk}` (:math:`\sum_{n}z_{nk}=1`), i.e.

    .. math::
        \bar{r}_{ijn}
        = \sum_{k}z_{nk}t_{ik}v_{kj}.

    Demixing filters are updated by iterative projection (see ``update_by_ip1``).

    Args:
        n_basis (int):
            Number of NMF bases shared among all sources.
        beta (float):
            Shape parameter in generalized Gaussian distribution. Default: ``3``.
        domain (float, optional):
            Domain parameter :math:`\rho`. If ``None``, ``beta`` is used.
            Default: ``None``.
        flooring_fn (callable, optional):
            A flooring function for numerical stability.
            Default: ``functools.partial(max_flooring, eps=EPS)``.
        callbacks (callable or list[callable], optional):
            Callback functions. Each function is called before separation and at each iteration.
            Default: ``None``.
        normalization (bool or str):
            Normalization of demixing filters and NMF parameters. Default: ``True``.
        record_loss (bool):
            Record the loss at each iteration of the update algorithm if ``record_loss=True``.
            Default: ``True``.
        rng (numpy.random.Generator, optional):
            Random number generator to initialize NMF. Default: ``None``.

    Examples:
        .. code-block:: python

            >>> n_channels, n_bins, n_frames = 2, 257, 128
            >>> spectrogram_mix = np.random.randn(n_channels, n_bins, n_frames) \
            ...     + 1j * np.random.randn(n_channels, n_bins, n_frames)

            >>> ilrma = PartitionedGGDILRMA(n_basis=4, beta=2, rng=np.random.default_rng(42))
            >>> spectrogram_est = ilrma(spectrogram_mix, n_iter=100)
            >>> print(spectrogram_mix.shape, spectrogram_est.shape)
            (2, 257, 128), (2, 257, 128)
    """

    def __repr__(self) -> str:
        s = "PartitionedGGDILRMA("
        s += "n_basis={n_basis}"
        s += ", beta={beta}"
        s += ", domain={domain}"
        s += ", normalization={normalization}"
        s += ", record_loss={record_loss}"
        s += ")"

        return s.format(**self.__dict__)

    @property
    def initial_value_keys(self) -> List[str]:
        return ["demix_filter", "basis", "activation", "latent"]

    def _init_nmf(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
        rng: Optional[np.random.Generator] = None,
        basis: Optional[np.ndarray] = None,
        activation: Optional[np.ndarray] = None,
        latent: Optional[np.ndarray] = None,
    ) -> None:
        r"""Initialize NMF.

        Given latent variables are also normalized so that :math:`\sum_{n}z_{nk}=1`.

        Args:
            flooring_fn (callable or str, optional):
                A flooring function for numerical stability.
                If ``self`` is given as str, ``self.flooring_fn`` is used.
                Default: ``self``.
            rng (numpy.random.Generator, optional):
                Random number generator. If ``None`` is given,
                ``np.random.default_rng()`` is used.
                Default: ``None``.
            basis (numpy.ndarray, optional):
                Initial basis with shape of (n_bins, n_basis).
            activation (numpy.ndarray, optional):
                Initial activation with shape of (n_basis, n_frames).
            latent (numpy.ndarray, optional):
                Initial latent variables with shape of (n_sources, n_basis).
        """
        n_basis = self.n_basis
        n_sources = self.n_sources
        n_bins, n_frames = self.n_bins, self.n_frames

        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        if rng is None:
            rng = np.random.default_rng()

        if latent is None:
            Z = rng.random((n_sources, n_basis))
        else:
            check_shape("latent", latent, (n_sources, n_basis), ("n_sources", "n_basis"))
            # To avoid overwriting.
            Z = latent.astype(np.float64)

        if basis is None:
            T = rng.random((n_bins, n_basis))
        else:
            check_shape("basis", basis, (n_bins, n_basis), ("n_bins", "n_basis"))
            T = basis.astype(np.float64)

        if activation is None:
            V = rng.random((n_basis, n_frames))
        else:
            check_shape("activation", activation, (n_basis, n_frames), ("n_basis", "n_frames"))
            V = activation.astype(np.float64)

        Z = flooring_fn(Z)
        Z = Z / Z.sum(axis=0)

        self.latent = flooring_fn(Z)
        self.basis, self.activation = flooring_fn(T), flooring_fn(V)

    def reconstruct_nmf(
        self, basis: np.ndarray, activation: np.ndarray, latent: np.ndarray
    ) -> np.ndarray:
        r"""Reconstruct NMF.

        Args:
            basis (numpy.ndarray):
                Basis matrix with shape of (n_bins, n_basis).
            activation (numpy.ndarray):
                Activation matrix with shape of (n_basis, n_frames).
            latent (numpy.ndarray):
                Latent variables with shape of (n_sources, n_basis).

        Returns:
            numpy.ndarray of reconstructed NMF.
            The shape is (n_sources, n_bins, n_frames).
        """
        Z = latent
        T, V = basis, activation
        ZT = Z[:, np.newaxis, :] * T[np.newaxis, :, :]  # (n_sources, n_bins, n_basis)

        return ZT @ V

    def update_model(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        R = self.reconstruct_nmf(self.basis, self.activation, latent=self.latent)
        self.model = flooring_fn(R)

    def update_source_model(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update latent variables, NMF bases, and activations by MM algorithm."""
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        self.update_latent_mm(flooring_fn=flooring_fn)
        self.update_basis_mm(flooring_fn=flooring_fn)
        self.update_activation_mm(flooring_fn=flooring_fn)

    def update_latent_mm(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update latent variables in NMF by MM algorithm.

        Update :math:`z_{nk}` as follows:

        .. math::
            z_{nk}
            \leftarrow\left[
            \frac{\beta}{2}
            \frac{\displaystyle\sum_{i,j}\frac{t_{ik}v_{kj}}
            {\bar{r}_{ijn}^{\frac{\beta+\rho}{\rho}}}p_{ijn}}
            {\displaystyle\sum_{i,j}\frac{t_{ik}v_{kj}}{\bar{r}_{ijn}}}
            \right]^{\frac{\rho}{\beta+\rho}}z_{nk}.

        Then, :math:`\sum_{n}z_{nk}` is moved to :math:`t_{ik}`,
        which keeps :math:`\bar{r}_{ijn}` and makes :math:`\sum_{n}z_{nk}=1`.
        """
        p = self.domain
        beta = self.beta
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        p_bp = p / (beta + p)
        bp_p = (beta + p) / p

        P, R = self.power, self.model
        Z = self.latent
        T, V = self.basis, self.activation

        PRV = (P / R**bp_p) @ V.transpose(1, 0)  # (n_sources, n_bins, n_basis)
        RV = (1 / R) @ V.transpose(1, 0)
        num = (beta / 2) * np.sum(T * PRV, axis=1)
        denom = np.sum(T * RV, axis=1)

        Z = ((num / denom) ** p_bp) * Z
        Z = flooring_fn(Z)

        self.latent, self.basis = self._normalize_latent(Z, T, flooring_fn=flooring_fn)
        self.update_model(flooring_fn=flooring_fn)

    def update_basis_mm(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update NMF bases by MM algorithm.

        Update :math:`t_{ik}` as follows:

        .. math::
            t_{ik}
            \leftarrow\left[
            \frac{\beta}{2}
            \frac{\displaystyle\sum_{j,n}\frac{z_{nk}v_{kj}}
            {\bar{r}_{ijn}^{\frac{\beta+\rho}{\rho}}}p_{ijn}}
            {\displaystyle\sum_{j,n}\frac{z_{nk}v_{kj}}{\bar{r}_{ijn}}}
            \right]^{\frac{\rho}{\beta+\rho}}t_{ik}.
        """
        p = self.domain
        beta = self.beta
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        p_bp = p / (beta + p)
        bp_p = (beta + p) / p

        P, R = self.power, self.model
        Z = self.latent
        T, V = self.basis, self.activation

        PRV = (P / R**bp_p) @ V.transpose(1, 0)  # (n_sources, n_bins, n_basis)
        RV = (1 / R) @ V.transpose(1, 0)
        num = (beta / 2) * np.sum(Z[:, np.newaxis, :] * PRV, axis=0)
        denom = np.sum(Z[:, np.newaxis, :] * RV, axis=0)

        T = ((num / denom) ** p_bp) * T
        T = flooring_fn(T)

        self.basis = T
        self.update_model(flooring_fn=flooring_fn)

    def update_activation_mm(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update NMF activations by MM algorithm.

        Update :math:`v_{kj}` as follows:

        .. math::
            v_{kj}
            \leftarrow\left[
            \frac{\beta}{2}
            \frac{\displaystyle\sum_{i,n}\frac{z_{nk}t_{ik}}
            {\bar{r}_{ijn}^{\frac{\beta+\rho}{\rho}}}p_{ijn}}
            {\displaystyle\sum_{i,n}\frac{z_{nk}t_{ik}}{\bar{r}_{ijn}}}
            \right]^{\frac{\rho}{\beta+\rho}}v_{kj}.
        """
        p = self.domain
        beta = self.beta
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        p_bp = p / (beta + p)
        bp_p = (beta + p) / p

        P, R = self.power, self.model
        Z = self.latent
        T, V = self.basis, self.activation

        ZT = Z[:, np.newaxis, :] * T[np.newaxis, :, :]  # (n_sources, n_bins, n_basis)
        ZT_transpose = ZT.transpose(0, 2, 1)
        num = (beta / 2) * np.sum(ZT_transpose @ (P / R**bp_p), axis=0)
        denom = np.sum(ZT_transpose @ (1 / R), axis=0)

        V = ((num / denom) ** p_bp) * V
        V = flooring_fn(V)

        self.activation = V
        self.update_model(flooring_fn=flooring_fn)

    def update_spatial_model(
        self,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Update demixing filters once using iterative projection.

        The weighted covariance matrix is computed as

        .. math::
            \boldsymbol{D}_{in}
            = \frac{1}{J}\sum_{j}
            \frac{\boldsymbol{x}_{ij}\boldsymbol{x}_{ij}^{\mathsf{H}}}{\bar{r}_{ijn}},

        and each updated filter satisfies
        :math:`\boldsymbol{w}_{in}^{\mathsf{H}}\boldsymbol{D}_{in}\boldsymbol{w}_{in}=1`.
        """
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        X, W = self.input, self.demix_filter
        R = self.model

        varphi = 1 / R
        varphi = varphi.transpose(1, 0, 2)  # (n_bins, n_sources, n_frames)

        X_transpose = X.transpose(1, 0, 2)  # (n_bins, n_channels, n_frames)
        X_Hermite = X_transpose.transpose(0, 2, 1).conj()
        varphi_X = varphi[:, :, np.newaxis, :] * X_transpose[:, np.newaxis, :, :]
        D = (varphi_X @ X_Hermite[:, np.newaxis, :, :]) / self.n_frames

        self.demix_filter = update_by_ip1(W, D, flooring_fn=flooring_fn)
        self.update_output(flooring_fn=flooring_fn)

    def rescale_nmf(
        self,
        scale: np.ndarray,
        flooring_fn: Optional[Union[str, Callable[[np.ndarray], np.ndarray]]] = "self",
    ) -> None:
        r"""Rescale latent variables and NMF bases.

        .. math::
            t_{ik}
            &\leftarrow t_{ik}\sum_{n}\frac{z_{nk}}{\lambda_{n}^{2}}, \\
            z_{nk}
            &\leftarrow \frac{z_{nk}/\lambda_{n}^{2}}
            {\sum_{n'}z_{n'k}/\lambda_{n'}^{2}}.
        """
        flooring_fn = choose_flooring_fn(flooring_fn, method=self)

        Z, T = self.latent, self.basis
        Z = Z / scale[:, np.newaxis]

        self.latent, self.basis = self._normalize_latent(Z, T, flooring_fn=flooring_fn)

    def _normalize_latent(
        self,
        latent: np.ndarray,
        basis: np.ndarray,
        flooring_fn: Callable[[np.ndarray], np.ndarray],
    ):
        Z, T = latent, basis

        scale = np.sum(Z, axis=0)
        Z = Z / scale
        T = T * scale

        return flooring_fn(Z), flooring_fn(T)
