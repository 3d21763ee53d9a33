from typing import Sequence, Tuple

import numpy as np

from ..errors import InvalidArgument, ShapeMismatch


def check_mixture(input: np.ndarray) -> Tuple[int, int, int]:
    r"""Check shape of mixture spectrogram.

    Args:
        input (numpy.ndarray):
            The mixture signal in frequency-domain.
            The shape is (n_channels, n_bins, n_frames).

    Returns:
        Tuple of ``n_channels``, ``n_bins``, and ``n_frames``.

    Raises:
        ShapeMismatch: If ``input`` is not 3D or ``n_channels > n_bins``.
    """
    if input.ndim != 3:
        raise ShapeMismatch(
            "Mixture should be 3D tensor (n_channels, n_bins, n_frames), "
            "but {}D tensor is given.".format(input.ndim)
        )

    n_channels, n_bins, n_frames = input.shape
    n_sources = n_channels

    if n_sources > n_bins:
        raise ShapeMismatch(
            "n_sources (= n_channels = {}) should not exceed n_bins (= {}). "
            "The spectrogram might be wrong.".format(n_sources, n_bins)
        )

    return n_channels, n_bins, n_frames


def check_shape(
    name: str, input: np.ndarray, expected: Sequence[int], axis_names: Sequence[str]
) -> None:
    r"""Check that ``input`` has shape of ``expected``.

    Raises:
        ShapeMismatch: If the number of dimensions or the size of any axis is wrong.
            The message names the offending axis.
    """
    if input.ndim != len(expected):
        raise ShapeMismatch(
            "{} should be {}D tensor ({}), but {}D tensor is given.".format(
                name, len(expected), ", ".join(axis_names), input.ndim
            )
        )

    for axis_name, size, expected_size in zip(axis_names, input.shape, expected):
        if size != expected_size:
            raise ShapeMismatch(
                "{} of {} should be {}, but {} is given.".format(
                    axis_name, name, expected_size, size
                )
            )


def check_positive(name: str, value: float) -> None:
    r"""Check that hyperparameter ``value`` is positive.

    Raises:
        InvalidArgument: If ``value`` is not positive.
    """
    if value is None or not np.isscalar(value) or not value > 0:
        raise InvalidArgument("{} should be positive, but {} is given.".format(name, value))


def check_n_iter(n_iter: int, allow_zero: bool = True) -> None:
    r"""Check number of iterations.

    Raises:
        InvalidArgument: If ``n_iter`` is not an integer, is negative,
            or is zero when ``allow_zero=False``.
    """
    is_integer = isinstance(n_iter, (int, np.integer)) and not isinstance(n_iter, bool)
    lower = 0 if allow_zero else 1

    if not is_integer or n_iter < lower:
        raise InvalidArgument(
            "n_iter should be integer not less than {}, but {} is given.".format(lower, n_iter)
        )
