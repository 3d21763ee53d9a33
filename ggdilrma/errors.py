import numpy as np

__all__ = [
    "GGDILRMAError",
    "ShapeMismatch",
    "InvalidArgument",
    "SingularSystem",
]


class GGDILRMAError(Exception):
    r"""Base class of errors raised by ``ggdilrma``."""


class ShapeMismatch(GGDILRMAError, ValueError):
    r"""Raised when dimensions of given tensors disagree."""


class InvalidArgument(GGDILRMAError, ValueError):
    r"""Raised for an unsupported variant or a non-positive hyperparameter."""


class SingularSystem(GGDILRMAError, np.linalg.LinAlgError):
    r"""Raised when the linear system of a demixing filter update cannot be solved."""
