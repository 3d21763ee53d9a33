from .bss.ilrma import GGDILRMA, PartitionedGGDILRMA
from .errors import GGDILRMAError, InvalidArgument, ShapeMismatch, SingularSystem
from .separation import Variant, run

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "run",
    "Variant",
    "GGDILRMA",
    "PartitionedGGDILRMA",
    "GGDILRMAError",
    "ShapeMismatch",
    "InvalidArgument",
    "SingularSystem",
]
