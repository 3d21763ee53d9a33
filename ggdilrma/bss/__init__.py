from .base import State
from .ilrma import GGDILRMA, GGDILRMABase, PartitionedGGDILRMA

__all__ = ["State", "GGDILRMABase", "GGDILRMA", "PartitionedGGDILRMA"]
