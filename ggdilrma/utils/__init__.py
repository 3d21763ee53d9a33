from ._logging import logger, set_log_level
from .flooring import choose_flooring_fn

__all__ = ["logger", "set_log_level", "choose_flooring_fn"]
