import sys
from typing import Optional, Union

from loguru import logger

# Remove default loguru handler so we control formatting
logger.remove()
FORMAT = "<level>{level: <8}</level> | {message} - <cyan>{name}</cyan>:<cyan>{function}</cyan>"  # noqa E501

logger.add(
    sys.stdout,
    level="INFO",
    colorize=True,
    format=FORMAT,
)


def get_logger():
    return logger


def set_log_level(verbose: Optional[Union[str, int, bool]] = None) -> None:
    """Set global log level of ggdilrma.

    Args:
        verbose (str, int, bool, optional):
            Verbosity of logging output. A str is one of ``"DEBUG"``, ``"INFO"``,
            ``"WARNING"``, ``"ERROR"``, or ``"CRITICAL"`` (case insensitive).
            An int is a level number such as ``logging.DEBUG``.
            ``True`` is same as ``"INFO"`` and ``False`` is same as ``"WARNING"``.
            If ``None``, ``"INFO"`` is used.
    """
    logger = get_logger()

    if verbose is None:
        verbose = "INFO"
    elif isinstance(verbose, bool):
        verbose = "INFO" if verbose else "WARNING"
    elif isinstance(verbose, str):
        verbose = verbose.upper()

    logger.remove()
    logger.add(
        sys.stdout,
        level=verbose,
        colorize=True,
        format=FORMAT,
    )
