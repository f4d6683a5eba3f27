import logging
from typing import IO

logger = logging.getLogger("claudia")
logger.addHandler(logging.NullHandler())

_debug_handler: logging.Handler | None = None


def enable_debug(stream: IO[str] | None = None) -> logging.Handler:
    """Send claudia's debug lines (attempts, retries, timeouts, stream
    lifecycle) to ``stream`` (stderr by default).

    Calling it again replaces the previous debug handler rather than adding a
    second one.
    """
    global _debug_handler

    if _debug_handler is not None:
        logger.removeHandler(_debug_handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("[claudia] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    _debug_handler = handler
    return handler


def disable_debug() -> None:
    """Undo ``enable_debug()``."""
    global _debug_handler

    if _debug_handler is not None:
        logger.removeHandler(_debug_handler)
        _debug_handler = None
    logger.setLevel(logging.NOTSET)
