"""Logging configuration helpers."""

import logging

# Loggers of libraries that log every HTTP request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore", "hpack")


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure application logging with a single stream handler.

    The network probe polls continuously, so per-request library logs are
    raised to WARNING.
    """
    logger = logging.getLogger("yogaageproof")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
