"""Logging helpers shared by every cachekv module."""

import logging
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a module logger under the ``cachekv`` hierarchy."""
    if not name.startswith("cachekv"):
        name = f"cachekv.{name}"
    return logging.getLogger(name)


def configure_logging(level: Union[str, int] = "INFO", fmt: Optional[str] = None) -> None:
    """Attach a stream handler to the ``cachekv`` root logger.

    Safe to call more than once; the handler is only added the first time.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger("cachekv")
    root.setLevel(level)
    if not any(getattr(h, "_cachekv", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt or LOG_FORMAT))
        handler._cachekv = True
        root.addHandler(handler)
