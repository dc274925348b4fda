import logging
import os
from typing import Dict, Optional

from rich.logging import RichHandler

# loggers handed out so far, so the level can be changed after start-up
_LOGGERS: Dict[str, logging.Logger] = {}
_level_override: Optional[int] = None


class CenteredFormatter(logging.Formatter):
    """Pads logger names to the longest one seen so messages line up."""

    longest_name_length = 14

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        record.name = record.name.center(CenteredFormatter.longest_name_length)
        return super().format(record)


def log_level() -> int:
    if _level_override is not None:
        return _level_override
    return logging.DEBUG if os.getenv("DEBUG") else logging.INFO


def configure_logging(debug: bool) -> None:
    """Apply the configured verbosity to every storefront logger."""
    global _level_override
    _level_override = logging.DEBUG if debug else logging.INFO
    for logger in _LOGGERS.values():
        logger.setLevel(_level_override)
        for handler in logger.handlers:
            handler.setLevel(_level_override)


def get_logger(name=None) -> logging.Logger:
    """
    Returns the named logger, attaching a RichHandler the first time.
    Defaults to the application-wide "storefront" logger.
    """
    if name is None:
        name = "storefront"
    logger = logging.getLogger(name)
    level = log_level()
    logger.setLevel(level)

    if not logger.handlers:
        console_handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        console_handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized with RichHandler.")

    _LOGGERS[name] = logger
    return logger
