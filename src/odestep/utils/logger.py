"""Package logger for odestep.

All modules log through the ``odestep`` logger. Only warnings reach the
console by default; ``enable_file_logging`` captures the DEBUG records the
integrator emits for run boundaries and localized events.
"""

from __future__ import annotations

import logging

__all__ = [
    "logger",
    "enable_file_logging",
    "disable_file_logging",
]

formatter = logging.Formatter("%(levelname)s:%(name)s:%(message)s")
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
console_handler.setLevel(logging.WARNING)

logger: logging.Logger = logging.getLogger("odestep")
logger.addHandler(console_handler)
logger.setLevel(logging.DEBUG)

file_handler: logging.FileHandler | None = None


def enable_file_logging(filename: str = "odestep.log") -> None:
    """Send every record (DEBUG and up) to a file.

    Replaces a previously enabled file handler. The file is opened in
    append mode.

    Args:
        filename: Path of the log file.
    """
    global file_handler
    if file_handler is not None:
        disable_file_logging()

    file_handler = logging.FileHandler(filename)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s:%(levelname)s:%(message)s")
    )
    logger.addHandler(file_handler)


def disable_file_logging() -> None:
    """Remove and close the file handler, if any."""
    global file_handler
    if file_handler is not None:
        logger.removeHandler(file_handler)
        file_handler.close()
        file_handler = None
