"""Logging setup shared by the dotstrap commands."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "%(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _StderrHandler(logging.StreamHandler):
    """Stream handler that always writes to the current ``sys.stderr``."""

    def __init__(self) -> None:
        super().__init__(sys.stderr)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value) -> None:
        pass


def configure_logging(
    level: int = logging.INFO,
    log_path: Optional[Path] = None,
) -> Optional[Path]:
    """Configure severity-tagged logging for a dotstrap run.

    Console lines go to stderr as ``INFO ...``, ``WARN ...`` or ``ERROR ...``.
    When ``log_path`` is given, a timestamped copy is appended there; if the
    file cannot be opened the run continues with console output only.

    Returns the log file actually in use, if any.
    """

    logging.addLevelName(logging.WARNING, "WARN")

    logger = logging.getLogger("dotstrap")
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    for handler in list(logger.handlers):
        if getattr(handler, "_dotstrap_handler", False):
            logger.removeHandler(handler)
            handler.close()

    console = _StderrHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    setattr(console, "_dotstrap_handler", True)
    logger.addHandler(console)

    chosen: Optional[Path] = None
    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
        except OSError as exc:
            logger.warning("Cannot write log file %s (%s); logging to console only", log_path, exc)
        else:
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
            setattr(file_handler, "_dotstrap_handler", True)
            logger.addHandler(file_handler)
            chosen = log_path

    return chosen
