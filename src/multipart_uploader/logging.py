"""
Logging setup of the ``mpu`` command line interface.

Console records go through tqdm so that upload progress bars stay intact.
"""

from __future__ import annotations

import logging
import sys
from os import PathLike
from typing import TextIO

from tqdm.auto import tqdm

log = logging.getLogger(__name__)

LOGGING_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOGGING_DATEFMT = "%Y-%m-%d %I:%M %p"


class TqdmLoggingHandler(logging.Handler):
    """Writes records with ``tqdm.write``, which redraws running progress bars below the message."""

    def __init__(self, stream: TextIO | None = None, level: int | str = logging.NOTSET):
        """
        :param stream: Target stream, defaults to whatever ``sys.stderr`` is when a record is emitted
        :param level: Minimum level of records to emit
        """
        super().__init__(level)
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream if self.stream is not None else sys.stderr)
        except Exception:
            self.handleError(record)


def file_handler(file_path: str | PathLike, level: str = "INFO") -> logging.FileHandler:
    """Handler appending records of at least ``level`` to ``file_path``."""
    handler = logging.FileHandler(file_path)
    handler.setLevel(level.upper())
    return handler


def setup_cli_logging(log_file: str | PathLike | None, log_level: str) -> None:
    """
    Route all records of ``log_level`` and above to stderr and, if given, to ``log_file``.

    Handlers installed by an earlier call are replaced.
    """
    handlers: list[logging.Handler] = [TqdmLoggingHandler()]
    if log_file:
        handlers.append(file_handler(log_file, log_level))

    logging.basicConfig(
        level=log_level.upper(),
        format=LOGGING_FORMAT,
        datefmt=LOGGING_DATEFMT,
        handlers=handlers,
        force=True,
    )
    if log_file:
        log.info(f"Writing log records of level {log_level.upper()} and above to {log_file}")
