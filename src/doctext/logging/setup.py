"""Process logging for the extraction CLI and library callers.

stdout belongs to the extraction result (one JSON array), so nothing here
writes to it. Two handlers hang off the root logger:

- a rotating file of JSON records (``extraction.log``), one object per line
  with ``timestamp``, ``level``, ``component`` and ``message`` keys;
- a plain-text stderr stream for whoever is watching the run.

HTTP client libraries log each request at INFO; their loggers are raised to
WARNING so per-document progress stays readable.
"""

import logging
import logging.handlers
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from pythonjsonlogger.json import JsonFormatter

LOG_FILE_NAME = "extraction.log"

NOISY_LOGGERS = ("httpx", "httpcore")

_JSON_FIELDS = "%(asctime)s %(name)s %(levelname)s %(message)s"
_JSON_RENAMES = {"asctime": "timestamp", "levelname": "level", "name": "component"}
_CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s | %(message)s"


def _json_file_handler(
    log_path: Path, level: int, max_bytes: int, backup_count: int
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=str(log_path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(
        JsonFormatter(
            fmt=_JSON_FIELDS,
            rename_fields=_JSON_RENAMES,
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    return handler


def _console_handler(stream: TextIO, level: int) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    return handler


def setup_logging(
    log_dir: str = "logs",
    log_level_file: int = logging.DEBUG,
    log_level_console: int = logging.INFO,
    max_bytes: int = 10_485_760,  # 10MB
    backup_count: int = 5,
    console_stream: TextIO | None = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> Path:
    """Install the JSON file and stderr handlers on the root logger.

    Safe to call more than once: existing root handlers are removed, and
    file handlers among them are closed.

    Args:
        log_dir: Directory for the rotating log file; created if missing.
        log_level_file: Threshold for the JSON file.
        log_level_console: Threshold for the console stream.
        max_bytes: Rotation size of the log file.
        backup_count: Rotated files kept.
        console_stream: Console target (defaults to ``sys.stderr``).
        quiet_loggers: Logger names raised to WARNING.

    Returns:
        Path of the JSON log file.
    """
    log_path = Path(log_dir) / LOG_FILE_NAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()
    root_logger.setLevel(min(log_level_file, log_level_console))

    root_logger.addHandler(
        _json_file_handler(log_path, log_level_file, max_bytes, backup_count)
    )
    root_logger.addHandler(
        _console_handler(console_stream or sys.stderr, log_level_console)
    )

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_path
