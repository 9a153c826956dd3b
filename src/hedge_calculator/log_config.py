"""Console and file logging for the calculator CLI.

The console gets rich-rendered records at the configured level. The rotating
file under ``log_dir`` keeps a plain-text history of the quotes fetched and the
strategies priced, which is what you want when a number looks wrong later.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.logging import RichHandler

LOG_FILE_NAME = "hedge_calculator.log"
_MAX_BYTES = 1 * 1024 * 1024  # 1 MB per file
_BACKUP_COUNT = 2

# HTTP client chatter that would drown the calculator's own DEBUG output.
_NOISY_LOGGERS = ("urllib3", "charset_normalizer")


def setup_logging(
    level: str = "INFO",
    *,
    log_to_file: bool = True,
    log_dir: str | Path = "logs",
) -> Path | None:
    """Configure the root logger and return the log file path, if any."""
    handlers: list[logging.Handler] = [RichHandler(rich_tracebacks=True, show_path=False)]

    log_path = None
    if log_to_file:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        log_path = directory / LOG_FILE_NAME
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_path
