"""
Logging setup.

- One "replica_sync" logger writing the same lines to the log file (plain,
  append mode) and to stdout (colored when stdout is a terminal).
- Every replica mutation goes through log_action() as "ACTION | message":
  on the console MKDIR lines are brown, COPY/UPDATE green, DELETE/RMDIR
  orange and errors red.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from colorama import just_fix_windows_console

LOGGER_NAME = "replica_sync"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# -------------------------
# Console styling
# -------------------------

RESET = "\x1b[0m"
RED = "\x1b[31m"

ACTION_COLORS = {
    "MKDIR": "\x1b[33m",
    "COPY": "\x1b[32m",
    "UPDATE": "\x1b[32m",
    "DELETE": "\x1b[38;5;208m",
    "RMDIR": "\x1b[38;5;208m",
}


class ConsoleFormatter(logging.Formatter):
    """Whole-line color: red for errors, otherwise the color of the record's action."""

    def __init__(self, use_color: bool, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if not self.use_color:
            return line
        if record.levelno >= logging.ERROR:
            color = RED
        else:
            color = ACTION_COLORS.get(getattr(record, "action", ""), "")
        return f"{color}{line}{RESET}" if color else line


def setup_logger(log_file: Path, level: int = logging.INFO) -> logging.Logger:
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    just_fix_windows_console()

    fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    fh.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    fh.setLevel(level)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(ConsoleFormatter(use_color=sys.stdout.isatty(), fmt=LOG_FORMAT, datefmt=DATE_FORMAT))

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.info("Logging to: %s", log_file)
    return logger


def close_logger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def log_action(logger: logging.Logger, action: str, message: str, level: int = logging.INFO) -> None:
    logger.log(level, "%s | %s", action, message, extra={"action": action})
