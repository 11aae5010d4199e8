"""
Logging Configuration
=====================
One call, ``setup_logging()``, wires the whole process:

    - coloured console handler on stderr (uvicorn-friendly)
    - daily file handler: <LOG_DIR>/<LOG_FILE_PREFIX>_YYYYMMDD.log
    - level from LOG_LEVEL for the agent, uvicorn and main loggers
    - HTTP and Docker client libraries held at WARNING, otherwise every
      generator call and container poll shows up at INFO/DEBUG

Prompts and full build output are only logged at DEBUG by the agent.
"""
import logging
import sys
import os
from datetime import datetime
from typing import Union

from tdd_agent.core.config import LOG_DIR, LOG_LEVEL, LOG_FILE_PREFIX

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_APP_LOGGERS = ["tdd_agent", "uvicorn", "uvicorn.error", "uvicorn.access", "main"]
_NOISY_LOGGERS = ["httpx", "httpcore", "docker", "urllib3"]


class ColoredFormatter(logging.Formatter):
    """Console formatter: one ANSI colour per level."""

    COLORS = {
        logging.DEBUG: "\x1b[36m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def __init__(self):
        super().__init__(LOG_FORMAT, datefmt=DATE_FORMAT)

    def format(self, record):
        text = super().format(record)
        color = self.COLORS.get(record.levelno)
        # Custom levels stay uncoloured
        return f"{color}{text}{self.RESET}" if color else text


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def log_file_path(log_dir: str = LOG_DIR, file_prefix: str = LOG_FILE_PREFIX) -> str:
    return os.path.join(log_dir, f"{file_prefix}_{datetime.now().strftime('%Y%m%d')}.log")


def setup_logging(
    level: Union[int, str] = LOG_LEVEL,
    log_dir: str = LOG_DIR,
    file_prefix: str = LOG_FILE_PREFIX,
) -> str:
    """
    Install console + daily file logging on the root logger.

    Returns
    -------
    str
        Path of the log file receiving this process's records.
    """
    numeric_level = _resolve_level(level)
    root_logger = logging.getLogger()

    # Clear existing handlers to prevent duplicate logs
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(numeric_level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter())
    root_logger.addHandler(console_handler)

    os.makedirs(log_dir, exist_ok=True)
    path = log_file_path(log_dir, file_prefix)
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(file_handler)

    for logger_name in _APP_LOGGERS:
        named = logging.getLogger(logger_name)
        named.setLevel(numeric_level)
        named.propagate = True

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(numeric_level, logging.WARNING))

    root_logger.info("Logging initialized | level=%s | file=%s", logging.getLevelName(numeric_level), path)
    return path
