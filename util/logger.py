# util/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional, TextIO
from config.settings import settings

logging.captureWarnings(True)

TEXT_FMT = "%(asctime)s %(levelname)s [%(process_role)s] %(name)s - %(message)s"
DATE_FMT = "%Y-%m-%dT%H:%M:%S%z"

_LEVEL_COLORS = {
    "DEBUG": "\033[37m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[41m",
}
_RESET = "\033[0m"


class _RoleFilter(logging.Filter):
    # Router and entrypoint share a terminal inside one container; tag every line.
    def __init__(self, role: str) -> None:
        super().__init__()
        self._role = role

    def filter(self, record: logging.LogRecord) -> bool:
        record.process_role = self._role
        return True


class ColoredFormatter(logging.Formatter):
    """Colorizes the level name only; the record itself is left untouched."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = _LEVEL_COLORS.get(record.levelname)
        if not color:
            return line
        return line.replace(record.levelname, f"{color}{record.levelname}{_RESET}", 1)


def init_logger(role: str = "router", stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Idempotent root logger setup shared by both console scripts.

    - role: "router" or "entrypoint", printed on every line.
    - stream: console destination. The entrypoint passes stderr so the wrapped
      backend keeps stdout to itself.
    - Colors only when the console is a TTY.
    - settings.LOG_TO_FILE adds a size-rotated plain-text file under settings.LOG_DIR.
    """
    root = logging.getLogger()
    if getattr(root, "_serena_inited", False):
        return logging.getLogger(settings.LOGGER_NAME)

    level = getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO)
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    console_stream = stream or sys.stdout
    tty = hasattr(console_stream, "isatty") and console_stream.isatty()
    ch = logging.StreamHandler(console_stream)
    ch.setLevel(level)
    ch.setFormatter(
        ColoredFormatter(TEXT_FMT, datefmt=DATE_FMT)
        if tty
        else logging.Formatter(TEXT_FMT, datefmt=DATE_FMT)
    )
    ch.addFilter(_RoleFilter(role))
    root.addHandler(ch)

    if settings.LOG_TO_FILE:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        fh = RotatingFileHandler(
            os.path.join(settings.LOG_DIR, settings.LOG_FILE_NAME),
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(TEXT_FMT, datefmt=DATE_FMT))
        fh.addFilter(_RoleFilter(role))
        root.addHandler(fh)

    # boto's own request logging would echo signed URLs at DEBUG
    for noisy in ("httpx", "httpcore", "botocore", "boto3", "s3transfer", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root._serena_inited = True  # type: ignore[attr-defined]
    logger = logging.getLogger(settings.LOGGER_NAME)
    logger.debug("logger.ready role=%s level=%s", role, logging.getLevelName(level))
    return logger
