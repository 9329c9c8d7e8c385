"""
Logging setup for CivicLens (loguru, with stdlib logging routed into it)
"""
from __future__ import annotations

import logging
import sys

from loguru import logger


class InterceptHandler(logging.Handler):
    """Forward stdlib log records (pymongo, urllib3, ...) to loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


def _hook_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    # pymongo is chatty at DEBUG (heartbeats, topology events)
    for noisy in ("pymongo", "PIL"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level:<7}</level> | "
    "<cyan>{extra[name]}</cyan> | "
    "<cyan>{file}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(log_level: str = "INFO") -> None:
    """Replace loguru's default sink with the console format and hook stdlib logging."""
    logger.remove()
    logger.configure(extra={"name": "civiclens"})
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        colorize=True,
        backtrace=False,
        diagnose=False,
        level=log_level.upper(),
    )
    _hook_stdlib_logging()


def get_logger(name: str = "civiclens", **ctx):
    """Logger bound to a component name and optional context."""
    return logger.bind(name=name, **ctx)
