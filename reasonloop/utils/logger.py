"""
Process-wide loguru configuration for the reasoning loop.

Configuration via environment (or .env):
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL
- LOG_MODE: development (stderr) or production (rotating files)
- LOG_DIR: Directory for production log files (default: logs)
- LOG_ROTATION: Rotation size or interval (e.g., "10 MB", "1 day")
- LOG_RETENTION: Retention window (e.g., "7 days")
"""

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_MODE = "development"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[name]}:{function}:{line} - {message}"
)


class LoggerManager:
    """Singleton that owns the loguru sinks."""

    _instance: Optional["LoggerManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "LoggerManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if LoggerManager._initialized:
            return
        LoggerManager._initialized = True

        self.log_level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
        self.log_mode = os.getenv("LOG_MODE", DEFAULT_LOG_MODE).lower()
        self.log_dir = Path(os.getenv("LOG_DIR", DEFAULT_LOG_DIR))
        self.log_rotation = os.getenv("LOG_ROTATION", DEFAULT_LOG_ROTATION)
        self.log_retention = os.getenv("LOG_RETENTION", DEFAULT_LOG_RETENTION)
        self._handler_ids: list[int] = []

        logger.remove()
        self._configure()

    def _configure(self) -> None:
        if self.log_mode == "production":
            self._configure_production()
        else:
            self._configure_development()

    def _configure_development(self) -> None:
        """Colourised stderr output."""
        self._handler_ids.append(
            logger.add(
                sys.stderr,
                format=CONSOLE_FORMAT,
                level=self.log_level,
                colorize=True,
                backtrace=True,
                diagnose=False,
            )
        )

    def _configure_production(self) -> None:
        """Rotating run log plus a separate error log."""
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._handler_ids.append(
            logger.add(
                self.log_dir / "reasonloop_{time:YYYY-MM-DD}.log",
                format=FILE_FORMAT,
                level=self.log_level,
                rotation=self.log_rotation,
                retention=self.log_retention,
                encoding="utf-8",
                enqueue=True,
            )
        )
        self._handler_ids.append(
            logger.add(
                self.log_dir / "reasonloop_error_{time:YYYY-MM-DD}.log",
                format=FILE_FORMAT,
                level="ERROR",
                rotation=self.log_rotation,
                retention=self.log_retention,
                encoding="utf-8",
                enqueue=True,
            )
        )

    def get_logger(self, name: Optional[str] = None):
        """Return the shared logger bound to ``name`` (``"reasonloop"`` if omitted)."""
        return logger.bind(name=name or "reasonloop")

    def set_level(self, level: str) -> None:
        """Rebuild the sinks with a new minimum level."""
        self.log_level = level.upper()
        for handler_id in self._handler_ids:
            logger.remove(handler_id)
        self._handler_ids.clear()
        self._configure()


def get_logger(name: Optional[str] = None):
    """
    Get a module logger.

    Example:
        from reasonloop.utils.logger import get_logger

        log = get_logger(__name__)
        log.info("run started")
    """
    return LoggerManager().get_logger(name)


def set_log_level(level: str) -> None:
    """Change the log level at runtime."""
    LoggerManager().set_level(level)


__all__ = ["LoggerManager", "get_logger", "set_log_level"]
