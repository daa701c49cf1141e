"""
Centralized logging configuration for preconf.

Provides colored console logging and separate loggers for the
protocol subsystems (crypto, registry, store, storage, cli).
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import colorlog


class PreconfLogger:
    """Centralized logger for preconf components"""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
    ):
        """
        Setup logging configuration.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_dir: Directory for log files. If None, uses ./logs
            log_to_file: Whether to write logs to file
        """
        if cls._initialized:
            return

        root_logger = logging.getLogger("preconf")
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        # Console handler with colors
        console_handler = colorlog.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

        cls._initialized = True

        if log_to_file:
            cls.add_file_handler(log_dir or "logs")

    @classmethod
    def add_file_handler(cls, log_dir: Union[str, Path]) -> Path:
        """
        Also write preconf logs to ``<log_dir>/preconf.log``.

        Adding the same file twice is a no-op.

        Returns:
            Path of the log file
        """
        if not cls._initialized:
            cls.setup()

        cls._log_dir = Path(log_dir)
        cls._log_dir.mkdir(parents=True, exist_ok=True)
        log_file = (cls._log_dir / "preconf.log").resolve()

        root_logger = logging.getLogger("preconf")
        for handler in root_logger.handlers:
            if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_file:
                return log_file

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(root_logger.level)
        file_formatter = logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)
        return log_file

    @classmethod
    def set_level(cls, level: int):
        """Adjust the level after setup (e.g. from CLI flags)."""
        if not cls._initialized:
            cls.setup(level=level)
        root_logger = logging.getLogger("preconf")
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setLevel(level)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Args:
            name: Subsystem name (e.g., 'registry.user', 'store')

        Returns:
            Logger instance
        """
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"preconf.{name}")


# Convenience functions
def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return PreconfLogger.get_logger(name)


def enable_file_logging(log_dir: Union[str, Path]) -> Path:
    """Mirror all preconf logs into a file under ``log_dir``"""
    return PreconfLogger.add_file_handler(log_dir)


def set_log_level(level: int):
    """Change the level of all preconf loggers and handlers"""
    PreconfLogger.set_level(level)
