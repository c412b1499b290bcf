"""
Centralized logging configuration for the blind auction.

Provides colored console output and an optional log file, with separate
loggers per subsystem (registry, engine, refunds, payout, storage, cli).
Module-level loggers configure the console on first use; the CLI calls
``setup_logging`` again once the configured level and log file are known.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog

ROOT_NAME = "blindauction"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class AuctionLogger:
    """Centralized logger for auction components"""

    _initialized = False
    _file_handler: Optional[logging.FileHandler] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
    ):
        """
        Setup or reconfigure logging.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_dir: Directory for log files. If None, uses ./logs
            log_to_file: Whether to also write blindauction.log
        """
        root_logger = logging.getLogger(ROOT_NAME)

        if not cls._initialized:
            root_logger.handlers.clear()
            console_handler = colorlog.StreamHandler(sys.stderr)
            console_handler.setFormatter(colorlog.ColoredFormatter(
                "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
                datefmt=DATE_FORMAT,
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "red,bg_white",
                },
            ))
            root_logger.addHandler(console_handler)
            cls._initialized = True

        if log_to_file and cls._file_handler is None:
            path = Path(log_dir) if log_dir else Path("logs")
            path.mkdir(parents=True, exist_ok=True)
            cls._file_handler = logging.FileHandler(path / "blindauction.log")
            cls._file_handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
                datefmt=DATE_FORMAT,
            ))
            root_logger.addHandler(cls._file_handler)

        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setLevel(level)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Args:
            name: Subsystem name (e.g., 'registry', 'engine', 'storage')

        Returns:
            Logger instance
        """
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"{ROOT_NAME}.{name}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return AuctionLogger.get_logger(name)


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
):
    """Setup logging configuration"""
    AuctionLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file)
