"""
Centralized logging configuration for SealedLots.

Every module logs through a child of the `sealedlots` logger
(`sealedlots.auction`, `sealedlots.registry`, `sealedlots.storage.sqlite`, ...).
The console gets colored output; a plain log file is added on request.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog

ROOT_LOGGER = "sealedlots"
LOG_FILE = "sealedlots.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def _console_handler(level: int) -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(colorlog.ColoredFormatter(
        "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
        datefmt=DATE_FORMAT,
        log_colors=LEVEL_COLORS,
    ))
    return handler


def _file_handler(log_dir: Path, level: int) -> logging.Handler:
    log_dir.mkdir(exist_ok=True, parents=True)
    handler = logging.FileHandler(log_dir / LOG_FILE)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
        datefmt=DATE_FORMAT,
    ))
    return handler


class SealedLotsLogger:
    """Process-wide setup of the `sealedlots` logger tree"""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = True,
    ):
        """
        Attach handlers to the `sealedlots` logger. Runs once until reset().

        Args:
            level: Threshold for the logger and its handlers
            log_dir: Where sealedlots.log goes, ./logs if None
            log_to_file: Add the file handler
        """
        if cls._initialized:
            return

        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(level)
        root.handlers.clear()
        root.addHandler(_console_handler(level))

        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            root.addHandler(_file_handler(cls._log_dir, level))

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Logger for one subsystem, e.g. 'auction' -> 'sealedlots.auction'.

        Library code never writes a log file on its own: the implicit setup
        only attaches the console handler.
        """
        if not cls._initialized:
            cls.setup(log_to_file=False)

        return logging.getLogger(f"{ROOT_LOGGER}.{name}")

    @classmethod
    def reset(cls):
        """Drop handlers so setup() can run again."""
        for handler in logging.getLogger(ROOT_LOGGER).handlers:
            handler.close()
        logging.getLogger(ROOT_LOGGER).handlers.clear()
        cls._initialized = False
        cls._log_dir = None


def get_logger(name: str) -> logging.Logger:
    return SealedLotsLogger.get_logger(name)


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = True,
):
    """Setup logging configuration, replacing any implicit console-only setup"""
    SealedLotsLogger.reset()
    SealedLotsLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file)
