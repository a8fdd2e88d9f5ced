"""
Logging for the auction engine.

Every subsystem logs under the "sda" hierarchy (sda.ledger,
sda.settlement, sda.auction, sda.storage, ...). The console handler is
colored and writes to stderr, leaving stdout to CLI output such as
`sda config` JSON. An optional file handler under the configured log
directory records everything down to DEBUG, so rolled-back calls can be
audited after the fact.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import colorlog


ROOT = "sda"
LOG_FILE = "auction.log"

CONSOLE_FORMAT = "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s"
FILE_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class SDALogger:
    """Owns the handlers on the "sda" logger."""

    _configured = False
    _log_file: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[Union[str, Path]] = None,
        log_to_file: bool = False,
    ) -> Optional[Path]:
        """
        (Re)configure handlers.

        Safe to call more than once: each call replaces the previous
        handlers, so the CLI can apply its own level and log directory
        after modules have already fetched their loggers.

        Args:
            level: Console level
            log_dir: Directory for the audit file. None = ./logs
            log_to_file: Whether to write the DEBUG-level audit file

        Returns:
            Path of the audit file, or None when file logging is off
        """
        root = logging.getLogger(ROOT)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        console = colorlog.StreamHandler(sys.stderr)
        console.setLevel(level)
        console.setFormatter(colorlog.ColoredFormatter(
            CONSOLE_FORMAT,
            datefmt=DATE_FORMAT,
            log_colors=LOG_COLORS,
        ))
        root.addHandler(console)

        cls._log_file = None
        if log_to_file:
            directory = Path(log_dir or "logs").expanduser()
            directory.mkdir(parents=True, exist_ok=True)
            cls._log_file = directory / LOG_FILE

            audit = logging.FileHandler(cls._log_file)
            audit.setLevel(logging.DEBUG)
            audit.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
            root.addHandler(audit)

        root.setLevel(logging.DEBUG if log_to_file else level)
        root.propagate = False
        cls._configured = True
        return cls._log_file

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Logger for a subsystem, e.g. 'ledger' -> 'sda.ledger'."""
        if not cls._configured:
            cls.setup()
        return logging.getLogger(f"{ROOT}.{name}")

    @classmethod
    def log_file(cls) -> Optional[Path]:
        return cls._log_file


def get_logger(name: str) -> logging.Logger:
    return SDALogger.get_logger(name)


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
    log_to_file: bool = False,
) -> Optional[Path]:
    """Configure "sda" logging; returns the audit file path if enabled."""
    return SDALogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file)


def short_address(address: Optional[bytes]) -> str:
    """Abbreviated 0x-address for log lines."""
    if address is None:
        return "none"
    return "0x" + address.hex()[:8] + "..."
