"""
Logging

Colored console output and rotating log files for keysynth.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


class ColorFormatter(logging.Formatter):
    """Colored log formatter"""
    COLORS = {
        'DEBUG': '\033[38;5;244m',
        'INFO': '\033[38;5;44m',
        'WARNING': '\033[38;5;214m',
        'ERROR': '\033[38;5;196m',
        'CRITICAL': '\033[38;5;196;1m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: Optional[str] = None, use_colors: Optional[bool] = None):
        super().__init__(fmt)
        if use_colors is None:
            use_colors = sys.stderr.isatty()
        self.use_colors = use_colors

    def format(self, record):
        if not self.use_colors:
            return super().format(record)
        # Colour a copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None,
                  max_file_size: int = 10 * 1024 * 1024,
                  backup_count: int = 5) -> logging.Logger:
    """
    Configure logging for the keysynth logger hierarchy

    Args:
        verbose: Enable debug output
        log_file: Optional log file path (rotated by size)
        max_file_size: Rotation threshold in bytes
        backup_count: Number of rotated files kept

    Returns:
        The configured 'keysynth' logger
    """
    logger = logging.getLogger('keysynth')
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(ColorFormatter('%(levelname)s %(message)s'))
    logger.addHandler(console)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(
                log_file,
                maxBytes=max_file_size,
                backupCount=backup_count,
                encoding='utf-8',
            )
            fh.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
            logger.addHandler(fh)
        except OSError as e:
            logger.warning(f"Failed to setup file logging: {e}")

    return logger
