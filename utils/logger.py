"""Structured logging for Catalog Image Acquirer"""
import logging
import sys
from datetime import datetime
from pathlib import Path

from colorama import Fore, Back, Style, init

from config.settings import Settings

init(autoreset=True)


def _get_component_color(name: str) -> str:
    """Get color for different pipeline components."""
    name_lower = name.lower()

    if 'pipeline' in name_lower:
        return Fore.YELLOW + Style.BRIGHT
    elif 'source_chain' in name_lower or 'strateg' in name_lower:
        return Fore.MAGENTA + Style.BRIGHT
    elif 'extractor' in name_lower:
        return Fore.BLUE + Style.BRIGHT
    elif 'validator' in name_lower:
        return Fore.GREEN
    elif 'persist' in name_lower or 'storage' in name_lower:
        return Fore.CYAN + Style.BRIGHT
    elif 'browser' in name_lower:
        return Fore.WHITE
    elif 'catalog' in name_lower:
        return Fore.CYAN
    elif 'stats' in name_lower:
        return Fore.YELLOW
    else:
        return ''


def _get_level_color(levelname: str) -> str:
    """Get color for different log levels."""
    level_colors = {
        'DEBUG': Fore.WHITE + Style.DIM,
        'INFO': Fore.WHITE,
        'WARNING': Fore.YELLOW + Style.BRIGHT,
        'ERROR': Fore.RED + Style.BRIGHT,
        'CRITICAL': Fore.RED + Back.WHITE + Style.BRIGHT,
    }
    return level_colors.get(levelname, '')


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    def format(self, record):
        # Work on a copy so the file handler gets the plain record
        record_copy = logging.makeLogRecord(record.__dict__)

        component_color = _get_component_color(record.name)
        level_color = _get_level_color(record.levelname)

        record_copy.levelname = f"{level_color}{record.levelname}{Style.RESET_ALL}"
        record_copy.name = f"{component_color}{record.name}{Style.RESET_ALL}"

        if record.levelno >= logging.WARNING:
            record_copy.msg = f"{level_color}{record.msg}{Style.RESET_ALL}"

        return super().format(record_copy)


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance with colored output.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, Settings.LOG_LEVEL.upper(), logging.INFO))

    # Console handler with colors
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_format = ColoredFormatter(
        '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    # File handler
    logs_dir = Path(Settings.LOG_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)

    log_filename = logs_dir / f"acquirer_{datetime.now().strftime('%Y%m%d')}.log"
    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_format = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    file_handler.setFormatter(file_format)
    logger.addHandler(file_handler)

    logger.propagate = False

    return logger
