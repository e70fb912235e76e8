"""Logging setup for the academy package and its command line tool."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

FILE_FORMAT = '%(asctime)s %(levelname)-7s %(name)s [%(filename)s:%(lineno)d] %(message)s'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'


def setup_logging(
    log_dir: Optional[Path] = None,
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    Attach handlers to the ``academy`` logger.

    Module loggers (``academy.services``, ``academy.gateway`` and so on)
    propagate to it. Calling this again replaces the previous handlers.
    urllib3 connection chatter is capped at WARNING unless level is DEBUG.

    Args:
        log_dir: Directory for the timestamped log file (default: ./logs)
        level: Level for the logger and its handlers (default: INFO)
        log_to_file: Write academy_<timestamp>.log (default: True)
        log_to_console: Write to stderr (default: True)

    Returns:
        The configured ``academy`` logger

    Example:
        from academy.logging_config import setup_logging
        logger = setup_logging(log_to_file=False)
        logger.info("Marking attendance for U12")
    """
    logger = logging.getLogger('academy')
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []

    if log_to_file:
        log_dir = log_dir or Path('logs')
        log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        file_handler = logging.FileHandler(log_dir / f'academy_{stamp}.log', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(file_handler)

    if log_to_console:
        # stderr, so command output on stdout stays clean
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    logging.getLogger('urllib3').setLevel(level if level <= logging.DEBUG else logging.WARNING)
    return logger


def get_logger(name: str = 'academy') -> logging.Logger:
    """Logger under the academy namespace; unconfigured until setup_logging() runs."""
    return logging.getLogger(name)
