"""Logging setup for the warroom core and its command line tool."""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = 'warroom'
LEVEL_ENV_VAR = 'WARROOM_LOG_LEVEL'


def _level_from_env(default: int) -> int:
    name = os.environ.get(LEVEL_ENV_VAR)
    if not name:
        return default
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else default


def setup_logging(
    log_dir: Optional[Path] = None,
    level: Optional[int] = None,
    log_to_file: bool = True,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    Configure the ``warroom`` logger.

    Existing handlers are dropped first, so calling this twice does not
    duplicate output.

    Args:
        log_dir: Directory for log files (default: ./logs)
        level: Logging level; falls back to $WARROOM_LOG_LEVEL, then INFO
        log_to_file: Write a timestamped log file
        log_to_console: Write to stdout

    Returns:
        The configured logger

    Example:
        from warroom.logging_config import setup_logging
        logger = setup_logging(log_to_file=False)
        logger.info('Refreshing tracked leagues')
    """
    if level is None:
        level = _level_from_env(logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    simple_formatter = logging.Formatter('%(levelname)s: %(message)s')

    if log_to_file:
        if log_dir is None:
            log_dir = Path('logs')
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / f'warroom_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log'
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(simple_formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Get a logger; names outside the ``warroom`` tree are nested under it."""
    if name != LOGGER_NAME and not name.startswith(LOGGER_NAME + '.'):
        name = f'{LOGGER_NAME}.{name}'
    return logging.getLogger(name)
