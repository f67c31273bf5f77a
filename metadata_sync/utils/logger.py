"""Logging configuration and setup."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

# Third-party loggers that are too chatty at DEBUG
QUIET_LOGGERS = ('PIL', 'exiftool')


def setup_logger(config: Dict, level_override: Optional[str] = None) -> logging.Logger:
    """Initialize logging with file and console handlers.

    Args:
        config: Configuration dictionary with 'logging' section
        level_override: Level name taking precedence over the config (e.g. from --verbose)

    Returns:
        Configured root logger
    """
    log_config = config.get('logging', {})
    level_name = (level_override or log_config.get('level', 'INFO')).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    log_file = log_config.get('file', 'logs/metadata_sync.log')

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logger = logging.getLogger()
    logger.setLevel(log_level)
    logger.handlers.clear()

    # File logging can be disabled with an empty path
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=log_config.get('max_bytes', 10485760),  # 10MB
            backupCount=log_config.get('backup_count', 5),
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        logger.addHandler(file_handler)

    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(log_level)
        logger.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.INFO))

    logger.info("=" * 60)
    logger.info("Image Metadata Sync - Session Start")
    logger.info("=" * 60)
    logger.info(f"Log level: {level_name}")
    logger.info(f"Log file: {log_file or '(disabled)'}")

    return logger
