"""Process-wide logging for the analyzer app."""

from __future__ import annotations

import logging
from pathlib import Path

from config.settings import AppConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILENAME = "analyzer.log"


def setup_logging(config: AppConfig) -> logging.Logger:
    """Send records to ``<log_dir>/analyzer.log`` and stderr at ``config.log_level``."""
    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_dir / LOG_FILENAME, encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )
    # urllib3 logs every connection at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logger = logging.getLogger("screenshot_analyzer")
    logger.setLevel(level)
    return logger
