"""Centralized logging configuration."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import AppConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
NOISY_LOGGERS = ("urllib3", "apscheduler")


def configure_logging(config: AppConfig, level: Optional[str] = None) -> None:
    log_path = config.paths.logs_dir / "app.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    level_name = (level or config.logging.level).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    file_handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=5)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Per-chunk connection chatter drowns out the orchestrator's retry log
    if root_logger.level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
