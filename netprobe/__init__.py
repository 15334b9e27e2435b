"""Application bootstrap helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config import AppConfig, load_config
from .db import init_db
from .logging_setup import configure_logging
from .measurements.manager import MeasurementManager
from .scheduler import SchedulerService
from .web.app import create_web_app


class ApplicationContext:
    """Holds shared singletons for the service."""

    def __init__(self, config: AppConfig, log_level: Optional[str] = None):
        self.config = config
        configure_logging(config, level=log_level)
        self.Session = init_db(config.paths.data_dir)
        self.measurements = MeasurementManager(config, self.Session)
        self.scheduler = SchedulerService(config, self.measurements)
        self.web_app = create_web_app(
            config=config,
            measurement_manager=self.measurements,
            scheduler=self.scheduler,
        )

    def start(self) -> None:
        self.scheduler.start()


def bootstrap(config_path: Optional[str] = None, log_level: Optional[str] = None) -> ApplicationContext:
    """Load configuration and wire dependencies."""

    config_file = Path(config_path).resolve() if config_path else None
    config = load_config(str(config_file)) if config_file else load_config()
    return ApplicationContext(config, log_level=log_level)
