"""Background scheduler for periodic speed tests."""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import AppConfig
from .measurements.manager import MeasurementManager

LOGGER = logging.getLogger(__name__)


class SchedulerService:
    def __init__(self, config: AppConfig, measurement_manager: MeasurementManager) -> None:
        self.config = config
        self.measurements = measurement_manager
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.started = False

    def start(self) -> None:
        if self.started:
            LOGGER.warning("Scheduler already started, ignoring duplicate start request")
            return

        if not self.config.scheduler.enabled:
            LOGGER.info("Scheduled speed tests are disabled in configuration")
            return

        interval = self.config.scheduler.interval_minutes
        try:
            self.scheduler.add_job(
                self._run_cycle,
                trigger=IntervalTrigger(minutes=interval),
                id="scheduled-speedtest",
                max_instances=1,
            )
            self.scheduler.start()
            self.started = True
            LOGGER.info("Scheduler started with interval %s minutes", interval)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("Failed to start scheduler: %s", exc, exc_info=True)

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False

    def _run_cycle(self) -> None:
        LOGGER.info("Starting scheduled speed test")
        outcome = self.measurements.run_speed_test()
        if outcome.failed:
            LOGGER.error("Scheduled speed test failed: %s", outcome.error)
