"""Caller-facing speed test entry point and run history."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..config import AppConfig
from ..db import SpeedTestRun, get_session
from .latency import LatencyProber
from .models import RunOutcome
from .orchestrator import SpeedTestOrchestrator, TransferProbe
from .transfer import HttpTransferProbe

LOGGER = logging.getLogger(__name__)

ProbeFactory = Callable[[AppConfig], TransferProbe]


def _default_probe_factory(config: AppConfig) -> TransferProbe:
    return HttpTransferProbe(
        timeout=config.transfer.timeout_seconds,
        chunk_size=config.transfer.chunk_size,
    )


class MeasurementManager:
    def __init__(
        self,
        config: AppConfig,
        session_factory: Optional[sessionmaker] = None,
        probe_factory: ProbeFactory = _default_probe_factory,
        latency_prober: Optional[LatencyProber] = None,
    ):
        self.config = config
        self.Session = session_factory
        self.probe_factory = probe_factory
        self.latency_prober = latency_prober or LatencyProber(port=config.latency.port)

    def build_orchestrator(self) -> SpeedTestOrchestrator:
        return SpeedTestOrchestrator(
            probe=self.probe_factory(self.config),
            download_urls=self.config.endpoints.download,
            upload_urls=self.config.endpoints.upload,
            upload_payload_bytes=self.config.transfer.upload_payload_bytes,
            latency_prober=self.latency_prober,
            latency_host=self.config.latency.host,
            latency_timeout_ms=self.config.latency.timeout_ms,
            upload_start_ceiling=self.config.orchestrator.upload_start_ceiling_seconds,
        )

    def run_speed_test(self) -> RunOutcome:
        """Run one speed test. Never raises; internal faults land in ``error``."""
        try:
            orchestrator = self.build_orchestrator()
            try:
                outcome = orchestrator.run()
            finally:
                self._close_probe(orchestrator.probe)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.exception("Speed test run failed")
            outcome = RunOutcome(error=str(exc) or type(exc).__name__)
        self._persist(outcome)
        return outcome

    @staticmethod
    def _close_probe(probe: TransferProbe) -> None:
        close = getattr(probe, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception:  # pylint: disable=broad-except
            LOGGER.warning("Failed to close transfer probe", exc_info=True)

    def _persist(self, outcome: RunOutcome) -> None:
        if self.Session is None:
            return
        try:
            with get_session(self.Session) as session:
                session.add(
                    SpeedTestRun(
                        timestamp=outcome.timestamp,
                        download_mbps=outcome.download_mbps,
                        upload_mbps=outcome.upload_mbps,
                        latency_ms=outcome.latency_ms,
                        download_server=outcome.download_server,
                        upload_server=outcome.upload_server,
                        error=outcome.error,
                    )
                )
        except SQLAlchemyError:
            LOGGER.exception("Failed to store speed test run from %s", outcome.timestamp.isoformat())

    def get_runs(self, limit: Optional[int] = None) -> List[SpeedTestRun]:
        if self.Session is None:
            return []
        with get_session(self.Session) as session:
            query = session.query(SpeedTestRun).order_by(desc(SpeedTestRun.timestamp))
            if limit:
                query = query.limit(limit)
            return query.all()

    @staticmethod
    def to_dict(run) -> dict:
        """Serialize a ``RunOutcome`` or stored ``SpeedTestRun`` for JSON responses."""
        data = {
            "timestamp": run.timestamp.isoformat(),
            "download_mbps": run.download_mbps,
            "upload_mbps": run.upload_mbps,
            "latency_ms": run.latency_ms,
            "download_server": run.download_server,
            "upload_server": run.upload_server,
            "error": run.error,
        }
        if isinstance(run, SpeedTestRun):
            data["id"] = run.id
        return data
