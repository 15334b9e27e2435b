"""Resilient speed test orchestration.

A run walks ordered endpoint candidates for each direction:

    download (candidate 1 -> 2 -> ... ) -> upload (candidate 1 -> 2 -> ...) -> latency

Transfer probe callbacks arrive on probe-owned threads. They only enqueue
events; the thread that called ``run()`` drains the queue and owns every
piece of mutable run state. Each direction therefore has at most one attempt
in flight, and a late or duplicate event for a direction that has already
concluded is dropped instead of being counted twice.

Upload is held back until the download concludes, or until the upload-start
ceiling elapses, so the two transfers don't compete for bandwidth.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Protocol, Sequence

from .fallback import EndpointFallbackList
from .latency import LatencyProber
from .models import (
    CompletionEvent,
    Direction,
    ErrorEvent,
    ProgressEvent,
    RunOutcome,
    TransferEvent,
    TransferListener,
    bits_to_mbps,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_UPLOAD_START_CEILING = 60.0

ProgressCallback = Callable[[ProgressEvent], None]


class OrchestratorError(RuntimeError):
    """The orchestrator itself could not function (not a probe failure)."""


class TransferProbe(Protocol):
    def add_listener(self, listener: TransferListener) -> None:
        ...

    def remove_listener(self, listener: TransferListener) -> None:
        ...

    def start_transfer(
        self,
        url: str,
        direction: Direction,
        payload_size_bytes: Optional[int] = None,
    ) -> None:
        ...


@dataclass
class _AttemptState:
    candidates: EndpointFallbackList
    started: bool = False
    concluded: bool = False
    rate_mbps: float = 0.0
    server: Optional[str] = None
    attempts: int = 0
    done: threading.Event = field(default_factory=threading.Event)


_START_UPLOAD = object()


class SpeedTestOrchestrator:
    def __init__(
        self,
        probe: TransferProbe,
        download_urls: Sequence[str],
        upload_urls: Sequence[str],
        upload_payload_bytes: int = 2_000_000,
        latency_prober: Optional[LatencyProber] = None,
        latency_host: str = "8.8.8.8",
        latency_timeout_ms: int = 3000,
        upload_start_ceiling: float = DEFAULT_UPLOAD_START_CEILING,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.probe = probe
        self.download_urls = list(download_urls)
        self.upload_urls = list(upload_urls)
        self.upload_payload_bytes = upload_payload_bytes
        self.latency_prober = latency_prober or LatencyProber()
        self.latency_host = latency_host
        self.latency_timeout_ms = latency_timeout_ms
        self.upload_start_ceiling = upload_start_ceiling
        self.on_progress = on_progress

    def run(self) -> RunOutcome:
        """Run download, upload and latency probes and return the aggregate.

        Probe failures are absorbed into fallback retries or zero rates.
        Raises ``OrchestratorError`` only when the run cannot be driven at all.
        """
        test_run = _TestRun(self)

        try:
            self.probe.add_listener(test_run.enqueue)
        except Exception as exc:
            raise OrchestratorError(f"Unable to register transfer listener: {exc}") from exc

        try:
            test_run.start(Direction.DOWNLOAD)

            starter = threading.Thread(
                target=test_run.start_upload_when_ready,
                name="upload-starter",
                daemon=True,
            )
            try:
                starter.start()
            except RuntimeError as exc:
                raise OrchestratorError(f"Unable to start upload sequencing thread: {exc}") from exc

            test_run.consume()
        finally:
            self.probe.remove_listener(test_run.enqueue)

        latency_ms = self.latency_prober.measure(self.latency_host, self.latency_timeout_ms)
        outcome = test_run.outcome(latency_ms)
        LOGGER.info(
            "Speed test finished (down %.2f Mbps / up %.2f Mbps / latency %s ms)",
            outcome.download_mbps,
            outcome.upload_mbps,
            outcome.latency_ms,
        )
        return outcome


class _TestRun:
    """State for a single orchestrator run. Mutated only by ``consume()``."""

    def __init__(self, orchestrator: SpeedTestOrchestrator):
        self.orchestrator = orchestrator
        self.events: "queue.Queue[object]" = queue.Queue()
        self.states: Dict[Direction, _AttemptState] = {
            Direction.DOWNLOAD: _AttemptState(EndpointFallbackList(orchestrator.download_urls)),
            Direction.UPLOAD: _AttemptState(EndpointFallbackList(orchestrator.upload_urls)),
        }
        self.remaining = len(self.states)

    def enqueue(self, event: TransferEvent) -> None:
        self.events.put(event)

    def start_upload_when_ready(self) -> None:
        ceiling = self.orchestrator.upload_start_ceiling
        if not self.states[Direction.DOWNLOAD].done.wait(timeout=ceiling):
            LOGGER.warning("Download still running after %.1fs; starting upload anyway", ceiling)
        self.events.put(_START_UPLOAD)

    def consume(self) -> None:
        while self.remaining > 0:
            self._handle(self.events.get())

    def start(self, direction: Direction) -> None:
        state = self.states[direction]
        state.started = True
        url = state.candidates.current()
        if url is None:
            LOGGER.warning("No %s endpoints configured; skipping %s test", direction.value, direction.value)
            self._conclude(direction)
            return
        self._launch(direction, url)

    def outcome(self, latency_ms: int) -> RunOutcome:
        download = self.states[Direction.DOWNLOAD]
        upload = self.states[Direction.UPLOAD]
        return RunOutcome(
            download_mbps=download.rate_mbps,
            upload_mbps=upload.rate_mbps,
            latency_ms=latency_ms,
            download_server=download.server,
            upload_server=upload.server,
        )

    def _launch(self, direction: Direction, url: str) -> None:
        state = self.states[direction]
        state.attempts += 1
        payload = self.orchestrator.upload_payload_bytes if direction is Direction.UPLOAD else None
        LOGGER.info("Starting %s attempt %d: %s", direction.value, state.attempts, url)
        try:
            self.orchestrator.probe.start_transfer(url, direction, payload)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Could not start %s against %s: %s", direction.value, url, exc)
            self.events.put(ErrorEvent(direction=direction, message=str(exc), url=url))

    def _handle(self, item: object) -> None:
        if item is _START_UPLOAD:
            self.start(Direction.UPLOAD)
            return

        if isinstance(item, ProgressEvent):
            self._progress(item)
            return

        if not isinstance(item, (CompletionEvent, ErrorEvent)):
            raise OrchestratorError(f"Unexpected item on event channel: {item!r}")

        state = self.states[item.direction]
        if state.concluded or not state.started:
            LOGGER.debug("Ignoring %s for inactive %s direction", type(item).__name__, item.direction.value)
            return

        if isinstance(item, CompletionEvent):
            state.rate_mbps = bits_to_mbps(item.rate_bps)
            state.server = item.url or state.candidates.current()
            LOGGER.info("%s complete: %.2f Mbps (%s)", item.direction.value.capitalize(), state.rate_mbps, state.server)
            self._conclude(item.direction)
            return

        LOGGER.warning("%s attempt failed (%s): %s", item.direction.value.capitalize(), item.url, item.message)
        if state.candidates.advance():
            next_url = state.candidates.current()
            LOGGER.info("Retrying %s with fallback URL: %s", item.direction.value, next_url)
            self._launch(item.direction, next_url)
        else:
            LOGGER.error("All %s URLs failed", item.direction.value)
            self._conclude(item.direction)

    def _progress(self, event: ProgressEvent) -> None:
        LOGGER.debug("Progress (%s): %.1f%%", event.direction.value, event.percent)
        callback = self.orchestrator.on_progress
        if callback is None:
            return
        try:
            callback(event)
        except Exception:  # pylint: disable=broad-except
            LOGGER.exception("Progress callback failed")

    def _conclude(self, direction: Direction) -> None:
        state = self.states[direction]
        if state.concluded:
            return
        state.concluded = True
        self.remaining -= 1
        state.done.set()
