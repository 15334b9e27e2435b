"""Fake collaborators for orchestrator tests."""

from __future__ import annotations

import threading
import time
from typing import Dict, List, Optional, Tuple

from netprobe.measurements.models import (
    CompletionEvent,
    Direction,
    ErrorEvent,
    ProgressEvent,
    TransferEvent,
    TransferListener,
)


class ScriptedTransferProbe:
    """Transfer probe whose behavior per URL is scripted up front.

    Script entries:
      ("ok", bps)          progress, then completion at ``bps``
      ("error", message)   progress, then error
      ("raise", message)   start_transfer raises ValueError
      ("slow", bps)        completion after a short delay
      ("twice", bps, bps2) two completion events for one attempt
      ("hold", bps)        completion only once an upload has been started
      ("silent",)          never emits anything
    Unknown URLs behave like ("error", "unscripted").
    """

    def __init__(self, script: Optional[Dict[str, tuple]] = None, fail_register: bool = False):
        self.script = script or {}
        self.fail_register = fail_register
        self.listeners: List[TransferListener] = []
        self.starts: List[Tuple[str, Direction, Optional[int]]] = []
        self.log: List[tuple] = []
        self._lock = threading.Lock()
        self._upload_started = threading.Event()
        self._threads: List[threading.Thread] = []
        self.closed = False

    def add_listener(self, listener: TransferListener) -> None:
        if self.fail_register:
            raise RuntimeError("listener registry unavailable")
        self.listeners.append(listener)

    def close(self) -> None:
        self.closed = True

    def remove_listener(self, listener: TransferListener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def start_transfer(self, url: str, direction: Direction, payload_size_bytes: Optional[int] = None) -> None:
        with self._lock:
            self.starts.append((url, direction, payload_size_bytes))
            self.log.append(("start", direction, url))
        if direction is Direction.UPLOAD:
            self._upload_started.set()

        step = self.script.get(url, ("error", "unscripted"))
        if step[0] == "raise":
            raise ValueError(step[1])

        thread = threading.Thread(target=self._play, args=(url, direction, step), daemon=True)
        self._threads.append(thread)
        thread.start()

    def started_urls(self, direction: Direction) -> List[str]:
        return [url for url, d, _ in self.starts if d is direction]

    def index_of(self, kind: str, direction: Direction) -> int:
        for i, entry in enumerate(self.log):
            if entry[0] == kind and entry[1] is direction:
                return i
        raise AssertionError(f"no {kind} entry for {direction}")

    def join(self, timeout: float = 2.0) -> None:
        for thread in list(self._threads):
            thread.join(timeout)

    def _emit(self, event: TransferEvent) -> None:
        kind = type(event).__name__.replace("Event", "").lower()
        with self._lock:
            self.log.append((kind, event.direction, event))
        for listener in list(self.listeners):
            listener(event)

    def _play(self, url: str, direction: Direction, step: tuple) -> None:
        kind = step[0]
        if kind == "silent":
            return
        self._emit(ProgressEvent(direction=direction, percent=50.0))
        if kind == "ok":
            self._emit(CompletionEvent(direction=direction, rate_bps=step[1], url=url))
        elif kind == "slow":
            time.sleep(0.2)
            self._emit(CompletionEvent(direction=direction, rate_bps=step[1], url=url))
        elif kind == "twice":
            self._emit(CompletionEvent(direction=direction, rate_bps=step[1], url=url))
            self._emit(CompletionEvent(direction=direction, rate_bps=step[2], url=url))
        elif kind == "hold":
            self._upload_started.wait(5)
            time.sleep(0.05)
            self._emit(CompletionEvent(direction=direction, rate_bps=step[1], url=url))
        else:
            self._emit(ErrorEvent(direction=direction, message=step[1], url=url))


class FakeLatencyProber:
    def __init__(self, value: int = 12):
        self.value = value
        self.calls: List[Tuple[str, int]] = []

    def measure(self, host: str, timeout_ms: int = 3000) -> int:
        self.calls.append((host, timeout_ms))
        return self.value
