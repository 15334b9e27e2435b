"""HTTP transfer probe: streams bytes to or from an endpoint and reports the rate.

Transfers run on daemon threads. Results are delivered to registered
listeners as ``ProgressEvent``, ``CompletionEvent`` or ``ErrorEvent``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Iterator, List, Optional, Tuple
from urllib.parse import urlparse

import requests

from .models import (
    CompletionEvent,
    Direction,
    ErrorEvent,
    ProgressEvent,
    TransferEvent,
    TransferListener,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_UPLOAD_BYTES = 2_000_000


class TransferError(Exception):
    """Raised inside a transfer thread when the endpoint misbehaves."""


def _content_length(raw: Optional[str]) -> int:
    """Parse a Content-Length header; anything unusable means unknown (0)."""
    try:
        value = int(raw or 0)
    except (TypeError, ValueError):
        LOGGER.debug("Ignoring malformed Content-Length %r", raw)
        return 0
    return max(value, 0)


class HttpTransferProbe:
    CHUNK_SIZE = 65536

    def __init__(
        self,
        timeout: float = 30.0,
        chunk_size: int = CHUNK_SIZE,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.chunk_size = chunk_size
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._listeners: List[TransferListener] = []
        self._lock = threading.Lock()
        # Pre-generated upload payload chunk
        self._payload_chunk = bytes((i * 17 + 31) % 256 for i in range(chunk_size))

    def close(self) -> None:
        """Release pooled connections. Sessions passed in by the caller are left open."""
        if self._owns_session:
            self._session.close()

    def add_listener(self, listener: TransferListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: TransferListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def start_transfer(
        self,
        url: str,
        direction: Direction,
        payload_size_bytes: Optional[int] = None,
    ) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Unsupported transfer URL: {url!r}")

        thread = threading.Thread(
            target=self._run_transfer,
            args=(url, direction, payload_size_bytes),
            name=f"transfer-{direction.value}",
            daemon=True,
        )
        thread.start()

    def _emit(self, event: TransferEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:  # pylint: disable=broad-except
                LOGGER.exception("Transfer listener failed on %s", type(event).__name__)

    def _run_transfer(self, url: str, direction: Direction, payload_size_bytes: Optional[int]) -> None:
        try:
            if direction is Direction.DOWNLOAD:
                transferred, elapsed = self._download(url)
            else:
                transferred, elapsed = self._upload(url, payload_size_bytes or DEFAULT_UPLOAD_BYTES)
            if transferred <= 0 or elapsed <= 0:
                raise TransferError("no data transferred")
        except Exception as exc:  # pylint: disable=broad-except
            # Every failed attempt must surface as an event or the run never concludes
            if not isinstance(exc, (requests.RequestException, TransferError)):
                LOGGER.exception("Unexpected %s failure against %s", direction.value, url)
            self._emit(ErrorEvent(direction=direction, message=str(exc) or type(exc).__name__, url=url))
            return

        rate_bps = transferred * 8 / elapsed
        LOGGER.debug("%s of %s bytes from %s took %.3fs", direction.value, transferred, url, elapsed)
        self._emit(CompletionEvent(direction=direction, rate_bps=rate_bps, url=url))

    def _download(self, url: str) -> Tuple[int, float]:
        start = time.perf_counter()
        with self._session.get(url, stream=True, timeout=self.timeout) as response:
            response.raise_for_status()
            total = _content_length(response.headers.get("Content-Length"))
            received = 0
            last_percent = -1
            for chunk in response.iter_content(chunk_size=self.chunk_size):
                received += len(chunk)
                if total:
                    percent = min(100, int(received * 100 / total))
                    if percent > last_percent:
                        last_percent = percent
                        self._emit(ProgressEvent(direction=Direction.DOWNLOAD, percent=float(percent)))
        return received, time.perf_counter() - start

    def _upload(self, url: str, size: int) -> Tuple[int, float]:
        sent = [0]

        def body() -> Iterator[bytes]:
            last_percent = -1
            while sent[0] < size:
                chunk = self._payload_chunk[: min(self.chunk_size, size - sent[0])]
                sent[0] += len(chunk)
                yield chunk
                percent = int(sent[0] * 100 / size)
                if percent > last_percent:
                    last_percent = percent
                    self._emit(ProgressEvent(direction=Direction.UPLOAD, percent=float(percent)))

        start = time.perf_counter()
        response = self._session.post(
            url,
            data=body(),
            headers={"Content-Type": "application/octet-stream"},
            timeout=self.timeout,
        )
        elapsed = time.perf_counter() - start
        response.raise_for_status()
        return sent[0], elapsed
