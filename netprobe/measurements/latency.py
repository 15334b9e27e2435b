"""Round-trip latency probing: ICMP ping first, TCP connect as fallback."""

from __future__ import annotations

import logging
import platform
import re
import socket
import subprocess
import time
from typing import Optional

from .models import LATENCY_UNREACHABLE

LOGGER = logging.getLogger(__name__)

_PING_TIME_RE = re.compile(r"time[=<](\d+(?:\.\d+)?)", re.IGNORECASE)


class LatencyProber:
    """Best-effort latency measurement.

    ICMP is often filtered by firewalls and NAT devices, so when the ping
    tier fails the prober times a TCP handshake to ``port`` on the same host.
    """

    def __init__(self, port: int = 53):
        self.port = port

    def measure(self, host: str, timeout_ms: int = 3000) -> int:
        icmp = self._icmp_ping(host, timeout_ms)
        if icmp is not None:
            LOGGER.info("ICMP latency to %s: %s ms", host, icmp)
            return icmp

        tcp = self._tcp_ping(host, self.port, timeout_ms)
        if tcp is not None:
            LOGGER.info("TCP latency to %s:%s: %s ms", host, self.port, tcp)
            return tcp

        LOGGER.warning("Latency target %s unreachable by ICMP and TCP", host)
        return LATENCY_UNREACHABLE

    def _icmp_ping(self, host: str, timeout_ms: int) -> Optional[int]:
        system = platform.system()
        if system == "Windows":
            cmd = ["ping", "-n", "1", "-w", str(timeout_ms), host]
        elif system == "Darwin":
            # BSD ping takes the reply wait in milliseconds
            cmd = ["ping", "-c", "1", "-W", str(timeout_ms), host]
        else:
            cmd = ["ping", "-c", "1", "-W", str(max(1, round(timeout_ms / 1000))), host]

        start = time.perf_counter()
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout_ms / 1000 + 1,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            LOGGER.debug("ICMP ping to %s failed: %s", host, exc)
            return None
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        if result.returncode != 0:
            LOGGER.debug("ICMP ping to %s exited with %s", host, result.returncode)
            return None

        match = _PING_TIME_RE.search(result.stdout or "")
        if match:
            return int(round(float(match.group(1))))
        return int(round(elapsed_ms))

    def _tcp_ping(self, host: str, port: int, timeout_ms: int) -> Optional[int]:
        start = time.perf_counter()
        try:
            with socket.create_connection((host, port), timeout=timeout_ms / 1000):
                elapsed_ms = (time.perf_counter() - start) * 1000.0
        except OSError as exc:
            LOGGER.debug("TCP ping to %s:%s failed: %s", host, port, exc)
            return None
        return int(round(elapsed_ms))
