"""Shared dataclasses for measurements."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional, Union

LATENCY_UNREACHABLE = -1


class Direction(str, enum.Enum):
    DOWNLOAD = "download"
    UPLOAD = "upload"


@dataclass(frozen=True)
class ProgressEvent:
    direction: Direction
    percent: float


@dataclass(frozen=True)
class CompletionEvent:
    direction: Direction
    rate_bps: float
    url: Optional[str] = None


@dataclass(frozen=True)
class ErrorEvent:
    direction: Direction
    message: str
    url: Optional[str] = None


TransferEvent = Union[ProgressEvent, CompletionEvent, ErrorEvent]
TransferListener = Callable[[TransferEvent], None]


@dataclass(frozen=True)
class RunOutcome:
    download_mbps: float = 0.0
    upload_mbps: float = 0.0
    latency_ms: int = LATENCY_UNREACHABLE
    download_server: Optional[str] = None
    upload_server: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def failed(self) -> bool:
        return self.error is not None


def bits_to_mbps(bits_per_second: float) -> float:
    """Convert a transfer rate in bit/s to Mbps, rounded half-up to 2 places."""
    value = Decimal(str(bits_per_second)) / Decimal(1_000_000)
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
