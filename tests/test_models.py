from __future__ import annotations

import pytest

from netprobe.measurements.models import LATENCY_UNREACHABLE, RunOutcome, bits_to_mbps


@pytest.mark.parametrize(
    "bits_per_second, expected",
    [
        (52_428_800, 52.43),
        (50_000_000, 50.0),
        (12_345_000, 12.35),
        (12_344_999, 12.34),
        (0, 0.0),
    ],
)
def test_bits_to_mbps_rounds_half_up(bits_per_second: float, expected: float) -> None:
    assert bits_to_mbps(bits_per_second) == expected


def test_run_outcome_defaults() -> None:
    outcome = RunOutcome()

    assert outcome.download_mbps == 0.0
    assert outcome.upload_mbps == 0.0
    assert outcome.latency_ms == LATENCY_UNREACHABLE
    assert not outcome.failed


def test_run_outcome_is_immutable() -> None:
    outcome = RunOutcome(download_mbps=1.0)

    with pytest.raises(AttributeError):
        outcome.download_mbps = 2.0  # type: ignore[misc]
