from __future__ import annotations

from netprobe.measurements.fallback import EndpointFallbackList


def test_walks_candidates_left_to_right() -> None:
    candidates = EndpointFallbackList(["a", "b", "c"])

    assert candidates.current() == "a"
    assert candidates.advance() is True
    assert candidates.current() == "b"
    assert candidates.advance() is True
    assert candidates.current() == "c"
    assert candidates.advance() is False
    assert candidates.current() is None
    assert candidates.exhausted


def test_advance_after_exhaustion_stays_exhausted() -> None:
    candidates = EndpointFallbackList(["only"])

    assert candidates.advance() is False
    assert candidates.advance() is False
    assert candidates.position == 1
    assert candidates.current() is None


def test_empty_list_is_exhausted_from_the_start() -> None:
    candidates = EndpointFallbackList([])

    assert len(candidates) == 0
    assert candidates.exhausted
    assert candidates.current() is None
    assert candidates.advance() is False


def test_source_sequence_is_copied() -> None:
    source = ["a", "b"]
    candidates = EndpointFallbackList(source)
    source.insert(0, "z")

    assert candidates.current() == "a"
