"""Ordered endpoint candidates with exhaustion detection."""

from __future__ import annotations

from typing import List, Optional, Sequence


class EndpointFallbackList:
    """Forward-only cursor over candidate URLs.

    Not thread-safe: a list belongs to a single orchestrator run and is only
    touched from that run's event loop.
    """

    def __init__(self, candidates: Sequence[str]):
        self._candidates: List[str] = list(candidates)
        self._index = 0

    def __len__(self) -> int:
        return len(self._candidates)

    @property
    def position(self) -> int:
        return self._index

    @property
    def exhausted(self) -> bool:
        return self._index >= len(self._candidates)

    def current(self) -> Optional[str]:
        if self.exhausted:
            return None
        return self._candidates[self._index]

    def advance(self) -> bool:
        """Move to the next candidate. Returns False once the list is used up."""
        if self.exhausted:
            return False
        self._index += 1
        return not self.exhausted
