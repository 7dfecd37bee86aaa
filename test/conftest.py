"""Shared fixtures for the underbar test suite."""

from __future__ import annotations

import heapq
import itertools
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pytest

# Add parent to path so we can import underbar
sys.path.insert(0, str(Path(__file__).parent.parent))


@dataclass
class ManualScheduler:
    """Deterministic scheduler driven by a virtual millisecond clock."""

    now: float = 0.0
    queue: list[tuple[float, int, Callable[[], Any]]] = field(default_factory=list)
    _sequence: itertools.count = field(default_factory=itertools.count)

    def schedule(self, wait_ms: float, callback: Callable[[], Any]) -> int:
        handle = next(self._sequence)
        heapq.heappush(self.queue, (self.now + wait_ms, handle, callback))
        return handle

    def advance(self, ms: float) -> None:
        """Move the clock forward, firing every callback that comes due."""
        target = self.now + ms
        while self.queue and self.queue[0][0] <= target:
            deadline, _, callback = heapq.heappop(self.queue)
            self.now = deadline
            callback()
        self.now = target

    @property
    def pending(self) -> int:
        return len(self.queue)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()
