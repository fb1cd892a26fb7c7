from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass


WINDOWS: tuple[tuple[str, float], ...] = (
    ("minute", 60.0),
    ("hour", 3600.0),
    ("day", 86400.0),
)

# Seconds between sweeps that forget identities with no calls left in any window.
SWEEP_INTERVAL = 60.0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    window: str | None = None
    limit: int | None = None
    retry_after: float | None = None


def _expire(hits: deque[float], cutoff: float) -> None:
    while hits and hits[0] <= cutoff:
        hits.popleft()


class RateLimiter:
    """Per-identity sliding-window limiter over minute, hour and day windows.

    Denied calls are not counted, so a client that backs off regains access as
    soon as its oldest recorded call leaves the window.
    """

    def __init__(
        self,
        per_minute: int = 0,
        per_hour: int = 0,
        per_day: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        limits = {"minute": per_minute, "hour": per_hour, "day": per_day}
        self._windows = [(name, span, limits[name]) for name, span in WINDOWS if limits[name] > 0]
        self._spans = {name: span for name, span in WINDOWS}
        self._clock = clock
        self._hits: dict[tuple[str, str], deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def check(self, identity: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= SWEEP_INTERVAL:
                self._sweep(now)

            for name, span, limit in self._windows:
                hits = self._hits.setdefault((identity, name), deque())
                _expire(hits, now - span)
                if len(hits) >= limit:
                    return RateLimitDecision(
                        allowed=False,
                        window=name,
                        limit=limit,
                        retry_after=max(0.0, hits[0] + span - now),
                    )

            for name, _span, _limit in self._windows:
                self._hits[(identity, name)].append(now)

        return RateLimitDecision(allowed=True)

    def _sweep(self, now: float) -> None:
        # Caller holds the lock.
        for key in list(self._hits):
            hits = self._hits[key]
            _expire(hits, now - self._spans[key[1]])
            if not hits:
                del self._hits[key]
        self._last_sweep = now

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
