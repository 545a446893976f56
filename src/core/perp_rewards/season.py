"""Season clock: maps observed time to a season index.

``season(t) = (t - start_time) // period + 1``; season 1 starts at genesis.
Times before genesis clamp to season 1 so the index never drops below 1.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from .math import SEASON_PERIOD_SECONDS

TimeSource = Callable[[], int]


def season_at(now: int, start_time: int, period_seconds: int = SEASON_PERIOD_SECONDS) -> int:
    if period_seconds <= 0:
        raise ValueError("period_seconds must be positive")
    if now <= start_time:
        return 1
    return (now - start_time) // period_seconds + 1


def season_start(season: int, start_time: int, period_seconds: int = SEASON_PERIOD_SECONDS) -> int:
    """First second belonging to `season`."""
    if season < 1:
        raise ValueError("season must be >= 1")
    return start_time + (season - 1) * period_seconds


@dataclass(frozen=True)
class SeasonClock:
    """Immutable genesis time + period, read against a host time source."""

    start_time: int
    period_seconds: int = SEASON_PERIOD_SECONDS

    def __post_init__(self) -> None:
        if self.period_seconds <= 0:
            raise ValueError("period_seconds must be positive")

    def season(self, now: int) -> int:
        return season_at(now, self.start_time, self.period_seconds)

    def season_start(self, season: int) -> int:
        return season_start(season, self.start_time, self.period_seconds)


def system_time() -> int:
    return int(time.time())


class ManualClock:
    """Host time source for tests and replays. Never moves backwards."""

    def __init__(self, now: int = 0):
        self._now = int(now)

    def __call__(self) -> int:
        return self._now

    @property
    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("cannot move time backwards")
        self._now += int(seconds)
        return self._now

    def set(self, now: int) -> int:
        if now < self._now:
            raise ValueError("cannot move time backwards")
        self._now = int(now)
        return self._now
