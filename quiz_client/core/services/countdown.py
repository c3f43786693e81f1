"""Service deriving the remaining attempt time from an absolute end time."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import math

from quiz_client.constants.quiz_constants import COUNTDOWN_TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CountdownSnapshot:
    minutes: int
    seconds: int
    is_expired: bool
    remaining: timedelta


class Countdown:
    """Pollable countdown recomputed from the wall clock on every read.

    Remaining time never increases for a given end time and clamps at
    zero. Once expired it stays expired until the end time is replaced.
    Without an end time the countdown is idle: zero remaining, not expired.
    """

    def __init__(
        self,
        end_time: datetime | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clock = clock
        self._end_time: datetime | None = None
        self._lowest_remaining: timedelta | None = None
        self._expired = False
        self.set_end_time(end_time)

    @property
    def end_time(self) -> datetime | None:
        return self._end_time

    def set_end_time(self, end_time: datetime | None) -> None:
        self._end_time = end_time
        self._lowest_remaining = None
        self._expired = False

    def remaining(self) -> timedelta:
        if self._end_time is None:
            return timedelta(0)
        remaining = max(timedelta(0), self._end_time - self._clock())
        if self._lowest_remaining is not None and remaining > self._lowest_remaining:
            remaining = self._lowest_remaining
        self._lowest_remaining = remaining
        if remaining == timedelta(0):
            self._expired = True
        return remaining

    def is_expired(self) -> bool:
        if self._end_time is None:
            return False
        self.remaining()
        return self._expired

    def snapshot(self) -> CountdownSnapshot:
        remaining = self.remaining()
        total_seconds = math.floor(remaining.total_seconds())
        return CountdownSnapshot(
            minutes=total_seconds // 60,
            seconds=total_seconds % 60,
            is_expired=self._expired,
            remaining=remaining,
        )


class CountdownTicker:
    """Drives a Countdown on a fixed cadence inside the running event loop."""

    def __init__(
        self,
        countdown: Countdown,
        on_tick: Callable[[CountdownSnapshot], None],
        on_expired: Callable[[], None] | None = None,
        interval_seconds: float = COUNTDOWN_TICK_INTERVAL_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("Tick interval must be positive.")
        self._countdown = countdown
        self._on_tick = on_tick
        self._on_expired = on_expired
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, end_time: datetime | None) -> None:
        """Restart ticking towards ``end_time``; ``None`` leaves the ticker idle."""
        self.stop()
        self._countdown.set_end_time(end_time)
        if end_time is None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="countdown-ticker")

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while True:
            snapshot = self._countdown.snapshot()
            self._on_tick(snapshot)
            if snapshot.is_expired:
                logger.info("Countdown reached zero")
                if self._on_expired is not None:
                    self._on_expired()
                return
            await asyncio.sleep(self._interval)
