import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from quiz_client.core.services.countdown import Countdown, CountdownTicker


def test_idle_countdown_is_not_expired(clock):
    countdown = Countdown(clock=clock)

    snapshot = countdown.snapshot()

    assert (snapshot.minutes, snapshot.seconds, snapshot.is_expired) == (0, 0, False)
    assert not countdown.is_expired()


def test_remaining_time_is_floored_to_whole_seconds(clock):
    countdown = Countdown(clock.now + timedelta(minutes=2, seconds=5, milliseconds=900), clock=clock)

    snapshot = countdown.snapshot()

    assert (snapshot.minutes, snapshot.seconds) == (2, 5)
    assert not snapshot.is_expired


def test_countdown_expires_at_end_time_and_stays_expired(clock):
    countdown = Countdown(clock.now + timedelta(seconds=30), clock=clock)

    clock.advance(seconds=30)
    assert countdown.is_expired()

    clock.advance(minutes=-5)
    snapshot = countdown.snapshot()
    assert snapshot.is_expired
    assert snapshot.remaining == timedelta(0)


def test_remaining_time_never_increases_for_the_same_end_time(clock):
    countdown = Countdown(clock.now + timedelta(minutes=10), clock=clock)
    clock.advance(minutes=3)
    assert countdown.remaining() == timedelta(minutes=7)

    clock.advance(minutes=-2)
    assert countdown.remaining() == timedelta(minutes=7)


def test_end_time_in_the_past_is_expired_immediately(clock):
    countdown = Countdown(clock.now - timedelta(minutes=1), clock=clock)

    assert countdown.snapshot().is_expired


def test_new_end_time_resets_expiry(clock):
    countdown = Countdown(clock.now, clock=clock)
    assert countdown.is_expired()

    countdown.set_end_time(clock.now + timedelta(minutes=1))
    assert not countdown.is_expired()

    countdown.set_end_time(None)
    assert not countdown.is_expired()


def test_ticker_rejects_non_positive_interval(clock):
    with pytest.raises(ValueError):
        CountdownTicker(Countdown(clock=clock), on_tick=lambda snapshot: None, interval_seconds=0)


def test_ticker_reports_every_tick_and_expiry_once():
    now = [datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)]
    ticks = []
    expired = []

    def on_tick(snapshot):
        ticks.append(snapshot.seconds)
        now[0] += timedelta(seconds=1)

    async def scenario():
        countdown = Countdown(clock=lambda: now[0])
        ticker = CountdownTicker(
            countdown, on_tick=on_tick, on_expired=lambda: expired.append(True), interval_seconds=0.001
        )
        ticker.start(now[0] + timedelta(seconds=3))
        assert ticker.is_running()
        await asyncio.wait_for(ticker._task, timeout=5)
        assert not ticker.is_running()

    asyncio.run(scenario())

    assert ticks == [3, 2, 1, 0]
    assert expired == [True]


def test_stopped_ticker_does_not_fire(clock):
    ticks = []

    async def scenario():
        ticker = CountdownTicker(Countdown(clock=clock), on_tick=ticks.append, interval_seconds=10)
        ticker.start(clock.now + timedelta(minutes=5))
        ticker.stop()
        await asyncio.sleep(0)
        assert not ticker.is_running()

    asyncio.run(scenario())
    assert ticks == []
