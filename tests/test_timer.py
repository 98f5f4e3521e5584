"""Tests for where_are_we.timer: the cancellable countdown."""

import asyncio

from where_are_we.timer import RoundTimer


class Recorder:
    def __init__(self, stop_after: int | None = None) -> None:
        self.ticks: list[int] = []
        self.stop_after = stop_after

    def __call__(self, epoch: int) -> bool:
        self.ticks.append(epoch)
        return self.stop_after is not None and len(self.ticks) >= self.stop_after


async def test_ticks_carry_epoch() -> None:
    rec = Recorder(stop_after=3)
    timer = RoundTimer(rec, interval=0.001)
    timer.start(7)
    await asyncio.sleep(0.05)
    assert rec.ticks == [7, 7, 7]
    assert not timer.running


async def test_cancel_stops_ticks() -> None:
    rec = Recorder()
    timer = RoundTimer(rec, interval=0.001)
    timer.start(1)
    await asyncio.sleep(0.01)
    timer.cancel()
    seen = len(rec.ticks)
    await asyncio.sleep(0.01)
    assert len(rec.ticks) == seen
    assert not timer.running
    assert timer.epoch is None


async def test_restart_replaces_previous_countdown() -> None:
    rec = Recorder()
    timer = RoundTimer(rec, interval=0.001)
    timer.start(1)
    await asyncio.sleep(0.01)
    timer.start(2)
    rec.ticks.clear()
    await asyncio.sleep(0.01)
    timer.cancel()
    assert rec.ticks
    assert set(rec.ticks) == {2}


async def test_cancel_twice_is_harmless() -> None:
    timer = RoundTimer(Recorder(), interval=0.001)
    timer.start(1)
    timer.cancel()
    timer.cancel()
    assert not timer.running


async def test_failing_callback_is_logged_and_countdown_continues(caplog) -> None:
    calls: list[int] = []

    def flaky(epoch: int) -> bool:
        calls.append(epoch)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return len(calls) >= 3

    timer = RoundTimer(flaky, interval=0.001)
    with caplog.at_level("ERROR", logger="where_are_we.timer"):
        timer.start(5)
        await asyncio.sleep(0.05)
    assert calls == [5, 5, 5]
    assert not timer.running
    assert "tick callback failed for epoch 5" in caplog.text


def test_without_loop_timer_is_manual() -> None:
    rec = Recorder()
    timer = RoundTimer(rec)
    timer.start(4)
    assert timer.epoch == 4
    assert not timer.running
    assert rec.ticks == []
