"""Round countdown as a cancellable asyncio task.

The timer owns no game state. Once a second it calls `on_tick(epoch)` with
the epoch it was started for; the session controller compares that epoch
with the live round's and ignores stale ticks. Restarting or cancelling
stops the previous task, so at most one countdown runs at a time.

Usage:
    timer = RoundTimer(controller.tick)
    timer.start(epoch=3)
    ...
    timer.cancel()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], object]


class RoundTimer:
    """Repeating one-second callback keyed by a round epoch.

    Args:
        on_tick:  Called with the epoch on every tick. A truthy return value
                  stops the countdown (round over).
        interval: Seconds between ticks. Tests shrink it.
    """

    def __init__(self, on_tick: TickCallback, interval: float = 1.0) -> None:
        self._on_tick = on_tick
        self._interval = interval
        self._task: asyncio.Task | None = None
        self._epoch: int | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def epoch(self) -> int | None:
        return self._epoch

    def start(self, epoch: int) -> None:
        """Start counting for `epoch`, cancelling any previous countdown.

        Without a running event loop (plain synchronous callers) nothing is
        scheduled and the caller drives ticks by hand.
        """
        self.cancel()
        self._epoch = epoch
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("no running loop; timer for epoch %d is manual", epoch)
            return
        self._task = loop.create_task(self._run(epoch))

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._epoch = None

    async def _run(self, epoch: int) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                done = self._on_tick(epoch)
            except Exception:
                # Log and keep counting
                logger.exception("tick callback failed for epoch %d", epoch)
                continue
            if done:
                logger.debug("timer for epoch %d stopped by callback", epoch)
                return
