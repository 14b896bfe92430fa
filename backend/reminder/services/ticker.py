"""
Monotonic interval ticker
"""
import asyncio
from typing import Optional


class Ticker:
    """
    Wakes up every `interval` seconds on the event loop's monotonic clock

    Deadlines are fixed multiples of the interval from the start time. When the
    consumer falls behind, the missed deadlines are coalesced into a single tick
    and the schedule resumes at the next deadline that is still in the future.
    """

    def __init__(self, interval: float, stopped: Optional[asyncio.Event] = None):
        if interval <= 0:
            raise ValueError(f"non-positive interval for Ticker: {interval}")
        self.interval = interval
        self._stopped = stopped if stopped is not None else asyncio.Event()
        self._next: Optional[float] = None
        self.coalesced = 0

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self) -> None:
        """Stop the ticker; a pending tick() returns False"""
        self._stopped.set()

    async def tick(self) -> bool:
        """Wait for the next tick; False once the ticker is stopped"""
        loop = asyncio.get_running_loop()
        if self._next is None:
            self._next = loop.time() + self.interval

        delay = self._next - loop.time()
        if self._stopped.is_set():
            return False
        if delay > 0:
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=delay)
                return False
            except asyncio.TimeoutError:
                pass

        now = loop.time()
        missed = max(0, int((now - self._next) // self.interval))
        self.coalesced += missed
        self._next += (missed + 1) * self.interval
        return not self._stopped.is_set()
