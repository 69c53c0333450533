from __future__ import annotations

import asyncio


class RateTicker:
    """Fixed-interval tick source for rate limiting.

    Ticks sit on a grid `interval_s` apart, anchored at the first `tick()`
    call, and the first tick is one full interval away (no burst on start).
    If the caller falls behind, one overdue tick is delivered immediately and
    the rest of the missed ticks are dropped, so work never bunches up.
    """

    def __init__(self, interval_s: float) -> None:
        self.interval_s = interval_s
        self._next: float | None = None

    async def tick(self) -> None:
        if self.interval_s <= 0:
            await asyncio.sleep(0)
            return
        now = asyncio.get_running_loop().time()
        if self._next is None:
            self._next = now + self.interval_s
        if self._next > now:
            await asyncio.sleep(self._next - now)
            self._next += self.interval_s
        else:
            missed = int((now - self._next) // self.interval_s) + 1
            self._next += missed * self.interval_s
            if self._next <= now:
                self._next += self.interval_s
