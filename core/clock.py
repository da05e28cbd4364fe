from __future__ import annotations

import asyncio
from datetime import datetime, timezone


class SystemClock:
    """Wall-clock time source injected into every time-dependent component.

    Tests substitute a manual clock exposing the same two methods so that
    cadences and expiries can be exercised without real waits.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
