"""
Time source shared by uploads and pollers.
"""
import asyncio
import time


class Clock:
    """Monotonic wall clock plus the matching sleep.

    Every deadline in the orchestrator (upload timeouts, poll cadence, poll
    deadline, display grace periods) is measured with one ``Clock`` so tests
    can substitute a virtual one.
    """

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
