import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Periodically awaits a callback on the running event loop.

    The owner controls the lifecycle with `start()` and `stop()`. A tick
    that raises is logged and the schedule carries on with the next one.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        run_immediately: bool = True,
        name: str = "refresh",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.callback = callback
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self.name = name
        self._sleep = sleep
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"scheduler:{self.name}")
        logger.info("Scheduler %s started (every %ss)", self.name, self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Scheduler %s stopped", self.name)

    async def _loop(self) -> None:
        if self.run_immediately:
            await self._tick()
        while True:
            await self._sleep(self.interval_seconds)
            await self._tick()

    async def _tick(self) -> None:
        self.ticks += 1
        try:
            await self.callback()
        except Exception:
            logger.exception("Scheduled %s failed (tick %d)", self.name, self.ticks)
