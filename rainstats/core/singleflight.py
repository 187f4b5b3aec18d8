import asyncio
from typing import Any, Awaitable, Callable, Hashable


class SingleFlight:
    """
    Collapses concurrent calls for the same key into one execution.

    The first caller for a key starts the work as a task; callers arriving
    while it runs await that same task and receive its result or exception.
    Once it finishes the key is free again.
    """

    def __init__(self):
        self._tasks: dict[Hashable, asyncio.Task] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._tasks

    @property
    def busy(self) -> bool:
        return bool(self._tasks)

    async def run(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._tasks[key] = task
            task.add_done_callback(lambda _t, k=key: self._tasks.pop(k, None))
        # A caller giving up must not cancel the work other callers share.
        return await asyncio.shield(task)
