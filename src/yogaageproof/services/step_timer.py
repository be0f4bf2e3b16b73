"""Per-step countdown timer."""

import asyncio
from collections.abc import Awaitable, Callable

from yogaageproof.services.retry import Sleep

TickCallback = Callable[[int], None]
CompleteCallback = Callable[[], Awaitable[None]]


class StepTimer:
    """Counts down whole seconds while active.

    ``on_tick`` receives the remaining seconds after every decrement and
    ``on_complete`` is awaited once the countdown reaches zero. Changing the
    duration resets the countdown; deactivating pauses it.
    """

    def __init__(
        self,
        duration_seconds: int = 0,
        on_tick: TickCallback | None = None,
        on_complete: CompleteCallback | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.duration_seconds = max(duration_seconds, 0)
        self.remaining_seconds = self.duration_seconds
        self.on_tick = on_tick
        self.on_complete = on_complete
        self._sleep = sleep
        self._active = False
        self._task: asyncio.Task[None] | None = None
        self._detached: set[asyncio.Task[None]] = set()

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_complete(self) -> bool:
        return self.remaining_seconds == 0

    def set_duration(self, duration_seconds: int) -> None:
        """Reset the countdown, restarting it if the timer is active."""
        self._stop()
        self.duration_seconds = max(duration_seconds, 0)
        self.remaining_seconds = self.duration_seconds
        if self._active:
            self._start()

    def set_active(self, active: bool) -> None:  # noqa: FBT001
        self._active = active
        if active:
            self._start()
        else:
            self._stop()

    async def wait(self) -> None:
        """Wait until no countdown or completion callback is running."""
        while pending := self._pending_tasks():
            await asyncio.wait(pending)

    async def close(self) -> None:
        self._active = False
        self._stop()
        await self.wait()

    def _pending_tasks(self) -> set[asyncio.Task[None]]:
        tasks = {task for task in self._detached if not task.done()}
        if self._task is not None and not self._task.done():
            tasks.add(self._task)
        return tasks

    def _start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    def _stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        self._detached.add(task)
        task.add_done_callback(self._detached.discard)
        # A countdown at zero is running on_complete; let it finish.
        if task is not asyncio.current_task() and self.remaining_seconds > 0:
            task.cancel()

    async def _run(self) -> None:
        while self.remaining_seconds > 0:
            await self._sleep(1)
            self.remaining_seconds -= 1
            if self.on_tick is not None:
                self.on_tick(self.remaining_seconds)
        if self.on_complete is not None:
            await self.on_complete()
