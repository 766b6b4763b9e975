"""Task scheduling for fire-and-forget processing cycles and delayed retries."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Set

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[None]]


class TaskScheduler(ABC):
    """
    Runs processing work outside the caller's control flow.

    Implementations decide where the work runs. The in-process one below
    loses scheduled work on restart; a durable queue can replace it without
    touching the processing engine.
    """

    @abstractmethod
    def schedule_after(self, delay_seconds: float, task: Task) -> None:
        """Run `task` once `delay_seconds` have elapsed."""

    def submit(self, task: Task) -> None:
        """Run `task` as soon as possible without waiting for it."""
        self.schedule_after(0, task)


class AsyncioTaskScheduler(TaskScheduler):
    """Scheduler backed by asyncio tasks on the running event loop."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def schedule_after(self, delay_seconds: float, task: Task) -> None:
        handle = asyncio.create_task(self._run_after(delay_seconds, task))
        self._tasks.add(handle)
        handle.add_done_callback(self._tasks.discard)

    async def _run_after(self, delay_seconds: float, task: Task) -> None:
        if delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        try:
            await task()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Scheduled task failed: {e}", exc_info=True)

    async def shutdown(self) -> None:
        """Cancel everything still pending and wait for it to unwind."""
        if not self._tasks:
            return

        logger.info(f"Cancelling {len(self._tasks)} scheduled task(s)")
        tasks = list(self._tasks)
        for handle in tasks:
            handle.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def get_stats(self) -> dict:
        return {"pending_tasks": self.pending_count}
