import asyncio
import logging
from typing import Any, Awaitable, Callable

from interview_room.errors import ConflictError

logger = logging.getLogger("session_actor")


class SessionActor:
    """Runs every job for one interview on a single worker task, in arrival order.

    A job is a zero-argument coroutine function. ``submit`` waits for that job's
    result (or exception); jobs never interleave, even across their awaits.
    """

    def __init__(self):
        self.stop_event = asyncio.Event()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def _ensure_worker(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run())

    async def submit(self, job: Callable[[], Awaitable[Any]]) -> Any:
        if self.stop_event.is_set():
            raise ConflictError("actor stopped", "Interview session is closed")

        future = asyncio.get_running_loop().create_future()
        self._ensure_worker()
        self._queue.put_nowait((job, future))
        return await future

    async def _run(self) -> None:
        while True:
            job, future = await self._queue.get()
            try:
                if future.done():
                    continue
                try:
                    result = await job()
                except asyncio.CancelledError:
                    if not future.done():
                        future.cancel()
                    raise
                except Exception as exc:
                    if not future.done():
                        future.set_exception(exc)
                else:
                    if not future.done():
                        future.set_result(result)
            finally:
                self._queue.task_done()

    async def stop(self) -> None:
        if not self.stop_event.is_set():
            self.stop_event.set()

        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            self._queue.task_done()
            if not future.done():
                future.set_exception(ConflictError("actor stopped", "Interview session is closed"))

        if self._worker is not None:
            self._worker.cancel()
            await asyncio.gather(self._worker, return_exceptions=True)
            self._worker = None
