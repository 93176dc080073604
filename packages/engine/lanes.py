import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionLanes:
    """
    One FIFO lane per session id: turns of the same session run one at a time,
    in arrival order; different sessions run in parallel, bounded by a shared
    semaphore.

    Lanes, workers and primitives belong to the running event loop; when the
    loop changes (e.g. a fresh asyncio.run) they are rebuilt.
    """

    def __init__(self, max_concurrency: int = 8) -> None:
        self._max_concurrency = max_concurrency
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lanes: Dict[str, asyncio.Queue[Tuple[Callable[[], Awaitable[T] | T], asyncio.Future[T]]]] = {}
        self._workers: Dict[str, asyncio.Task[None]] = {}
        self._state_lock: Optional[asyncio.Lock] = None
        self._global_semaphore: Optional[asyncio.Semaphore] = None

    def _bind_loop(self) -> asyncio.AbstractEventLoop:
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            if self._loop is not None:
                logger.debug("lanes.rebind dropped_lanes=%d", len(self._lanes))
            self._loop = loop
            self._lanes = {}
            self._workers = {}
            self._state_lock = asyncio.Lock()
            self._global_semaphore = asyncio.Semaphore(self._max_concurrency)
        return loop

    @property
    def active_lanes(self) -> int:
        return sum(1 for worker in self._workers.values() if not worker.done())

    async def submit(self, session_id: str, fn: Callable[[], Awaitable[T] | T]) -> T:
        loop = self._bind_loop()
        future: asyncio.Future[T] = loop.create_future()

        async with self._state_lock:
            queue = self._lanes.get(session_id)
            worker = self._workers.get(session_id)
            if queue is None or worker is None or worker.done():
                queue = asyncio.Queue()
                self._lanes[session_id] = queue
                self._workers[session_id] = asyncio.create_task(self._lane_worker(session_id, queue))

        await queue.put((fn, future))
        return await future

    async def _lane_worker(self, session_id: str, queue: asyncio.Queue) -> None:
        while True:
            fn, future = await queue.get()
            try:
                async with self._global_semaphore:
                    result = fn()
                    if inspect.isawaitable(result):
                        result = await result
                if not future.cancelled():
                    future.set_result(result)
            except Exception as exc:
                logger.debug("lanes.turn_failed session_id=%s error=%s", session_id, exc)
                if not future.cancelled():
                    future.set_exception(exc)
            finally:
                queue.task_done()

    async def close(self) -> None:
        """Cancel every lane worker of the current loop."""
        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        for worker in workers:
            try:
                await worker
            except asyncio.CancelledError:
                pass
        self._lanes = {}
        self._workers = {}
