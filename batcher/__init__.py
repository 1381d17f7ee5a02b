from typing import Awaitable, Callable, Generic, TypeVar
import asyncio
import inspect
import logging

T = TypeVar('T')

logger = logging.getLogger(__name__)

class Batcher(Generic[T]):
    """
    Collects items enqueued from coroutines on the running event loop and
    hands them to `process_fn` in batches, at most every `flush_interval`
    seconds. The worker task is (re)started on the loop which enqueues.
    """

    def __init__(
        self,
        process_fn: Callable[[list[T]], None] | Callable[[list[T]], Awaitable[None]],
        flush_interval: float,
        min_batch_size: int = 1,
        max_batch_size: int = 100,
        retry: bool = False
    ):
        self._process_fn = process_fn
        self._flush_interval = flush_interval
        self._min_batch_size = min_batch_size
        self._max_batch_size = max_batch_size
        self._retry = retry
        self._queue: asyncio.Queue[T] | None = None
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def enqueue(self, item: T):
        loop = asyncio.get_running_loop()
        if self._task is None or self._task.done() or self._loop is not loop:
            self.start()
        self._queue.put_nowait(item)

    def set_flush_interval(self, flush_interval: float):
        self._flush_interval = flush_interval

    async def _wait_for_next_batch(self) -> list[T] | None:
        loop = asyncio.get_running_loop()
        batch: list[T] = []
        deadline = loop.time() + self._flush_interval

        while len(batch) < self._max_batch_size:
            remaining = deadline - loop.time()
            if remaining <= 0 and len(batch) >= self._min_batch_size:
                break

            timeout = remaining if remaining > 0 else None

            try:
                item = await asyncio.wait_for(self._queue.get(), timeout)
            except asyncio.TimeoutError:
                continue

            batch.append(item)

        return batch or None

    async def _process_batch(self, batch: list[T]):
        try:
            result = self._process_fn(batch)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f'error processing batch of {len(batch)}')
            if self._retry:
                for item in batch:
                    self._queue.put_nowait(item)

    async def _process_batches_forever(self):
        while True:
            batch = await self._wait_for_next_batch()
            if batch is not None:
                await self._process_batch(batch)

    def start(self):
        self.stop()
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._task = self._loop.create_task(self._process_batches_forever())

    def stop(self):
        if (
            self._task is not None
            and not self._task.done()
            and not self._loop.is_closed()
        ):
            self._task.cancel()
        self._task = None
