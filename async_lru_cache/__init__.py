import asyncio
from collections import OrderedDict
import functools
from typing import (
    Awaitable,
    Callable,
    ParamSpec,
    TypeVar,
)

P = ParamSpec("P")
R = TypeVar("R")

class AsyncLruCache:
    """
    Memoizes a coroutine function. Concurrent calls with the same arguments
    share one in-flight call, so e.g. the same photo is only downloaded once
    when several cards reference it at the same time. Exceptions aren't
    cached.
    """

    def __init__(self, maxsize=1024, ttl=None, cache_condition=None):
        self.maxsize = maxsize
        self.ttl = ttl  # seconds
        self.cache_condition = cache_condition
        self.cache = OrderedDict()
        self.in_flight: dict[tuple, asyncio.Future] = {}

    def clear(self):
        for _, timer in self.cache.values():
            if timer:
                timer.cancel()
        self.cache.clear()

    def _store(self, key, result):
        # Cache the result with optional TTL
        if self.ttl is not None:
            loop = asyncio.get_running_loop()
            timer = loop.call_later(self.ttl, lambda: self.cache.pop(key, None))
            self.cache[key] = (result, timer)
        else:
            self.cache[key] = (result, None)

        # Manage cache size
        if len(self.cache) > self.maxsize:
            oldest_key, oldest_value = self.cache.popitem(last=False)
            if oldest_value[1]:
                oldest_value[1].cancel()  # Cancel the timer if it exists

    def __call__(
        self,
        func: Callable[P, Awaitable[R]]
    ) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            key = args + tuple(sorted(kwargs.items()))

            # Return the cached result if available
            if key in self.cache:
                self.cache.move_to_end(key)  # Mark as recently used
                return self.cache[key][0]

            # Join a call which is already computing this key
            if key in self.in_flight:
                return await asyncio.shield(self.in_flight[key])

            future = asyncio.get_running_loop().create_future()
            self.in_flight[key] = future

            try:
                result = await func(*args, **kwargs)
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as e:
                future.set_exception(e)
                # Mark retrieved so an unjoined failure isn't reported as
                # "exception never retrieved"
                future.exception()
                raise
            else:
                future.set_result(result)
            finally:
                del self.in_flight[key]

            # Determine if the result should be cached
            should_cache = self.cache_condition is None or self.cache_condition(result)
            if should_cache:
                self._store(key, result)

            return result

        wrapper.cache_clear = self.clear
        return wrapper
