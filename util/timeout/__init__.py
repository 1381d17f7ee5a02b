from __future__ import annotations

import asyncio
import os
from typing import Callable, Protocol, TypeVar

from errors import ElementTimeoutError

_R = TypeVar("_R")

ELEMENT_TIMEOUT_SECONDS = float(os.environ.get(
    'TX_ELEMENT_TIMEOUT_SECONDS',
    str(5),
))


class Observable(Protocol):
    def observe(self, callback: Callable[[], None]) -> Callable[[], None]: ...


async def wait_for_element(
    host: Observable,
    probe: Callable[[], _R | None],
    timeout: float | None = ELEMENT_TIMEOUT_SECONDS,
    description: str = 'element',
) -> _R:
    """
    Wait until ``probe()`` returns something other than ``None``.

    ``probe`` is re-evaluated on every change notification from ``host``.
    Raises :class:`ElementTimeoutError` once *timeout* seconds pass; a
    *timeout* of ``None`` waits forever. The observer is always disconnected
    on the way out.
    """
    element = probe()
    if element is not None:
        return element

    loop = asyncio.get_running_loop()
    future: asyncio.Future[_R] = loop.create_future()

    def on_change():
        if future.done():
            return
        try:
            element = probe()
        except Exception as e:
            future.set_exception(e)
            return
        if element is not None:
            future.set_result(element)

    disconnect = host.observe(on_change)
    try:
        return await asyncio.wait_for(future, timeout)
    except asyncio.TimeoutError:
        raise ElementTimeoutError(
            f'timeout waiting for {description} after {timeout} s') from None
    finally:
        disconnect()
