from enum import Enum
from typing import Callable, Protocol
import asyncio
import logging

from cachestore import CacheStore, get_default_store
from hostpage import HostPage
from service.chats import ChatsHandler
from service.listings import ListingsHandler
from service.profile import ProfileHandler
from util import last_path_segment

logger = logging.getLogger(__name__)

LISTINGS_PATHS = ('/', '/en', '/community')


class PageType(Enum):
    LISTINGS = 'listings'
    PROFILE = 'profile'
    CHATS = 'chats'
    OTHER = 'other'


class Handler(Protocol):
    async def visit(self, argument: str) -> None: ...

    def cleanup(self) -> None: ...


def classify_path(path: str) -> PageType:
    if '/chats' in path:
        return PageType.CHATS
    if path in LISTINGS_PATHS:
        return PageType.LISTINGS
    if '/community' in path:
        return PageType.PROFILE
    return PageType.OTHER


class OtherHandler:
    async def visit(self, argument: str):
        pass

    def cleanup(self):
        pass


class Router:
    """
    Every navigation tears down all handlers, then starts the visit of the
    one handler the new path belongs to. Profile and chat handlers are
    visited with the id at the end of the path; the rest with the path.
    """

    def __init__(self, handlers: dict[PageType, Handler]):
        self.handlers = handlers
        self._tasks: set[asyncio.Task] = set()

    def navigate(self, path: str) -> asyncio.Task | None:
        logger.info(f'path is {path}')

        for handler in self.handlers.values():
            try:
                handler.cleanup()
            except Exception:
                logger.exception(f'cleanup failed for {handler!r}')

        page_type = classify_path(path)
        handler = self.handlers.get(page_type)
        if handler is None:
            return None

        if page_type in (PageType.PROFILE, PageType.CHATS):
            argument = last_path_segment(path)
        else:
            argument = path

        task = asyncio.get_running_loop().create_task(handler.visit(argument))
        self._tasks.add(task)
        task.add_done_callback(self._visit_done)
        return task

    def _visit_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        e = task.exception()
        if e is not None:
            logger.error('visit failed', exc_info=e)

    async def drain(self):
        """Wait for every visit started so far."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


def build_router(host: HostPage, store: CacheStore | None = None) -> Router:
    store = store if store is not None else get_default_store()

    return Router({
        PageType.LISTINGS: ListingsHandler(host, store),
        PageType.PROFILE: ProfileHandler(host, store),
        PageType.CHATS: ChatsHandler(store),
        PageType.OTHER: OtherHandler(),
    })


def attach(host: HostPage, router: Router) -> Callable[[], None]:
    """
    Route the host's navigation events, starting with the page it's on now.
    Returns a function which stops routing.
    """
    disconnect = host.on_navigate(router.navigate)
    router.navigate(host.current_path())
    return disconnect
