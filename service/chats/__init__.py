import logging

from cachestore import CacheStore, get_id_set, get_namespace
from cachetypes import CHATTED_CACHE

logger = logging.getLogger(__name__)


class ChatsHandler:
    """Remembers everyone whose conversation was opened."""

    def __init__(self, store: CacheStore):
        self.store = store
        # Kept across chat-to-chat navigation so the store isn't re-read on
        # every click through the chat list
        self.chatted: set[str] | None = None

    async def visit(self, profile_id: str):
        if not profile_id or profile_id == 'chats':
            logger.debug('no active chat selected')
            return

        if self.chatted is None:
            self.chatted = await get_id_set(self.store, CHATTED_CACHE)

        if profile_id in self.chatted:
            return

        logger.debug(f'saving {profile_id} to chattedCache...')

        # Another tab may have written since we last read
        chatted = await get_namespace(self.store, CHATTED_CACHE)
        if profile_id not in chatted:
            chatted.append(profile_id)
            await self.store.set(CHATTED_CACHE, chatted)

        self.chatted = set(chatted)

    def cleanup(self):
        pass
