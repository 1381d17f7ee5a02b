from typing import Awaitable, Callable
from PIL import Image
import logging

from cachestore import CacheStore, get_namespace
from cachetypes import PROFILE_BLOCKLIST
from errors import ElementTimeoutError, TransientIOError
from hostpage import HostPage
from identity import IdentityMap, resolve_and_record
from photofetch import load_image
from util.timeout import ELEMENT_TIMEOUT_SECONDS, wait_for_element

logger = logging.getLogger(__name__)

ADDED_COLOR = 'rgb(255, 55, 112)'

REMOVED_COLOR = 'rgb(55, 255, 142)'


class ProfileHandler:
    def __init__(
        self,
        host: HostPage,
        store: CacheStore,
        load_image: Callable[[str], Awaitable[Image.Image]] = load_image,
        element_timeout: float = ELEMENT_TIMEOUT_SECONDS,
    ):
        self.host = host
        self.store = store
        self.load_image = load_image
        self.element_timeout = element_timeout

    async def visit(self, profile_id: str):
        """
        Associate the profile's photo hash with its id, so the profile can be
        recognised among highlighted cards, which carry no id.
        """
        identity_map = await IdentityMap.from_store(self.store)

        if identity_map.has_id(profile_id):
            logger.debug(
                f'already have {profile_id} hash: '
                f'{identity_map.id_to_phash[profile_id]}')
            return

        try:
            photo_url = await wait_for_element(
                self.host,
                self.host.profile_photo_url,
                timeout=self.element_timeout,
                description='profile photo',
            )
            logger.debug(f'got imgSrc: {photo_url}')
            image = await self.load_image(photo_url)
        except (ElementTimeoutError, TransientIOError) as e:
            logger.warning(f'no photo hash saved for {profile_id}: {e}')
            return

        photo_hash = resolve_and_record(profile_id, image, identity_map)
        if photo_hash is None:
            return

        await identity_map.persist(self.store)
        logger.debug(f'saved {profile_id} <> hash: {photo_hash}')

    async def toggle_profile_blocklist(self, profile_id: str) -> bool:
        """Returns whether the profile is blocklisted afterwards."""
        logger.debug(f'profile ID to toggle blocklist is: {profile_id}')

        blocklist = await get_namespace(self.store, PROFILE_BLOCKLIST)

        removed = profile_id in blocklist
        if removed:
            blocklist = [i for i in blocklist if i != profile_id]
        else:
            blocklist.append(profile_id)

        await self.store.set(PROFILE_BLOCKLIST, blocklist)

        if removed:
            self.host.show_banner(
                f'Profile {profile_id} removed from blocklist.', REMOVED_COLOR)
        else:
            self.host.show_banner(
                f'Profile {profile_id} added to blocklist.', ADDED_COLOR)

        return not removed

    def cleanup(self):
        self.host.clear_banners()
