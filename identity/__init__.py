from dataclasses import dataclass, field
from PIL import Image
import logging

from cachestore import CacheStore, get_namespace, merge_mapping
from cachetypes import ID_TO_PHASH, PHASH_TO_ID
from photohash import phash_hex

logger = logging.getLogger(__name__)


@dataclass
class IdentityMap:
    """
    ProfileId -> PhotoHash (one active hash per id) and PhotoHash ->
    ProfileId (one canonical id per hash, most recently seen wins).
    """
    id_to_phash: dict[str, str] = field(default_factory=dict)
    phash_to_id: dict[str, str] = field(default_factory=dict)

    @classmethod
    async def from_store(cls, store: CacheStore) -> 'IdentityMap':
        return cls(
            id_to_phash=await get_namespace(store, ID_TO_PHASH),
            phash_to_id=await get_namespace(store, PHASH_TO_ID),
        )

    async def persist(self, store: CacheStore):
        self.id_to_phash.update(
            await merge_mapping(store, ID_TO_PHASH, self.id_to_phash))
        self.phash_to_id.update(
            await merge_mapping(store, PHASH_TO_ID, self.phash_to_id))

    def has_id(self, profile_id: str) -> bool:
        return profile_id in self.id_to_phash

    def id_for_hash(self, photo_hash: str | None) -> str | None:
        if photo_hash is None:
            return None
        return self.phash_to_id.get(photo_hash)

    def record(self, profile_id: str, photo_hash: str):
        previous_id = self.phash_to_id.get(photo_hash)
        if previous_id == profile_id:
            logger.info(
                f'HASH SELF-COLLISION for {photo_hash}, id {profile_id}!')
        elif previous_id is not None:
            logger.warning(
                f'HASH COLLISION for {photo_hash} between {profile_id} and '
                f'{previous_id}! overwriting...')

        previous_hash = self.id_to_phash.get(profile_id)
        if previous_hash is not None and previous_hash != photo_hash:
            logger.warning(
                f'id {profile_id} rehashed from {previous_hash} to '
                f'{photo_hash}, overwriting...')

        self.id_to_phash[profile_id] = photo_hash
        self.phash_to_id[photo_hash] = profile_id


def resolve_and_record(
    profile_id: str,
    image: Image.Image,
    identity_map: IdentityMap,
) -> str | None:
    """
    Hash `image` and record it against `profile_id` in both directions of
    `identity_map`. The caller persists the map and is expected to check
    `identity_map.has_id` first, since loading and hashing are expensive.

    Returns the hash, or None when the image couldn't be hashed. Failures are
    logged rather than raised so that one bad photo can't abort a batch.
    """
    try:
        photo_hash = phash_hex(image)
    except Exception:
        logger.exception(f'error getting image hash for {profile_id}')
        return None

    identity_map.record(profile_id, photo_hash)

    return photo_hash
