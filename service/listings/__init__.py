from typing import Awaitable, Callable, Iterable
from PIL import Image
import asyncio
import logging

from cachestore import CacheStore, get_id_set
from cachetypes import CHATTED_CACHE, PROFILE_BLOCKLIST
from errors import ClassifierError, TransientIOError, UserNotifiedError
from facegender import load_models
from gender import (
    Classify,
    PhotoGenderCache,
    classify_photo,
    get_gender_by_photo,
    get_gender_by_photo_and_cache,
    get_style_for_gender,
)
from hostpage import HIDDEN, Card, HostPage, Style
from identity import IdentityMap, resolve_and_record
from namegender import get_gender_by_name, load_name_table
from notify import enqueue_notification
from photofetch import load_image
from photohash import phash_hex
from util.timeout import wait_for_element

logger = logging.getLogger(__name__)

LoadImage = Callable[[str], Awaitable[Image.Image]]

Notify = Callable[[str, str], None]

REVEALED = Style(display='', background_color='rgba(172, 146, 87, 0.65)')


class SerialPassRunner:
    """
    Runs passes one at a time. A trigger while a pass is running queues one
    more pass, which scans whatever is on the page once it starts; triggers
    while a pass is already queued are folded into that queued pass.
    """

    def __init__(self, run_pass: Callable[[], Awaitable[None]]):
        self._run_pass = run_pass
        self._tail: asyncio.Task | None = None
        self._queued: asyncio.Task | None = None

    @property
    def queued(self) -> bool:
        return self._queued is not None

    def trigger(self) -> asyncio.Task:
        """Returns the pass which will cover the page as it is now."""
        if self._queued is not None:
            return self._queued

        task = asyncio.get_running_loop().create_task(
            self._run_after(self._tail))
        self._queued = self._tail = task
        return task

    async def _run_after(self, previous: asyncio.Task | None):
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        if self._queued is asyncio.current_task():
            self._queued = None

        await self._run_pass()

    def reset(self):
        """
        Forget pending passes. A pass already running continues to
        completion, but nothing queued after this waits for it.
        """
        self._tail = None
        self._queued = None


class FilterPassState:
    """Ids already classified during this visit to the listings page."""

    def __init__(self):
        self.processed: set[str] = set()

    def claim(self, profile_id: str) -> bool:
        if profile_id in self.processed:
            return False
        self.processed.add(profile_id)
        return True

    def release(self, profile_id: str):
        self.processed.discard(profile_id)

    def clear(self):
        self.processed.clear()


def _raise_unexpected(title: str, results: Iterable):
    errors = [r for r in results if isinstance(r, BaseException)]
    if errors:
        raise UserNotifiedError(
            title, f'{len(errors)} card(s) failed: {errors[0]!r}') from errors[0]


class ListingsFilter:
    """
    Classifies the cards on the listings page. Owns the per-visit state:
    the ids already processed, the pass runners, and the cards revealed by
    `toggle_hidden_profiles`.
    """

    def __init__(
        self,
        host: HostPage,
        store: CacheStore,
        name_table: dict[str, float] | None = None,
        classify: Classify = classify_photo,
        load_image: LoadImage = load_image,
        notify: Notify = enqueue_notification,
    ):
        self.host = host
        self.store = store
        self.name_table = name_table if name_table is not None else load_name_table()
        self.classify = classify
        self.load_image = load_image
        self.notify = notify

        self.state = FilterPassState()
        self.runner = SerialPassRunner(self.filter_profiles)
        self.highlighted_runner = SerialPassRunner(self.filter_highlighted_profiles)
        self._unhidden: list[Card] = []

    def _report(self, title: str, e: Exception):
        logger.exception(title)
        message = e.message if isinstance(e, UserNotifiedError) else str(e)
        self.notify(title, message or f'{title.lower()}...')

    def _name_mp(self, name: str) -> float | None:
        return get_gender_by_name(name, self.name_table)

    async def filter_profiles(self):
        logger.info('filterProfiles executing')
        try:
            blocklist = await get_id_set(self.store, PROFILE_BLOCKLIST)
            chatted = await get_id_set(self.store, CHATTED_CACHE)
            photo_gender_cache = await PhotoGenderCache.from_store(self.store)
            identity_map = await IdentityMap.from_store(self.store)

            results = await asyncio.gather(
                *[
                    self._filter_card(
                        card,
                        blocklist | chatted,
                        photo_gender_cache,
                        identity_map,
                    )
                    for card in self.host.listing_cards()
                ],
                return_exceptions=True,
            )

            await photo_gender_cache.persist(self.store)
            await identity_map.persist(self.store)

            _raise_unexpected('Filter profiles error', results)
        except Exception as e:
            self._report('Filter profiles error', e)

        logger.info('filterProfiles finished')

    async def _filter_card(
        self,
        card: Card,
        hidden_ids: set[str],
        photo_gender_cache: PhotoGenderCache,
        identity_map: IdentityMap,
    ):
        profile_id, photo_url, name = card.id, card.photo_url, card.name
        if not profile_id or not photo_url or not name:
            logger.error(
                f'bad regular-profile element; id: {profile_id}, '
                f'name: {name}, imgSrc: {photo_url}')
            return

        if not self.state.claim(profile_id):
            return

        image = None

        async def load():
            nonlocal image
            if image is None:
                image = await self.load_image(photo_url)
            return image

        is_hidden_id = profile_id in hidden_ids
        face_mp = None

        try:
            if not identity_map.has_id(profile_id):
                resolve_and_record(profile_id, await load(), identity_map)

            if not is_hidden_id:
                face_mp = await get_gender_by_photo_and_cache(
                    profile_id, load, photo_gender_cache, self.classify)
        except TransientIOError as e:
            logger.warning(f'{e}; retrying {profile_id} next pass')
            self.state.release(profile_id)

        if is_hidden_id:
            logger.debug(f'{profile_id} is in blocklist or chattedCache, hiding...')
            style = HIDDEN
        else:
            style = get_style_for_gender(self._name_mp(name), face_mp)

        self.host.apply_style(card, style)

    async def filter_highlighted_profiles(self):
        logger.info('filtering highlighted profiles...')
        try:
            blocklist = await get_id_set(self.store, PROFILE_BLOCKLIST)
            chatted = await get_id_set(self.store, CHATTED_CACHE)
            photo_gender_cache = await PhotoGenderCache.from_store(self.store)
            identity_map = await IdentityMap.from_store(self.store)

            results = await asyncio.gather(
                *[
                    self._filter_highlighted_card(
                        card,
                        blocklist | chatted,
                        photo_gender_cache,
                        identity_map,
                    )
                    for card in self.host.highlighted_cards()
                ],
                return_exceptions=True,
            )

            await photo_gender_cache.persist(self.store)

            _raise_unexpected('Filter highlighted profiles error', results)
        except Exception as e:
            self._report('Filter highlighted profiles error', e)

    async def _filter_highlighted_card(
        self,
        card: Card,
        hidden_ids: set[str],
        photo_gender_cache: PhotoGenderCache,
        identity_map: IdentityMap,
    ):
        photo_url, name = card.photo_url, card.name
        if not photo_url or not name:
            logger.error(
                f'bad highlighted-profile element; name: {name}, '
                f'imgSrc: {photo_url}')
            return

        try:
            image = await self.load_image(photo_url)
        except TransientIOError as e:
            logger.warning(f'{e}; classifying highlighted {name} by name only')
            self.host.apply_style(
                card, get_style_for_gender(self._name_mp(name), None))
            return

        try:
            photo_hash = phash_hex(image)
            logger.debug(f'(from listing) name: {name}; hash: {photo_hash}')
        except Exception:
            logger.exception(
                f'failure getting image hash for highlighted profile, name: {name}')
            photo_hash = None

        profile_id = identity_map.id_for_hash(photo_hash)

        if profile_id is None:
            face_mp = await get_gender_by_photo(image, self.classify)
        elif profile_id in hidden_ids:
            logger.debug(
                f'found id {profile_id} with hash {photo_hash} in blocklist '
                f'or chattedCache, hiding highlighted profile...')
            self.host.apply_style(card, HIDDEN)
            return
        else:
            async def loaded():
                return image

            face_mp = await get_gender_by_photo_and_cache(
                profile_id, loaded, photo_gender_cache, self.classify)

        self.host.apply_style(
            card, get_style_for_gender(self._name_mp(name), face_mp))

    def toggle_hidden_profiles(self):
        """
        Reveal every hidden card, tinted so it stands out, or hide again the
        cards revealed last time.
        """
        if self._unhidden:
            logger.debug('re-hiding profiles...')
            for card in self._unhidden:
                self.host.apply_style(card, HIDDEN)
            self._unhidden.clear()
            return

        logger.debug('unhiding profiles...')
        for card in self.host.hidden_listing_cards():
            self._unhidden.append(card)
            self.host.apply_style(card, REVEALED)


class ListingsHandler:
    def __init__(
        self,
        host: HostPage,
        store: CacheStore,
        classify: Classify = classify_photo,
        load_image: LoadImage = load_image,
        load_models: Callable[[], object] = load_models,
        notify: Notify = enqueue_notification,
    ):
        self.host = host
        self.store = store
        self.classify = classify
        self.load_image = load_image
        self.load_models = load_models
        self.notify = notify

        self.listings_filter: ListingsFilter | None = None
        self._models_loaded = False
        self._generation = 0
        self._ready_wait: asyncio.Future | None = None
        self._disconnects: list[Callable[[], None]] = []

    async def _ensure_models(self) -> bool:
        if not self._models_loaded:
            try:
                await asyncio.to_thread(self.load_models)
            except ClassifierError:
                logger.exception('face/gender models failed to load')
                return False
            self._models_loaded = True
            logger.info('face/gender models loaded!')
        return True

    async def visit(self, path: str):
        generation = self._generation

        name_table = load_name_table()
        if not name_table:
            logger.error('First-name male-probabilities not loaded!')

        if not await self._ensure_models():
            return

        if generation != self._generation:
            logger.debug('left the listings page while loading models')
            return

        listings_filter = ListingsFilter(
            host=self.host,
            store=self.store,
            name_table=name_table,
            classify=self.classify,
            load_image=self.load_image,
            notify=self.notify,
        )
        self.listings_filter = listings_filter

        self._ready_wait = asyncio.ensure_future(wait_for_element(
            self.host,
            lambda: True if self.host.is_listings_ready() else None,
            timeout=None,
            description='listings grid',
        ))
        await self._ready_wait
        self._ready_wait = None

        self._disconnects.append(
            self.host.observe_listings(listings_filter.runner.trigger))

        await asyncio.gather(
            listings_filter.runner.trigger(),
            listings_filter.highlighted_runner.trigger(),
        )

    def toggle_hidden_profiles(self):
        if self.listings_filter is not None:
            self.listings_filter.toggle_hidden_profiles()

    def cleanup(self):
        self._generation += 1

        for disconnect in self._disconnects:
            disconnect()
        self._disconnects.clear()

        if self._ready_wait is not None:
            self._ready_wait.cancel()
            self._ready_wait = None

        if self.listings_filter is not None:
            self.listings_filter.state.clear()
            self.listings_filter.runner.reset()
            self.listings_filter = None
