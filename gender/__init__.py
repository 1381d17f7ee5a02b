from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable
from PIL import Image
import asyncio
import logging
import os

from cachestore import CacheStore, get_namespace, merge_mapping
from cachetypes import PHOTO_GENDER_CACHE
from errors import ClassifierError
from facegender import detect_gender, male_probability
from hostpage import HIDDEN, NO_CHANGE, Style

logger = logging.getLogger(__name__)

# Hide when the only available signal is above this
SINGLE_HIDE_THRESHOLD = float(os.environ.get(
    'TX_GENDER_SINGLE_HIDE_THRESHOLD',
    str(0.9),
))

# Hide when both signals are above this
JOINT_HIDE_THRESHOLD = float(os.environ.get(
    'TX_GENDER_JOINT_HIDE_THRESHOLD',
    str(0.7),
))

# ...or when both clear JOINT_HIDE_MIN and one clears JOINT_HIDE_MAX
JOINT_HIDE_MIN = 0.5
JOINT_HIDE_MAX = 0.8

# Signals closer than this are averaged; further apart, the name wins
AGREEMENT_MARGIN = float(os.environ.get(
    'TX_GENDER_AGREEMENT_MARGIN',
    str(0.3),
))

NAME_FALLBACK_HIDE_THRESHOLD = float(os.environ.get(
    'TX_GENDER_NAME_FALLBACK_HIDE_THRESHOLD',
    str(0.95),
))

MIN_SCORE = 0.01

_PINK = (255, 119, 149)
_PURPLE = (250, 128, 250)
_INDIGO = (167, 120, 255)


@dataclass(frozen=True)
class Verdict:
    hidden: bool = False
    score: float | None = None

    @property
    def suppression(self) -> float:
        """
        0 for no change, 1 for hidden, otherwise the male probability the
        card is tinted by.
        """
        if self.hidden:
            return 1.0
        if self.score is None:
            return 0.0
        return max(self.score, MIN_SCORE)


NO_SIGNAL = Verdict()

HIDE = Verdict(hidden=True)


def _fuse_single(p: float) -> Verdict:
    return HIDE if p > SINGLE_HIDE_THRESHOLD else Verdict(score=p)


def fuse(name_mp: float | None, face_mp: float | None) -> Verdict:
    if name_mp is None and face_mp is None:
        return NO_SIGNAL
    if face_mp is None:
        return _fuse_single(name_mp)
    if name_mp is None:
        return _fuse_single(face_mp)

    lo, hi = sorted((name_mp, face_mp))

    if lo > JOINT_HIDE_THRESHOLD:
        return HIDE
    if lo > JOINT_HIDE_MIN and hi > JOINT_HIDE_MAX:
        return HIDE
    if name_mp > NAME_FALLBACK_HIDE_THRESHOLD:
        return HIDE

    # Within the margin this is just the average. Beyond it the photo, being
    # the less reliable signal, can only pull the score half a margin away
    # from the name.
    half_margin = AGREEMENT_MARGIN / 2
    average = (name_mp + face_mp) / 2
    return Verdict(
        score=min(max(average, name_mp - half_margin), name_mp + half_margin))


def tint(rgb: tuple[int, int, int], score: float) -> Style:
    alpha = 1 - max(score, MIN_SCORE)
    r, g, b = rgb
    return Style(background_color=f'rgba({r}, {g}, {b}, {alpha:.2f})')


def get_style_for_gender(name_mp: float | None, face_mp: float | None) -> Style:
    verdict = fuse(name_mp, face_mp)

    if verdict.hidden:
        return HIDDEN
    if verdict.score is None:
        return NO_CHANGE

    if face_mp is None:
        return tint(_PINK, verdict.score)
    if name_mp is None:
        return tint(_INDIGO, verdict.score)
    return tint(_PURPLE, verdict.score)


class LookupState(Enum):
    PRESENT = 'present'
    UNKNOWN = 'unknown'
    ABSENT = 'absent'


@dataclass(frozen=True)
class Lookup:
    state: LookupState
    value: float | None = None


class PhotoGenderCache:
    """
    Pass-scoped view of the persisted photo gender scores.

    Ids the classifier had nothing to say about are remembered as UNKNOWN for
    the rest of the pass but never persisted, so they're retried next pass.
    A numeric score, once recorded, is never replaced by an unknown.
    """

    def __init__(self, scores: dict[str, float] | None = None):
        self.scores: dict[str, float] = dict(scores or {})
        self._unknown: set[str] = set()

    @classmethod
    async def from_store(cls, store: CacheStore) -> 'PhotoGenderCache':
        return cls(await get_namespace(store, PHOTO_GENDER_CACHE))

    async def persist(self, store: CacheStore):
        self.scores.update(
            await merge_mapping(store, PHOTO_GENDER_CACHE, self.scores))

    def lookup(self, profile_id: str) -> Lookup:
        if profile_id in self.scores:
            return Lookup(LookupState.PRESENT, self.scores[profile_id])
        if profile_id in self._unknown:
            return Lookup(LookupState.UNKNOWN)
        return Lookup(LookupState.ABSENT)

    def record(self, profile_id: str, male_prob: float | None):
        if male_prob is None:
            if profile_id not in self.scores:
                self._unknown.add(profile_id)
            return
        self.scores[profile_id] = male_prob
        self._unknown.discard(profile_id)


Classify = Callable[[Image.Image], Awaitable[float | None]]


async def classify_photo(image: Image.Image) -> float | None:
    face_gender = await asyncio.to_thread(detect_gender, image)
    return male_probability(face_gender)


async def get_gender_by_photo(
    image: Image.Image,
    classify: Classify = classify_photo,
) -> float | None:
    try:
        return await classify(image)
    except ClassifierError:
        logger.exception('error getting face gender')
        return None


async def get_gender_by_photo_and_cache(
    profile_id: str,
    load_image: Callable[[], Awaitable[Image.Image]],
    cache: PhotoGenderCache,
    classify: Classify = classify_photo,
) -> float | None:
    """
    Cached photo estimate for `profile_id`. The image is only loaded, and
    the classifier only run, on a cache miss.
    """
    lookup = cache.lookup(profile_id)
    if lookup.state is LookupState.PRESENT:
        return lookup.value
    if lookup.state is LookupState.UNKNOWN:
        return None

    image = await load_image()

    try:
        face_mp = await classify(image)
    except ClassifierError:
        logger.exception(f'error getting face gender for id {profile_id}')
        face_mp = None

    if face_mp is None:
        logger.debug(f'no face gender result for id {profile_id}')
    else:
        logger.debug(
            f'face gender result for id {profile_id}: {face_mp} male probability')

    cache.record(profile_id, face_mp)

    return face_mp
