from typing import Any, Dict, List
from pydantic import (
    RootModel,
    TypeAdapter,
    ValidationError,
    confloat,
    constr,
)
import logging
import warnings

from errors import DataIntegrityWarning

logger = logging.getLogger(__name__)

CHATTED_CACHE = 'chattedCache'
PROFILE_BLOCKLIST = 'profileBlocklist'
PHOTO_GENDER_CACHE = 'photoGenderCache'
PHASH_TO_ID = 'pHashToId'
ID_TO_PHASH = 'idToPHash'

NonEmptyStr = constr(min_length=1)

Probability = confloat(ge=0, le=1)

PHASH_PATTERN = r'^[0-9a-f]+$'

PhotoHashStr = constr(min_length=1, pattern=PHASH_PATTERN)


class IdList(RootModel[List[NonEmptyStr]]):
    pass


class IdToPHash(RootModel[Dict[NonEmptyStr, PhotoHashStr]]):
    pass


class PHashToId(RootModel[Dict[PhotoHashStr, NonEmptyStr]]):
    pass


class ScoreMapping(RootModel[Dict[NonEmptyStr, Probability]]):
    pass


NAMESPACE_MODELS: dict[str, type[RootModel]] = {
    CHATTED_CACHE: IdList,
    PROFILE_BLOCKLIST: IdList,
    PHOTO_GENDER_CACHE: ScoreMapping,
    PHASH_TO_ID: PHashToId,
    ID_TO_PHASH: IdToPHash,
}

LIST_NAMESPACES = (CHATTED_CACHE, PROFILE_BLOCKLIST)

MAPPING_NAMESPACES = (PHOTO_GENDER_CACHE, PHASH_TO_ID, ID_TO_PHASH)


def empty_value(namespace: str) -> list | dict:
    return [] if namespace in LIST_NAMESPACES else {}


def _warn(message: str):
    logger.warning(message)
    warnings.warn(message, DataIntegrityWarning, stacklevel=3)


_id_adapter = TypeAdapter(NonEmptyStr)


def _describe(entry: Any) -> str:
    if isinstance(entry, tuple):
        k, v = entry
        return f'{k!r}: {v!r}'
    return repr(entry)


def _entries(raw: list | dict) -> list:
    return list(raw) if isinstance(raw, list) else list(raw.items())


def _validate_entry(namespace: str, entry: Any) -> list | dict:
    """
    Validate one id of a list namespace, or one (key, value) pair of a
    mapping namespace, returned wrapped in its namespace's container. Raises
    ValidationError.
    """
    if namespace in LIST_NAMESPACES:
        return [_id_adapter.validate_python(entry)]
    k, v = entry
    return NAMESPACE_MODELS[namespace].model_validate({k: v}).root


def container_type_error(namespace: str, raw: Any) -> str | None:
    expected = type(empty_value(namespace))
    if isinstance(raw, expected):
        return None
    return (
        f'{namespace} is a {type(raw).__name__}, '
        f'expected a {expected.__name__}')


def invalid_entries(namespace: str, raw: list | dict) -> list[str]:
    """
    Describe each entry of `raw` which doesn't match its namespace's wire
    format. `raw` must already be the right container type.
    """
    invalid = []
    for entry in _entries(raw):
        try:
            _validate_entry(namespace, entry)
        except ValidationError:
            invalid.append(_describe(entry))
    return invalid


def _salvage(namespace: str, raw: Any) -> list | dict:
    """
    Keep the entries of a malformed namespace which are individually valid.
    """
    container = empty_value(namespace)

    if container_type_error(namespace, raw) is not None:
        return container

    for entry in _entries(raw):
        try:
            valid = _validate_entry(namespace, entry)
        except ValidationError:
            _warn(
                f'dropping malformed entry {_describe(entry)} from {namespace}')
            continue
        if isinstance(container, list):
            container.extend(valid)
        else:
            container.update(valid)

    return container


def load_namespace(namespace: str, raw: Any) -> list | dict:
    """
    Validate a value read from the cache store against its namespace's wire
    format. Malformed values are reported as data integrity warnings and
    whatever is salvageable is returned, so that a corrupt namespace never
    aborts a pass.
    """
    model = NAMESPACE_MODELS[namespace]

    try:
        return model.model_validate(raw).root
    except ValidationError:
        _warn(f'malformed value in {namespace}, salvaging valid entries')

    return _salvage(namespace, raw)
