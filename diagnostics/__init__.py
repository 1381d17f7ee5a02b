import logging

from cachestore import CacheStore
from cachetypes import (
    NAMESPACE_MODELS,
    container_type_error,
    invalid_entries,
)

logger = logging.getLogger(__name__)


async def check_bad_cache_vals(store: CacheStore) -> list[str]:
    """
    Report everything in the cache store which the next pass would drop as
    malformed: a namespace stored as the wrong kind of container, and each
    entry which doesn't match its namespace's wire format (empty ids, empty
    or non-hex hashes, scores outside [0, 1]; a score of 0 is fine).
    Read-only.
    """
    problems = []

    for namespace in NAMESPACE_MODELS:
        raw = await store.get(namespace, None)
        if raw is None:
            continue

        type_error = container_type_error(namespace, raw)
        if type_error is not None:
            problems.append(type_error)
            continue

        problems.extend(
            f'malformed entry {entry} in {namespace}'
            for entry in invalid_entries(namespace, raw))

    for problem in problems:
        logger.error(problem)

    return problems
