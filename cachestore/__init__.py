from pathlib import Path
from typing import Any, Iterable
import asyncio
import copy
import json
import logging
import os

import redis.asyncio as redis

from cachetypes import (
    CHATTED_CACHE,
    ID_TO_PHASH,
    PHASH_TO_ID,
    PHOTO_GENDER_CACHE,
    PROFILE_BLOCKLIST,
    empty_value,
    load_namespace,
)
from errors import TransientIOError

logger = logging.getLogger(__name__)

CACHE_PATH = Path(os.environ.get(
    'TX_CACHE_PATH',
    str(Path.home() / '.tandem-extras' / 'cache.json'),
))

REDIS_HOST: str | None = os.environ.get('TX_REDIS_HOST')
REDIS_PORT: int = int(os.environ.get('TX_REDIS_PORT', 6379))
REDIS_KEY_PREFIX = os.environ.get('TX_REDIS_KEY_PREFIX', 'tandemextras:')


class CacheStore:
    """
    Durable key-value storage addressed by namespace. Values are
    JSON-serializable. There is no isolation between a `get` and a later
    `set` of the same namespace; concurrent writers are last-writer-wins.
    """

    async def get(self, namespace: str, default: Any = None) -> Any:
        raise NotImplementedError

    async def set(self, namespace: str, value: Any) -> None:
        raise NotImplementedError


class MemoryCacheStore(CacheStore):
    def __init__(self, initial: dict[str, Any] | None = None):
        self._values: dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, namespace, default=None):
        await asyncio.sleep(0)
        if namespace not in self._values:
            return default
        return copy.deepcopy(self._values[namespace])

    async def set(self, namespace, value):
        await asyncio.sleep(0)
        self._values[namespace] = json.loads(json.dumps(value))


class FileCacheStore(CacheStore):
    """
    All namespaces in one JSON document. Every `get` re-reads the file so
    writes from other processes are picked up; every `set` rewrites it
    atomically.
    """

    def __init__(self, path: Path = CACHE_PATH):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        try:
            with open(self.path, encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            return {}

    def _write(self, document: dict[str, Any]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(document, f)
        os.replace(tmp_path, self.path)

    async def get(self, namespace, default=None):
        try:
            document = await asyncio.to_thread(self._read)
        except (OSError, ValueError) as e:
            raise TransientIOError(f'reading {self.path}: {e}') from e
        return document.get(namespace, default)

    async def set(self, namespace, value):
        async with self._lock:
            try:
                document = await asyncio.to_thread(self._read)
                document[namespace] = value
                await asyncio.to_thread(self._write, document)
            except (OSError, ValueError) as e:
                raise TransientIOError(f'writing {self.path}: {e}') from e


class RedisCacheStore(CacheStore):
    def __init__(self, client: redis.Redis, key_prefix: str = REDIS_KEY_PREFIX):
        self.client = client
        self.key_prefix = key_prefix

    async def get(self, namespace, default=None):
        try:
            raw = await self.client.get(self.key_prefix + namespace)
        except redis.RedisError as e:
            raise TransientIOError(f'redis get {namespace}: {e}') from e
        if raw is None:
            return default
        return json.loads(raw)

    async def set(self, namespace, value):
        try:
            await self.client.set(self.key_prefix + namespace, json.dumps(value))
        except redis.RedisError as e:
            raise TransientIOError(f'redis set {namespace}: {e}') from e


_default_store: CacheStore | None = None


def get_default_store() -> CacheStore:
    global _default_store
    if _default_store is None:
        if REDIS_HOST:
            logger.info(f'using redis cache store at {REDIS_HOST}:{REDIS_PORT}')
            _default_store = RedisCacheStore(
                redis.Redis(host=REDIS_HOST, port=REDIS_PORT))
        else:
            logger.info(f'using file cache store at {CACHE_PATH}')
            _default_store = FileCacheStore(CACHE_PATH)
    return _default_store


async def get_namespace(store: CacheStore, namespace: str) -> list | dict:
    """Read and validate a namespace, defaulting to its empty value."""
    raw = await store.get(namespace, None)
    if raw is None:
        return empty_value(namespace)
    return load_namespace(namespace, raw)


async def get_id_set(store: CacheStore, namespace: str) -> set[str]:
    return set(await get_namespace(store, namespace))


async def set_id_set(store: CacheStore, namespace: str, ids: Iterable[str]):
    await store.set(namespace, list(ids))


async def merge_mapping(
    store: CacheStore,
    namespace: str,
    mapping: dict[str, Any],
) -> dict[str, Any]:
    """
    Write `mapping` over whatever the store holds right now. Re-reading
    immediately before writing narrows, but doesn't close, the window in
    which a concurrent writer's entries are lost.
    """
    merged = await get_namespace(store, namespace) | mapping
    await store.set(namespace, merged)
    return merged
