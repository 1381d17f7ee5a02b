import unittest
import asyncio
from async_lru_cache import AsyncLruCache

class TestAsyncLRUCache(unittest.IsolatedAsyncioTestCase):

    async def test_cache_basic_functionality(self):
        call_count = 0

        @AsyncLruCache(maxsize=2)
        async def fetch(url):
            nonlocal call_count
            call_count += 1
            return url.upper()

        self.assertEqual(await fetch('a'), 'A')  # Cache miss
        self.assertEqual(await fetch('a'), 'A')  # Cache hit
        self.assertEqual(call_count, 1)

        self.assertEqual(await fetch('b'), 'B')  # Cache miss
        self.assertEqual(await fetch('c'), 'C')  # Cache miss, evicts 'a'
        self.assertEqual(await fetch('a'), 'A')  # Cache miss, as it was evicted
        self.assertEqual(call_count, 4)

    async def test_cache_with_ttl(self):
        call_count = 0

        @AsyncLruCache(maxsize=2, ttl=0.1)  # very short TTL
        async def fetch(url):
            nonlocal call_count
            call_count += 1
            return url

        await fetch('a')
        await fetch('a')
        self.assertEqual(call_count, 1)

        await asyncio.sleep(0.2)  # Wait to ensure TTL expires
        await fetch('a')
        self.assertEqual(call_count, 2)

    async def test_cache_with_condition(self):
        call_count = 0

        @AsyncLruCache(maxsize=2, cache_condition=lambda x: x is not None)
        async def fetch(url):
            nonlocal call_count
            call_count += 1
            return None if url == 'missing' else url

        await fetch('a')
        await fetch('a')
        self.assertEqual(call_count, 1)

        await fetch('missing')
        await fetch('missing')  # Not cached, recomputed
        self.assertEqual(call_count, 3)

    async def test_concurrent_calls_share_one_call(self):
        call_count = 0
        release = asyncio.Event()

        @AsyncLruCache(maxsize=2)
        async def fetch(url):
            nonlocal call_count
            call_count += 1
            await release.wait()
            return url

        tasks = [asyncio.create_task(fetch('a')) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()

        self.assertEqual(await asyncio.gather(*tasks), ['a'] * 5)
        self.assertEqual(call_count, 1)

    async def test_exceptions_are_shared_but_not_cached(self):
        call_count = 0
        release = asyncio.Event()

        @AsyncLruCache(maxsize=2)
        async def fetch(url):
            nonlocal call_count
            call_count += 1
            await release.wait()
            raise OSError(url)

        tasks = [asyncio.create_task(fetch('a')) for _ in range(2)]
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(*tasks, return_exceptions=True)
        self.assertTrue(all(isinstance(r, OSError) for r in results))
        self.assertEqual(call_count, 1)

        with self.assertRaises(OSError):
            await fetch('a')
        self.assertEqual(call_count, 2)

    async def test_cache_clear(self):
        call_count = 0

        @AsyncLruCache(maxsize=2, ttl=10)
        async def fetch(url):
            nonlocal call_count
            call_count += 1
            return url

        await fetch('a')
        fetch.cache_clear()
        await fetch('a')
        self.assertEqual(call_count, 2)

if __name__ == '__main__':
    unittest.main()
