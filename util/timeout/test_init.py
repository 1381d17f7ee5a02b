import unittest
import asyncio

from errors import ElementTimeoutError
from hostpage import InMemoryHostPage
from util.timeout import wait_for_element


class TestWaitForElement(unittest.IsolatedAsyncioTestCase):

    async def test_already_present(self):
        host = InMemoryHostPage(photo_url='https://example.com/1.jpg')

        self.assertEqual(
            await wait_for_element(host, host.profile_photo_url, timeout=0),
            'https://example.com/1.jpg')

    async def test_appears_later(self):
        host = InMemoryHostPage()

        wait = asyncio.create_task(
            wait_for_element(host, host.profile_photo_url, timeout=1))
        await asyncio.sleep(0)
        host.set_profile_photo_url('https://example.com/1.jpg')

        self.assertEqual(await wait, 'https://example.com/1.jpg')
        self.assertEqual(host._observers, [])

    async def test_timeout(self):
        host = InMemoryHostPage()

        with self.assertRaises(ElementTimeoutError):
            await wait_for_element(
                host, host.profile_photo_url, timeout=0.01,
                description='profile photo')

        self.assertEqual(host._observers, [])

    async def test_timeout_is_a_timeout_error(self):
        host = InMemoryHostPage()

        with self.assertRaises(TimeoutError):
            await wait_for_element(host, host.profile_photo_url, timeout=0.01)

    async def test_probe_error_propagates(self):
        host = InMemoryHostPage()
        calls = []

        def probe():
            calls.append(None)
            if len(calls) > 1:
                raise ValueError('detached')

        wait = asyncio.create_task(wait_for_element(host, probe, timeout=1))
        await asyncio.sleep(0)
        host.set_listings_ready()

        with self.assertRaises(ValueError):
            await wait


if __name__ == '__main__':
    unittest.main()
