from io import BytesIO
from PIL import Image, UnidentifiedImageError
import asyncio
import logging
import os
import urllib.error
import urllib.request

from async_lru_cache import AsyncLruCache
from errors import TransientIOError

logger = logging.getLogger(__name__)

IMAGE_FETCH_TIMEOUT_SECONDS = float(os.environ.get(
    'TX_IMAGE_FETCH_TIMEOUT_SECONDS',
    str(10),
))

IMAGE_CACHE_TTL_SECONDS = float(os.environ.get(
    'TX_IMAGE_CACHE_TTL_SECONDS',
    str(60),
))


def download(url: str, timeout: float = IMAGE_FETCH_TIMEOUT_SECONDS) -> bytes:
    req = urllib.request.Request(
        url=url,
        headers={'Accept': 'image/*'},
        method='GET',
    )

    with urllib.request.urlopen(req, timeout=timeout) as response:
        return response.read()


def decode_image(image_data: bytes) -> Image.Image:
    image = Image.open(BytesIO(image_data))
    image.load()
    return image.convert('RGB')


@AsyncLruCache(maxsize=256, ttl=IMAGE_CACHE_TTL_SECONDS)
async def load_image(url: str) -> Image.Image:
    """
    Download and decode the photo at `url`. Any network or decoding failure
    is raised as TransientIOError; nothing is cached in that case so the
    next pass tries again.
    """
    try:
        image_data = await asyncio.to_thread(download, url)
    except (urllib.error.URLError, OSError, ValueError) as e:
        raise TransientIOError(f'error fetching image {url}: {e}') from e

    try:
        return decode_image(image_data)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise TransientIOError(f'error decoding image {url}: {e}') from e
