from dataclasses import dataclass
from typing import List
import asyncio
import json
import logging
import os
import urllib.request

from batcher import Batcher
from util import truncate_text

logger = logging.getLogger(__name__)

# e.g. an ntfy/gotify style endpoint which accepts a JSON array of
# notifications. Unset means notifications are only logged.
NOTIFICATION_API_URL = os.environ.get('TX_NOTIFICATION_API_URL')

NOTIFICATION_DISPLAY_MS = int(os.environ.get(
    'TX_NOTIFICATION_DISPLAY_MS',
    str(10000),
))

@dataclass
class Notification:
    title: str
    body: str
    timeout: int = NOTIFICATION_DISPLAY_MS

def post_notification_batch(notifications: List[Notification]):
    data = [
        dict(
            title=notification.title,
            body=notification.body,
            timeout=notification.timeout,
        )
        for notification in notifications
    ]

    headers = {
        'Accept': 'application/json',
        'Content-type': 'application/json',
    }

    req = urllib.request.Request(
        url=NOTIFICATION_API_URL,
        data=json.dumps(data).encode('utf-8'),
        headers=headers,
        method='POST',
    )

    # Non-2xx responses raise urllib.error.HTTPError
    with urllib.request.urlopen(req, timeout=10) as response:
        response.read()

async def process_notification_batch(notifications: List[Notification]):
    await asyncio.to_thread(post_notification_batch, notifications)

_batcher = Batcher[Notification](
    process_fn=process_notification_batch,
    flush_interval=1.0,
    min_batch_size=1,
    max_batch_size=100,
    retry=False,
)

def enqueue_notification(title: str, body: str | None):
    """
    Show the user a notification. Must be called from a coroutine; delivery
    happens in the background and failures are only logged.
    """
    body = truncate_text(body or title)

    logger.info(f'notification: {title}: {body}')

    if not NOTIFICATION_API_URL:
        return

    _batcher.enqueue(Notification(title=title, body=body))
