from typing import AsyncIterator

import httpx

from app.config import settings
from app.vision.router import PhotoFetcher

FETCH_TIMEOUT_S = 15


async def get_photo_fetcher() -> AsyncIterator[PhotoFetcher]:
    """One HTTP client per request for pulling photos from storage."""
    async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_S, follow_redirects=True) as client:
        yield PhotoFetcher(client, max_bytes=settings.max_image_bytes)
