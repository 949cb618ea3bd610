import logging
from typing import Optional

import httpx

from duelroom.errors import ExternalFetchFailure

logger = logging.getLogger(__name__)

RANDOM_CARD_URL = 'https://db.ygoprodeck.com/api/v7/randomcard.php'


def extract_image_url(body) -> str:
    """Pull the first image URL out of a card record.

    The catalog has served both a bare card object and a ``{"data": [card]}``
    envelope over time; accept either.
    """
    card = body
    if isinstance(body, dict) and isinstance(body.get('data'), list):
        card = body['data'][0]
    return card['card_images'][0]['image_url']


class CardCatalog:
    """Client for the random-card endpoint with a timeout and bounded retry."""

    def __init__(self, url: str = RANDOM_CARD_URL, timeout: float = 5.0, retries: int = 2,
                 client: Optional[httpx.Client] = None):
        self.url = url
        self.timeout = timeout
        self.retries = max(0, int(retries))
        self._client = client

    def random_card_url(self) -> str:
        attempts = self.retries + 1
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                return self._fetch_once()
            except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
                last_error = exc
                logger.warning("[card-fetch] attempt %d/%d failed: %s", attempt, attempts, exc)
        raise ExternalFetchFailure(f"card catalog unavailable after {attempts} attempts: {last_error}")

    def _fetch_once(self) -> str:
        if self._client is not None:
            response = self._client.get(self.url, timeout=self.timeout)
        else:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(self.url)
        response.raise_for_status()
        return extract_image_url(response.json())
