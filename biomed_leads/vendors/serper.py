"""Client for the Serper Google Search API."""

import logging
from typing import List, Optional

import httpx

from biomed_leads.core.config import Settings, get_settings, require_serper_key
from biomed_leads.core.models import SearchResult
from biomed_leads.etl.transform import parse_organic_results

logger = logging.getLogger(__name__)

_BASE_URL = "https://google.serper.dev/search"
REQUEST_TIMEOUT = 10
RESULTS_PER_QUERY = 10


class SearchApiError(RuntimeError):
    """Raised when the search API fails or returns a non-successful response."""


class SearchRateLimitedError(SearchApiError):
    """Raised on HTTP 429; callers should cool down and retry on a later pass."""


class SerperClient:
    """Issue one query per call with Brazilian locale hints."""

    def __init__(self, *, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        settings = settings or get_settings()
        self.api_key = require_serper_key(settings)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        self.requests_made = 0

    async def search(self, query: str) -> List[SearchResult]:
        payload = {"q": query, "gl": "br", "hl": "pt-br", "num": RESULTS_PER_QUERY}
        headers = {"X-API-KEY": self.api_key, "Content-Type": "application/json"}

        self.requests_made += 1
        try:
            response = await self.client.post(_BASE_URL, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise SearchApiError(f"search request failed for {query!r}: {exc}") from exc

        if response.status_code == 429:
            raise SearchRateLimitedError(f"rate limited while searching {query!r}")
        if response.status_code >= 400:
            logger.error("Search failed: status=%s body=%s", response.status_code, response.text[:300])
            raise SearchApiError(f"search returned HTTP {response.status_code} for {query!r}")

        try:
            data = response.json()
        except ValueError as exc:
            raise SearchApiError(f"search returned invalid JSON for {query!r}") from exc
        if not isinstance(data, dict):
            raise SearchApiError(f"search returned a {type(data).__name__} instead of an object for {query!r}")
        return parse_organic_results(data)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
