from __future__ import annotations

import asyncio
from typing import Dict, Optional

import httpx

from app.core.logging import get_logger

logger = get_logger().bind(module="base_scraper_service")

_MAX_BACKOFF_S = 4.0


class BaseScraperService:
    """
    Shared HTTP plumbing for source adapters.

    Owns the httpx client lifecycle (async context manager) and a small retry
    loop with exponential backoff. Retries stay inside one fetch; a source
    that still fails is reported to the caller, which decides what to do.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        timeout_s: float = 10.0,
        max_retries: int = 1,
        accept: Optional[str] = None,
        backoff_s: float = 1.0,
    ) -> None:
        self.user_agent = user_agent
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.accept = accept
        self.backoff_s = max(0.0, backoff_s)
        self._client: Optional[httpx.AsyncClient] = None

    def _default_headers(self) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if self.accept:
            headers["Accept"] = self.accept
        return headers

    async def __aenter__(self) -> "BaseScraperService":
        self._client = httpx.AsyncClient(
            timeout=self.timeout_s,
            headers=self._default_headers(),
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_url(self, url: str) -> httpx.Response:
        """
        GET ``url`` with retry on transport errors and non-2xx responses.

        Raises the last error once ``max_retries`` extra attempts are spent.
        """
        if self._client is None:
            raise RuntimeError(f"{self.__class__.__name__} HTTP client not initialized")

        delay = self.backoff_s
        for attempt in range(1, self.max_retries + 2):
            try:
                response = await self._client.get(url)
                response.raise_for_status()
                return response
            except httpx.HTTPError as exc:
                if attempt > self.max_retries:
                    raise
                logger.debug("http_fetch_retry", url=url, attempt=attempt, error=str(exc), delay_s=delay)
            await asyncio.sleep(delay)
            delay = min(delay * 2, _MAX_BACKOFF_S)
        raise AssertionError("unreachable")

    async def fetch_text(self, url: str) -> str:
        response = await self.fetch_url(url)
        return response.text
