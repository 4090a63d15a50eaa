# src/notifications/url_shortener.py

"""Best-effort link shortening through the is.gd public API."""

import logging
from typing import Any

from curl_cffi.requests import AsyncSession

from src.config.settings import Settings

logger = logging.getLogger("refurb_tracker.notify")

_SHORT_PREFIX = "https://is.gd/"


class UrlShortener:
    """Shorten product links; any failure yields the original URL."""

    def __init__(
        self,
        endpoint: str = Settings.SHORTENER_ENDPOINT,
        timeout: float = Settings.SHORTENER_TIMEOUT,
        session: Any | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._session = session

    async def shorten(self, url: str) -> str:
        if not url:
            return url
        params = {"format": "simple", "url": url}
        try:
            if self._session is not None:
                resp = await self._session.get(
                    self.endpoint, params=params, timeout=self.timeout
                )
            else:
                async with AsyncSession() as session:
                    resp = await session.get(
                        self.endpoint, params=params, timeout=self.timeout
                    )
        except Exception as exc:
            logger.warning("URL shortening failed for %s: %s", url, exc)
            return url

        short = (resp.text or "").strip()
        if resp.status_code != 200 or not short.startswith(_SHORT_PREFIX):
            logger.warning(
                "Shortener returned HTTP %s for %s", resp.status_code, url
            )
            return url
        return short
