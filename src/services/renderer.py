# src/services/renderer.py

"""Shared page renderer: fetch a listing page and hand back its DOM.

One :class:`PageRenderer` exists per process.  Its HTTP session is
created lazily on first use and the creation is single-flighted, so
concurrent scrapers awaiting the first page share one initialisation.
Each scrape opens its own :class:`Page` through :meth:`open_page`,
which is always closed on exit, even when the scrape fails.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup
from curl_cffi.requests import AsyncSession

from src.config.settings import Settings

logger = logging.getLogger("refurb_tracker.renderer")

T = TypeVar("T")


class PageFetchError(RuntimeError):
    """A page could not be fetched (HTTP error, challenge, timeout)."""


def looks_blocked(text: str) -> str | None:
    """Return the matched marker if *text* is a challenge/CAPTCHA page."""
    lower = text.lower()
    for marker in Settings.CF_CHALLENGE_MARKERS:
        if marker in lower:
            return marker

    # Skip the keyword scan on real content pages to avoid false positives
    has_body_content = "<body" in lower and len(text) > 5000
    if not has_body_content:
        for keyword in Settings.CAPTCHA_KEYWORDS:
            if keyword in lower:
                return keyword
    return None


class Page:
    """A single scrape's view onto the shared session (one "tab")."""

    def __init__(
        self, renderer: "PageRenderer", session: AsyncSession,
    ) -> None:
        self._renderer = renderer
        self._session = session
        self._referer: str = ""
        self.closed: bool = False

    async def fetch_page(
        self, url: str, timeout: float | None = None,
    ) -> BeautifulSoup:
        """Fetch *url* and return its parsed DOM.

        Raises:
            PageFetchError: on timeout, non-200 status or a challenge page.
        """
        if self.closed:
            raise PageFetchError(f"Page already closed, cannot fetch {url}")
        limit = timeout if timeout is not None else Settings.PAGE_TIMEOUT
        headers: dict[str, str] = dict(Settings.DEFAULT_HEADERS)
        if self._referer:
            headers["Referer"] = self._referer

        try:
            resp = await asyncio.wait_for(
                self._session.get(url, headers=headers, timeout=limit),
                timeout=limit,
            )
        except asyncio.TimeoutError as exc:
            raise PageFetchError(
                f"Timed out after {limit:.0f}s fetching {url}"
            ) from exc
        except Exception as exc:
            logger.info(
                "curl_cffi failed for %s (%s), falling back to cloudscraper",
                url,
                exc,
            )
            text = await self._renderer.fallback_fetch(url, headers, limit)
        else:
            if resp.status_code != 200:
                raise PageFetchError(
                    f"HTTP {resp.status_code} fetching {url}"
                )
            text = resp.text

        marker = looks_blocked(text)
        if marker:
            raise PageFetchError(
                f"Challenge page detected at {url} (marker: '{marker}')"
            )
        self._referer = url
        return BeautifulSoup(text, "lxml")

    @staticmethod
    def extract(
        handle: BeautifulSoup,
        extractor: Callable[[BeautifulSoup], list[T]],
    ) -> list[T]:
        """Run a source-specific extractor over a fetched DOM."""
        return extractor(handle)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._renderer.page_closed(self)


class PageRenderer:
    """Process-wide owner of the impersonating HTTP session."""

    def __init__(
        self,
        impersonate: str = Settings.IMPERSONATE_BROWSER,
        session_factory: Callable[[], AsyncSession] | None = None,
    ) -> None:
        self._impersonate = impersonate
        self._session_factory = session_factory
        self._session: AsyncSession | None = None
        self._lock = asyncio.Lock()
        self._open_pages: set[Page] = set()

    @property
    def open_page_count(self) -> int:
        return len(self._open_pages)

    async def ensure_session(self) -> AsyncSession:
        """Create the shared session once; concurrent callers await it."""
        if self._session is not None:
            return self._session
        async with self._lock:
            if self._session is None:
                logger.info("Initialising shared page session")
                if self._session_factory is not None:
                    self._session = self._session_factory()
                else:
                    self._session = AsyncSession(
                        impersonate=self._impersonate  # type: ignore[arg-type]
                    )
        return self._session

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[Page]:
        """Open a page on the shared session; always closed on exit."""
        session = await self.ensure_session()
        page = Page(self, session)
        self._open_pages.add(page)
        try:
            yield page
        finally:
            await page.close()

    def page_closed(self, page: Page) -> None:
        self._open_pages.discard(page)

    async def fallback_fetch(
        self, url: str, headers: dict[str, str], timeout: float,
    ) -> str:
        """Fetch via cloudscraper (JS challenge solver) in a worker thread."""

        def _get() -> str:
            scraper: Any = cloudscraper.create_scraper()
            resp: Any = scraper.get(url, headers=headers, timeout=timeout)
            if resp.status_code != 200:
                raise PageFetchError(
                    f"HTTP {resp.status_code} fetching {url} (cloudscraper)"
                )
            return str(resp.text)

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(_get), timeout=timeout
            )
        except PageFetchError:
            raise
        except asyncio.TimeoutError as exc:
            raise PageFetchError(
                f"Timed out after {timeout:.0f}s fetching {url} (cloudscraper)"
            ) from exc
        except Exception as exc:
            raise PageFetchError(
                f"cloudscraper fallback failed for {url}: {exc}"
            ) from exc

    async def close_session(self) -> None:
        """Close every open page and the shared session."""
        for page in list(self._open_pages):
            await page.close()
        async with self._lock:
            session, self._session = self._session, None
        if session is not None:
            await session.close()
            logger.info("Shared page session closed")


_renderer: PageRenderer | None = None


def get_renderer() -> PageRenderer:
    """Return the process-wide renderer, creating it on first use."""
    global _renderer
    if _renderer is None:
        _renderer = PageRenderer()
    return _renderer
