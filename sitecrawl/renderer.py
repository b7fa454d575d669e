"""
Page Renderer
Headless Chromium (Playwright sync API) returning fully rendered HTML.

Playwright's sync objects are bound to the thread that started them, so each
crawl opens its own renderer and closes it when done.
"""

import logging
from typing import Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeout
from playwright.sync_api import sync_playwright

from .errors import RenderError

logger = logging.getLogger(__name__)


class PlaywrightRenderer:
    """
    ``render(url) -> html`` over a lazily started Chromium instance.

    Usage::

        with PlaywrightRenderer(timeout_ms=30000) as renderer:
            html = renderer.render("https://example.com/")
    """

    def __init__(
        self,
        headless: bool = True,
        timeout_ms: int = 30000,
        user_agent: Optional[str] = None,
        wait_until: str = "networkidle",
    ):
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.user_agent = user_agent
        self.wait_until = wait_until
        self._playwright = None
        self._browser = None
        self._context = None

    def start(self) -> None:
        """Launch the browser (idempotent)."""
        if self._browser is not None:
            return
        self._playwright = sync_playwright().start()
        try:
            self._browser = self._playwright.chromium.launch(
                headless=self.headless,
                args=['--no-sandbox', '--disable-setuid-sandbox', '--disable-dev-shm-usage']
            )
            self._context = self._browser.new_context(user_agent=self.user_agent)
        except PlaywrightError:
            self._playwright.stop()
            self._playwright = None
            self._browser = None
            raise
        logger.info("[RENDER] Playwright browser started")

    def close(self) -> None:
        """Close the browser and stop Playwright."""
        if self._context is not None:
            self._context.close()
            self._context = None
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
            logger.info("[RENDER] Playwright browser closed")

    def render(self, url: str) -> str:
        """
        Navigate to *url*, wait for the configured load state and return the
        page HTML.

        Raises:
            RenderError: navigation failure, timeout, no response, or a
                non-2xx status.
        """
        self.start()
        page = None
        try:
            page = self._context.new_page()
            response = page.goto(url, timeout=self.timeout_ms, wait_until=self.wait_until)
            if response is None:
                raise RenderError(url, "No response from page")
            if not 200 <= response.status < 300:
                raise RenderError(url, f"HTTP status {response.status}")
            html = page.content()
        except PlaywrightTimeout as e:
            raise RenderError(url, f"Render timeout after {self.timeout_ms}ms") from e
        except PlaywrightError as e:
            raise RenderError(url, str(e)) from e
        finally:
            if page is not None:
                self._close_page(page)

        logger.debug(f"[RENDER] {url} — {len(html):,} chars")
        return html

    def _close_page(self, page) -> None:
        try:
            page.close()
        except PlaywrightError as e:
            logger.debug(f"[RENDER] Could not close page: {e}")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
