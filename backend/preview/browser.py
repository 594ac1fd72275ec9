"""Headless Chromium session used for server-side preview capture.

Requires: playwright (pip install playwright && playwright install chromium)
"""

from typing import Any, Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from core.exceptions import CaptureError

logger = structlog.get_logger(__name__)

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
]


class BrowserSession:
    """Opens a page on the workflow editor and closes everything afterwards.

    Usage:
        async with BrowserSession(url, selector=".react-flow", scale=1.5) as page:
            result = await orchestrator.generate(page, request)

    The browser context is created with ``device_scale_factor=scale`` so
    screenshots come out at the requested density without resampling.
    """

    def __init__(
        self,
        url: str,
        selector: Optional[str] = None,
        width: int = 1200,
        height: int = 630,
        scale: float = 1.5,
        headless: bool = True,
        timeout_ms: int = 30000,
    ):
        self.url = url
        self.selector = selector
        self.width = width
        self.height = height
        self.scale = scale
        self.headless = headless
        self.timeout_ms = timeout_ms
        self._pw = None
        self._browser = None
        self._page = None

    async def __aenter__(self) -> Any:
        try:
            self._pw = await async_playwright().start()
            self._browser = await self._pw.chromium.launch(
                headless=self.headless,
                args=_LAUNCH_ARGS,
            )
            context = await self._browser.new_context(
                viewport={"width": self.width, "height": self.height},
                device_scale_factor=self.scale,
            )
            self._page = await context.new_page()
            await self._page.goto(self.url, wait_until="networkidle", timeout=self.timeout_ms)
        except PlaywrightError as exc:
            await self.close()
            logger.error("Could not open capture page", url=self.url, error=str(exc))
            raise CaptureError(f"Could not load {self.url}: {exc}") from exc

        if self.selector:
            try:
                await self._page.wait_for_selector(self.selector, timeout=self.timeout_ms)
            except PlaywrightTimeoutError:
                # Missing target is reported by the renderer as ElementNotFoundError
                logger.warning("Capture target did not appear", url=self.url,
                               selector=self.selector, timeout_ms=self.timeout_ms)

        logger.info("Browser session opened", url=self.url, scale=self.scale)
        return self._page

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the browser session."""
        try:
            if self._browser:
                await self._browser.close()
            if self._pw:
                await self._pw.stop()
        except Exception as e:
            logger.warning(f"Error closing browser session: {e}")
        finally:
            self._pw = None
            self._browser = None
            self._page = None
