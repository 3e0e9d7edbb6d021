"""
Zoom Join Driver

Drives the Zoom web client join form with Playwright:
1. Navigate to the join URL
2. Wait for the meeting number and passcode fields
3. Fill both and submit
4. Wait for the navigation into the meeting view

The selectors below are tied to Zoom's current web UI. If Zoom changes its
markup the join fails with JoinTimeoutError; there is no fallback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from meeting_recorder.config import get_logger
from meeting_recorder.core.exceptions import JoinNavigationError, JoinTimeoutError


logger = get_logger("zoom_joiner")


ZOOM_SELECTORS = {
    "meeting_id_input": "#join-confno",
    "passcode_input": "#join-pwd",
    "join_button": ".btn-primary",
}

DEFAULT_BROWSER_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--use-fake-ui-for-media-stream",  # Auto-accept permissions
)


@dataclass
class JoinedSession:
    """
    An active browser session inside a meeting.

    Owned by whoever called join(); close() releases the page, context,
    browser and the Playwright driver, in that order.
    """
    playwright: object = field(repr=False)
    browser: Optional[Browser] = field(default=None, repr=False)
    context: Optional[BrowserContext] = field(default=None, repr=False)
    page: Optional[Page] = field(default=None, repr=False)
    url: str = ""
    closed: bool = False

    async def close(self) -> None:
        """Close all browser resources. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True

        try:
            if self.context is not None:
                await self.context.close()
        except PlaywrightError as e:
            logger.warning(f"Error closing browser context: {e}")
        finally:
            self.context = None
            self.page = None

        try:
            if self.browser is not None:
                await self.browser.close()
        except PlaywrightError as e:
            logger.warning(f"Error closing browser: {e}")
        finally:
            self.browser = None

        try:
            if self.playwright is not None:
                await self.playwright.stop()
        finally:
            self.playwright = None

        logger.info("Browser session closed")


class ZoomJoinDriver:
    """
    Joins a Zoom meeting through the web client.

    Usage pattern:
        driver = ZoomJoinDriver()
        session = await driver.join(url, meeting_id, passcode)
        ...
        await session.close()
    """

    def __init__(
        self,
        join_timeout_seconds: float = 30.0,
        navigation_timeout_seconds: float = 60.0,
        headless: bool = False,
        browser_args: Sequence[str] = DEFAULT_BROWSER_ARGS,
        debug_screenshot_path: Optional[str] = "zoom_debug.png",
        selectors: Optional[dict] = None,
        playwright_factory: Callable = async_playwright,
    ) -> None:
        self.join_timeout_ms = join_timeout_seconds * 1000
        self.navigation_timeout_ms = navigation_timeout_seconds * 1000
        self.headless = headless
        self.browser_args = list(browser_args)
        self.debug_screenshot_path = Path(debug_screenshot_path) if debug_screenshot_path else None
        self.selectors = {**ZOOM_SELECTORS, **(selectors or {})}
        self._playwright_factory = playwright_factory

    @classmethod
    def from_settings(cls, zoom) -> "ZoomJoinDriver":
        """Build a driver from ZoomSettings."""
        return cls(
            join_timeout_seconds=zoom.join_timeout_seconds,
            navigation_timeout_seconds=zoom.navigation_timeout_seconds,
            headless=zoom.headless,
            debug_screenshot_path=zoom.debug_screenshot_path or None,
        )

    async def join(self, url: str, meeting_id: str, passcode: str) -> JoinedSession:
        """
        Join the meeting and hand back the live browser session.

        Raises:
            JoinTimeoutError: The join form fields did not appear in time
            JoinNavigationError: The page could not be loaded, or submitting
                did not lead into the meeting in time
        """
        session = await self._launch(url)
        try:
            await self._run_join_flow(session.page, url, meeting_id, passcode)
        except BaseException:
            # Nothing is handed to the caller, so nothing may stay open
            await session.close()
            raise

        logger.info("✅ Successfully joined the meeting!")
        return session

    async def _launch(self, url: str) -> JoinedSession:
        logger.info("Starting Playwright browser...")
        playwright = await self._playwright_factory().start()
        session = JoinedSession(playwright=playwright, url=url)
        try:
            session.browser = await playwright.chromium.launch(
                headless=self.headless,
                args=self.browser_args,
            )
            session.context = await session.browser.new_context(
                permissions=["microphone", "camera"],
                viewport={"width": 1366, "height": 768},
            )
            session.page = await session.context.new_page()
        except BaseException:
            await session.close()
            raise
        return session

    async def _run_join_flow(self, page: Page, url: str, meeting_id: str, passcode: str) -> None:
        # --- Step 1: Navigate to meeting URL ---
        logger.info(f"Navigating to Zoom meeting URL: {url}")
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
        except PlaywrightError as e:
            raise JoinNavigationError(
                f"Could not load join page: {e}",
                details={"url": url},
            ) from e

        # --- Step 2: Wait for the join form ---
        logger.info("Waiting for the Zoom fields to appear...")
        for name in ("meeting_id_input", "passcode_input"):
            selector = self.selectors[name]
            try:
                await page.wait_for_selector(selector, state="visible", timeout=self.join_timeout_ms)
            except PlaywrightTimeoutError as e:
                raise JoinTimeoutError(
                    f"Join form field {selector} did not appear within {self.join_timeout_ms / 1000:.0f}s",
                    details={"selector": selector, "url": url},
                ) from e

        await self._save_debug_screenshot(page)

        # --- Step 3: Fill the form ---
        try:
            await page.fill(self.selectors["meeting_id_input"], meeting_id)
            await page.fill(self.selectors["passcode_input"], passcode)
        except PlaywrightError as e:
            raise JoinNavigationError(
                f"Could not fill the join form: {e}",
                details={"url": url},
            ) from e

        # --- Step 4: Submit and wait for the meeting view ---
        logger.info("Submitting join form...")
        try:
            async with page.expect_navigation(wait_until="domcontentloaded", timeout=self.navigation_timeout_ms):
                await page.click(self.selectors["join_button"])
        except PlaywrightTimeoutError as e:
            raise JoinNavigationError(
                f"Meeting view did not load within {self.navigation_timeout_ms / 1000:.0f}s after joining",
                details={"url": url},
            ) from e
        except PlaywrightError as e:
            raise JoinNavigationError(
                f"Submitting the join form failed: {e}",
                details={"url": url},
            ) from e

    async def _save_debug_screenshot(self, page: Page) -> None:
        """
        Save a screenshot of the join form for debugging.

        Failures are only logged; a missing screenshot never fails a join.
        """
        if self.debug_screenshot_path is None:
            return

        try:
            self.debug_screenshot_path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(self.debug_screenshot_path))
            logger.info(f"Screenshot taken for debugging: {self.debug_screenshot_path}")
        except Exception as e:
            logger.warning(f"Failed to save debug screenshot: {e}")
