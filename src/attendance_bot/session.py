"""Playwright browser session for the ERP student portal.

PortalSession owns the browser for one run: it launches Chromium on
entry, logs in, hands out the attendance page, takes the evidence
screenshot, and closes everything on exit whatever happened in between.
No state is kept between runs.
"""

from types import TracebackType

from playwright.async_api import (
    Browser,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from attendance_bot.config import BotConfig
from attendance_bot.errors import AuthenticationTimeout
from attendance_bot.logging import get_logger
from attendance_bot.navigator import PortalNavigator
from attendance_bot.pages.attendance import AttendancePage
from attendance_bot.utils import CHROMIUM_ARGS, configure_page_for_scraping

logger = get_logger(__name__)


class PortalSession:
    """Async context manager around one authenticated browser session."""

    def __init__(
        self,
        config: BotConfig,
        *,
        navigator: PortalNavigator | None = None,
    ) -> None:
        """Initialize PortalSession.

        Args:
            config: Bot configuration (credentials, selectors, timings).
            navigator: Strategy chain for reaching the attendance frame.
                Defaults to the chain built from config.
        """
        self.config = config
        self.navigator = navigator or PortalNavigator.from_config(config)
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("PortalSession used outside 'async with'")
        return self._page

    async def __aenter__(self) -> "PortalSession":
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless, args=list(CHROMIUM_ARGS)
            )
            context = await self._browser.new_context()
            self._page = await context.new_page()
            await configure_page_for_scraping(
                self._page, timeout_ms=self.config.default_timeout_ms
            )
        except BaseException:
            await self.close()
            raise
        logger.info("browser_started", headless=self.config.headless)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the browser and stop Playwright. Safe to call twice."""
        browser, self._browser = self._browser, None
        self._page = None
        try:
            if browser is not None:
                await browser.close()
                logger.info("browser_closed")
        finally:
            playwright, self._playwright = self._playwright, None
            if playwright is not None:
                await playwright.stop()

    async def login(self) -> None:
        """Submit the login form and wait for the student dashboard.

        Raises:
            AuthenticationTimeout: If the dashboard URL is not reached in time.
        """
        page = self.page
        logger.info("authentication_started", url=self.config.login_url)

        await page.goto(self.config.login_url, wait_until="domcontentloaded")
        await page.fill(self.config.username_selector, self.config.portal_username)
        await page.fill(self.config.password_selector, self.config.portal_password)
        await page.click(self.config.submit_selector)

        try:
            await page.wait_for_url(
                self.config.dashboard_url_pattern,
                timeout=self.config.login_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            logger.error("authentication_timeout", url=page.url)
            raise AuthenticationTimeout(
                f"Login did not reach {self.config.dashboard_url_pattern} "
                f"within {self.config.login_timeout_ms} ms (stuck at {page.url})"
            ) from e

        await page.wait_for_load_state("networkidle")
        # Let the dashboard frames settle
        await page.wait_for_timeout(self.config.settle_ms)
        logger.info(
            "authentication_succeeded",
            frames=[frame.url for frame in page.frames],
        )

    async def open_attendance_view(self) -> AttendancePage:
        """Navigate to the attendance frame and wrap it in an AttendancePage.

        Raises:
            ViewNotFound: If no navigation strategy found the frame.
        """
        frame = await self.navigator.open_attendance_view(self.page)
        return AttendancePage(
            frame,
            settle_ms=self.config.settle_ms,
            reload_timeout_ms=self.config.month_reload_timeout_ms,
        )

    async def screenshot(self, path: str) -> str:
        """Save a full-page screenshot and return its path."""
        await self.page.screenshot(path=path, full_page=True)
        logger.info("screenshot_saved", path=path)
        return path
