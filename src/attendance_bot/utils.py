"""Shared Playwright page setup."""

from playwright.async_api import Page, Route

from attendance_bot.logging import get_logger

log = get_logger(__name__)

# Images and stylesheets stay enabled: the screenshot is sent as evidence.
BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"media", "font"})

CHROMIUM_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
)


async def configure_page_for_scraping(page: Page, *, timeout_ms: int = 30000) -> None:
    """Set up a Playwright page for the attendance run.

    Blocks media and font downloads and sets default action and
    navigation timeouts.

    Args:
        page: Playwright Page instance.
        timeout_ms: Default timeout for actions and navigations.
    """

    async def _block_resources(route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    await page.route("**/*", _block_resources)
    page.set_default_timeout(timeout_ms)
    page.set_default_navigation_timeout(timeout_ms)
    log.debug("page_configured", timeout_ms=timeout_ms)
