"""Ordered navigation strategies for reaching the attendance frame.

The portal has been seen in three layouts: the attendance view reachable
by direct URL, reachable through a left-menu link (by text or by fixed
tree anchor IDs), or already loaded in some frame. Each layout gets a
strategy; PortalNavigator tries them in priority order and stops at the
first one that yields the frame.
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Frame, Page
from tenacity import AsyncRetrying, retry_if_result, stop_after_delay, wait_fixed

from attendance_bot.config import BotConfig
from attendance_bot.errors import ViewNotFound
from attendance_bot.logging import get_logger

log = get_logger(__name__)

FRAME_POLL_INTERVAL_S = 0.5
TREE_EXPAND_PAUSE_MS = 1000


def find_frame(page: Page, marker: str) -> Frame | None:
    """Return the first loaded frame whose address contains marker."""
    for frame in page.frames:
        if marker in frame.url:
            return frame
    return None


async def wait_for_frame(page: Page, marker: str, timeout_ms: int) -> Frame | None:
    """Poll the page's frames until one matches marker or timeout_ms passes.

    Returns:
        The matching frame, or None when it never showed up.
    """

    async def _scan() -> Frame | None:
        return find_frame(page, marker)

    retrying = AsyncRetrying(
        stop=stop_after_delay(timeout_ms / 1000),
        wait=wait_fixed(FRAME_POLL_INTERVAL_S),
        retry=retry_if_result(lambda frame: frame is None),
        retry_error_callback=lambda state: None,
    )
    return await retrying(_scan)


class NavigationStrategy(ABC):
    """One way of reaching the attendance frame."""

    name = "strategy"

    def __init__(self, marker: str, timeout_ms: int = 3000) -> None:
        self.marker = marker
        self.timeout_ms = timeout_ms

    @abstractmethod
    async def attempt(self, page: Page) -> Frame | None:
        """Try to reach the attendance frame.

        Returns:
            The attendance frame, or None if this strategy does not apply.
        """


class DirectUrlStrategy(NavigationStrategy):
    """Open the attendance view by URL, when one is configured."""

    name = "direct_url"

    def __init__(self, url: str, marker: str, timeout_ms: int = 3000) -> None:
        super().__init__(marker, timeout_ms)
        self.url = url

    async def attempt(self, page: Page) -> Frame | None:
        if not self.url:
            return None
        await page.goto(self.url, wait_until="networkidle")
        return await wait_for_frame(page, self.marker, self.timeout_ms)


class NavLinkStrategy(NavigationStrategy):
    """Click the left-menu link whose text looks like "Attendance (%age)"."""

    name = "nav_link"

    def __init__(self, link_pattern: str, marker: str, timeout_ms: int = 3000) -> None:
        super().__init__(marker, timeout_ms)
        self.link_pattern = re.compile(link_pattern, re.IGNORECASE)

    async def attempt(self, page: Page) -> Frame | None:
        for frame in list(page.frames):
            try:
                link = frame.locator("a").filter(has_text=self.link_pattern)
                if await link.count() > 0:
                    await link.first.click()
                    log.info("attendance_link_clicked", frame_url=frame.url)
                    break
            except PlaywrightError as e:
                log.debug("attendance_link_probe_failed", frame_url=frame.url, error=str(e))
        else:
            return None

        return await wait_for_frame(page, self.marker, self.timeout_ms)


class TreeLinkStrategy(NavigationStrategy):
    """Click fixed menu-tree anchors.

    Every selector but the last expands a menu branch; the last one opens
    the attendance view.
    """

    name = "tree_link"

    def __init__(
        self, selectors: Iterable[str], marker: str, timeout_ms: int = 3000
    ) -> None:
        super().__init__(marker, timeout_ms)
        self.selectors = list(selectors)

    async def attempt(self, page: Page) -> Frame | None:
        if not self.selectors:
            return None
        *expanders, target = self.selectors

        for frame in list(page.frames):
            try:
                for selector in expanders:
                    if await frame.locator(selector).count() > 0:
                        await frame.click(selector)
                        await page.wait_for_timeout(TREE_EXPAND_PAUSE_MS)
                if await frame.locator(target).count() > 0:
                    await frame.click(target)
                    log.info("tree_link_clicked", selector=target, frame_url=frame.url)
                    break
            except PlaywrightError as e:
                log.debug("tree_link_probe_failed", frame_url=frame.url, error=str(e))
        else:
            return None

        return await wait_for_frame(page, self.marker, self.timeout_ms)


class FrameScanStrategy(NavigationStrategy):
    """Look through the frames already loaded on the page."""

    name = "frame_scan"

    async def attempt(self, page: Page) -> Frame | None:
        return find_frame(page, self.marker)


class PortalNavigator:
    """Runs navigation strategies in order until one finds the frame."""

    def __init__(self, strategies: Iterable[NavigationStrategy]) -> None:
        self.strategies = list(strategies)

    @classmethod
    def from_config(cls, config: BotConfig) -> "PortalNavigator":
        marker = config.attendance_frame_marker
        timeout_ms = config.frame_wait_ms
        return cls(
            [
                DirectUrlStrategy(config.attendance_url, marker, timeout_ms),
                NavLinkStrategy(config.attendance_link_pattern, marker, timeout_ms),
                TreeLinkStrategy(config.tree_link_selectors, marker, timeout_ms),
                FrameScanStrategy(marker),
            ]
        )

    async def open_attendance_view(self, page: Page) -> Frame:
        """Reach the attendance frame.

        Raises:
            ViewNotFound: If every strategy came back empty.
        """
        for strategy in self.strategies:
            try:
                frame = await strategy.attempt(page)
            except PlaywrightError as e:
                log.warning(
                    "navigation_strategy_failed", strategy=strategy.name, error=str(e)
                )
                continue

            if frame is not None:
                log.info("attendance_frame_found", strategy=strategy.name, url=frame.url)
                return frame
            log.debug("navigation_strategy_missed", strategy=strategy.name)

        frame_urls = [frame.url for frame in page.frames]
        log.error("attendance_frame_missing", frames=frame_urls)
        raise ViewNotFound(frame_urls)
