from __future__ import annotations

import asyncio
import enum
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

from playwright.async_api import Error as PlaywrightError

from grabber.browser import BrowserSession
from grabber.config import Settings, settings as default_settings
from grabber.cookie_store import CookieStore
from grabber.errors import GrabberError

T = TypeVar("T")

SessionFactory = Callable[[Settings], Awaitable[BrowserSession]]

# Failures a crawl logs and survives with whatever it collected so far.
CRAWL_ERRORS = (asyncio.TimeoutError, GrabberError, PlaywrightError)


class CrawlState(str, enum.Enum):
    INIT = "init"
    AWAITING_LOAD = "awaiting_load"
    SCRAPING_VISIBLE = "scraping_visible"
    SCROLLING_FOR_MORE = "scrolling_for_more"
    FOLLOWING_NEXT_PAGE = "following_next_page"
    SETTLING = "settling"
    TERMINATED_SUCCESS = "terminated_success"
    TERMINATED_ABORTED = "terminated_aborted"


async def open_session(cfg: Settings) -> BrowserSession:
    return await BrowserSession.open(cfg)


class BaseScraper(ABC):
    site_name: str
    default_domain: str = ""

    def __init__(
        self,
        cfg: Optional[Settings] = None,
        *,
        session_factory: Optional[SessionFactory] = None,
        cookie_store: Optional[CookieStore] = None,
    ) -> None:
        self.settings = cfg or default_settings
        self.session_factory = session_factory or open_session
        self.cookies = cookie_store or CookieStore.for_site(
            self.settings.grabber_data_dir,
            self.site_name,
            encryption_key=self.settings.grabber_cookie_encryption_key,
            default_domain=self.default_domain,
        )
        self.logger = logging.getLogger(f"grabber.{self.site_name}")
        self.state = CrawlState.INIT

    @property
    def data_dir(self) -> Path:
        return Path(self.settings.grabber_data_dir) / self.site_name

    def transition(self, state: CrawlState) -> None:
        if state != self.state:
            self.logger.debug("state %s -> %s", self.state.value, state.value)
        self.state = state

    async def on_page_loaded(self, page: Any) -> str:
        """Persist cookies for every load, before anything else looks at the page."""
        url = str(page.url or "")
        self.logger.info("page loaded @ %s", url)
        count = await self.cookies.snapshot(page.context)
        self.logger.debug("saved %d cookies to %s", count, self.cookies.path)
        return url

    async def navigate(self, page: Any, url: str) -> None:
        """Issue navigation; returns once committed, the load event arrives through the page queue."""
        self.transition(CrawlState.AWAITING_LOAD)
        await page.goto(url, wait_until="commit")

    async def navigate_softly(self, page: Any, url: str) -> bool:
        # Redirects (login, challenge) interrupt the navigation but still end in a load event.
        try:
            await self.navigate(page, url)
            return True
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("navigation to %s did not complete: %s", url, exc)
            return False

    @property
    def navigation_timeout_s(self) -> float:
        """How long a load may still take to arrive after the initial navigation failed."""
        return max(0.0, float(self.settings.grabber_navigation_timeout_s))

    def first_load_deadline(self) -> float:
        return asyncio.get_running_loop().time() + self.navigation_timeout_s

    async def with_crawl_timeout(self, coro: Awaitable[T]) -> T:
        timeout_s = self.settings.grabber_crawl_timeout_s
        if timeout_s and timeout_s > 0:
            return await asyncio.wait_for(coro, timeout=float(timeout_s))
        return await coro

    @abstractmethod
    async def download(self, url: str, **kwargs: Any) -> Any:
        raise NotImplementedError
