from __future__ import annotations

import asyncio
from typing import Any, Awaitable, List, Optional, TypeVar
from urllib.parse import parse_qs, urlparse

from grabber.browser import safe_close
from grabber.config import Settings
from grabber.errors import CrawlTimeoutError, ExtractionError, UnsupportedTargetError
from grabber.events import LOAD, PageEvents
from grabber.models import CrawlTarget, RarbgSearchResult, TorrentRecord
from grabber.pagination import PageDecision, PaginationPolicy, PaginationState
from grabber.persistence import merge_magnet_file, task_id, write_json
from grabber.risk_control import RequestThrottle, is_defense_page
from grabber.scrapers.base import CRAWL_ERRORS, BaseScraper, CrawlState
from grabber.sites import RARBG, RarbgSite

T = TypeVar("T")


def _categories(values: List[str]) -> List[int]:
    found: List[int] = []
    for value in values:
        for part in value.split(";"):
            part = part.strip()
            if part.lstrip("-").isdigit():
                found.append(int(part))
    return sorted(found)


def result_filename(url: str) -> str:
    """Name for a search: `<search words joined by _>_in_<sorted category ids>`."""
    query = parse_qs(urlparse(url).query, keep_blank_values=False)
    components: List[str] = []
    search = (query.get("search") or [""])[0]
    search_string = "_".join(search.split(" "))
    if search_string:
        components.append(search_string)
    categories = _categories(query.get("category", []) + query.get("category[]", []))
    if categories:
        components.append("_".join(str(c) for c in categories))
    return "_in_".join(components)


def rarbg_target(url: str, site: RarbgSite = RARBG) -> CrawlTarget:
    if not str(url or "").startswith(site.search_prefix):
        raise UnsupportedTargetError(f"not a rarbg search url: {url}")
    return CrawlTarget(url=url, identity=result_filename(url))


class RarbgScraper(BaseScraper):
    """Search result crawl: every row's detail page, page after page."""

    site_name = "rarbg"
    default_domain = ".rarbgprx.org"

    def __init__(
        self,
        cfg: Optional[Settings] = None,
        *,
        site: RarbgSite = RARBG,
        policy: Optional[PaginationPolicy] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(cfg, **kwargs)
        self.site = site
        self.policy = policy or PaginationPolicy(
            full_page_size=self.settings.grabber_rarbg_page_size,
            abort_on_error=self.settings.grabber_abort_on_error,
        )
        self.throttle = RequestThrottle(self.settings.grabber_clock_ms)
        self.pagination = PaginationState()

    async def download(self, url: str, **kwargs: Any) -> RarbgSearchResult:
        """Crawl a search, save the full result json and merge its magnet links into the search's magnet file."""
        target = rarbg_target(url, self.site)
        torrents: List[TorrentRecord] = []
        try:
            await self.with_crawl_timeout(self.scrape_search_result(url, torrents=torrents))
        except CRAWL_ERRORS as exc:
            self.logger.error("search crawl stopped for %s, keeping %d torrents: %r", url, len(torrents), exc)
        finally:
            result = RarbgSearchResult(url=url, torrents=torrents)
            tid = task_id()
            write_json(self.data_dir / f"{tid}-{target.identity}.json", result)
            merge_magnet_file(
                self.data_dir / f"{target.identity or tid}.txt",
                [t.magnet_link for t in torrents if t.magnet_link],
            )
        return result

    async def scrape_search_result(self, url: str, torrents: Optional[List[TorrentRecord]] = None) -> List[TorrentRecord]:
        torrents = [] if torrents is None else torrents
        self.pagination = state = PaginationState()
        self.transition(CrawlState.INIT)
        session = await self.session_factory(self.settings)
        try:
            await self.cookies.apply(session.context)
            page = await session.new_page()
            async with PageEvents(page, (LOAD,)) as events:
                first_wait: Optional[float] = None
                if not await self.navigate_softly(page, url):
                    first_wait = self.navigation_timeout_s
                while True:
                    try:
                        await events.next(timeout=first_wait)
                    except CrawlTimeoutError:
                        self.logger.error("no page loaded after navigating to %s", url)
                        state.aborted = True
                        break
                    first_wait = None
                    current = await self.on_page_loaded(page)
                    if is_defense_page(current, self.site.defense_markers):
                        self.logger.warning("Please enter captcha code in browser...")
                        continue
                    self.transition(CrawlState.SCRAPING_VISIBLE)
                    state.start_page()
                    rows = await page.query_selector_all(self.site.result_row_selector)
                    await self._scrape_rows(rows, session.context, state, torrents)
                    decision = self.policy.after_page(state, len(rows))
                    self.logger.info(
                        "page %d: %d rows, %d torrents, %d errors -> %s",
                        state.page_index,
                        len(rows),
                        len(torrents),
                        state.error_count,
                        decision.value,
                    )
                    if decision != PageDecision.NEXT_PAGE:
                        break
                    next_url = await self._next_page_url(page)
                    if not next_url:
                        self.logger.info("no next page link on %s", current)
                        break
                    self.transition(CrawlState.FOLLOWING_NEXT_PAGE)
                    try:
                        await self.navigate(page, next_url)
                    except Exception as exc:  # noqa: BLE001
                        self.logger.error("next page %s failed: %s", next_url, exc)
                        break
        finally:
            await session.close()
        self.transition(CrawlState.TERMINATED_ABORTED if state.aborted else CrawlState.TERMINATED_SUCCESS)
        return torrents

    async def _scrape_rows(
        self,
        rows: List[Any],
        context: Any,
        state: PaginationState,
        torrents: List[TorrentRecord],
    ) -> None:
        for index, row in enumerate(rows):
            detail_url: Optional[str] = None
            try:
                detail_url = self.site.with_domain(await row.get_attribute("href"))
                if not detail_url or not detail_url.startswith(self.site.detail_prefix):
                    continue
                torrents.append(await self.scrape_torrent(detail_url, context=context))
                state.record_item()
                self.logger.info("row:%d\t table length:%d\t scraped:%d", index, len(rows), len(torrents))
                await self.throttle.pause()
            except Exception as exc:  # noqa: BLE001
                self.logger.error("row %d (%s) failed: %s", index, detail_url, exc)
                if self.policy.on_row_error(state):
                    self.logger.warning("abort on error @ %s", detail_url)
                    return

    async def _next_page_url(self, page: Any) -> Optional[str]:
        anchor = await page.query_selector(self.site.next_page_selector)
        if anchor is None:
            return None
        return self.site.with_domain(await anchor.get_attribute("href"))

    async def _before(self, awaitable: Awaitable[T], deadline: Optional[float], url: str) -> T:
        if deadline is None:
            return await awaitable
        remaining = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError as exc:
            raise CrawlTimeoutError(f"timeout: {url}") from exc

    async def scrape_torrent(self, url: str, *, page: Any = None, context: Any = None) -> TorrentRecord:
        """Read one detail page.

        A caller-supplied `page` is reused and left open. Otherwise the fetch opens
        its own page (on `context`, or on a browser session of its own) and always
        closes what it opened.
        """
        timeout_ms = self.settings.grabber_detail_timeout_ms
        deadline = asyncio.get_running_loop().time() + timeout_ms / 1000.0 if timeout_ms > 0 else None
        own_session = None
        own_page = None
        try:
            if page is None:
                if context is None:
                    own_session = await self.session_factory(self.settings)
                    await self.cookies.apply(own_session.context)
                    context = own_session.context
                own_page = page = await context.new_page()
            async with PageEvents(page, (LOAD,)) as events:
                await self._before(page.goto(url, wait_until="commit"), deadline, url)
                await self._before(events.next(), deadline, url)
            current = await self.on_page_loaded(page)
            if not current.startswith(self.site.detail_prefix):
                raise ExtractionError(f"not found: {url} (landed on {current})")
            return await self._extract_torrent(page, url)
        finally:
            if own_page is not None:
                await safe_close(own_page.close(), label="detail page")
            if own_session is not None:
                await own_session.close()

    async def _attribute(self, page: Any, selector: str, name: str) -> Optional[str]:
        element = await page.query_selector(selector)
        if element is None:
            raise ExtractionError(f"missing element {selector}")
        return await element.get_attribute(name) or None

    async def _extract_torrent(self, page: Any, url: str) -> TorrentRecord:
        try:
            torrent_file = await self._attribute(page, self.site.torrent_file_selector, "href")
            magnet_link = await self._attribute(page, self.site.magnet_link_selector, "href")
        except ExtractionError as exc:
            raise ExtractionError(f"torrent file or magnet link missing on {url}: {exc}") from exc

        title: Optional[str] = None
        try:
            anchor = await page.query_selector(self.site.torrent_file_selector)
            if anchor is not None:
                title = (await anchor.text_content() or "").strip() or None
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("no title on %s: %s", url, exc)
        poster: Optional[str] = None
        try:
            poster = await self._attribute(page, self.site.poster_selector, "src")
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("no poster on %s: %s", url, exc)

        try:
            return TorrentRecord(
                url=url,
                title=title,
                magnet_link=magnet_link,
                torrent_file=self.site.with_domain(torrent_file),
                poster_file=poster,
            )
        except ValueError as exc:
            raise ExtractionError(str(exc)) from exc
