from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from grabber.browser import BrowserSession, auto_scroll, safe_close
from grabber.classifier import classify_request, classify_response
from grabber.config import Settings
from grabber.downloader import DownloadReport, download_all
from grabber.errors import CrawlTimeoutError, GrabberError, UnsupportedTargetError
from grabber.events import LOAD, REQUEST, RESPONSE, SETTLED, PageEvents
from grabber.extractor import flatten_all
from grabber.models import CrawlTarget, InstagramProfile
from grabber.pagination import PaginationState
from grabber.persistence import task_id, write_json, write_lines
from grabber.risk_control import RequestThrottle, is_defense_page
from grabber.scrapers.base import CRAWL_ERRORS, BaseScraper, CrawlState
from grabber.sites import INSTAGRAM, InstagramSite

Downloader = Callable[..., Awaitable[DownloadReport]]


def pure_profile_url(profile_url: str) -> str:
    """Profile url without its query string."""
    return str(profile_url or "").split("?")[0]


def profile_name(profile_url: str, channel_segment: str = INSTAGRAM.channel_segment) -> Optional[str]:
    for segment in reversed(pure_profile_url(profile_url).split("/")):
        if segment and segment != channel_segment:
            return segment
    return None


def instagram_target(profile_url: str, site: InstagramSite = INSTAGRAM) -> CrawlTarget:
    url = pure_profile_url(profile_url)
    name = profile_name(url, site.channel_segment)
    if not url.startswith(site.profile_prefix) or not name or url.rstrip("/") == site.host:
        raise UnsupportedTargetError(f"not an instagram profile url: {profile_url}")
    return CrawlTarget(url=url, identity=name)


def igtv_url(profile_url: str) -> str:
    return f"{pure_profile_url(profile_url).rstrip('/')}/channel/"


class InstagramScraper(BaseScraper):
    """Profile timeline and IGTV crawl.

    Instagram blocks scripted logins, so the first run needs a manual login in
    the opened browser; the cookie jar keeps the session for later runs.
    """

    site_name = "instagram"
    default_domain = ".instagram.com"

    def __init__(
        self,
        cfg: Optional[Settings] = None,
        *,
        site: InstagramSite = INSTAGRAM,
        downloader: Optional[Downloader] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(cfg, **kwargs)
        self.site = site
        self.downloader = downloader or download_all
        self.throttle = RequestThrottle(self.settings.grabber_clock_ms)

    def profile_dir(self, target: CrawlTarget) -> Path:
        return self.data_dir / target.identity

    async def download(self, url: str, proxy: Optional[str] = None, **kwargs: Any) -> InstagramProfile:
        """Scrape the profile, then download timeline and IGTV files under the data dir."""
        target = instagram_target(url, self.site)
        profile = await self.fetch_profile(url)
        proxy = proxy if proxy is not None else self.settings.grabber_proxy
        profile_dir = self.profile_dir(target)
        await self.downloader(
            profile_dir,
            [{"url": f} for f in profile.timeline_files],
            proxy=proxy,
            timeout_s=self.settings.grabber_download_timeout_s,
        )
        await self.downloader(
            profile_dir / "igtv",
            [{"url": f} for f in profile.igtv_files],
            proxy=proxy,
            timeout_s=self.settings.grabber_download_timeout_s,
        )
        return profile

    async def fetch_profile(self, url: str) -> InstagramProfile:
        target = instagram_target(url, self.site)
        profile = InstagramProfile(url=target.url, profile_name=target.identity)
        igtv = InstagramProfile(url=igtv_url(url), profile_name=target.identity)
        try:
            try:
                await self.with_crawl_timeout(self.scrape_timeline(url, profile=profile))
            except CRAWL_ERRORS as exc:
                self.logger.error(
                    "timeline crawl stopped for %s, keeping %d nodes: %r", target.url, len(profile.timeline), exc
                )
            try:
                await self.with_crawl_timeout(self.scrape_igtv(igtv.url, profile=igtv))
            except CRAWL_ERRORS as exc:
                self.logger.error("igtv crawl stopped for %s: %r", igtv.url, exc)
        finally:
            profile.add_igtv(igtv.igtv, igtv.igtv_files)
            self.write_outputs(target, profile)
        return profile

    def write_outputs(self, target: CrawlTarget, profile: InstagramProfile, tid: Optional[str] = None) -> Dict[str, Path]:
        tid = tid or task_id()
        data_dir = self.profile_dir(target) / ".data"
        paths = {
            "data": write_json(data_dir / f"{tid}-data.json", profile),
            "timeline": write_lines(data_dir / f"{tid}-timeline-files.txt", profile.timeline_files),
            "igtv": write_lines(data_dir / f"{tid}-igtv-files.txt", profile.igtv_files),
        }
        self.logger.info(
            "profile %s: %d timeline nodes, %d files, %d igtv files -> %s",
            target.identity,
            len(profile.timeline),
            len(profile.timeline_files),
            len(profile.igtv_files),
            data_dir,
        )
        return paths

    async def _scroll_and_settle(self, page: Any, events: PageEvents) -> None:
        self.transition(CrawlState.SCROLLING_FOR_MORE)
        try:
            await auto_scroll(
                page,
                distance=self.settings.grabber_scroll_distance,
                interval_ms=self.settings.grabber_scroll_interval_ms,
            )
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("auto scroll interrupted on %s: %s", page.url, exc)
        self.transition(CrawlState.SETTLING)
        await asyncio.sleep(self.settings.grabber_quiescence_ms / 1000.0)
        events.emit(SETTLED)

    async def _crawl_listing(
        self,
        session: BrowserSession,
        url: str,
        prefix: str,
        on_response: Callable[[Any, Any], Awaitable[None]],
        defense_timeout_s: float = 0,
    ) -> None:
        """Drive one listing page until it has been scrolled to the end and settled.

        A defense page keeps the crawl waiting for the operator; with
        `defense_timeout_s` the wait is bounded and ends in CrawlTimeoutError.
        When the first navigation fails outright, a load must still arrive within
        `grabber_navigation_timeout_s`.
        """
        state = PaginationState()
        page = await session.new_page()
        scroll_task: Optional[asyncio.Task[None]] = None
        committed = False
        async with PageEvents(page, (LOAD, RESPONSE)) as events:
            try:
                committed = await self.navigate_softly(page, url)
                if not committed:
                    state.deadline = self.first_load_deadline()
                while True:
                    timeout = None
                    if state.deadline is not None:
                        timeout = max(0.0, state.deadline - asyncio.get_running_loop().time())
                    event = await events.next(timeout=timeout)
                    if event.kind == RESPONSE:
                        await on_response(page, event.payload)
                        continue
                    if event.kind == SETTLED:
                        break
                    current = await self.on_page_loaded(page)
                    if not committed:
                        committed = True
                        state.deadline = None
                    if is_defense_page(current, self.site.defense_markers):
                        self.logger.warning("challenge page @ %s, please solve it in the browser...", current)
                        if defense_timeout_s > 0 and state.deadline is None:
                            state.deadline = asyncio.get_running_loop().time() + defense_timeout_s
                        continue
                    state.deadline = None
                    if not current.startswith(prefix):
                        self.logger.info("waiting for %s (login may be required)", prefix)
                        continue
                    if scroll_task is None:
                        state.start_page()
                        self.transition(CrawlState.SCRAPING_VISIBLE)
                        scroll_task = asyncio.create_task(self._scroll_and_settle(page, events))
            except CrawlTimeoutError as exc:
                self.transition(CrawlState.TERMINATED_ABORTED)
                reason = "challenge not cleared" if committed else "no page loaded"
                raise CrawlTimeoutError(f"{reason} on {url}") from exc
            finally:
                if scroll_task is not None and not scroll_task.done():
                    scroll_task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await scroll_task
        self.transition(CrawlState.TERMINATED_SUCCESS)

    async def scrape_timeline(self, profile_url: str, profile: Optional[InstagramProfile] = None) -> InstagramProfile:
        """Collect timeline posts from the feed queries fired while the profile page scrolls."""
        target = instagram_target(profile_url, self.site)
        if profile is None:
            profile = InstagramProfile(url=target.url, profile_name=target.identity)

        async def on_response(page: Any, response: Any) -> None:
            payload = await classify_response(
                response,
                query_params=self.site.query_id_params,
                edge_names=self.site.timeline_edges,
            )
            if payload is None:
                return
            nodes, files = flatten_all(payload.nodes)
            profile.add_timeline(nodes, files)
            self.logger.info(
                "%s: +%d nodes, +%d files (total %d)",
                payload.edge_name,
                len(nodes),
                len(files),
                len(profile.timeline),
            )

        self.transition(CrawlState.INIT)
        session = await self.session_factory(self.settings)
        try:
            await self.cookies.apply(session.context)
            await self._crawl_listing(session, profile_url, target.url, on_response)
        finally:
            await session.close()
        return profile

    async def scrape_igtv(self, channel_url: str, profile: Optional[InstagramProfile] = None) -> InstagramProfile:
        """Collect IGTV covers from the channel page, then each video's mp4 url from its tv page."""
        name = profile_name(channel_url, self.site.channel_segment) or ""
        if profile is None:
            profile = InstagramProfile(url=channel_url, profile_name=name)

        async def on_response(page: Any, response: Any) -> None:
            if not name or str(page.url).find(name) <= 0:
                return
            payload = await classify_response(
                response,
                query_params=self.site.query_id_params,
                edge_names=self.site.igtv_edges,
            )
            if payload is None:
                return
            for node in payload.nodes:
                profile.add_igtv([node], [node.display_url] if node.display_url else [])
            self.logger.info("igtv: +%d videos (total %d)", len(payload.nodes), len(profile.igtv))

        self.transition(CrawlState.INIT)
        session = await self.session_factory(self.settings)
        try:
            await self.cookies.apply(session.context)
            await self._crawl_listing(
                session,
                channel_url,
                pure_profile_url(channel_url),
                on_response,
                defense_timeout_s=float(self.settings.grabber_defense_timeout_s),
            )
            video_page = await session.new_page()
            try:
                profile.igtv_files.extend(await self.scrape_igtv_videos(video_page, profile.igtv))
            finally:
                await safe_close(video_page.close(), label="igtv video page")
        finally:
            await session.close()
        return profile

    async def scrape_igtv_videos(self, page: Any, nodes: Iterable[Any]) -> List[str]:
        videos: List[str] = []
        for index, node in enumerate(list(nodes)):
            await self.throttle.pause()
            tv_url = self.site.tv_url(node.shortcode)
            try:
                videos.append(await self.scrape_igtv_video(tv_url, page))
            except GrabberError as exc:
                self.logger.error("igtv video %d %s skipped: %s", index, tv_url, exc)
        return videos

    async def scrape_igtv_video(self, tv_url: str, page: Any) -> str:
        """First mp4 media request made by a tv page. The page belongs to the caller."""
        timeout_s = self.settings.grabber_igtv_video_timeout_ms / 1000.0
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        async with PageEvents(page, (REQUEST,)) as events:
            try:
                await asyncio.wait_for(self.navigate_softly(page, tv_url), timeout=timeout_s)
                while True:
                    event = await events.next(timeout=deadline - loop.time())
                    if not event.page_url.startswith(tv_url.rstrip("/")):
                        # still the previous video streaming
                        continue
                    video = classify_request(event.payload)
                    if video:
                        return video
            except asyncio.TimeoutError as exc:
                raise CrawlTimeoutError(f"timeout: {tv_url}") from exc
