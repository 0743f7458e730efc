from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from grabber.errors import CrawlTimeoutError

logger = logging.getLogger("grabber.events")

LOAD = "load"
RESPONSE = "response"
REQUEST = "request"
# Queued by the controller itself once scrolling and the quiescence wait are done.
SETTLED = "settled"


@dataclass
class PageEvent:
    kind: str
    payload: Any = None
    # page url when the event fired; the page may have navigated on by the time it is consumed
    page_url: str = ""


class PageEvents:
    """Feeds a page's notifications into one queue the crawl controller consumes in order.

    Listeners are registered on enter and removed on exit, so a reused page does
    not accumulate handlers across fetches.
    """

    def __init__(self, page: Any, kinds: Iterable[str] = (LOAD, RESPONSE, REQUEST)) -> None:
        self.page = page
        self.kinds = tuple(kinds)
        self._queue: asyncio.Queue[PageEvent] = asyncio.Queue()
        self._listeners: Dict[str, Callable[[Any], None]] = {}

    def _listener(self, kind: str) -> Callable[[Any], None]:
        def push(payload: Any) -> None:
            self._queue.put_nowait(PageEvent(kind, payload, self._page_url()))

        return push

    def attach(self) -> None:
        for kind in self.kinds:
            if kind in self._listeners:
                continue
            listener = self._listener(kind)
            self._listeners[kind] = listener
            self.page.on(kind, listener)

    def detach(self) -> None:
        for kind, listener in self._listeners.items():
            try:
                self.page.remove_listener(kind, listener)
            except Exception as exc:  # noqa: BLE001
                logger.debug("remove_listener(%s) failed: %s", kind, exc)
        self._listeners.clear()

    def _page_url(self) -> str:
        return str(self.page.url or "")

    def emit(self, kind: str, payload: Any = None) -> None:
        self._queue.put_nowait(PageEvent(kind, payload, self._page_url()))

    async def next(self, timeout: Optional[float] = None) -> PageEvent:
        if timeout is None:
            return await self._queue.get()
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=max(0.0, timeout))
        except asyncio.TimeoutError as exc:
            raise CrawlTimeoutError(f"no page event within {timeout:.1f}s") from exc

    async def __aenter__(self) -> "PageEvents":
        self.attach()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.detach()
