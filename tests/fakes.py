from __future__ import annotations

from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional

from grabber.config import Settings

Router = Callable[["FakePage", str], Awaitable[None]]


class FakeElement:
    def __init__(self, attrs: Optional[Dict[str, str]] = None, text: Optional[str] = None) -> None:
        self.attrs = attrs or {}
        self.text = text

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)

    async def text_content(self) -> Optional[str]:
        return self.text


class FakeResponse:
    def __init__(self, url: str, payload: Any = None, error: Optional[Exception] = None) -> None:
        self.url = url
        self._payload = payload
        self._error = error

    async def json(self) -> Any:
        if self._error is not None:
            raise self._error
        return self._payload


class FakeRequest:
    def __init__(self, url: str, resource_type: str = "media") -> None:
        self.url = url
        self.resource_type = resource_type


class FakePage:
    def __init__(self, context: "FakeContext") -> None:
        self.context = context
        self.url = "about:blank"
        self.dom: Dict[str, List[FakeElement]] = {}
        self.listeners: Dict[str, List[Callable[[Any], None]]] = defaultdict(list)
        self.goto_calls: List[str] = []
        self.evaluations = 0
        self.closed = False

    def on(self, event: str, listener: Callable[[Any], None]) -> None:
        self.listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Callable[[Any], None]) -> None:
        self.listeners[event].remove(listener)

    def fire(self, event: str, payload: Any = None) -> None:
        for listener in list(self.listeners[event]):
            listener(self if payload is None else payload)

    def load(self, url: str, dom: Optional[Dict[str, List[FakeElement]]] = None) -> None:
        self.url = url
        self.dom = dom or {}
        self.fire("load")

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.goto_calls.append(url)
        self.context.visited.append(url)
        await self.context.router(self, url)

    async def query_selector_all(self, selector: str) -> List[FakeElement]:
        return list(self.dom.get(selector, []))

    async def query_selector(self, selector: str) -> Optional[FakeElement]:
        found = self.dom.get(selector) or []
        return found[0] if found else None

    async def evaluate(self, script: str, arg: Any = None) -> None:
        self.evaluations += 1
        if self.context.on_scroll is not None:
            await self.context.on_scroll(self)

    async def close(self) -> None:
        self.closed = True


async def _noop_router(page: FakePage, url: str) -> None:
    page.load(url)


class FakeContext:
    def __init__(self, router: Optional[Router] = None) -> None:
        self.router: Router = router or _noop_router
        self.on_scroll: Optional[Callable[[FakePage], Awaitable[None]]] = None
        self.pages: List[FakePage] = []
        self.visited: List[str] = []
        self.added_cookies: List[Dict[str, Any]] = []
        self.jar: List[Dict[str, Any]] = [
            {"name": "sessionid", "value": "abc", "domain": ".example.com", "path": "/", "expires": -1},
        ]
        self.closed = False

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def cookies(self) -> List[Dict[str, Any]]:
        return list(self.jar)

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.added_cookies.extend(cookies)

    async def close(self) -> None:
        self.closed = True


class FakeSession:
    def __init__(self, context: FakeContext) -> None:
        self.context = context
        self.closed = False

    async def new_page(self) -> FakePage:
        return await self.context.new_page()

    async def close(self) -> None:
        self.closed = True
        await self.context.close()


class SessionRecorder:
    """Session factory handing out fake sessions that share one router."""

    def __init__(self, router: Optional[Router] = None) -> None:
        self.router = router
        self.on_scroll: Optional[Callable[[FakePage], Awaitable[None]]] = None
        self.sessions: List[FakeSession] = []

    async def __call__(self, cfg: Settings) -> FakeSession:
        context = FakeContext(self.router)
        context.on_scroll = self.on_scroll
        session = FakeSession(context)
        self.sessions.append(session)
        return session
