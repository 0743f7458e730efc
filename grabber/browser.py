from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Dict, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from grabber.config import Settings, settings as default_settings

logger = logging.getLogger("grabber.browser")

# Local chrome installations; platforms not listed use the playwright-managed chromium.
EXECUTABLE_PATHS: Dict[str, str] = {
    "win32": "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "darwin": "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
}

AUTO_SCROLL_SCRIPT = """
async ({distance, interval}) => {
  await new Promise((resolve) => {
    let totalHeight = 0;
    const timer = setInterval(() => {
      const scrollHeight = document.body.scrollHeight;
      window.scrollBy(0, distance);
      totalHeight += distance;
      if (totalHeight >= scrollHeight) {
        clearInterval(timer);
        resolve();
      }
    }, interval);
  });
}
"""


def resolve_executable_path(
    cfg: Settings,
    platform: Optional[str] = None,
    table: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    if cfg.grabber_browser_executable_path:
        return cfg.grabber_browser_executable_path
    table = EXECUTABLE_PATHS if table is None else table
    return table.get(platform or sys.platform)


def build_proxy(server: str) -> Optional[Dict[str, str]]:
    server = str(server or "").strip()
    if not server:
        return None
    if "://" not in server:
        server = f"http://{server}"
    return {"server": server}


async def safe_close(awaitable: Any, *, label: str, timeout_s: float = 2.5) -> None:
    try:
        await asyncio.wait_for(awaitable, timeout=max(0.5, timeout_s))
    except Exception as exc:  # noqa: BLE001
        logger.debug("close skipped for %s: %s", label, exc)


async def auto_scroll(page: Page, *, distance: int = 300, interval_ms: int = 1000) -> None:
    """Scroll to the bottom of the page step by step; returns when the page stops growing."""
    await page.evaluate(AUTO_SCROLL_SCRIPT, {"distance": distance, "interval": interval_ms})


class BrowserSession:
    """A launched browser with one context; pages share the context's cookies."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        close_timeout_s: float = 2.5,
    ) -> None:
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.close_timeout_s = close_timeout_s
        self.closed = False

    @classmethod
    async def open(
        cls,
        cfg: Optional[Settings] = None,
        *,
        headless: Optional[bool] = None,
        executable_paths: Optional[Dict[str, str]] = None,
    ) -> "BrowserSession":
        cfg = cfg or default_settings
        if headless is None:
            headless = cfg.grabber_headless
        playwright = await async_playwright().start()
        try:
            launch_kwargs: Dict[str, Any] = {
                "headless": headless,
                "args": ["--disable-blink-features=AutomationControlled"],
            }
            executable_path = resolve_executable_path(cfg, table=executable_paths)
            if executable_path:
                launch_kwargs["executable_path"] = executable_path
            proxy = build_proxy(cfg.grabber_proxy)
            if proxy:
                launch_kwargs["proxy"] = proxy
            browser = await playwright.chromium.launch(**launch_kwargs)
            context_kwargs: Dict[str, Any] = {"no_viewport": True}
            if cfg.grabber_user_agent:
                context_kwargs["user_agent"] = cfg.grabber_user_agent
            context = await browser.new_context(**context_kwargs)
        except Exception:
            await playwright.stop()
            raise
        logger.info("browser launched headless=%s executable=%s", headless, executable_path or "bundled")
        return cls(playwright, browser, context, close_timeout_s=cfg.grabber_close_timeout_s)

    async def new_page(self) -> Page:
        return await self.context.new_page()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await safe_close(self.context.close(), label="context", timeout_s=self.close_timeout_s)
        await safe_close(self.browser.close(), label="browser", timeout_s=self.close_timeout_s)
        await safe_close(self.playwright.stop(), label="playwright", timeout_s=self.close_timeout_s)

    async def __aenter__(self) -> "BrowserSession":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
