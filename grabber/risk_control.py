from __future__ import annotations

import asyncio
from typing import Iterable


def is_defense_page(url: str, markers: Iterable[str]) -> bool:
    """True when `url` is an anti-automation interstitial (captcha, challenge)."""
    url = str(url or "")
    return any(marker and marker in url for marker in markers)


class RequestThrottle:
    """Fixed delay between detail requests against one site."""

    def __init__(self, clock_ms: int = 1000) -> None:
        self.clock_s = max(0, clock_ms) / 1000.0
        self.waits = 0

    async def pause(self) -> None:
        self.waits += 1
        if self.clock_s > 0:
            await asyncio.sleep(self.clock_s)
