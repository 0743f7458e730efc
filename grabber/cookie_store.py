from __future__ import annotations

import base64
import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger("grabber.cookies")

COOKIES_FILENAME = "cookies.json"
SAME_SITE_VALUES = {"Strict", "Lax", "None"}


def _build_fernet(secret: str) -> Optional[Fernet]:
    if not secret:
        return None
    # Accept either raw secret string or already urlsafe-base64 32-byte key.
    if len(secret) == 44 and all(c.isalnum() or c in "-_=" for c in secret):
        key = secret.encode("utf-8")
    else:
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        key = base64.urlsafe_b64encode(digest)
    return Fernet(key)


def normalize_cookies(cookies: List[Dict[str, Any]], default_domain: str = "") -> List[Dict[str, Any]]:
    """Shape saved cookies into what `BrowserContext.add_cookies` accepts."""
    now = time.time()
    normalized: List[Dict[str, Any]] = []
    for raw in cookies:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("name", "")).strip()
        if not name:
            continue
        domain = str(raw.get("domain") or default_domain)
        if not domain:
            continue
        item: Dict[str, Any] = {
            "name": name,
            "value": str(raw.get("value", "")),
            "domain": domain,
            "path": str(raw.get("path") or "/"),
        }
        expires = raw.get("expires")
        if expires is not None:
            try:
                expires = float(expires)
            except (TypeError, ValueError):
                expires = None
        if expires is not None and expires > 0:
            if expires < now:
                continue
            item["expires"] = expires
        if "httpOnly" in raw:
            item["httpOnly"] = bool(raw.get("httpOnly"))
        if "secure" in raw:
            item["secure"] = bool(raw.get("secure"))
        same_site = str(raw.get("sameSite") or "")
        if same_site.capitalize() in SAME_SITE_VALUES:
            item["sameSite"] = same_site.capitalize()
        normalized.append(item)
    return normalized


class CookieStore:
    """Per-site cookie jar on disk, read before a crawl and rewritten after every load."""

    def __init__(self, path: Path, *, encryption_key: str = "", default_domain: str = "") -> None:
        self.path = Path(path)
        self.default_domain = default_domain
        self._fernet = _build_fernet(encryption_key)

    @classmethod
    def for_site(cls, data_dir: Path, site: str, **kwargs: Any) -> "CookieStore":
        return cls(Path(data_dir) / site / COOKIES_FILENAME, **kwargs)

    def _serialize(self, cookies: List[Dict[str, Any]]) -> str:
        raw = json.dumps(cookies, ensure_ascii=False)
        if not self._fernet:
            return raw
        token = self._fernet.encrypt(raw.encode("utf-8")).decode("utf-8")
        return f"enc:{token}"

    def _deserialize(self, raw: str) -> List[Dict[str, Any]]:
        if raw.startswith("enc:"):
            if not self._fernet:
                logger.warning("cookie jar %s is encrypted but no key is configured", self.path)
                return []
            try:
                raw = self._fernet.decrypt(raw[4:].encode("utf-8")).decode("utf-8")
            except InvalidToken:
                logger.warning("cookie jar %s cannot be decrypted with the configured key", self.path)
                return []
        parsed = json.loads(raw)
        if not isinstance(parsed, list):
            return []
        return [item for item in parsed if isinstance(item, dict)]

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            return self._deserialize(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("unreadable cookie jar %s: %s", self.path, exc)
            return []

    def save(self, cookies: List[Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(self._serialize(list(cookies)), encoding="utf-8")
        tmp.replace(self.path)

    def clear(self) -> bool:
        if not self.path.exists():
            return False
        self.path.unlink()
        return True

    async def apply(self, context: Any) -> int:
        """Load the jar into a browser context. Returns the number of cookies applied."""
        cookies = normalize_cookies(self.load(), self.default_domain)
        if cookies:
            await context.add_cookies(cookies)
        logger.debug("applied %d cookies from %s", len(cookies), self.path)
        return len(cookies)

    async def snapshot(self, context: Any) -> int:
        """Overwrite the jar with the context's current cookies."""
        cookies = await context.cookies()
        self.save(cookies)
        return len(cookies)
