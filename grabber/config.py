from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("grabber.config")

CONFIG_FILENAME = "config.json"

# Keys that may be persisted with `grabber set <key> <value>`.
PERSISTED_KEYS = {"proxy", "headless"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    grabber_data_dir: Path = Path.home() / ".media-grabber"
    grabber_proxy: str = ""
    grabber_headless: bool = False  # manual login and captcha solving need a visible browser
    grabber_browser_executable_path: str = ""
    grabber_user_agent: str = ""
    grabber_clock_ms: int = 1000
    grabber_quiescence_ms: int = 1000
    grabber_scroll_distance: int = 300
    grabber_scroll_interval_ms: int = 1000
    grabber_detail_timeout_ms: int = 30000
    grabber_igtv_video_timeout_ms: int = 5000
    grabber_navigation_timeout_s: float = 30  # first load after a failed goto
    grabber_defense_timeout_s: float = 300
    grabber_crawl_timeout_s: float = 0
    grabber_close_timeout_s: float = 2.5
    grabber_rarbg_page_size: int = 26
    grabber_abort_on_error: bool = False
    grabber_cookie_encryption_key: str = ""
    grabber_download_timeout_s: int = 60


settings = Settings()


def _parse_value(key: str, value: Optional[str]) -> Any:
    if value is None or value == "":
        return None
    if key == "headless":
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return value


class ConfigStore:
    """Key/value settings persisted as JSON in the data dir."""

    def __init__(self, data_dir: Path) -> None:
        self.path = Path(data_dir) / CONFIG_FILENAME

    def get(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            loaded = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("unreadable config %s: %s", self.path, exc)
            return {}
        if not isinstance(loaded, dict):
            return {}
        return loaded

    def set(self, key: str, value: Optional[str]) -> Dict[str, Any]:
        """Persist `key`; an empty value removes it. Returns the whole config."""
        if key not in PERSISTED_KEYS:
            raise KeyError(f"unknown config key: {key}")
        config = self.get()
        parsed = _parse_value(key, value)
        if parsed is None:
            config.pop(key, None)
        else:
            config[key] = parsed
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(config, indent=2), encoding="utf-8")
        return config


def resolve_settings(base: Optional[Settings] = None, **overrides: Any) -> Settings:
    """Overlay persisted config and explicit overrides onto `base`."""
    base = base or settings
    update: Dict[str, Any] = {}
    for key, value in ConfigStore(base.grabber_data_dir).get().items():
        if key in PERSISTED_KEYS:
            update[f"grabber_{key}"] = value
    for key, value in overrides.items():
        if value is not None:
            update[key] = value
    if not update:
        return base
    return base.model_copy(update=update)
