from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import List, Optional

from grabber.config import PERSISTED_KEYS, ConfigStore, Settings, resolve_settings
from grabber.cookie_store import CookieStore
from grabber.errors import UnsupportedTargetError
from grabber.logging_config import setup_logging
from grabber.scrapers import InstagramScraper, RarbgScraper
from grabber.sites import INSTAGRAM, RARBG, SITES

logger = logging.getLogger("grabber.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grabber",
        description="Scrape an instagram profile or a rarbg search in a real browser and download what it finds.",
    )
    parser.add_argument("target", help="profile/search url, `set` or `clear-cookies`")
    parser.add_argument("args", nargs="*", help="`set <key> [value]` or `clear-cookies <site>`")
    parser.add_argument("--headless", action="store_true", help="run the browser without a window")
    parser.add_argument("--abort-on-error", action="store_true", help="stop a search crawl at the first failed row")
    parser.add_argument("--clock", type=int, default=None, help="delay between detail requests in ms")
    parser.add_argument("--timeout", type=int, default=None, help="detail page timeout in ms (0 disables)")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", action="store_true", help="also write a debug log under the data dir")
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    return resolve_settings(
        Settings(),
        grabber_headless=True if args.headless else None,
        grabber_abort_on_error=True if args.abort_on_error else None,
        grabber_clock_ms=args.clock,
        grabber_detail_timeout_ms=args.timeout,
    )


def run_set(cfg: Settings, values: List[str]) -> int:
    if not values or values[0] not in PERSISTED_KEYS:
        print(f"usage: grabber set <{'|'.join(sorted(PERSISTED_KEYS))}> [value]")
        return 2
    key = values[0]
    value = values[1] if len(values) > 1 else None
    config = ConfigStore(cfg.grabber_data_dir).set(key, value)
    print(json.dumps(config, indent=2))
    return 0


def run_clear_cookies(cfg: Settings, values: List[str]) -> int:
    if not values or values[0] not in SITES:
        print(f"usage: grabber clear-cookies <{'|'.join(sorted(SITES))}>")
        return 2
    store = CookieStore.for_site(cfg.grabber_data_dir, values[0])
    removed = store.clear()
    print(f"cookies {'removed' if removed else 'not found'}: {store.path}")
    return 0


async def run_url(cfg: Settings, url: str) -> int:
    if url.startswith(INSTAGRAM.profile_prefix):
        profile = await InstagramScraper(cfg).download(url, proxy=cfg.grabber_proxy or None)
        logger.info("done: %d timeline files, %d igtv files", len(profile.timeline_files), len(profile.igtv_files))
        return 0
    if url.startswith(RARBG.search_prefix):
        result = await RarbgScraper(cfg).download(url)
        logger.info("done: %d torrents", len(result.torrents))
        return 0
    raise UnsupportedTargetError(f"not supported: {url}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = _settings_from_args(args)
    setup_logging(args.log_level, log_dir=cfg.grabber_data_dir / "logs" if args.log_file else None)
    logger.info("data dir: %s", cfg.grabber_data_dir)

    if args.target == "set":
        return run_set(cfg, args.args)
    if args.target == "clear-cookies":
        return run_clear_cookies(cfg, args.args)

    if cfg.grabber_proxy:
        logger.info("using proxy for download: %s", cfg.grabber_proxy)
    try:
        return asyncio.run(run_url(cfg, args.target))
    except UnsupportedTargetError as exc:
        logger.error("%s", exc)
        return 2
    except KeyboardInterrupt:
        logger.warning("interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
