from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from urllib.parse import unquote, urlparse

import httpx

logger = logging.getLogger("grabber.downloader")


@dataclass
class DownloadReport:
    downloaded: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


def filename_for(url: str) -> str:
    name = unquote(urlparse(url).path.rstrip("/").split("/")[-1])
    return name or "index"


def _proxy_url(proxy: Optional[str]) -> Optional[str]:
    proxy = str(proxy or "").strip()
    if not proxy:
        return None
    if "://" not in proxy:
        proxy = f"http://{proxy}"
    return proxy


async def download_all(
    output_dir: Path,
    tasks: Iterable[Dict[str, str]],
    *,
    proxy: Optional[str] = None,
    timeout_s: float = 60,
    client: Optional[httpx.AsyncClient] = None,
) -> DownloadReport:
    """Download every `{"url": ...}` task into `output_dir`, one at a time.

    Files already present are skipped; a failed url is logged and recorded, the
    rest still download.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    report = DownloadReport()
    own_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s),
            proxy=_proxy_url(proxy),
            follow_redirects=True,
        )
    try:
        for index, task in enumerate(tasks):
            url = str(task.get("url") or "").strip()
            if not url:
                continue
            target = output_dir / filename_for(url)
            if target.exists():
                report.skipped.append(target)
                continue
            try:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    tmp = target.with_name(target.name + ".part")
                    with tmp.open("wb") as fh:
                        async for chunk in response.aiter_bytes():
                            fh.write(chunk)
                    tmp.replace(target)
                report.downloaded.append(target)
                logger.info("downloaded [%d] %s", index, target.name)
            except (httpx.HTTPError, OSError) as exc:
                report.failed[url] = str(exc)[:240]
                logger.error("download failed [%d] %s: %s", index, url[:160], exc)
    finally:
        if own_client:
            await client.aclose()
    logger.info(
        "download finished in %s: %d new, %d skipped, %d failed",
        output_dir,
        len(report.downloaded),
        len(report.skipped),
        len(report.failed),
    )
    return report
