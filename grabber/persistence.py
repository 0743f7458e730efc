from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

logger = logging.getLogger("grabber.persistence")


def task_id(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d%H%M%S")


def magnet_key(link: str) -> str:
    """Dedup key for a magnet link: trailing tracker parameters vary for the same torrent."""
    return link.split("&")[0]


def merge_links(existing: Iterable[str], new: Iterable[str]) -> Dict[str, str]:
    merged: Dict[str, str] = {}
    for link in list(existing) + list(new):
        link = link.strip()
        if not link:
            continue
        merged[magnet_key(link)] = link
    return merged


def read_lines(path: Path) -> List[str]:
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").split("\n")


def write_lines(path: Path, lines: Iterable[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def write_json(path: Path, model: BaseModel) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = model.model_dump(mode="json", by_alias=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return path


def merge_magnet_file(path: Path, links: Iterable[str]) -> Dict[str, str]:
    """Merge `links` into the magnet file at `path`; new links shadow saved ones with the same key."""
    merged = merge_links(read_lines(path), links)
    write_lines(path, merged.values())
    logger.info("%d magnets saved to %s", len(merged), path)
    return merged
