from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class InstagramSite:
    name: str = "instagram"
    host: str = "https://www.instagram.com"
    profile_prefix: str = "https://www.instagram.com/"
    tv_prefix: str = "https://www.instagram.com/tv/"
    channel_segment: str = "channel"
    query_id_params: Tuple[str, ...] = ("query_hash", "query_id")
    timeline_edges: Tuple[str, ...] = (
        "edge_web_feed_timeline",
        "edge_owner_to_timeline_media",
        "edge_felix_video_timeline",
    )
    igtv_edges: Tuple[str, ...] = ("edge_felix_video_timeline",)
    defense_markers: Tuple[str, ...] = ("/challenge/",)

    def tv_url(self, shortcode: str) -> str:
        return f"{self.tv_prefix}{shortcode}/"


@dataclass(frozen=True)
class RarbgSite:
    name: str = "rarbg"
    host: str = "https://rarbgprx.org"
    search_prefix: str = "https://rarbgprx.org/torrents.php"
    detail_prefix: str = "https://rarbgprx.org/torrent/"
    defense_markers: Tuple[str, ...] = ("https://rarbgprx.org/threat_defence.php",)
    result_row_selector: str = "table.lista2t > tbody > tr > td:nth-child(2) > a:nth-child(1)"
    next_page_selector: str = "#pager_links > a:last-child"
    torrent_file_selector: str = (
        "body > table:nth-child(6) > tbody > tr > td:nth-child(2) > div > table > tbody > "
        "tr:nth-child(2) > td > div > table > tbody > tr:nth-child(1) > td.lista > a:nth-child(2)"
    )
    magnet_link_selector: str = (
        "body > table:nth-child(6) > tbody > tr > td:nth-child(2) > div > table > tbody > "
        "tr:nth-child(2) > td > div > table > tbody > tr:nth-child(1) > td.lista > a:nth-child(3)"
    )
    poster_selector: str = (
        "body > table:nth-child(6) > tbody > tr > td:nth-child(2) > div > table > tbody > "
        "tr:nth-child(2) > td > div > table > tbody > tr:nth-child(4) > td.lista > img"
    )

    def with_domain(self, url_path: object) -> str | None:
        if not isinstance(url_path, str) or not url_path:
            return None
        if "https://" in url_path:
            return url_path
        return f"{self.host}{url_path}"


INSTAGRAM = InstagramSite()
RARBG = RarbgSite()

SITES = {
    INSTAGRAM.name: INSTAGRAM,
    RARBG.name: RARBG,
}
