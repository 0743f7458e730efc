from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


AssetKind = Literal["image", "video"]


class CrawlTarget(BaseModel):
    url: str
    identity: str


class Dimensions(BaseModel):
    model_config = ConfigDict(extra="allow")

    height: Optional[int] = None
    width: Optional[int] = None


class DisplayResource(BaseModel):
    model_config = ConfigDict(extra="allow")

    src: Optional[str] = None
    config_width: Optional[int] = None
    config_height: Optional[int] = None


class PageInfo(BaseModel):
    has_next_page: bool = False
    end_cursor: Optional[str] = None


class TimelineEdge(BaseModel):
    node: "TimelineNode"


class EdgeList(BaseModel):
    model_config = ConfigDict(extra="allow")

    page_info: Optional[PageInfo] = None
    count: Optional[int] = None
    edges: List[TimelineEdge] = Field(default_factory=list)


class TimelineNode(BaseModel):
    # Unknown payload fields are kept so the archive json mirrors the site data.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    typename: str = Field(default="", alias="__typename")
    id: str = ""
    shortcode: str = ""
    dimensions: Optional[Dimensions] = None
    display_url: Optional[str] = None
    display_resources: Optional[List[DisplayResource]] = None
    is_video: bool = False
    video_url: Optional[str] = None
    edge_sidecar_to_children: Optional[EdgeList] = None

    @property
    def children(self) -> List["TimelineNode"]:
        if self.edge_sidecar_to_children is None:
            return []
        return [edge.node for edge in self.edge_sidecar_to_children.edges]


TimelineEdge.model_rebuild()
EdgeList.model_rebuild()
TimelineNode.model_rebuild()


class ResolvedAsset(BaseModel):
    src: str
    width: Optional[int] = None
    height: Optional[int] = None
    kind: AssetKind = "image"


class InstagramProfile(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: str = ""
    profile_name: Optional[str] = None
    timeline: List[TimelineNode] = Field(default_factory=list)
    timeline_files: List[str] = Field(default_factory=list)
    igtv: List[TimelineNode] = Field(default_factory=list)
    igtv_files: List[str] = Field(default_factory=list)

    def add_timeline(self, nodes: List[TimelineNode], files: List[str]) -> None:
        self.timeline.extend(nodes)
        self.timeline_files.extend(files)

    def add_igtv(self, nodes: List[TimelineNode], files: List[str]) -> None:
        self.igtv.extend(nodes)
        self.igtv_files.extend(files)


class TorrentRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: str
    title: Optional[str] = None
    magnet_link: Optional[str] = None
    torrent_file: Optional[str] = None
    poster_file: Optional[str] = None

    @model_validator(mode="after")
    def _require_link(self) -> "TorrentRecord":
        if not self.magnet_link and not self.torrent_file:
            raise ValueError(f"torrent without magnet link or torrent file: {self.url}")
        return self


class RarbgSearchResult(BaseModel):
    url: str
    torrents: List[TorrentRecord] = Field(default_factory=list)
