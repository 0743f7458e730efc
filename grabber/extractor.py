from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from grabber.models import DisplayResource, ResolvedAsset, TimelineNode

logger = logging.getLogger("grabber.extractor")


@dataclass
class NodeExtraction:
    node: TimelineNode
    best_image: Optional[ResolvedAsset] = None
    video: Optional[ResolvedAsset] = None
    children: List[TimelineNode] = field(default_factory=list)

    @property
    def files(self) -> List[str]:
        return [asset.src for asset in (self.best_image, self.video) if asset is not None]


def resource_area(resource: DisplayResource) -> int:
    return resource.config_width * resource.config_height


def best_image(node: TimelineNode) -> Optional[ResolvedAsset]:
    """Largest display resource by area; first seen wins on equal area.

    Falls back to the node's display url and declared dimensions when there are
    no display resources.
    """
    best: Optional[DisplayResource] = None
    for resource in node.display_resources or []:
        if best is None or resource_area(resource) > resource_area(best):
            best = resource
    if best is not None:
        if not best.src:
            return None
        return ResolvedAsset(src=best.src, width=best.config_width, height=best.config_height)
    if not node.display_url:
        return None
    dimensions = node.dimensions
    return ResolvedAsset(
        src=node.display_url,
        width=dimensions.width if dimensions else None,
        height=dimensions.height if dimensions else None,
    )


def extract(node: TimelineNode) -> NodeExtraction:
    image: Optional[ResolvedAsset] = None
    try:
        image = best_image(node)
    except Exception as exc:  # noqa: BLE001
        logger.error("best image failed for %s: %s", node.shortcode or node.id, exc)
    video: Optional[ResolvedAsset] = None
    if node.is_video and node.video_url:
        video = ResolvedAsset(src=node.video_url, kind="video")
    return NodeExtraction(node=node, best_image=image, video=video, children=node.children)


def flatten(node: TimelineNode, depth: int = 0, max_depth: int = 8) -> Tuple[List[TimelineNode], List[str]]:
    """Pre-order (nodes, file urls) for a node and its carousel children."""
    extraction = extract(node)
    logger.debug("parse node: %s is %s", node.shortcode, node.typename)
    nodes: List[TimelineNode] = [node]
    files: List[str] = extraction.files
    if depth >= max_depth:
        if extraction.children:
            logger.warning("children of %s skipped beyond depth %d", node.shortcode, max_depth)
        return nodes, files
    for child in extraction.children:
        child_nodes, child_files = flatten(child, depth + 1, max_depth)
        nodes.extend(child_nodes)
        files.extend(child_files)
    return nodes, files


def flatten_all(nodes: List[TimelineNode]) -> Tuple[List[TimelineNode], List[str]]:
    flat_nodes: List[TimelineNode] = []
    flat_files: List[str] = []
    for node in nodes:
        child_nodes, child_files = flatten(node)
        flat_nodes.extend(child_nodes)
        flat_files.extend(child_files)
    return flat_nodes, flat_files
