from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional
from urllib.parse import parse_qs, urlparse

from pydantic import ValidationError

from grabber.models import TimelineNode

logger = logging.getLogger("grabber.classifier")


@dataclass
class EdgePayload:
    query_id: str
    edge_name: str
    nodes: List[TimelineNode] = field(default_factory=list)


def query_identifier(url: str, params: Iterable[str]) -> Optional[str]:
    """Return the value of the first recognized query-identifier parameter in `url`."""
    try:
        query = parse_qs(urlparse(url).query, keep_blank_values=False)
    except ValueError:
        return None
    for name in params:
        values = query.get(name)
        if values and values[0]:
            return values[0]
    return None


def find_edges(payload: Any, edge_names: Iterable[str]) -> tuple[str, List[Any]]:
    """First non-empty `data.user.<edge>.edges` list, in `edge_names` order."""
    if not isinstance(payload, dict):
        return "", []
    data = payload.get("data")
    user = data.get("user") if isinstance(data, dict) else None
    if not isinstance(user, dict):
        return "", []
    for name in edge_names:
        timeline = user.get(name)
        if not isinstance(timeline, dict):
            continue
        edges = timeline.get("edges")
        if isinstance(edges, list) and edges:
            return name, edges
    return "", []


def parse_edge_nodes(edges: List[Any], *, source: str = "") -> List[TimelineNode]:
    nodes: List[TimelineNode] = []
    for index, edge in enumerate(edges):
        raw = edge.get("node") if isinstance(edge, dict) else None
        if not isinstance(raw, dict):
            logger.warning("edge %d without node in %s", index, source)
            continue
        try:
            nodes.append(TimelineNode.model_validate(raw))
        except ValidationError as exc:
            logger.warning("malformed node %d in %s: %s", index, source, exc.errors()[:1])
    return nodes


def classify_payload(url: str, payload: Any, *, query_params: Iterable[str], edge_names: Iterable[str]) -> Optional[EdgePayload]:
    query_id = query_identifier(url, query_params)
    if not query_id:
        return None
    edge_name, edges = find_edges(payload, edge_names)
    if not edges:
        return None
    return EdgePayload(query_id=query_id, edge_name=edge_name, nodes=parse_edge_nodes(edges, source=url))


async def classify_response(response: Any, *, query_params: Iterable[str], edge_names: Iterable[str]) -> Optional[EdgePayload]:
    """Typed edge payload for a scrape-relevant response, otherwise None. Never raises."""
    url = str(getattr(response, "url", "") or "")
    query_params = tuple(query_params)
    query_id = query_identifier(url, query_params)
    if not query_id:
        return None
    logger.debug("query response %s", query_id)
    try:
        payload = await response.json()
    except Exception as exc:  # noqa: BLE001
        logger.warning("unreadable query response %s: %s", url[:160], exc)
        return None
    try:
        return classify_payload(url, payload, query_params=query_params, edge_names=edge_names)
    except Exception as exc:  # noqa: BLE001
        logger.warning("unexpected query response shape %s: %s", url[:160], exc)
        return None


def classify_request(request: Any) -> Optional[str]:
    """Direct video asset url for a media request, otherwise None."""
    try:
        if request.resource_type != "media":
            return None
        url = str(request.url or "")
    except Exception as exc:  # noqa: BLE001
        logger.debug("unreadable request: %s", exc)
        return None
    if url.find(".mp4") > 0:
        return url
    return None
