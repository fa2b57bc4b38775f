"""
Depth-bounded projection of the containment tree.

Each node is the item's own record enriched with its tags, incident
connectors and connection statistics, plus its children (same shape).
Below the requested depth, would-be children are returned as leaf stubs
instead of being dropped, so every node has the same keys.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from miro_mcp.client import ItemNotFoundError
from miro_mcp.graph import RelationshipGraph, build_graph, fetch_tag_memberships, invert_memberships
from miro_mcp.models import BoardSource, Connector, Item
from miro_mcp.pagination import DEFAULT_PAGE_SIZE, fetch_items
from miro_mcp.summary import summarize
from miro_mcp.validation import ValidationError, validate_max_depth

logger = logging.getLogger("miro-mcp.hierarchy")


@dataclass
class HierarchyOptions:
    max_depth: int = 5
    include_connectors: bool = True
    include_tags: bool = True
    include_content_summaries: bool = True


@dataclass
class ConnectionInfo:
    is_connected_to_any: bool = False
    connected_item_count: int = 0
    sends_connections_to_count: int = 0
    receives_connections_from_count: int = 0
    has_bidirectional_connections: bool = False
    bidirectional_connection_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_connected_to_any": self.is_connected_to_any,
            "connected_item_count": self.connected_item_count,
            "sends_connections_to_count": self.sends_connections_to_count,
            "receives_connections_from_count": self.receives_connections_from_count,
            "has_bidirectional_connections": self.has_bidirectional_connections,
            "bidirectional_connection_count": self.bidirectional_connection_count,
        }


def _empty_connected() -> dict[str, list[str]]:
    return {"to": [], "from": [], "bidirectional": [], "all": []}


@dataclass
class HierarchyNode:
    item: Item
    tags: list[dict[str, Any]] = field(default_factory=list)
    connectors: list[Connector] = field(default_factory=list)
    connected_items: dict[str, list[str]] = field(default_factory=_empty_connected)
    connection_info: ConnectionInfo = field(default_factory=ConnectionInfo)
    children: list[HierarchyNode] = field(default_factory=list)
    content_summary: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        extra: dict[str, Any] = {
            "tags": list(self.tags),
            "connectors": [c.to_dict() for c in self.connectors],
            "connected_items": {k: list(v) for k, v in self.connected_items.items()},
            "connection_info": self.connection_info.to_dict(),
            "children": [c.to_dict() for c in self.children],
        }
        if self.content_summary is not None:
            extra["content_summary"] = self.content_summary
        return self.item.to_dict(**extra)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

def _connected_items(item_id: str, graph: RelationshipGraph) -> dict[str, list[str]]:
    detail = graph.connection_detail(item_id)
    everything: list[str] = []
    for other in detail.to + detail.from_:
        if other not in everything:
            everything.append(other)
    return {
        "to": list(detail.to),
        "from": list(detail.from_),
        "bidirectional": list(detail.bidirectional),
        "all": everything,
    }


def _node(
    item: Item,
    graph: RelationshipGraph,
    options: HierarchyOptions,
    tags: dict[str, dict[str, Any]],
    depth: int,
) -> HierarchyNode:
    summary = summarize(item) if options.include_content_summaries else None
    if depth > options.max_depth:
        return HierarchyNode(item=item, content_summary=summary)

    node = HierarchyNode(item=item, content_summary=summary)
    if options.include_tags:
        node.tags = [tags[t] for t in graph.item_tags.get(item.id, []) if t in tags]
    if options.include_connectors:
        node.connectors = graph.connectors_for(item.id)
        node.connected_items = _connected_items(item.id, graph)
        c = node.connected_items
        node.connection_info = ConnectionInfo(
            is_connected_to_any=bool(c["all"]),
            connected_item_count=len(c["all"]),
            sends_connections_to_count=len(c["to"]),
            receives_connections_from_count=len(c["from"]),
            has_bidirectional_connections=bool(c["bidirectional"]),
            bidirectional_connection_count=len(c["bidirectional"]),
        )
    node.children = [
        _node(child, graph, options, tags, depth + 1)
        for child in graph.children_of(item.id)
    ]
    return node


def project(
    roots: Sequence[Item],
    graph: RelationshipGraph,
    options: Optional[HierarchyOptions] = None,
    tags: Optional[dict[str, dict[str, Any]]] = None,
) -> list[HierarchyNode]:
    """Build one tree per root.

    Roots sit at depth 0 and nodes down to ``max_depth`` are fully
    populated. Nodes at ``max_depth + 1`` are stubs: relationship fields
    zeroed and no children.
    """
    options = options or HierarchyOptions()
    return [_node(root, graph, options, tags or {}, 0) for root in roots]


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class HierarchyBuilder:
    """Fetches what a hierarchy needs from a board and projects it."""

    def __init__(
        self,
        source: BoardSource,
        *,
        max_workers: int = 8,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.source = source
        self.max_workers = max_workers
        self.page_size = page_size

    def build(
        self,
        item_id: Optional[str] = None,
        item_type: Optional[str] = None,
        options: Optional[HierarchyOptions] = None,
    ) -> dict[str, Any]:
        """Project the tree under one item (by id) or under every item of a type.

        Raises:
            ValidationError: Neither selector given, or a bad ``max_depth``.
            ItemNotFoundError: ``item_id`` is not on the board.
        """
        if not item_id and not item_type:
            raise ValidationError("Either 'item_id' or 'type' must be provided.")
        options = options or HierarchyOptions()
        validate_max_depth(options.max_depth)

        all_items = fetch_items(self.source, page_size=self.page_size).items

        if item_id:
            found = next((it for it in all_items if it.id == item_id), None)
            if found is None:
                raise ItemNotFoundError(item_id)
            roots = [found.merged(self.source.get_item_detail(found.id, found.type))]
        else:
            roots = self._hydrate([it for it in all_items if it.type == item_type])

        tags: dict[str, dict[str, Any]] = {}
        item_tags: dict[str, list[str]] = {}
        if options.include_tags:
            tags, item_tags = self._tags()

        graph = build_graph(all_items, item_tags)
        nodes = project(roots, graph, options, tags)
        logger.debug("Hierarchy built with %d root item(s)", len(roots))
        return {
            "items": [n.to_dict() for n in nodes],
            "metadata": {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "rootItemCount": len(roots),
                "totalItemCount": len(all_items),
                "maxDepth": options.max_depth,
                "includeConnectors": options.include_connectors,
                "includeTags": options.include_tags,
                "includeContentSummaries": options.include_content_summaries,
            },
        }

    def _hydrate(self, items: list[Item]) -> list[Item]:
        def one(item: Item) -> Item:
            try:
                return item.merged(self.source.get_item_detail(item.id, item.type))
            except Exception as exc:
                logger.warning("Could not fetch details for item %s: %s", item.id, exc)
                return item

        if not items:
            return []
        with ThreadPoolExecutor(max_workers=max(1, self.max_workers)) as pool:
            return list(pool.map(one, items))

    def _tags(self) -> tuple[dict[str, dict[str, Any]], dict[str, list[str]]]:
        try:
            records = self.source.list_tags()
        except Exception as exc:
            logger.warning("Could not fetch tags: %s", exc)
            return {}, {}
        tags = {str(t["id"]): t for t in records if isinstance(t, dict) and t.get("id")}
        memberships = fetch_tag_memberships(self.source, records, self.max_workers)
        return tags, invert_memberships(memberships)
