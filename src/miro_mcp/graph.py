"""
Relationship graph over a flat item listing.

The board API returns items as a flat list where each item only knows the id
of its parent, connectors only know the ids of their endpoints, and tag and
group memberships live behind separate endpoints. This module rebuilds the
containment tree, the connector graph and the membership maps from that.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

from miro_mcp.models import BoardSource, Connector, Item

logger = logging.getLogger("miro-mcp.graph")


def _add_unique(bucket: list[str], value: str) -> None:
    if value not in bucket:
        bucket.append(value)


@dataclass
class ConnectionDetail:
    """Directed view of one item's connections."""
    to: list[str] = field(default_factory=list)
    from_: list[str] = field(default_factory=list)
    bidirectional: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "to": list(self.to),
            "from": list(self.from_),
            "bidirectional": list(self.bidirectional),
        }


@dataclass
class RelationshipGraph:
    """Containment, connectivity and tag membership of one item collection."""
    items: dict[str, Item] = field(default_factory=dict)
    children: dict[str, list[str]] = field(default_factory=dict)
    connectors: list[Connector] = field(default_factory=list)
    adjacency: dict[str, list[str]] = field(default_factory=dict)
    details: dict[str, ConnectionDetail] = field(default_factory=dict)
    item_tags: dict[str, list[str]] = field(default_factory=dict)

    def children_of(self, item_id: str) -> list[Item]:
        return [self.items[c] for c in self.children.get(item_id, []) if c in self.items]

    def connectors_for(self, item_id: str) -> list[Connector]:
        """Connectors with *item_id* at either end, orphans included."""
        return [c for c in self.connectors if item_id in (c.start_id, c.end_id)]

    def connection_detail(self, item_id: str) -> ConnectionDetail:
        return self.details.get(item_id) or ConnectionDetail()

    def connect(self, source: str, target: str) -> None:
        """Record a directed edge. Inserting the same edge twice is a no-op."""
        _add_unique(self.adjacency.setdefault(source, []), target)
        _add_unique(self.adjacency.setdefault(target, []), source)
        _add_unique(self.details.setdefault(source, ConnectionDetail()).to, target)
        _add_unique(self.details.setdefault(target, ConnectionDetail()).from_, source)
        if source in self.details[target].to:
            _add_unique(self.details[source].bidirectional, target)
            _add_unique(self.details[target].bidirectional, source)

    def connectivity_dict(self) -> dict[str, Any]:
        return {
            "map": {k: list(v) for k, v in self.adjacency.items()},
            "details": {k: v.to_dict() for k, v in self.details.items()},
        }


def build_graph(
    items: Sequence[Item], item_tags: Optional[dict[str, list[str]]] = None,
) -> RelationshipGraph:
    """Derive the relationship graph of *items*.

    Children are only linked to parents present in *items*; connectors with
    an endpoint that does not resolve stay in ``connectors`` but contribute
    no edge.
    """
    graph = RelationshipGraph(item_tags=dict(item_tags or {}))
    for item in items:
        graph.items[item.id] = item

    # A record listed twice keeps one entry per id.
    for item in graph.items.values():
        if item.parent_id and item.parent_id in graph.items:
            _add_unique(graph.children.setdefault(item.parent_id, []), item.id)
        if isinstance(item, Connector):
            graph.connectors.append(item)

    for conn in graph.connectors:
        start, end = conn.start_id, conn.end_id
        if start and end and start in graph.items and end in graph.items:
            graph.connect(start, end)

    logger.debug(
        "Graph built: %d items, %d connectors, %d connected items",
        len(graph.items), len(graph.connectors), len(graph.adjacency),
    )
    return graph


# ---------------------------------------------------------------------------
# Membership lookups
# ---------------------------------------------------------------------------

def _fetch_memberships(
    entities: Iterable[dict[str, Any]],
    lookup: Callable[[str], list[str]],
    label: str,
    max_workers: int,
) -> dict[str, list[str]]:
    ids = [str(e["id"]) for e in entities if isinstance(e, dict) and e.get("id")]

    def one(entity_id: str) -> list[str]:
        try:
            return [str(i) for i in lookup(entity_id)]
        except Exception as exc:
            logger.warning("Could not fetch items of %s %s: %s", label, entity_id, exc)
            return []

    if not ids:
        return {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        results = list(pool.map(one, ids))
    return dict(zip(ids, results))


def fetch_tag_memberships(
    source: BoardSource, tags: Iterable[dict[str, Any]], max_workers: int = 8,
) -> dict[str, list[str]]:
    """Tag id -> ids of the items carrying it. Failed lookups yield ``[]``."""
    return _fetch_memberships(tags, source.get_tag_items, "tag", max_workers)


def fetch_group_memberships(
    source: BoardSource, groups: Iterable[dict[str, Any]], max_workers: int = 8,
) -> dict[str, list[str]]:
    """Group id -> ids of its member items. Failed lookups yield ``[]``."""
    return _fetch_memberships(groups, source.get_group_items, "group", max_workers)


def invert_memberships(memberships: dict[str, list[str]]) -> dict[str, list[str]]:
    """Turn ``entity -> items`` into ``item -> entities``."""
    inverted: dict[str, list[str]] = {}
    for entity_id, item_ids in memberships.items():
        for item_id in item_ids:
            _add_unique(inverted.setdefault(item_id, []), entity_id)
    return inverted
