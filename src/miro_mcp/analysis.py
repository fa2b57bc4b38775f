"""
Structural anomaly detection over a relationship graph.

Read-only: nothing here touches the board, and the graph is never mutated.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from miro_mcp.graph import RelationshipGraph
from miro_mcp.models import Item

logger = logging.getLogger("miro-mcp.analysis")

HOT_SPOT_THRESHOLD = 10


@dataclass
class DuplicateConnection:
    """More than one connector joining the same (unordered) pair of items."""
    items: tuple[str, str]
    connector_ids: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"items": list(self.items), "connectorIds": list(self.connector_ids)}


@dataclass
class HotSpot:
    item_id: str
    connection_count: int
    connector_ids: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "connectionCount": self.connection_count,
            "connectorIds": list(self.connector_ids),
        }


@dataclass
class ConnectionAnalysis:
    duplicate_connections: list[DuplicateConnection] = field(default_factory=list)
    orphaned_connectors: list[str] = field(default_factory=list)
    hot_spots: list[HotSpot] = field(default_factory=list)
    potential_issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "duplicateConnections": [d.to_dict() for d in self.duplicate_connections],
            "orphanedConnectors": list(self.orphaned_connectors),
            "potentialIssues": list(self.potential_issues),
            "itemsWithManyConnections": [h.to_dict() for h in self.hot_spots],
        }


def analyze_connections(
    graph: RelationshipGraph, threshold: int = HOT_SPOT_THRESHOLD,
) -> ConnectionAnalysis:
    """Find duplicate edges, dangling connectors and heavily connected items.

    - A connector is orphaned when either endpoint id is missing or does not
      resolve to an item of the graph.
    - Duplicates are grouped by the sorted endpoint pair, so A->B and B->A
      count as the same connection.
    - Hot spots count every connector incident to an existing item, orphans
      included, and are sorted by that count, highest first.
    """
    pairs: dict[tuple[str, str], list[str]] = {}
    incident: dict[str, list[str]] = {}
    orphaned: list[str] = []

    for conn in graph.connectors:
        start, end = conn.start_id, conn.end_id
        if not (start and end):
            orphaned.append(conn.id)
            continue
        start_ok, end_ok = start in graph.items, end in graph.items
        if not (start_ok and end_ok):
            orphaned.append(conn.id)
        if start_ok:
            incident.setdefault(start, []).append(conn.id)
        if end_ok:
            incident.setdefault(end, []).append(conn.id)
        a, b = sorted((start, end))
        pairs.setdefault((a, b), []).append(conn.id)

    duplicates = [
        DuplicateConnection(items=pair, connector_ids=ids)
        for pair, ids in pairs.items() if len(ids) > 1
    ]
    hot_spots = sorted(
        (HotSpot(item_id, len(ids), ids) for item_id, ids in incident.items()
         if len(ids) >= threshold),
        key=lambda h: h.connection_count,
        reverse=True,
    )

    issues: list[str] = []
    if duplicates:
        issues.append(
            f"Found {len(duplicates)} cases of duplicate connections between the same items."
        )
    if orphaned:
        issues.append(f"Found {len(orphaned)} connectors referencing non-existent items.")
    if hot_spots:
        issues.append(
            f"Found {len(hot_spots)} items with {threshold}+ connections "
            f"(maximum: {hot_spots[0].connection_count} connections)."
        )

    if issues:
        logger.debug("Connection analysis: %s", " ".join(issues))
    return ConnectionAnalysis(duplicates, orphaned, hot_spots, issues)


def structural_summary(
    items: Sequence[Item],
    graph: RelationshipGraph,
    analysis: Optional[ConnectionAnalysis] = None,
) -> dict[str, Any]:
    """Counts by type, connected vs isolated items and connection statistics."""
    by_type = Counter(item.type for item in items)
    connected = [k for k, v in graph.adjacency.items() if v]
    fan_out = [len(v) for v in graph.adjacency.values()]
    bidirectional = sum(len(d.bidirectional) for d in graph.details.values()) // 2

    stats: dict[str, Any] = {
        "totalConnections": len(graph.connectors),
        "bidirectionalPairs": bidirectional,
        "maxConnections": max(fan_out, default=0),
        "averageConnections": round(sum(fan_out) / len(fan_out), 2) if fan_out else 0,
    }
    if analysis is not None:
        stats["duplicateConnections"] = len(analysis.duplicate_connections)
        stats["orphanedConnectors"] = len(analysis.orphaned_connectors)

    return {
        "totalItems": len(items),
        "itemsByType": dict(by_type),
        "connectedItemsCount": len(connected),
        "isolatedItemsCount": len(items) - len(connected),
        "connectionStats": stats,
    }
