"""Tests for connection analysis and the structural summary."""

from conftest import connector, sticky
from miro_mcp.analysis import analyze_connections, structural_summary
from miro_mcp.graph import build_graph
from miro_mcp.models import items_from_records


def _items(*records: dict):
    return items_from_records(list(records))


def test_clean_board_has_no_issues() -> None:
    items = _items(sticky("a"), sticky("b"), connector("c1", "a", "b"))
    result = analyze_connections(build_graph(items))
    assert result.to_dict() == {
        "duplicateConnections": [],
        "orphanedConnectors": [],
        "potentialIssues": [],
        "itemsWithManyConnections": [],
    }


def test_duplicates_are_direction_insensitive() -> None:
    items = _items(sticky("b"), sticky("a"), connector("c1", "b", "a"), connector("c2", "a", "b"))
    result = analyze_connections(build_graph(items))
    assert [d.to_dict() for d in result.duplicate_connections] == [
        {"items": ["a", "b"], "connectorIds": ["c1", "c2"]},
    ]
    assert result.potential_issues == [
        "Found 1 cases of duplicate connections between the same items.",
    ]


def test_orphans() -> None:
    items = _items(sticky("a"), connector("c1", "a", "gone"), connector("c2", None, "a"))
    result = analyze_connections(build_graph(items))
    assert result.orphaned_connectors == ["c1", "c2"]
    assert "Found 2 connectors referencing non-existent items." in result.potential_issues


def test_hot_spots_sorted_by_count() -> None:
    records = [sticky("hub"), sticky("mid")] + [sticky(f"n{i}") for i in range(12)]
    records += [connector(f"h{i}", "hub", f"n{i}") for i in range(12)]
    records += [connector(f"m{i}", f"n{i}", "mid") for i in range(3)]
    result = analyze_connections(build_graph(_items(*records)), threshold=3)
    assert [(h.item_id, h.connection_count) for h in result.hot_spots] == [("hub", 12), ("mid", 3)]
    assert result.potential_issues[-1] == "Found 2 items with 3+ connections (maximum: 12 connections)."


def test_hot_spot_counts_orphans_touching_item() -> None:
    records = [sticky("a")] + [connector(f"c{i}", "a", f"gone{i}") for i in range(10)]
    result = analyze_connections(build_graph(_items(*records)))
    assert result.hot_spots[0].to_dict()["connectionCount"] == 10


def test_analysis_does_not_mutate_graph() -> None:
    graph = build_graph(_items(sticky("a"), sticky("b"), connector("c1", "a", "b")))
    before = graph.connectivity_dict()
    analyze_connections(graph)
    assert graph.connectivity_dict() == before


class TestStructuralSummary:
    def test_counts(self) -> None:
        items = _items(
            sticky("a"), sticky("b"), sticky("c"),
            connector("c1", "a", "b"), connector("c2", "b", "a"),
        )
        graph = build_graph(items)
        out = structural_summary(items, graph)
        assert out["totalItems"] == 5
        assert out["itemsByType"] == {"sticky_note": 3, "connector": 2}
        assert out["connectedItemsCount"] == 2
        assert out["isolatedItemsCount"] == 3
        assert out["connectionStats"] == {
            "totalConnections": 2,
            "bidirectionalPairs": 1,
            "maxConnections": 1,
            "averageConnections": 1.0,
        }

    def test_analysis_counts_included(self) -> None:
        items = _items(sticky("a"), connector("c1", "a", "gone"))
        graph = build_graph(items)
        out = structural_summary(items, graph, analyze_connections(graph))
        assert out["connectionStats"]["orphanedConnectors"] == 1
        assert out["connectionStats"]["duplicateConnections"] == 0
        assert out["connectionStats"]["averageConnections"] == 0

    def test_empty(self) -> None:
        out = structural_summary([], build_graph([]))
        assert out["totalItems"] == 0
        assert out["connectionStats"]["maxConnections"] == 0


def test_connector_listed_twice_counts_once() -> None:
    items = _items(sticky("a"), sticky("b"), connector("c1", "a", "b"), connector("c1", "a", "b"))
    graph = build_graph(items)
    result = analyze_connections(graph)
    assert result.duplicate_connections == []
    assert result.potential_issues == []
    summary = structural_summary(items, graph, result)
    assert summary["connectionStats"]["totalConnections"] == 1
    assert summary["connectionStats"]["duplicateConnections"] == 0
