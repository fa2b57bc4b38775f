"""Tests for draining the paginated item listing."""

import pytest

from conftest import FakeBoard, sticky
from miro_mcp.client import MiroApiError
from miro_mcp.models import ItemPage
from miro_mcp.pagination import fetch_items


def _board(n: int, page_size: int = 50) -> FakeBoard:
    return FakeBoard([sticky(str(i)) for i in range(n)], page_size=page_size)


def test_drains_all_pages() -> None:
    board = _board(120)
    result = fetch_items(board)
    assert len(result.items) == 120
    assert result.pages == 3
    assert result.limit_reached is False


def test_cap_truncates_mid_page() -> None:
    board = _board(150)
    result = fetch_items(board, max_items=25)
    assert [it.id for it in result.items] == [str(i) for i in range(25)]
    assert result.limit_reached is True
    assert result.pages == 1


def test_cap_on_page_boundary_stops_fetching() -> None:
    board = _board(150)
    result = fetch_items(board, max_items=50)
    assert len(result.items) == 50
    assert result.limit_reached is True
    assert result.pages == 1


def test_zero_means_unlimited() -> None:
    result = fetch_items(_board(75), max_items=0)
    assert len(result.items) == 75
    assert result.limit_reached is False


def test_cap_larger_than_board() -> None:
    result = fetch_items(_board(10), max_items=500)
    assert len(result.items) == 10
    assert result.limit_reached is False


def test_predicate_applies_before_cap() -> None:
    board = _board(100)
    result = fetch_items(board, max_items=5, predicate=lambda it: int(it.id) % 2 == 1)
    assert [it.id for it in result.items] == ["1", "3", "5", "7", "9"]


def test_multiple_types_share_one_cap() -> None:
    board = _board(30)
    board.records += [{"id": f"t{i}", "type": "text"} for i in range(30)]
    result = fetch_items(board, item_types=["sticky_note", "text"], max_items=40)
    assert len(result.items) == 40
    assert sum(1 for it in result.items if it.type == "text") == 10
    assert ("list_items", ("text", None)) in board.calls


def test_repeated_cursor_terminates() -> None:
    class LoopingBoard(FakeBoard):
        def list_items(self, item_type=None, cursor=None, limit=50) -> ItemPage:
            self.calls.append(("list_items", cursor))
            return ItemPage(records=[sticky(f"x{len(self.calls)}")], cursor="same")

    board = LoopingBoard()
    result = fetch_items(board)
    assert result.pages == 2
    assert len(result.items) == 2


def test_listing_errors_propagate() -> None:
    board = _board(5)
    board.failing.add("list_items")
    with pytest.raises(MiroApiError):
        fetch_items(board)
