"""Shared fixtures: an in-memory board standing in for the Miro API."""

from __future__ import annotations

import copy
import itertools
from typing import Any, Optional

import pytest

from miro_mcp import server
from miro_mcp.client import ItemNotFoundError, MiroApiError
from miro_mcp.config import Settings
from miro_mcp.history import ModificationHistory
from miro_mcp.models import ItemPage


class FakeBoard:
    """Implements BoardSource over plain dicts and records every call."""

    def __init__(self, records: Optional[list[dict[str, Any]]] = None, page_size: int = 50) -> None:
        self.board = {"id": "board-1", "name": "Test board"}
        self.records: list[dict[str, Any]] = list(records or [])
        self.details: dict[str, dict[str, Any]] = {}
        self.tags: list[dict[str, Any]] = []
        self.tag_items: dict[str, list[str]] = {}
        self.groups: list[dict[str, Any]] = []
        self.group_items: dict[str, list[str]] = {}
        self.comments: list[dict[str, Any]] = []
        self.failing: set[str] = set()
        self.page_size = page_size
        self.calls: list[tuple[str, Any]] = []
        self.created: list[list[dict[str, Any]]] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.deleted: list[str] = []
        self._ids = itertools.count(1000)

    def add(self, record: dict[str, Any]) -> dict[str, Any]:
        self.records.append(record)
        return record

    def _fail(self, key: str) -> None:
        if key in self.failing:
            raise MiroApiError(500, f"boom: {key}")

    # -- BoardSource ----------------------------------------------------

    def get_board(self) -> dict[str, Any]:
        self.calls.append(("get_board", None))
        return dict(self.board)

    def list_items(self, item_type=None, cursor=None, limit=50) -> ItemPage:
        self.calls.append(("list_items", (item_type, cursor)))
        self._fail("list_items")
        pool = [r for r in self.records if item_type is None or r.get("type") == item_type]
        start = int(cursor) if cursor else 0
        size = min(limit, self.page_size)
        page = pool[start:start + size]
        nxt = start + size
        return ItemPage(records=copy.deepcopy(page), cursor=str(nxt) if nxt < len(pool) else None)

    def _find(self, item_id: str) -> dict[str, Any]:
        for r in self.records:
            if r.get("id") == item_id:
                return r
        raise ItemNotFoundError(item_id)

    def get_item(self, item_id: str) -> dict[str, Any]:
        self.calls.append(("get_item", item_id))
        return copy.deepcopy(self._find(item_id))

    def get_item_detail(self, item_id: str, item_type: str) -> dict[str, Any]:
        self.calls.append(("get_item_detail", item_id))
        self._fail(f"detail:{item_id}")
        base = copy.deepcopy(self._find(item_id))
        base.update(copy.deepcopy(self.details.get(item_id, {})))
        return base

    def list_tags(self) -> list[dict[str, Any]]:
        self.calls.append(("list_tags", None))
        self._fail("list_tags")
        return copy.deepcopy(self.tags)

    def get_tag_items(self, tag_id: str) -> list[str]:
        self.calls.append(("get_tag_items", tag_id))
        self._fail(f"tag:{tag_id}")
        return list(self.tag_items.get(tag_id, []))

    def list_groups(self) -> list[dict[str, Any]]:
        self.calls.append(("list_groups", None))
        self._fail("list_groups")
        return copy.deepcopy(self.groups)

    def get_group_items(self, group_id: str) -> list[str]:
        self.calls.append(("get_group_items", group_id))
        self._fail(f"group:{group_id}")
        return list(self.group_items.get(group_id, []))

    def list_comments(self) -> list[dict[str, Any]]:
        self.calls.append(("list_comments", None))
        self._fail("list_comments")
        return copy.deepcopy(self.comments)

    def create_items(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self.calls.append(("create_items", len(items)))
        self.created.append(copy.deepcopy(items))
        out = []
        for raw in items:
            record = copy.deepcopy(raw)
            record["id"] = str(next(self._ids))
            self.records.append(record)
            out.append(copy.deepcopy(record))
        return out

    def update_item(self, item_id: str, body: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("update_item", item_id))
        record = self._find(item_id)
        self.updates.append((item_id, copy.deepcopy(body)))
        for key, value in body.items():
            if isinstance(value, dict) and isinstance(record.get(key), dict):
                record[key] = {**record[key], **value}
            else:
                record[key] = copy.deepcopy(value)
        return copy.deepcopy(record)

    def delete_item(self, item_id: str) -> None:
        self.calls.append(("delete_item", item_id))
        record = self._find(item_id)
        self.records.remove(record)
        self.deleted.append(item_id)

    # -- helpers --------------------------------------------------------

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------

def frame(item_id: str, width: float = 800, height: float = 600,
          x: float = 0, y: float = 0, title: str = "Frame") -> dict[str, Any]:
    return {
        "id": item_id, "type": "frame",
        "position": {"x": x, "y": y, "origin": "center"},
        "geometry": {"width": width, "height": height},
        "data": {"title": title},
    }


def sticky(item_id: str, content: str = "note", parent: Optional[str] = None) -> dict[str, Any]:
    rec: dict[str, Any] = {
        "id": item_id, "type": "sticky_note",
        "position": {"x": 10, "y": 10, "origin": "center"},
        "data": {"content": content},
    }
    if parent:
        rec["parent"] = {"id": parent}
    return rec


def shape(item_id: str, content: str = "", parent: Optional[str] = None) -> dict[str, Any]:
    rec: dict[str, Any] = {
        "id": item_id, "type": "shape",
        "position": {"x": 0, "y": 0, "origin": "center"},
        "geometry": {"width": 100, "height": 50},
        "data": {"content": content, "shape": "rectangle"},
    }
    if parent:
        rec["parent"] = {"id": parent}
    return rec


def connector(item_id: str, start: Optional[str], end: Optional[str]) -> dict[str, Any]:
    rec: dict[str, Any] = {"id": item_id, "type": "connector"}
    if start is not None:
        rec["startItem"] = {"id": start}
    if end is not None:
        rec["endItem"] = {"id": end}
    return rec


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_board() -> FakeBoard:
    return FakeBoard()


@pytest.fixture
def wired_board(monkeypatch: pytest.MonkeyPatch, fake_board: FakeBoard) -> FakeBoard:
    """Point the server's lazily created state at an in-memory board."""
    monkeypatch.setattr(server, "_settings", Settings(api_token="t", board_id="board-1"))
    monkeypatch.setattr(server, "_source", fake_board)
    monkeypatch.setattr(server, "_history", ModificationHistory())
    return fake_board
