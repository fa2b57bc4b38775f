"""
Board snapshot composition.

One call gathers board metadata, a (filtered, capped) item listing, detail
hydration, frames, groups, comments, tags, connectivity, connection analysis
and recent history into a single JSON-ready dict. Every section behind a
toggle costs no network call when the toggle is off.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from miro_mcp.analysis import analyze_connections, structural_summary
from miro_mcp.coordinates import ParentBounds
from miro_mcp.graph import (
    build_graph,
    fetch_group_memberships,
    fetch_tag_memberships,
    invert_memberships,
)
from miro_mcp.history import ModificationHistory
from miro_mcp.models import BoardSource, Item, ItemType, Position
from miro_mcp.pagination import DEFAULT_PAGE_SIZE, fetch_items
from miro_mcp.summary import summarize
from miro_mcp.validation import validate_item_types, validate_max_items

logger = logging.getLogger("miro-mcp.snapshot")

# Types whose detail record carries text the listing omits.
HYDRATED_TYPES = frozenset({
    ItemType.SHAPE.value,
    ItemType.TEXT.value,
    ItemType.STICKY_NOTE.value,
    ItemType.CARD.value,
    ItemType.APP_CARD.value,
})

HISTORY_LIMIT = 10


@dataclass
class SnapshotRequest:
    include_item_content: bool = True
    include_comments: bool = False
    include_tags: bool = True
    include_groups: bool = True
    include_history: bool = True
    include_content_summaries: bool = True
    include_connectivity: bool = False
    connection_analysis: bool = False
    max_items: int = 500
    item_types: list[str] = field(default_factory=list)
    frame_id: Optional[str] = None
    search_term: Optional[str] = None

    def validate(self) -> None:
        validate_max_items(self.max_items)
        if self.item_types:
            self.item_types = validate_item_types(self.item_types)
        if self.search_term is not None and not self.search_term.strip():
            self.search_term = None


def _matches_search(term: str) -> Callable[[Item], bool]:
    needle = term.lower()

    def match(item: Item) -> bool:
        if needle in item.id.lower() or needle in item.type.lower():
            return True
        text = summarize(item)
        return bool(text) and needle in text.lower()

    return match


def _comment(record: dict[str, Any]) -> dict[str, Any]:
    data = record.get("data") if isinstance(record.get("data"), dict) else {}
    return {
        "id": record.get("id"),
        "content": data.get("content"),
        "author": data.get("author"),
        "itemId": data.get("itemId"),
        "position": data.get("position"),
        "createdAt": data.get("createdAt"),
    }


def _inside(point: Any, center: Optional[Position], bounds: Optional[ParentBounds]) -> bool:
    if not isinstance(point, dict) or center is None or bounds is None:
        return False
    try:
        x, y = float(point["x"]), float(point["y"])
    except (KeyError, TypeError, ValueError):
        return False
    half_w, half_h = bounds.width / 2, bounds.height / 2
    return (center.x - half_w <= x <= center.x + half_w
            and center.y - half_h <= y <= center.y + half_h)


class SnapshotComposer:
    """Builds board snapshots from a :class:`BoardSource`."""

    def __init__(
        self,
        source: BoardSource,
        history: Optional[ModificationHistory] = None,
        *,
        max_workers: int = 8,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.source = source
        self.history = history
        self.max_workers = max_workers
        self.page_size = page_size

    def compose(self, request: Optional[SnapshotRequest] = None) -> dict[str, Any]:
        """Assemble the snapshot.

        Board metadata, the named frame and the item listing are required:
        their errors propagate. Every other sub-fetch failure is logged and
        the affected entity is kept with empty enrichment.
        """
        req = request or SnapshotRequest()
        req.validate()

        board = self.source.get_board()

        frame: Optional[Item] = None
        if req.frame_id:
            frame = Item.from_record(self.source.get_item_detail(req.frame_id, ItemType.FRAME.value))

        fetched = fetch_items(
            self.source,
            item_types=req.item_types or None,
            max_items=req.max_items,
            page_size=self.page_size,
            predicate=self._predicate(req),
        )
        items = fetched.items

        if req.include_item_content:
            wanted = HYDRATED_TYPES | set(req.item_types)
            items = self._hydrate(items, wanted)

        in_frame = {it.id for it in items if req.frame_id and it.parent_id == req.frame_id}

        frames = self._frames(items, frame)
        groups = self._groups(req, in_frame) if req.include_groups else []
        comments = self._comments(req, in_frame, frame) if req.include_comments else []
        tags, item_tags = self._tags(req, in_frame) if req.include_tags else ([], {})

        graph = build_graph(items, item_tags)
        analysis = analyze_connections(graph) if req.connection_analysis else None

        item_dicts = []
        for item in items:
            derived: dict[str, Any] = {}
            if req.include_content_summaries:
                text = summarize(item)
                if text:
                    derived["content_summary"] = text
            if item_tags.get(item.id):
                derived["tagIds"] = list(item_tags[item.id])
            item_dicts.append(item.to_dict(**derived))

        result: dict[str, Any] = {
            "board": board,
            "items": item_dicts,
            "frames": frames,
            "groups": groups,
            "tags": tags,
        }
        if req.include_comments:
            result["comments"] = comments
        if req.include_connectivity:
            result["connectors"] = [c.to_dict() for c in graph.connectors]
            result["connectivity"] = graph.connectivity_dict()
        if analysis is not None:
            result["connectionAnalysis"] = analysis.to_dict()
        result["summary"] = structural_summary(items, graph, analysis)
        if req.include_history:
            result["history"] = self._history()

        result["metadata"] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "itemCount": len(items),
            "frameCount": len(frames),
            "groupCount": len(groups),
            "connectorCount": len(graph.connectors),
            "tagCount": len(tags),
            "commentCount": len(comments),
            "hasItemLimit": req.max_items > 0,
            "itemLimit": req.max_items,
            "limitReached": fetched.limit_reached,
            "includeItemContent": req.include_item_content,
            "includeComments": req.include_comments,
            "includeTags": req.include_tags,
            "includeGroups": req.include_groups,
            "includeHistory": req.include_history,
            "includeContentSummaries": req.include_content_summaries,
            "includeConnectivity": req.include_connectivity,
            "connectionAnalysis": req.connection_analysis,
            "itemTypes": list(req.item_types),
            "frameId": req.frame_id,
            "searchTerm": req.search_term,
            "filteredItemCount": len(items),
        }
        logger.debug("Snapshot composed with %d items", len(items))
        return result

    # -- steps ------------------------------------------------------------

    def _predicate(self, req: SnapshotRequest) -> Optional[Callable[[Item], bool]]:
        checks: list[Callable[[Item], bool]] = []
        if req.frame_id:
            frame_id = req.frame_id
            checks.append(lambda it: it.parent_id == frame_id)
        if req.search_term:
            checks.append(_matches_search(req.search_term))
        if not checks:
            return None
        return lambda it: all(check(it) for check in checks)

    def _hydrate(self, items: list[Item], wanted: set[str]) -> list[Item]:
        def one(item: Item) -> Item:
            if item.type not in wanted:
                return item
            try:
                return item.merged(self.source.get_item_detail(item.id, item.type))
            except Exception as exc:
                logger.warning("Could not fetch details for item %s: %s", item.id, exc)
                return item

        if not items:
            return []
        with ThreadPoolExecutor(max_workers=max(1, self.max_workers)) as pool:
            return list(pool.map(one, items))

    def _frames(self, items: list[Item], frame: Optional[Item]) -> list[dict[str, Any]]:
        def child_ids(frame_id: str) -> list[str]:
            return [it.id for it in items if it.parent_id == frame_id]

        if frame is not None:
            return [frame.to_dict(childItemIds=child_ids(frame.id))]
        return [
            it.to_dict(childItemIds=child_ids(it.id))
            for it in items if it.type == ItemType.FRAME.value
        ]

    def _groups(self, req: SnapshotRequest, in_frame: set[str]) -> list[dict[str, Any]]:
        try:
            records = self.source.list_groups()
        except Exception as exc:
            logger.warning("Could not fetch groups: %s", exc)
            return []
        members = fetch_group_memberships(self.source, records, self.max_workers)
        groups = []
        for group in records:
            if not isinstance(group, dict):
                continue
            ids = members.get(str(group.get("id")), [])
            if req.frame_id and not any(i in in_frame for i in ids):
                continue
            groups.append({**group, "childItemIds": ids})
        return groups

    def _comments(
        self, req: SnapshotRequest, in_frame: set[str], frame: Optional[Item],
    ) -> list[dict[str, Any]]:
        try:
            records = self.source.list_comments()
        except Exception as exc:
            logger.warning("Could not fetch comments: %s", exc)
            return []
        comments = [_comment(r) for r in records if isinstance(r, dict)]
        if not req.frame_id:
            return comments
        bounds = ParentBounds.from_record(frame.record) if frame is not None else None
        center = frame.position if frame is not None else None
        kept = []
        for c in comments:
            if c["itemId"]:
                if c["itemId"] in in_frame:
                    kept.append(c)
            elif _inside(c["position"], center, bounds):
                kept.append(c)
        return kept

    def _tags(
        self, req: SnapshotRequest, in_frame: set[str],
    ) -> tuple[list[dict[str, Any]], dict[str, list[str]]]:
        try:
            records = self.source.list_tags()
        except Exception as exc:
            logger.warning("Could not fetch tags: %s", exc)
            return [], {}
        members = fetch_tag_memberships(self.source, records, self.max_workers)
        tags = []
        kept: dict[str, list[str]] = {}
        for tag in records:
            if not isinstance(tag, dict):
                continue
            tag_id = str(tag.get("id"))
            ids = members.get(tag_id, [])
            if req.frame_id:
                ids = [i for i in ids if i in in_frame]
                if not ids:
                    continue
            kept[tag_id] = ids
            tags.append({**tag, "itemIds": ids})
        return tags, invert_memberships(kept)

    def _history(self) -> dict[str, Any]:
        if self.history is None:
            return {"recently_created": [], "recently_modified": []}
        return {
            "recently_created": [e.to_dict() for e in self.history.recently_created(HISTORY_LIMIT)],
            "recently_modified": [e.to_dict() for e in self.history.recently_modified(HISTORY_LIMIT)],
        }
