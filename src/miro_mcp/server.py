"""
Miro MCP Server — read, aggregate and edit a Miro board via Model Context Protocol.

Exposes 3 tools that let an LLM agent understand the structure of a board
(frames, groups, tags, connectors) and place items on it precisely.

Tools:
  1. board   — aggregation: state snapshot, item tree, drained item listing, history
  2. search  — content: find items by text, check for duplicate content
  3. item    — single items: get (in any reference frame), bulk create, update, delete
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from miro_mcp.client import MiroApiError, MiroClient
from miro_mcp.config import ConfigurationError, Settings
from miro_mcp.coordinates import ParentBounds, from_store, to_store
from miro_mcp.hierarchy import HierarchyBuilder, HierarchyOptions
from miro_mcp.history import ModificationHistory
from miro_mcp.models import BoardSource, Item, ItemType, RelativeTo
from miro_mcp.pagination import fetch_items
from miro_mcp.snapshot import SnapshotComposer, SnapshotRequest
from miro_mcp.styles import normalize_geometry, normalize_style
from miro_mcp.summary import filter_by_content, find_similar, summarize, truncate
from miro_mcp.validation import (
    MAX_BULK_ITEMS,
    ValidationError,
    validate_action,
    validate_bulk_item_dict,
    validate_dict,
    validate_item_type,
    validate_item_types,
    validate_list,
    validate_max_depth,
    validate_max_items,
    validate_non_empty_string,
    validate_position_dict,
    validate_relative_to,
    validate_root_type,
    validate_text_type,
    _BOARD_ACTIONS,
    _SEARCH_ACTIONS,
    _ITEM_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging — suppress routine FastMCP INFO messages that VS Code shows
# as warnings (they go to stderr which VS Code labels [warning]).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("miro-mcp")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "miro-mcp",
    instructions=(
        "MCP server for reading and editing a Miro board.\n\n"
        "=== ONLY 3 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. board(action, ...) — aggregation: state, tree, items, history.\n"
        "2. search(action, ...) — content: content, duplicates.\n"
        "3. item(action, ...) — single items: get, create, update, delete.\n\n"
        "=== RULES ===\n"
        "- Start with board(action='state') to learn what is on the board.\n"
        "- Use board(action='tree', item_id=...) to explore one frame in depth.\n"
        "- Before creating text content, run search(action='duplicates').\n"
        "- Board coordinates: (0,0) is the board center, +x right, +y down.\n"
        "- Inside a frame, prefer relativeTo='parent_percentage' or 'parent_center'.\n"
        "- Connectors cannot be parented and frames cannot be nested in frames.\n\n"
        "Read the resource miro://guide/positioning before placing items in frames.\n"
    ),
)

# Lazily created on the first tool call so importing never needs credentials.
# Guarded by _state_lock.
_settings: Optional[Settings] = None
_source: Optional[BoardSource] = None
_history: Optional[ModificationHistory] = None
_state_lock = threading.Lock()

_ERRORS = (ValidationError, MiroApiError, ConfigurationError)


def _get_settings() -> Settings:
    global _settings
    with _state_lock:
        if _settings is None:
            _settings = Settings.from_env()
        return _settings


def _get_source() -> BoardSource:
    global _source
    settings = _get_settings()
    with _state_lock:
        if _source is None:
            _source = MiroClient(
                settings.api_token,
                settings.board_id,
                base_url=settings.base_url,
                timeout=settings.timeout,
            )
            logger.info("Connected to board %s", settings.board_id)
        return _source


def _get_history() -> ModificationHistory:
    global _history
    settings = _get_settings()
    with _state_lock:
        if _history is None:
            _history = ModificationHistory(settings.history_size)
        return _history


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


# ===================================================================
# RESOURCES
# ===================================================================

@mcp.resource("miro://guide/positioning")
def positioning_guide() -> str:
    """How positions are expressed and translated on a Miro board."""
    return """# Miro MCP — Positioning Guide

## Coordinates
- Board coordinates: (0,0) is the board center, +x right, +y down.
- An item's coordinates refer to its center point unless `origin` says otherwise.
- Always use numeric values for absolute coordinates.

## Reference frames (`relativeTo`)
| relativeTo            | Meaning                                   | Needs a parent |
|-----------------------|-------------------------------------------|----------------|
| canvas_center         | relative to the board center              | no             |
| parent_top_left       | from the frame's top-left corner          | yes            |
| parent_center         | from the frame's center point             | yes            |
| parent_bottom_right   | from the frame's bottom-right corner      | yes            |
| parent_percentage     | "50%" of the frame's width / height       | yes            |

Defaults: `canvas_center` for items without a parent, `parent_top_left`
for items inside a frame.

## Rules
- parent_top_left: negative values are clamped to 0 (with a warning);
  values beyond the frame's width/height are rejected.
- parent_center: origin is always "center".
- parent_percentage: x and y must be between "0%" and "100%".
- Connectors cannot be assigned to a frame.
- Frames cannot be placed inside other frames.

## Examples
- Frame center:         {"x": 0, "y": 0, "relativeTo": "parent_center"}
- 10px from top-left:   {"x": 10, "y": 10, "relativeTo": "parent_top_left"}
- Bottom-right quarter: {"x": "75%", "y": "75%", "relativeTo": "parent_percentage"}
- Read back a position in any frame:
  item(action='get', item_id='...', relative_to='parent_percentage')
"""


# ===================================================================
# TOOL 1: board — aggregation
# ===================================================================

@mcp.tool()
def board(
    action: str,
    # -- state --
    include_item_content: bool = True,
    include_comments: bool = False,
    include_tags: bool = True,
    include_groups: bool = True,
    include_history: bool = True,
    include_content_summaries: bool = True,
    include_connectivity: bool = False,
    connection_analysis: bool = False,
    max_items: int = 500,
    item_types: list[str] | None = None,
    frame_id: str = "",
    search_term: str = "",
    # -- tree --
    item_id: str = "",
    item_type: str = "",
    max_depth: int = 5,
    include_connectors: bool = True,
) -> str:
    """Aggregated, read-only views of the whole board.

    Actions:
      state   — Snapshot of the board: items, frames, groups, tags, optional
                comments/connectivity/connection analysis, structural summary
                and recent history. Params: all include_* toggles,
                connection_analysis, max_items, item_types, frame_id, search_term.
      tree    — Parent/child tree under one item (item_id) or under every item
                of a type (item_type), with tags and connection statistics.
                Params: item_id | item_type, max_depth, include_connectors,
                include_tags, include_content_summaries.
      items   — Flat item listing drained across pages. Params: item_types, max_items.
      history — Items recently created or modified through this server.

    Args:
        action: One of: state, tree, items, history.
        include_item_content: Fetch full details for text-bearing items (state).
        include_comments: Include comments (state).
        include_tags: Include tags and per-item tag ids (state, tree).
        include_groups: Include groups (state).
        include_history: Include recent history (state).
        include_content_summaries: Add a short content_summary to items.
        include_connectivity: Include connectors and connectivity maps (state).
        connection_analysis: Detect duplicate/orphaned connectors and hot spots (state).
        max_items: Item cap, 0 for unlimited (state, items). Default 500.
        item_types: Restrict to these item types (state, items).
        frame_id: Only items inside this frame (state).
        search_term: Only items whose id, type or content contains this (state).
        item_id: Root item for tree.
        item_type: Root item type for tree when item_id is not given.
        max_depth: Tree depth, 1-10 (tree). Default 5.
        include_connectors: Include connector information (tree).

    Returns:
        JSON string.
    """
    try:
        action = validate_action(action, "board", _BOARD_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    try:
        if action == "state":
            settings = _get_settings()
            request = SnapshotRequest(
                include_item_content=include_item_content,
                include_comments=include_comments,
                include_tags=include_tags,
                include_groups=include_groups,
                include_history=include_history,
                include_content_summaries=include_content_summaries,
                include_connectivity=include_connectivity,
                connection_analysis=connection_analysis,
                max_items=max_items,
                item_types=list(item_types or []),
                frame_id=frame_id.strip() or None,
                search_term=search_term or None,
            )
            request.validate()
            composer = SnapshotComposer(
                _get_source(),
                _get_history(),
                max_workers=settings.max_workers,
                page_size=settings.page_size,
            )
            return _dumps(composer.compose(request))

        elif action == "tree":
            validate_max_depth(max_depth)
            if item_type:
                item_type = validate_root_type(item_type)
            if not item_id.strip() and not item_type:
                raise ValidationError("board(action='tree') requires 'item_id' or 'item_type'.")
            settings = _get_settings()
            builder = HierarchyBuilder(
                _get_source(), max_workers=settings.max_workers, page_size=settings.page_size,
            )
            options = HierarchyOptions(
                max_depth=max_depth,
                include_connectors=include_connectors,
                include_tags=include_tags,
                include_content_summaries=include_content_summaries,
            )
            return _dumps(builder.build(item_id.strip() or None, item_type or None, options))

        elif action == "items":
            validate_max_items(max_items)
            types = validate_item_types(item_types) if item_types else None
            settings = _get_settings()
            result = fetch_items(
                _get_source(), item_types=types, max_items=max_items, page_size=settings.page_size,
            )
            return _dumps({
                "items": [it.to_dict() for it in result.items],
                "metadata": {
                    "count": len(result.items),
                    "pages": result.pages,
                    "itemLimit": max_items,
                    "limitReached": result.limit_reached,
                    "itemTypes": types or [],
                    "timestamp": _now(),
                },
            })

        else:  # history
            history = _get_history()
            return _dumps({
                "recently_created": [e.to_dict() for e in history.recently_created()],
                "recently_modified": [e.to_dict() for e in history.recently_modified()],
            })
    except _ERRORS as exc:
        return f"Error: {exc.message}"


# ===================================================================
# TOOL 2: search — content
# ===================================================================

@mcp.tool()
def search(
    action: str,
    query: str = "",
    content: str = "",
    item_type: str = "",
) -> str:
    """Find items by their text content.

    Actions:
      content    — Items whose content summary contains `query`
                   (case-insensitive). Params: query, item_type?.
      duplicates — Items of `item_type` whose text equals, contains or is
                   contained in `content`. Run before creating text items.
                   Params: content, item_type (shape, text, sticky_note, card, app_card).

    Args:
        action: One of: content, duplicates.
        query: Text to search for (content).
        content: Text of the item about to be created (duplicates).
        item_type: Item type filter (optional for content, required for duplicates).

    Returns:
        JSON string.
    """
    try:
        action = validate_action(action, "search", _SEARCH_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    try:
        settings = _get_settings()
        if action == "content":
            query = validate_non_empty_string(query, "query")
            kind = validate_item_type(item_type, "item_type") if item_type else None
            items = fetch_items(
                _get_source(), item_types=[kind] if kind else None, page_size=settings.page_size,
            ).items
            matches = filter_by_content(items, query, kind)
            logger.debug("Found %d item(s) matching %r", len(matches), query)
            return _dumps({
                "items": [it.to_dict(content_summary=summarize(it)) for it in matches],
                "metadata": {
                    "matched_count": len(matches),
                    "total_count": len(items),
                    "query": query,
                    "item_type": kind,
                    "timestamp": _now(),
                },
            })

        else:  # duplicates
            content = validate_non_empty_string(content, "content")
            kind = validate_text_type(item_type)
            items = fetch_items(
                _get_source(), item_types=[kind], page_size=settings.page_size,
            ).items
            similar = find_similar(items, content, kind)
            return _dumps({
                "duplicates_found": bool(similar),
                "similar_items": [it.to_dict(content_summary=summarize(it)) for it in similar],
                "metadata": {
                    "item_count": len(items),
                    "content_preview": truncate(content),
                    "item_type": kind,
                    "timestamp": _now(),
                },
            })
    except _ERRORS as exc:
        return f"Error: {exc.message}"


# ===================================================================
# TOOL 3: item — single items
# ===================================================================

@mcp.tool()
def item(
    action: str,
    item_id: str = "",
    relative_to: str = "",
    items: list[dict[str, Any]] | None = None,
    position: dict[str, Any] | None = None,
    parent_id: str = "",
    data: dict[str, Any] | None = None,
    style: dict[str, Any] | None = None,
    geometry: dict[str, Any] | None = None,
) -> str:
    """Read and write individual board items.

    Actions:
      get    — One item. With relative_to, its stored position is also
               expressed in that reference frame. Params: item_id, relative_to?.
      create — Create up to 20 items in one call. Params: items (list of
               {type, data?, style?, geometry?, position?, parent?: {id}}).
               Connectors are not supported here.
      update — Move, reparent or edit one item. Params: item_id, position?,
               parent_id?, data?, style?, geometry?.
      delete — Delete one item permanently. Params: item_id.

    Positions are {x, y, origin?, relativeTo?}. relativeTo is one of
    canvas_center, parent_top_left, parent_center, parent_bottom_right,
    parent_percentage (x/y like "50%"). See miro://guide/positioning.

    Args:
        action: One of: get, create, update, delete.
        item_id: Target item (get, update, delete).
        relative_to: Reference frame for the returned position (get).
        items: Items to create (create).
        position: New position (update).
        parent_id: New parent frame (update).
        data: Type-specific data to change (update).
        style: Style properties to change (update).
        geometry: width/height/rotation to change (update).

    Returns:
        JSON string, or a confirmation message for delete.
    """
    try:
        action = validate_action(action, "item", _ITEM_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    try:
        if action == "get":
            item_id = validate_non_empty_string(item_id, "item_id")
            return _get_item_impl(item_id, relative_to)

        elif action == "create":
            validate_list(items, "items", min_length=1, max_length=MAX_BULK_ITEMS)
            for i, v in enumerate(items):
                validate_bulk_item_dict(v, i)
            return _create_items_impl(items)

        elif action == "update":
            item_id = validate_non_empty_string(item_id, "item_id")
            if position is not None:
                position = validate_position_dict(position)
            for name, value in (("data", data), ("style", style), ("geometry", geometry)):
                if value is not None:
                    validate_dict(value, name)
            if not any(v is not None for v in (position, data, style, geometry)) and not parent_id:
                raise ValidationError(
                    "item(action='update') needs at least one of: position, parent_id, "
                    "data, style, geometry."
                )
            return _update_item_impl(item_id, position, parent_id.strip(), data, style, geometry)

        else:  # delete
            item_id = validate_non_empty_string(item_id, "item_id")
            _get_source().delete_item(item_id)
            logger.info("Deleted item %s", item_id)
            return f"Item '{item_id}' deleted."
    except _ERRORS as exc:
        return f"Error: {exc.message}"


# ===================================================================
# Internal helpers
# ===================================================================

def _parent_bounds(source: BoardSource, parent_id: str,
                   cache: dict[str, Item]) -> tuple[Item, Optional[ParentBounds]]:
    """Fetch (once per call) the parent item and its size."""
    if parent_id not in cache:
        cache[parent_id] = Item.from_record(source.get_item(parent_id))
    parent = cache[parent_id]
    return parent, ParentBounds.from_record(parent.record)


def _get_item_impl(item_id: str, relative_to: str) -> str:
    source = _get_source()
    current = Item.from_record(source.get_item(item_id))
    extra: dict[str, Any] = {}
    summary = summarize(current)
    if summary:
        extra["content_summary"] = summary

    if relative_to:
        frame = RelativeTo(validate_relative_to(relative_to))
        if current.position is None:
            raise ValidationError(f"Item '{item_id}' has no position.")
        if current.parent_id is None and frame.needs_parent:
            raise ValidationError(
                f"relative_to '{frame.value}' needs a parent frame, "
                f"but item '{item_id}' is not inside a frame."
            )
        if current.parent_id is not None and frame is RelativeTo.CANVAS_CENTER:
            raise ValidationError(
                f"Item '{item_id}' is inside frame '{current.parent_id}'; "
                "use one of the parent_* reference frames."
            )
        bounds = None
        if frame.needs_parent:
            _, bounds = _parent_bounds(source, current.parent_id, {})
        x, y = from_store(current.position.x, current.position.y, frame, bounds)
        extra["relativePosition"] = {"x": x, "y": y, "relativeTo": frame.value}

    return _dumps(current.to_dict(**extra))


def _create_items_impl(items: list[dict[str, Any]]) -> str:
    source = _get_source()
    parents: dict[str, Item] = {}
    warnings: list[str] = []
    payload: list[dict[str, Any]] = []

    for i, raw in enumerate(items):
        item_type = raw["type"].strip().lower()
        out: dict[str, Any] = {"type": item_type}
        if raw.get("data") is not None:
            out["data"] = dict(raw["data"])
        if raw.get("style") is not None:
            out["style"] = normalize_style(raw["style"], item_type)
        if raw.get("geometry") is not None:
            out["geometry"] = normalize_geometry(raw["geometry"])

        parent_id = ((raw.get("parent") or {}).get("id") or "").strip()
        bounds = None
        if parent_id:
            parent, bounds = _parent_bounds(source, parent_id, parents)
            if item_type == ItemType.FRAME.value and parent.type == ItemType.FRAME.value:
                raise ValidationError(f"Item at index {i}: frames cannot be nested inside frames.")
            out["parent"] = {"id": parent_id}

        pos = raw.get("position")
        if pos is not None:
            pos = validate_position_dict(pos, f"items[{i}].position")
        normalized = to_store(pos, bounds, has_parent=bool(parent_id))
        if normalized is not None:
            out["position"] = normalized.to_api()
            warnings.extend(f"items[{i}]: {w}" for w in normalized.warnings)
        payload.append(out)

    created = source.create_items(payload)
    history = _get_history()
    for record in created:
        history.track_creation(Item.from_record(record))
    logger.info("Created %d item(s)", len(created))
    return _dumps({"items": created, "warnings": warnings})


def _update_item_impl(
    item_id: str,
    position: Optional[dict[str, Any]],
    parent_id: str,
    data: Optional[dict[str, Any]],
    style: Optional[dict[str, Any]],
    geometry: Optional[dict[str, Any]],
) -> str:
    source = _get_source()
    current = Item.from_record(source.get_item(item_id))
    parents: dict[str, Item] = {}
    body: dict[str, Any] = {}
    warnings: list[str] = []

    if parent_id:
        if current.is_connector:
            raise ValidationError("Connectors cannot be assigned to a parent frame.")
        parent, _ = _parent_bounds(source, parent_id, parents)
        if current.type == ItemType.FRAME.value and parent.type == ItemType.FRAME.value:
            raise ValidationError(
                "Frames cannot be placed inside other frames. "
                "Position the frame on the canvas instead."
            )
        body["parent"] = {"id": parent_id}

    if position is not None:
        effective_parent = parent_id or current.parent_id
        bounds = None
        if effective_parent:
            _, bounds = _parent_bounds(source, effective_parent, parents)
        normalized = to_store(position, bounds, has_parent=bool(effective_parent))
        if normalized is not None:
            body["position"] = normalized.to_api()
            warnings.extend(normalized.warnings)

    if data is not None:
        data = dict(data)
        if current.type == ItemType.FRAME.value and data.get("content") and not data.get("title"):
            data["title"] = data.pop("content")
        body["data"] = data
    if style is not None:
        body["style"] = normalize_style(style, current.type)
    if geometry is not None:
        body["geometry"] = normalize_geometry(geometry)

    updated = source.update_item(item_id, body)
    _get_history().track_modification(
        Item.from_record(updated) if updated else current.merged(body)
    )
    logger.info("Updated item %s", item_id)
    return _dumps({"item": updated, "warnings": warnings})


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
