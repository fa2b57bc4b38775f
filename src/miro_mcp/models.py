"""
Core data model for Miro board items.

Provides typed views over the loosely-typed JSON records returned by the
Miro REST API while keeping the original record around, so anything the
server echoes back to a caller keeps the exact external shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional, Protocol


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ItemType(str, Enum):
    """Item categories the board API knows about."""
    FRAME = "frame"
    SHAPE = "shape"
    TEXT = "text"
    STICKY_NOTE = "sticky_note"
    IMAGE = "image"
    DOCUMENT = "document"
    EMBED = "embed"
    CARD = "card"
    APP_CARD = "app_card"
    CONNECTOR = "connector"
    PREVIEW = "preview"

    @classmethod
    def parse(cls, value: Any) -> Optional[ItemType]:
        """Return the matching member, or None for unknown type strings."""
        try:
            return cls(value)
        except ValueError:
            return None


class RelativeTo(str, Enum):
    """Reference frames a caller may express a position in."""
    CANVAS_CENTER = "canvas_center"
    PARENT_TOP_LEFT = "parent_top_left"
    PARENT_CENTER = "parent_center"
    PARENT_BOTTOM_RIGHT = "parent_bottom_right"
    PARENT_PERCENTAGE = "parent_percentage"

    @property
    def needs_parent(self) -> bool:
        return self.value.startswith("parent_")


# ---------------------------------------------------------------------------
# Position / geometry
# ---------------------------------------------------------------------------

def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


@dataclass
class Position:
    """Position of an item as stored (top-left-relative inside a parent)."""
    x: float = 0
    y: float = 0
    origin: str = "center"
    relative_to: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> Optional[Position]:
        if not isinstance(raw, dict):
            return None
        return cls(
            x=_as_float(raw.get("x")) or 0.0,
            y=_as_float(raw.get("y")) or 0.0,
            origin=raw.get("origin") or "center",
            relative_to=raw.get("relativeTo"),
        )


@dataclass
class Geometry:
    """Size and rotation. Every field is optional on the wire."""
    width: Optional[float] = None
    height: Optional[float] = None
    rotation: Optional[float] = None

    @classmethod
    def from_dict(cls, raw: Any) -> Optional[Geometry]:
        if not isinstance(raw, dict):
            return None
        return cls(
            width=_as_float(raw.get("width")),
            height=_as_float(raw.get("height")),
            rotation=_as_float(raw.get("rotation")),
        )


@dataclass
class Endpoint:
    """One end of a connector: the attached item id plus attachment point."""
    item_id: Optional[str] = None
    position: Optional[dict[str, Any]] = None

    @classmethod
    def from_dict(cls, raw: Any) -> Optional[Endpoint]:
        if not isinstance(raw, dict):
            return None
        item_id = raw.get("id")
        return cls(
            item_id=str(item_id) if item_id else None,
            position=raw.get("position") if isinstance(raw.get("position"), dict) else None,
        )


# ---------------------------------------------------------------------------
# Item data: tagged union keyed by item type
# ---------------------------------------------------------------------------

@dataclass
class ItemData:
    """Base for per-type payloads. Unrecognised keys are kept in ``extra``."""
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> ItemData:
        if not isinstance(raw, dict):
            return cls()
        known = {f.name for f in fields(cls) if f.name != "extra"}
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in raw.items():
            attr = _CAMEL_TO_FIELD.get(key, key)
            if attr in known:
                kwargs[attr] = value
            else:
                extra[key] = value
        return cls(extra=extra, **kwargs)

    def text(self, name: str) -> Optional[str]:
        """Return attribute *name* if it holds a non-empty string."""
        value = getattr(self, name, None)
        if isinstance(value, str) and value:
            return value
        return None


# camelCase wire keys -> snake_case dataclass fields
_CAMEL_TO_FIELD = {
    "documentUrl": "document_url",
    "imageUrl": "image_url",
    "dueDate": "due_date",
    "assigneeId": "assignee_id",
    "showContent": "show_content",
    "previewUrl": "preview_url",
    "providerName": "provider_name",
}


@dataclass
class TextData(ItemData):
    content: Optional[str] = None


@dataclass
class StickyNoteData(ItemData):
    content: Optional[str] = None
    shape: Optional[str] = None


@dataclass
class ShapeData(ItemData):
    content: Optional[str] = None
    shape: Optional[str] = None


@dataclass
class CardData(ItemData):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    assignee_id: Optional[str] = None


@dataclass
class AppCardData(ItemData):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


@dataclass
class DocumentData(ItemData):
    title: Optional[str] = None
    document_url: Optional[str] = None


@dataclass
class ImageData(ItemData):
    title: Optional[str] = None
    image_url: Optional[str] = None


@dataclass
class FrameData(ItemData):
    title: Optional[str] = None
    format: Optional[str] = None
    type: Optional[str] = None
    show_content: Optional[bool] = None


@dataclass
class EmbedData(ItemData):
    url: Optional[str] = None
    mode: Optional[str] = None
    preview_url: Optional[str] = None
    provider_name: Optional[str] = None


@dataclass
class PreviewData(ItemData):
    url: Optional[str] = None


@dataclass
class ConnectorData(ItemData):
    shape: Optional[str] = None


@dataclass
class GenericData(ItemData):
    """Payload of an item whose type this server does not model."""


DATA_TYPES: dict[ItemType, type[ItemData]] = {
    ItemType.FRAME: FrameData,
    ItemType.SHAPE: ShapeData,
    ItemType.TEXT: TextData,
    ItemType.STICKY_NOTE: StickyNoteData,
    ItemType.IMAGE: ImageData,
    ItemType.DOCUMENT: DocumentData,
    ItemType.EMBED: EmbedData,
    ItemType.CARD: CardData,
    ItemType.APP_CARD: AppCardData,
    ItemType.CONNECTOR: ConnectorData,
    ItemType.PREVIEW: PreviewData,
}


def parse_item_data(item_type: str, raw: Any) -> ItemData:
    """Build the payload variant for *item_type* from a raw ``data`` dict."""
    kind = ItemType.parse(item_type)
    cls = DATA_TYPES.get(kind, GenericData) if kind else GenericData
    return cls.from_dict(raw)


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

@dataclass
class Item:
    """A single board item as observed at fetch time."""
    id: str
    type: str
    position: Optional[Position] = None
    geometry: Optional[Geometry] = None
    data: ItemData = field(default_factory=GenericData)
    style: dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[str] = None
    record: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def kind(self) -> Optional[ItemType]:
        return ItemType.parse(self.type)

    @property
    def is_connector(self) -> bool:
        return self.type == ItemType.CONNECTOR.value

    @staticmethod
    def from_record(record: dict[str, Any]) -> Item:
        """Parse a raw API record into an :class:`Item` (or :class:`Connector`)."""
        item_type = str(record.get("type") or "")
        parent = record.get("parent")
        parent_id = None
        if isinstance(parent, dict) and parent.get("id"):
            parent_id = str(parent["id"])
        style = record.get("style")
        common: dict[str, Any] = {
            "id": str(record.get("id", "")),
            "type": item_type,
            "position": Position.from_dict(record.get("position")),
            "geometry": Geometry.from_dict(record.get("geometry")),
            "data": parse_item_data(item_type, record.get("data")),
            "style": dict(style) if isinstance(style, dict) else {},
            "parent_id": parent_id,
            "record": dict(record),
        }
        if item_type == ItemType.CONNECTOR.value:
            return Connector(
                start=Endpoint.from_dict(record.get("startItem")),
                end=Endpoint.from_dict(record.get("endItem")),
                **common,
            )
        return Item(**common)

    def merged(self, detail: dict[str, Any]) -> Item:
        """Return a new item whose record is this one overlaid with *detail*."""
        return Item.from_record({**self.record, **detail})

    def to_dict(self, **extra: Any) -> dict[str, Any]:
        """The original record plus any derived fields passed as *extra*."""
        out = dict(self.record)
        out.update(extra)
        return out


@dataclass
class Connector(Item):
    """A connector item linking two other items by id."""
    start: Optional[Endpoint] = None
    end: Optional[Endpoint] = None

    @property
    def start_id(self) -> Optional[str]:
        return self.start.item_id if self.start else None

    @property
    def end_id(self) -> Optional[str]:
        return self.end.item_id if self.end else None


def items_from_records(records: list[dict[str, Any]]) -> list[Item]:
    return [Item.from_record(r) for r in records if isinstance(r, dict)]


# ---------------------------------------------------------------------------
# Collaborator interface
# ---------------------------------------------------------------------------

@dataclass
class ItemPage:
    """One page of the paginated item listing."""
    records: list[dict[str, Any]] = field(default_factory=list)
    cursor: Optional[str] = None


class BoardSource(Protocol):
    """Everything the aggregation engine reads from (and writes to) a board."""

    def get_board(self) -> dict[str, Any]: ...

    def list_items(
        self, item_type: Optional[str] = None, cursor: Optional[str] = None, limit: int = 50,
    ) -> ItemPage: ...

    def get_item(self, item_id: str) -> dict[str, Any]: ...

    def get_item_detail(self, item_id: str, item_type: str) -> dict[str, Any]: ...

    def list_tags(self) -> list[dict[str, Any]]: ...

    def get_tag_items(self, tag_id: str) -> list[str]: ...

    def list_groups(self) -> list[dict[str, Any]]: ...

    def get_group_items(self, group_id: str) -> list[str]: ...

    def list_comments(self) -> list[dict[str, Any]]: ...

    def create_items(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]: ...

    def update_item(self, item_id: str, body: dict[str, Any]) -> dict[str, Any]: ...

    def delete_item(self, item_id: str) -> None: ...
