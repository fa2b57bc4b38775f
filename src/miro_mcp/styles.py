"""
Geometry and style normalization for Miro board items.

Callers (LLM agents) routinely send numbers as strings ("14", "2.5") and
style keys that a given item type does not accept. The helpers here coerce
the numeric fields and narrow a style mapping to the vocabulary of the item
type it is sent with. Normalization is best-effort: absent fields stay
absent and strings that do not parse are passed through unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from miro_mcp.models import ItemType

logger = logging.getLogger("miro-mcp.styles")


# ---------------------------------------------------------------------------
# Style vocabularies
# ---------------------------------------------------------------------------

_TEXT_STYLE = frozenset({
    "color", "fillColor", "fillOpacity", "fontFamily", "fontSize", "textAlign",
})

_SHAPE_STYLE = frozenset({
    "fillColor", "fillOpacity",
    "borderColor", "borderOpacity", "borderStyle", "borderWidth",
    "color", "fontFamily", "fontSize", "textAlign", "textAlignVertical",
})

STYLE_VOCABULARY: dict[ItemType, frozenset[str]] = {
    ItemType.SHAPE: _SHAPE_STYLE,
    ItemType.TEXT: _TEXT_STYLE,
    ItemType.STICKY_NOTE: frozenset({"fillColor", "textAlign", "textAlignVertical"}),
    ItemType.CARD: frozenset({"cardTheme"}),
    ItemType.APP_CARD: frozenset({"fillColor"}),
    ItemType.FRAME: frozenset({"fillColor"}),
    ItemType.CONNECTOR: frozenset({
        "color", "fontSize", "startStrokeCap", "endStrokeCap",
        "strokeColor", "strokeStyle", "strokeWidth", "textOrientation",
    }),
    ItemType.IMAGE: frozenset(),
    ItemType.DOCUMENT: frozenset(),
    ItemType.EMBED: frozenset(),
    ItemType.PREVIEW: frozenset(),
}

_NUMERIC_STYLE_KEYS = ("fontSize", "borderWidth", "borderOpacity")
_NUMERIC_GEOMETRY_KEYS = ("width", "height", "rotation")


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

def coerce_number(value: Any) -> Any:
    """Turn a numeric-looking string into a number; anything else is returned as is."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    try:
        number = float(text)
    except ValueError:
        return value
    if number.is_integer() and "." not in text and "e" not in text.lower():
        return int(number)
    return number


def _coerce_keys(mapping: dict[str, Any], keys: tuple[str, ...]) -> dict[str, Any]:
    out = dict(mapping)
    for key in keys:
        if key in out:
            out[key] = coerce_number(out[key])
    return out


def normalize_geometry(geometry: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Coerce ``width``/``height``/``rotation`` to numbers."""
    if geometry is None:
        return None
    return _coerce_keys(geometry, _NUMERIC_GEOMETRY_KEYS)


def normalize_style(
    style: Optional[dict[str, Any]], item_type: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    """Coerce numeric style fields and, given *item_type*, drop unsupported keys."""
    if style is None:
        return None
    out = _coerce_keys(style, _NUMERIC_STYLE_KEYS)
    kind = ItemType.parse(item_type) if item_type else None
    if kind is None:
        return out
    allowed = STYLE_VOCABULARY[kind]
    dropped = sorted(k for k in out if k not in allowed)
    if dropped:
        logger.debug("Dropping style keys %s unsupported by '%s'", dropped, kind.value)
    return {k: v for k, v in out.items() if k in allowed}
