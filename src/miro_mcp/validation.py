"""
Input validation for Miro MCP server tool parameters.

Provides reusable validators that produce clear error messages for all
parameters received from Copilot / LLM callers.
"""

from __future__ import annotations

from typing import Any

from miro_mcp.models import ItemType, RelativeTo


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class PositionOutOfBoundsError(ValidationError):
    """A parent-relative coordinate falls outside its valid range."""

    def __init__(
        self, relative_to: str, axis: str, value: Any, low: float, high: float,
    ) -> None:
        self.relative_to = relative_to
        self.axis = axis
        self.value = value
        self.low = low
        self.high = high
        super().__init__(
            f"Position {axis}={value!r} is out of bounds for '{relative_to}': "
            f"expected a value between {low:g} and {high:g}."
        )


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """Validate an integer value and optional range."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be an integer, got {type(value).__name__}."
        )
    if min_val is not None and value < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {value}."
        )
    if max_val is not None and value > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {value}."
        )
    return value


def validate_choice(value: Any, field_name: str, allowed: set[str]) -> str:
    """Validate that a string is one of the allowed lowercase choices."""
    if not isinstance(value, str):
        raise ValidationError(
            f"'{field_name}' must be a string, got {type(value).__name__}."
        )
    normalized = value.strip().lower()
    if normalized not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return normalized


def validate_list(value: Any, field_name: str, *, min_length: int = 0,
                  max_length: int | None = None) -> list:
    """Ensure *value* is a list with a length inside the given bounds."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            f"'{field_name}' must have at most {max_length} item(s), got {len(value)}."
        )
    return value


def validate_dict(value: Any, field_name: str) -> dict:
    """Ensure *value* is a dict."""
    if not isinstance(value, dict):
        raise ValidationError(
            f"'{field_name}' must be a dict/object, got {type(value).__name__}."
        )
    return value


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_BOARD_ACTIONS = {"STATE", "TREE", "ITEMS", "HISTORY"}
_SEARCH_ACTIONS = {"CONTENT", "DUPLICATES"}
_ITEM_ACTIONS = {"GET", "CREATE", "UPDATE", "DELETE"}

_ITEM_TYPES = {t.value for t in ItemType}
# Types a hierarchy can be rooted at (connectors have no children).
_ROOT_TYPES = _ITEM_TYPES - {ItemType.CONNECTOR.value, ItemType.PREVIEW.value}
# Types whose text content can be checked for duplicates.
_TEXT_TYPES = {"shape", "text", "sticky_note", "card", "app_card"}
_RELATIVE_TO = {r.value for r in RelativeTo}

MAX_BULK_ITEMS = 20


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_item_type(value: Any, field_name: str = "type",
                       allowed: set[str] | None = None) -> str:
    """Validate a single item type name."""
    return validate_choice(value, field_name, allowed or _ITEM_TYPES)


def validate_item_types(value: Any) -> list[str]:
    """Validate the ``item_types`` filter list."""
    validate_list(value, "item_types")
    return [validate_item_type(v, f"item_types[{i}]") for i, v in enumerate(value)]


def validate_root_type(value: Any) -> str:
    return validate_item_type(value, "type", _ROOT_TYPES)


def validate_text_type(value: Any) -> str:
    return validate_item_type(value, "item_type", _TEXT_TYPES)


def validate_relative_to(value: Any) -> str:
    """Validate a positioning reference frame name."""
    return validate_choice(value, "relative_to", _RELATIVE_TO)


def validate_max_depth(value: Any) -> int:
    """Validate hierarchy depth (1..10)."""
    return validate_int(value, "max_depth", min_val=1, max_val=10)


def validate_max_items(value: Any) -> int:
    """Validate an item cap (0 = unlimited)."""
    return validate_int(value, "max_items", min_val=0)


def validate_position_dict(p: Any, field_name: str = "position") -> dict:
    """Validate a caller-supplied position object.

    ``x``/``y`` may be numbers or strings (numeric strings and percentages
    such as ``"50%"``); range checks happen during coordinate translation.
    """
    validate_dict(p, field_name)
    for axis in ("x", "y"):
        if axis in p:
            v = p[axis]
            if isinstance(v, bool) or not isinstance(v, (int, float, str)):
                raise ValidationError(
                    f"'{field_name}.{axis}' must be a number or a string, "
                    f"got {type(v).__name__}."
                )
    if "relativeTo" in p and p["relativeTo"] is not None:
        p = dict(p)
        p["relativeTo"] = validate_choice(p["relativeTo"], f"{field_name}.relativeTo", _RELATIVE_TO)
    if "origin" in p and p["origin"] is not None and not isinstance(p["origin"], str):
        raise ValidationError(f"'{field_name}.origin' must be a string.")
    return p


def validate_bulk_item_dict(v: Any, index: int) -> None:
    """Validate a single item dict from a bulk-create request."""
    if not isinstance(v, dict):
        raise ValidationError(f"Item at index {index} must be a dict/object.")
    if "type" not in v:
        raise ValidationError(f"Item at index {index} missing required key 'type'.")
    item_type = validate_item_type(v["type"], f"items[{index}].type")
    if item_type == ItemType.CONNECTOR.value:
        raise ValidationError(
            f"Item at index {index}: connectors cannot be created in bulk."
        )
    for key in ("data", "style", "geometry"):
        if key in v and v[key] is not None and not isinstance(v[key], dict):
            raise ValidationError(f"Item at index {index}: '{key}' must be a dict/object.")
    if "position" in v and v["position"] is not None:
        validate_position_dict(v["position"], f"items[{index}].position")
    if "parent" in v and v["parent"] is not None:
        parent = v["parent"]
        if not isinstance(parent, dict) or not isinstance(parent.get("id", ""), str):
            raise ValidationError(
                f"Item at index {index}: 'parent' must be an object like {{\"id\": \"...\"}}."
            )
