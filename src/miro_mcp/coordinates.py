"""
Coordinate normalization between caller reference frames and the store.

Callers may express a position in one of five reference frames
(see :class:`~miro_mcp.models.RelativeTo`). The board API only understands
two of them natively: board coordinates for items without a parent, and
coordinates measured from the parent's top-left corner for items inside a
frame. ``to_store`` translates any caller frame into the store frame and
``from_store`` is its inverse, used when echoing a stored position back in
the frame the caller asked for.

Translation rules, for a parent of width ``W`` and height ``H``:

- canvas_center:       unchanged (parentless items only)
- parent_top_left:     unchanged, must lie in [0, W] x [0, H]
- parent_center:       (x + W/2, y + H/2)
- parent_bottom_right: (W - x, H - y)
- parent_percentage:   (x/100 * W, y/100 * H), x and y given as "NN%"
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional

from miro_mcp.models import RelativeTo
from miro_mcp.validation import PositionOutOfBoundsError, ValidationError

logger = logging.getLogger("miro-mcp.coordinates")


@dataclass(frozen=True)
class ParentBounds:
    """Size of the containing frame."""
    width: float
    height: float

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Optional[ParentBounds]:
        geometry = record.get("geometry")
        if not isinstance(geometry, dict):
            return None
        try:
            return cls(float(geometry.get("width") or 0), float(geometry.get("height") or 0))
        except (TypeError, ValueError):
            return None


@dataclass
class NormalizedPosition:
    """A position in the store frame, tagged with the frame it came from."""
    x: float
    y: float
    origin: str = "center"
    relative_to: RelativeTo = RelativeTo.CANVAS_CENTER
    warnings: list[str] = field(default_factory=list)

    def to_api(self) -> dict[str, Any]:
        """The wire form: frame bookkeeping is stripped."""
        return {"x": self.x, "y": self.y, "origin": self.origin}


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def _coerce(value: Any, axis: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"Position '{axis}' must be a number, got bool.")
    number: Optional[float] = None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            pass
    if number is not None:
        if not math.isfinite(number):
            raise ValidationError(f"Position '{axis}' must be a finite number, got {value!r}.")
        return number
    raise ValidationError(f"Position '{axis}' must be a number, got {value!r}.")


def parse_percentage(value: Any, axis: str = "x") -> float:
    """Parse ``"NN%"`` (or a bare number) into a percentage in [0, 100]."""
    if isinstance(value, bool):
        raise ValidationError(f"Percentage '{axis}' must look like \"50%\", got bool.")
    if isinstance(value, (int, float)):
        pct = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("%"):
            text = text[:-1].strip()
        try:
            pct = float(text)
        except ValueError:
            raise ValidationError(
                f"Percentage '{axis}' must look like \"50%\", got {value!r}."
            ) from None
    else:
        raise ValidationError(
            f"Percentage '{axis}' must look like \"50%\", got {type(value).__name__}."
        )
    if not 0 <= pct <= 100:
        raise PositionOutOfBoundsError(
            RelativeTo.PARENT_PERCENTAGE.value, axis, value, 0, 100,
        )
    return pct


def resolve_frame(position: Optional[dict[str, Any]], has_parent: bool) -> RelativeTo:
    """The frame a position is expressed in, applying the defaults."""
    raw = (position or {}).get("relativeTo")
    if raw:
        try:
            return RelativeTo(raw)
        except ValueError:
            choices = ", ".join(r.value for r in RelativeTo)
            raise ValidationError(
                f"Unknown relativeTo '{raw}'. Valid values: {choices}."
            ) from None
    return RelativeTo.PARENT_TOP_LEFT if has_parent else RelativeTo.CANVAS_CENTER


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------

def to_store(
    position: Optional[dict[str, Any]],
    parent: Optional[ParentBounds] = None,
    *,
    has_parent: Optional[bool] = None,
) -> Optional[NormalizedPosition]:
    """Translate a caller position into the store's frame.

    Args:
        position: ``{x, y, origin?, relativeTo?}`` as received from a caller.
        parent: Size of the containing frame; required for ``parent_*`` frames.
        has_parent: Whether the item lives inside a frame. Defaults to
            ``parent is not None``.

    Returns:
        The translated position, or ``None`` for a parented item given no
        position at all (the store then picks its own default).

    Raises:
        ValidationError: Malformed coordinates, or a ``parent_*`` frame without
            parent geometry.
        PositionOutOfBoundsError: ``parent_top_left`` beyond the parent's size,
            or a percentage outside 0-100.
    """
    if has_parent is None:
        has_parent = parent is not None
    if position is None:
        if has_parent:
            return None
        return NormalizedPosition(0.0, 0.0)

    frame = resolve_frame(position, has_parent)
    origin = position.get("origin") or "center"
    warnings: list[str] = []

    if frame is RelativeTo.CANVAS_CENTER:
        x = _coerce(position.get("x", 0), "x")
        y = _coerce(position.get("y", 0), "y")
        return NormalizedPosition(x, y, origin, frame, warnings)

    if parent is None:
        raise ValidationError(
            f"relativeTo '{frame.value}' needs the parent frame's width and height, "
            "but no parent geometry is available."
        )
    w, h = parent.width, parent.height

    if frame is RelativeTo.PARENT_PERCENTAGE:
        px = parse_percentage(position.get("x", 0), "x")
        py = parse_percentage(position.get("y", 0), "y")
        x, y = px / 100 * w, py / 100 * h
        logger.debug("parent_percentage (%s%%, %s%%) -> (%s, %s)", px, py, x, y)
        return NormalizedPosition(x, y, origin, frame, warnings)

    x = _coerce(position.get("x", 0), "x")
    y = _coerce(position.get("y", 0), "y")

    if frame is RelativeTo.PARENT_TOP_LEFT:
        if x < 0 or y < 0:
            msg = (f"Negative parent_top_left coordinates ({x:g}, {y:g}) "
                   f"clamped to ({max(0.0, x):g}, {max(0.0, y):g}).")
            logger.info(msg)
            warnings.append(msg)
            x, y = max(0.0, x), max(0.0, y)
        if x > w:
            raise PositionOutOfBoundsError(frame.value, "x", x, 0, w)
        if y > h:
            raise PositionOutOfBoundsError(frame.value, "y", y, 0, h)
        return NormalizedPosition(x, y, origin, frame, warnings)

    if frame is RelativeTo.PARENT_CENTER:
        if origin != "center":
            msg = f"origin '{origin}' is not valid with parent_center; using 'center'."
            logger.info(msg)
            warnings.append(msg)
            origin = "center"
        return NormalizedPosition(x + w / 2, y + h / 2, origin, frame, warnings)

    # parent_bottom_right
    return NormalizedPosition(w - x, h - y, origin, frame, warnings)


def from_store(
    x: float,
    y: float,
    relative_to: RelativeTo | str,
    parent: Optional[ParentBounds] = None,
) -> tuple[float, float]:
    """Express a stored position in *relative_to*; inverse of :func:`to_store`.

    For ``parent_percentage`` the result is in percent (0-100).
    """
    frame = RelativeTo(relative_to)
    if frame in (RelativeTo.CANVAS_CENTER, RelativeTo.PARENT_TOP_LEFT):
        return x, y
    if parent is None:
        raise ValidationError(
            f"relativeTo '{frame.value}' needs the parent frame's width and height, "
            "but no parent geometry is available."
        )
    w, h = parent.width, parent.height
    if frame is RelativeTo.PARENT_CENTER:
        return x - w / 2, y - h / 2
    if frame is RelativeTo.PARENT_BOTTOM_RIGHT:
        return w - x, h - y
    # parent_percentage
    return (x / w * 100 if w else 0.0), (y / h * 100 if h else 0.0)
