"""
Short plain-text synopses of board items.

Summaries are what search, duplicate detection and the history ledger look
at, so they have to be cheap and must never fail on a malformed payload.
"""

from __future__ import annotations

import html as _html
import re
from typing import Optional, Sequence

from miro_mcp.models import Item, ItemType

_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")

DESCRIPTION_LIMIT = 50

_CONTENT_TYPES = {ItemType.TEXT, ItemType.STICKY_NOTE, ItemType.SHAPE}
_CARD_TYPES = {ItemType.CARD, ItemType.APP_CARD}
_TITLE_TYPES = {ItemType.DOCUMENT, ItemType.IMAGE, ItemType.FRAME}


def strip_html(content: Optional[str]) -> Optional[str]:
    """Drop tags, unescape entities and collapse whitespace."""
    if not content:
        return None
    text = _TAG_RE.sub(" ", content)
    text = _html.unescape(text)
    text = _SPACE_RE.sub(" ", text).strip()
    return text or None


def truncate(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def summarize(item: Item) -> Optional[str]:
    """Synopsis of *item*, or None when its type carries no summarizable text."""
    kind = item.kind
    if kind in _CONTENT_TYPES:
        return strip_html(item.data.text("content"))
    if kind in _CARD_TYPES:
        title = item.data.text("title")
        description = item.data.text("description")
        if description:
            description = truncate(description)
        if title and description:
            return f"{title}: {description}"
        return title or description
    if kind in _TITLE_TYPES:
        return item.data.text("title")
    return None


# ---------------------------------------------------------------------------
# Content search / duplicate detection
# ---------------------------------------------------------------------------

def filter_by_content(
    items: Sequence[Item], query: str, item_type: Optional[str] = None,
) -> list[Item]:
    """Items whose summary contains *query* (case-insensitive)."""
    if not query:
        return []
    needle = query.lower()
    matches: list[Item] = []
    for item in items:
        if item_type and item.type != item_type:
            continue
        text = summarize(item)
        if text and needle in text.lower():
            matches.append(item)
    return matches


def find_similar(items: Sequence[Item], content: str, item_type: str) -> list[Item]:
    """Items of *item_type* whose summary equals, contains or is contained in *content*."""
    probe = (strip_html(content) or "").lower()
    if not probe:
        return []
    similar: list[Item] = []
    for item in items:
        if item.type != item_type:
            continue
        text = summarize(item)
        if not text:
            continue
        existing = text.lower()
        if existing == probe or probe in existing or existing in probe:
            similar.append(item)
    return similar
