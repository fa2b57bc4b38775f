"""
Cursor pagination over the board's item listing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from miro_mcp.models import BoardSource, Item

logger = logging.getLogger("miro-mcp.pagination")

DEFAULT_PAGE_SIZE = 50


@dataclass
class FetchResult:
    """Everything one drained listing produced."""
    items: list[Item] = field(default_factory=list)
    limit_reached: bool = False
    pages: int = 0


def fetch_items(
    source: BoardSource,
    *,
    item_types: Optional[Sequence[str]] = None,
    max_items: int = 0,
    page_size: int = DEFAULT_PAGE_SIZE,
    predicate: Optional[Callable[[Item], bool]] = None,
) -> FetchResult:
    """Drain the listing into memory.

    Pages are followed until the cursor runs out or *max_items* records have
    been collected (0 means no cap). A page that would overshoot the cap is
    truncated to exactly the cap. With several *item_types*, each type is
    listed in turn and all of them share the one cap. *predicate*, when
    given, drops records before they count towards the cap.

    Errors raised by the listing propagate: the caller cannot build anything
    meaningful from a partial primary listing.
    """
    result = FetchResult()
    for item_type in (list(item_types) if item_types else [None]):
        if _drain(source, item_type, max_items, page_size, predicate, result):
            break
    if max_items > 0 and len(result.items) >= max_items:
        result.limit_reached = True
    logger.debug(
        "Fetched %d item(s) in %d page(s), limit_reached=%s",
        len(result.items), result.pages, result.limit_reached,
    )
    return result


def _drain(
    source: BoardSource,
    item_type: Optional[str],
    max_items: int,
    page_size: int,
    predicate: Optional[Callable[[Item], bool]],
    result: FetchResult,
) -> bool:
    """Follow one type's cursor chain. Returns True once the cap is hit."""
    cursor: Optional[str] = None
    seen_cursors: set[str] = set()
    while True:
        page = source.list_items(item_type=item_type, cursor=cursor, limit=page_size)
        result.pages += 1
        batch = [Item.from_record(r) for r in page.records if isinstance(r, dict)]
        if predicate is not None:
            batch = [it for it in batch if predicate(it)]
        if max_items > 0 and len(result.items) + len(batch) >= max_items:
            result.items.extend(batch[: max_items - len(result.items)])
            return True
        result.items.extend(batch)

        cursor = page.cursor or None
        if cursor is None:
            return False
        if cursor in seen_cursors:
            logger.warning("Listing returned cursor %r twice; stopping pagination", cursor)
            return False
        seen_cursors.add(cursor)
