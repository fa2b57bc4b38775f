"""
Bounded ledger of items this server recently created or modified.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from miro_mcp.models import Item
from miro_mcp.summary import summarize

DEFAULT_CAPACITY = 20


@dataclass
class HistoryEntry:
    id: str
    type: str
    summary: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ModificationHistory:
    """Two bounded FIFOs keyed by item id.

    Re-tracking an id replaces its entry and makes it the newest one. Once a
    ledger holds more than *capacity* entries the oldest is evicted.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = max(1, capacity)
        self._created: OrderedDict[str, HistoryEntry] = OrderedDict()
        self._modified: OrderedDict[str, HistoryEntry] = OrderedDict()
        self._lock = threading.Lock()

    def track_creation(self, item: Item) -> Optional[HistoryEntry]:
        return self._track(self._created, item)

    def track_modification(self, item: Item) -> Optional[HistoryEntry]:
        return self._track(self._modified, item)

    def recently_created(self, limit: Optional[int] = None) -> list[HistoryEntry]:
        """Newest first."""
        return self._recent(self._created, limit)

    def recently_modified(self, limit: Optional[int] = None) -> list[HistoryEntry]:
        """Newest first."""
        return self._recent(self._modified, limit)

    def clear(self) -> None:
        with self._lock:
            self._created.clear()
            self._modified.clear()

    def _track(
        self, ledger: OrderedDict[str, HistoryEntry], item: Item,
    ) -> Optional[HistoryEntry]:
        if not item.id:
            return None
        entry = HistoryEntry(
            id=item.id,
            type=item.type,
            summary=summarize(item) or f"{item.type} item",
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            ledger[item.id] = entry
            ledger.move_to_end(item.id)
            while len(ledger) > self.capacity:
                ledger.popitem(last=False)
        return entry

    def _recent(
        self, ledger: OrderedDict[str, HistoryEntry], limit: Optional[int],
    ) -> list[HistoryEntry]:
        with self._lock:
            entries = list(reversed(ledger.values()))
        return entries[:limit] if limit is not None else entries
