"""Tests for the modification history ledger."""

from concurrent.futures import ThreadPoolExecutor

from miro_mcp.history import HistoryEntry, ModificationHistory
from miro_mcp.models import Item


def _item(item_id: str, content: str = "") -> Item:
    return Item.from_record({"id": item_id, "type": "sticky_note", "data": {"content": content}})


def test_newest_first() -> None:
    history = ModificationHistory()
    for i in range(3):
        history.track_creation(_item(str(i), f"note {i}"))
    assert [e.id for e in history.recently_created()] == ["2", "1", "0"]
    assert history.recently_created()[0].summary == "note 2"


def test_capacity_evicts_oldest() -> None:
    history = ModificationHistory(capacity=3)
    for i in range(5):
        history.track_modification(_item(str(i)))
    assert [e.id for e in history.recently_modified()] == ["4", "3", "2"]


def test_retracking_moves_to_newest_without_duplicates() -> None:
    history = ModificationHistory()
    history.track_modification(_item("a", "v1"))
    history.track_modification(_item("b"))
    history.track_modification(_item("a", "v2"))
    entries = history.recently_modified()
    assert [e.id for e in entries] == ["a", "b"]
    assert entries[0].summary == "v2"


def test_ledgers_are_independent() -> None:
    history = ModificationHistory()
    history.track_creation(_item("a"))
    assert history.recently_modified() == []


def test_summary_fallback_and_limit() -> None:
    history = ModificationHistory()
    history.track_creation(_item("a"))
    history.track_creation(_item("b"))
    [entry] = history.recently_created(limit=1)
    assert entry.summary == "sticky_note item"
    assert set(entry.to_dict()) == {"id", "type", "summary", "timestamp"}


def test_item_without_id_is_ignored() -> None:
    history = ModificationHistory()
    assert history.track_creation(_item("")) is None
    assert history.recently_created() == []


def test_clear() -> None:
    history = ModificationHistory()
    history.track_creation(_item("a"))
    history.track_modification(_item("a"))
    history.clear()
    assert history.recently_created() == [] and history.recently_modified() == []


def test_concurrent_tracking_keeps_ledgers_consistent() -> None:
    history = ModificationHistory(capacity=25)

    def work(n: int) -> None:
        it = _item(str(n % 60), f"note {n}")
        if n % 2:
            history.track_creation(it)
        else:
            history.track_modification(it)
        history.recently_created()
        history.recently_modified(limit=5)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(work, range(400)))

    for entries in (history.recently_created(), history.recently_modified()):
        assert 0 < len(entries) <= 25
        ids = [e.id for e in entries]
        assert len(ids) == len(set(ids))
        for entry in entries:
            assert isinstance(entry, HistoryEntry)
            assert entry.type == "sticky_note"
            assert entry.summary.startswith("note ")
            assert entry.timestamp
