from pathlib import Path

import pytest

from app.services.checklists.models import (
    ChecklistItem,
    ChecklistMetadata,
    FusionCandidate,
    ParsedChecklist,
)
from app.services.store.records import RecordStore, StoreError


def _parsed() -> ParsedChecklist:
    return ParsedChecklist(
        items=[ChecklistItem(id="a1", section="A. General", text="Keep records.", references=["1"])],
        metadata=ChecklistMetadata(title="Bio", version="2025", date="2025-01-01", sections=["A. General"]),
    )


def test_save_and_find_checklist(tmp_path: Path) -> None:
    store = RecordStore(tmp_path / "store")
    assert store.find_checklist("abc123") is None
    saved = store.save_checklist("abc123", "bio.pdf", _parsed())
    found = store.find_checklist("abc123")
    assert found == saved
    assert found.parsed_content.items[0].references == ["1"]
    assert (tmp_path / "store" / "checklists" / "abc123.json").exists()


def test_save_checklist_is_idempotent_per_hash(tmp_path: Path) -> None:
    store = RecordStore(tmp_path)
    first = store.save_checklist("abc123", "bio.pdf", _parsed())
    second = store.save_checklist("abc123", "renamed.pdf", _parsed())
    assert second.id == first.id
    assert second.file_name == "bio.pdf"


def test_suggestions_round_trip_sorted(tmp_path: Path) -> None:
    store = RecordStore(tmp_path)
    item_a = ChecklistItem(id="a1", section="A", text="One.")
    item_b = ChecklistItem(id="b1", section="A", text="Uno.")
    item_c = ChecklistItem(id="b2", section="A", text="Eins.")
    candidates = [
        FusionCandidate(item_a, item_b, 0.75, "One/Uno"),
        FusionCandidate(item_a, item_c, 0.95, "One/Eins"),
    ]
    saved = store.save_suggestions("c1", "c2", candidates, {"threshold": 0.7, "max_results": 50})
    assert len({s.id for s in saved}) == 2

    found = store.find_suggestions("c1", "c2")
    assert [s.item2_id for s in found] == ["b2", "b1"]
    assert found[0].suggested_text == "One/Eins"
    assert store.suggestion_params("c1", "c2") == {"threshold": 0.7, "max_results": 50}
    # the pair is ordered
    assert store.find_suggestions("c2", "c1") == []


def test_corrupt_record_raises(tmp_path: Path) -> None:
    store = RecordStore(tmp_path)
    path = tmp_path / "checklists" / "bad.json"
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError):
        store.find_checklist("bad")


def test_failed_write_leaves_no_temp_file(tmp_path: Path) -> None:
    store = RecordStore(tmp_path)
    candidate = FusionCandidate(
        item1=ChecklistItem(id="a1", section="A", text="Keep records."),
        item2=ChecklistItem(id="b1", section="B", text="Records are kept."),
        similarity=0.9,
        fused_text="Keep records.",
    )
    with pytest.raises(StoreError, match="Cannot write record"):
        store.save_suggestions("c1", "c2", [candidate], {"threshold": object()})
    assert list(store.suggestions_dir.glob("*.tmp")) == []
    assert store.find_suggestions("c1", "c2") == []
