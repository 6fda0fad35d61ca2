"""Assemble the final fused checklist from suggestions and user decisions."""

from __future__ import annotations

import datetime as dt
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from app.services.checklists.models import (
    ChecklistItem,
    ChecklistMetadata,
    ExportRow,
    FusedChecklist,
    FusionDecision,
    FusionSuggestion,
    ParsedChecklist,
)
from app.services.fusion.errors import SuggestionConsistencyError
from app.services.fusion.ledger import DecisionLedger
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

FUSED_TITLE = "Fused Checklist"
FUSED_VERSION = "v1.0"
CHECKLIST1 = "checklist1"
CHECKLIST2 = "checklist2"


def ordered_union(*groups: Iterable[str]) -> List[str]:
    """Merge string lists, dropping repeats and keeping first-seen order."""
    seen: Set[str] = set()
    merged: List[str] = []
    for group in groups:
        for value in group:
            if value not in seen:
                seen.add(value)
                merged.append(value)
    return merged


def _source_item(
    checklist: ParsedChecklist, item_id: str, suggestion_id: str, label: str
) -> ChecklistItem:
    item = checklist.find_item(item_id)
    if item is None:
        raise SuggestionConsistencyError(suggestion_id, item_id, label)
    return item


def _fused_item(
    suggestion: FusionSuggestion,
    decision: FusionDecision,
    item1: ChecklistItem,
    item2: ChecklistItem,
) -> ChecklistItem:
    # Section and category come from the checklist1 side only.
    text = decision.custom_text if decision.status == "edited" and decision.custom_text else None
    return ChecklistItem(
        id=f"fused_{suggestion.id}",
        section=item1.section,
        text=text or suggestion.suggested_text,
        category=item1.category,
        options=ordered_union(item1.options, item2.options),
        references=ordered_union(item1.references, item2.references),
        metadata={
            "fused_from": [item1.id, item2.id],
            "original_texts": {"item1": item1.text, "item2": item2.text},
            "suggestion_id": suggestion.id,
            "similarity_score": suggestion.similarity_score,
            "decision": decision.status,
            "inherited_from": CHECKLIST1,
        },
    )


def _carried_item(item: ChecklistItem, label: str) -> ChecklistItem:
    return ChecklistItem(
        id=item.id,
        section=item.section,
        text=item.text,
        category=item.category,
        options=list(item.options),
        references=list(item.references),
        metadata={**item.metadata, "source_checklist": label},
    )


def _dedupe_ids(items: List[ChecklistItem]) -> List[ChecklistItem]:
    """Give colliding ids a source prefix so each id appears once."""
    seen: Set[str] = set()
    for item in items:
        if item.id in seen:
            label = item.metadata.get("source_checklist", "fused")
            original_id = item.id
            item.id = f"{label}:{original_id}"
            item.metadata["original_id"] = original_id
            LOGGER.info("Renamed colliding item id %s to %s", original_id, item.id)
        seen.add(item.id)
    return items


def build_fused_checklist(
    checklist1: ParsedChecklist,
    checklist2: ParsedChecklist,
    suggestions: Sequence[FusionSuggestion],
    ledger: DecisionLedger,
    *,
    today: Optional[dt.date] = None,
) -> FusedChecklist:
    """Merge two checklists according to the accepted and edited suggestions.

    Suggestions are processed in the order given. When an accepted suggestion
    touches an item already consumed by an earlier one, it is skipped and its
    id is reported in ``conflicts``; its other item stays eligible for
    carry-through.
    """
    consumed: Set[Tuple[str, str]] = set()
    fused: List[ChecklistItem] = []
    conflicts: List[str] = []

    for suggestion in suggestions:
        decision = ledger.get(suggestion.id)
        if decision is None or not decision.is_merge:
            continue
        item1 = _source_item(checklist1, suggestion.item1_id, suggestion.id, CHECKLIST1)
        item2 = _source_item(checklist2, suggestion.item2_id, suggestion.id, CHECKLIST2)
        keys = ((CHECKLIST1, item1.id), (CHECKLIST2, item2.id))
        if any(key in consumed for key in keys):
            LOGGER.warning(
                "Skipping suggestion %s: item %s or %s already fused by an earlier suggestion",
                suggestion.id,
                item1.id,
                item2.id,
            )
            conflicts.append(suggestion.id)
            continue
        consumed.update(keys)
        fused.append(_fused_item(suggestion, decision, item1, item2))

    carried1 = [
        _carried_item(item, CHECKLIST1)
        for item in checklist1.items
        if (CHECKLIST1, item.id) not in consumed
    ]
    carried2 = [
        _carried_item(item, CHECKLIST2)
        for item in checklist2.items
        if (CHECKLIST2, item.id) not in consumed
    ]

    items = _dedupe_ids(fused + carried1 + carried2)
    items = sorted(items, key=lambda item: item.section)
    sections: Dict[str, None] = dict.fromkeys(item.section for item in items)

    metadata = ChecklistMetadata(
        title=FUSED_TITLE,
        version=FUSED_VERSION,
        date=(today or dt.date.today()).isoformat(),
        sections=list(sections),
    )
    LOGGER.info(
        "Built fused checklist: %d fused, %d from checklist1, %d from checklist2, %d conflicts",
        len(fused),
        len(carried1),
        len(carried2),
        len(conflicts),
    )
    return FusedChecklist(items=items, metadata=metadata, conflicts=conflicts)


def export_rows(fused: ParsedChecklist) -> List[ExportRow]:
    """Flatten a fused checklist into the renderer's row contract."""
    rows: List[ExportRow] = []
    for item in fused.items:
        fused_from = item.metadata.get("fused_from")
        if fused_from:
            rows.append(ExportRow(item=item, source_ids=list(fused_from), is_fused=True))
        else:
            source_id = item.metadata.get("original_id", item.id)
            rows.append(ExportRow(item=item, source_ids=[source_id], is_fused=False))
    return rows
