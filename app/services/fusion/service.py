"""Suggestion generation with pair-level caching, and fused checklist assembly."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from app.services.checklists.models import (
    Checklist,
    FusedChecklist,
    FusionDecision,
    FusionSuggestion,
    SuggestionWithItems,
)
from app.services.fusion.builder import build_fused_checklist
from app.services.fusion.errors import SuggestionConsistencyError
from app.services.fusion.ledger import DecisionLedger
from app.services.fusion.matcher import CandidateMatcher
from app.services.store.records import RecordStore
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class SuggestionBatch:
    suggestions: List[SuggestionWithItems]
    cached: bool


def attach_source_items(
    suggestions: Iterable[FusionSuggestion],
    checklist1: Checklist,
    checklist2: Checklist,
) -> List[SuggestionWithItems]:
    """Resolve each suggestion's source items; a missing item is a data-integrity error."""
    resolved: List[SuggestionWithItems] = []
    for suggestion in suggestions:
        item1 = checklist1.parsed_content.find_item(suggestion.item1_id)
        if item1 is None:
            raise SuggestionConsistencyError(suggestion.id, suggestion.item1_id, checklist1.file_name)
        item2 = checklist2.parsed_content.find_item(suggestion.item2_id)
        if item2 is None:
            raise SuggestionConsistencyError(suggestion.id, suggestion.item2_id, checklist2.file_name)
        resolved.append(SuggestionWithItems(suggestion=suggestion, item1=item1, item2=item2))
    return resolved


class FusionService:
    """Entry point used by the API and the CLI.

    The suggestion cache is keyed by the ordered checklist pair only. A cached
    set is returned as-is even when it was produced with a different threshold
    or result cap; ``force_refresh`` recomputes and replaces it.
    """

    def __init__(
        self,
        store: RecordStore,
        matcher: CandidateMatcher,
        *,
        default_threshold: float = 0.7,
        default_max_results: int = 50,
    ) -> None:
        self.store = store
        self.matcher = matcher
        self.default_threshold = default_threshold
        self.default_max_results = default_max_results

    def generate_suggestions(
        self,
        checklist1: Checklist,
        checklist2: Checklist,
        *,
        threshold: Optional[float] = None,
        max_results: Optional[int] = None,
        force_refresh: bool = False,
    ) -> SuggestionBatch:
        params = {
            "threshold": self.default_threshold if threshold is None else threshold,
            "max_results": self.default_max_results if max_results is None else max_results,
        }

        with self.store.pair_lock(checklist1.id, checklist2.id):
            if not force_refresh:
                existing = self.store.find_suggestions(checklist1.id, checklist2.id)
                if existing:
                    stored_params = self.store.suggestion_params(checklist1.id, checklist2.id)
                    if stored_params and stored_params != params:
                        LOGGER.warning(
                            "Returning cached suggestions for %s/%s computed with %s (requested %s)",
                            checklist1.id,
                            checklist2.id,
                            stored_params,
                            params,
                        )
                    return SuggestionBatch(
                        suggestions=attach_source_items(existing, checklist1, checklist2),
                        cached=True,
                    )

            candidates = self.matcher.match(
                checklist1.parsed_content.items,
                checklist2.parsed_content.items,
                threshold=params["threshold"],
                max_results=params["max_results"],
            )
            saved = self.store.save_suggestions(checklist1.id, checklist2.id, candidates, params)

        return SuggestionBatch(
            suggestions=attach_source_items(saved, checklist1, checklist2),
            cached=False,
        )

    def regenerate_text(
        self, checklist1: Checklist, checklist2: Checklist, item1_id: str, item2_id: str
    ) -> str:
        """Fresh fused wording for one pair; the stored suggestion is left untouched."""
        item1 = checklist1.parsed_content.find_item(item1_id)
        if item1 is None:
            raise ValueError(f"Item {item1_id!r} not found in {checklist1.file_name}")
        item2 = checklist2.parsed_content.find_item(item2_id)
        if item2 is None:
            raise ValueError(f"Item {item2_id!r} not found in {checklist2.file_name}")
        return self.matcher.generator.generate(item1, item2)

    def build(
        self,
        checklist1: Checklist,
        checklist2: Checklist,
        decisions: Sequence[FusionDecision],
        *,
        today: Optional[dt.date] = None,
    ) -> FusedChecklist:
        suggestions = self.store.find_suggestions(checklist1.id, checklist2.id)
        known = {suggestion.id for suggestion in suggestions}
        unknown = [d.suggestion_id for d in decisions if d.suggestion_id not in known]
        if unknown:
            raise ValueError(f"Decisions reference unknown suggestions: {', '.join(unknown)}")
        ledger = DecisionLedger.from_decisions(decisions)
        return build_fused_checklist(
            checklist1.parsed_content,
            checklist2.parsed_content,
            suggestions,
            ledger,
            today=today,
        )
