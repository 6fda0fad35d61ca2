"""User decisions on fusion suggestions."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, Optional

from app.services.checklists.models import FUSION_STATUSES, FusionDecision


class DecisionLedger:
    """One decision per suggestion id, last write wins.

    The ledger is owned by the session driving the merge and is only mutated
    by user actions; the builder reads it.
    """

    def __init__(self) -> None:
        self._decisions: Dict[str, FusionDecision] = {}

    @classmethod
    def from_decisions(cls, decisions: Iterable[FusionDecision]) -> "DecisionLedger":
        ledger = cls()
        for decision in decisions:
            ledger.set(decision)
        return ledger

    def set(self, decision: FusionDecision) -> None:
        if decision.status not in FUSION_STATUSES:
            raise ValueError(f"Unknown fusion status {decision.status!r}")
        if decision.status == "edited":
            self.edit(decision.suggestion_id, decision.custom_text or "")
            return
        self._decisions[decision.suggestion_id] = FusionDecision(
            suggestion_id=decision.suggestion_id, status=decision.status
        )

    def accept(self, suggestion_id: str) -> None:
        self._decisions[suggestion_id] = FusionDecision(suggestion_id, "accepted")

    def reject(self, suggestion_id: str) -> None:
        self._decisions[suggestion_id] = FusionDecision(suggestion_id, "rejected")

    def edit(self, suggestion_id: str, text: str) -> None:
        custom_text = (text or "").strip()
        if not custom_text:
            raise ValueError(f"Edited text for suggestion {suggestion_id} must not be empty")
        self._decisions[suggestion_id] = FusionDecision(suggestion_id, "edited", custom_text)

    def clear(self, suggestion_id: str) -> None:
        self._decisions.pop(suggestion_id, None)

    def get(self, suggestion_id: str) -> Optional[FusionDecision]:
        return self._decisions.get(suggestion_id)

    def __contains__(self, suggestion_id: object) -> bool:
        return suggestion_id in self._decisions

    def __iter__(self) -> Iterator[FusionDecision]:
        return iter(list(self._decisions.values()))

    def __len__(self) -> int:
        return len(self._decisions)
