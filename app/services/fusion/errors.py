"""Errors raised by the fusion pipeline."""


class FusionError(Exception):
    """Base class for fusion pipeline failures."""


class MatchingUnavailableError(FusionError):
    """Raised when embeddings cannot be retrieved for a matching run."""


class SuggestionConsistencyError(FusionError):
    """Raised when a suggestion references an item missing from its checklist."""

    def __init__(self, suggestion_id: str, item_id: str, checklist_label: str) -> None:
        self.suggestion_id = suggestion_id
        self.item_id = item_id
        self.checklist_label = checklist_label
        super().__init__(
            f"Suggestion {suggestion_id} references item {item_id!r} "
            f"which is not present in {checklist_label}"
        )
