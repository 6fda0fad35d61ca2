"""Typed models for parsed checklists, fusion suggestions and decisions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional

FusionStatus = Literal["accepted", "rejected", "edited"]
FUSION_STATUSES = ("accepted", "rejected", "edited")


def _str_list(value: Any) -> List[str]:
    if not value:
        return []
    return [str(entry) for entry in value]


@dataclass
class ChecklistItem:
    id: str
    section: str
    text: str
    category: str = ""
    options: List[str] = field(default_factory=list)
    references: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChecklistItem":
        item_id = str(data.get("id") or "").strip()
        if not item_id:
            raise ValueError("Checklist item is missing an id")
        text = str(data.get("text") or "").strip()
        if not text:
            raise ValueError(f"Checklist item {item_id!r} has empty text")
        return cls(
            id=item_id,
            section=str(data.get("section") or ""),
            text=text,
            category=str(data.get("category") or ""),
            options=_str_list(data.get("options")),
            references=_str_list(data.get("references")),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "section": self.section,
            "text": self.text,
            "category": self.category,
            "options": list(self.options),
            "references": list(self.references),
            "metadata": dict(self.metadata),
        }


@dataclass
class ChecklistMetadata:
    title: str = ""
    version: str = ""
    date: str = ""
    sections: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ChecklistMetadata":
        data = data or {}
        return cls(
            title=str(data.get("title") or ""),
            version=str(data.get("version") or ""),
            date=str(data.get("date") or ""),
            sections=_str_list(data.get("sections")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "version": self.version,
            "date": self.date,
            "sections": list(self.sections),
        }


@dataclass
class ParsedChecklist:
    items: List[ChecklistItem]
    metadata: ChecklistMetadata = field(default_factory=ChecklistMetadata)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParsedChecklist":
        items = [ChecklistItem.from_dict(raw) for raw in data.get("items") or []]
        seen: set[str] = set()
        for item in items:
            if item.id in seen:
                raise ValueError(f"Duplicate checklist item id {item.id!r}")
            seen.add(item.id)
        return cls(items=items, metadata=ChecklistMetadata.from_dict(data.get("metadata")))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "metadata": self.metadata.to_dict(),
        }

    def find_item(self, item_id: str) -> Optional[ChecklistItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass
class Checklist:
    """Persisted checklist record, addressed by the hash of its source file."""

    id: str
    file_hash: str
    file_name: str
    parsed_content: ParsedChecklist
    created_at: str
    updated_at: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Checklist":
        return cls(
            id=str(data["id"]),
            file_hash=str(data["file_hash"]),
            file_name=str(data.get("file_name") or ""),
            parsed_content=ParsedChecklist.from_dict(data.get("parsed_content") or {}),
            created_at=str(data.get("created_at") or ""),
            updated_at=str(data.get("updated_at") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "file_hash": self.file_hash,
            "file_name": self.file_name,
            "parsed_content": self.parsed_content.to_dict(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class FusionCandidate:
    item1: ChecklistItem
    item2: ChecklistItem
    similarity: float
    fused_text: str = ""


@dataclass(frozen=True)
class FusionSuggestion:
    id: str
    checklist1_id: str
    checklist2_id: str
    item1_id: str
    item2_id: str
    suggested_text: str
    similarity_score: float
    created_at: str = ""

    @classmethod
    def from_candidate(
        cls,
        candidate: FusionCandidate,
        *,
        suggestion_id: str,
        checklist1_id: str,
        checklist2_id: str,
        created_at: str = "",
    ) -> "FusionSuggestion":
        return cls(
            id=suggestion_id,
            checklist1_id=checklist1_id,
            checklist2_id=checklist2_id,
            item1_id=candidate.item1.id,
            item2_id=candidate.item2.id,
            suggested_text=candidate.fused_text,
            similarity_score=candidate.similarity,
            created_at=created_at,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FusionSuggestion":
        return cls(
            id=str(data["id"]),
            checklist1_id=str(data["checklist1_id"]),
            checklist2_id=str(data["checklist2_id"]),
            item1_id=str(data["item1_id"]),
            item2_id=str(data["item2_id"]),
            suggested_text=str(data.get("suggested_text") or ""),
            similarity_score=float(data.get("similarity_score") or 0.0),
            created_at=str(data.get("created_at") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "checklist1_id": self.checklist1_id,
            "checklist2_id": self.checklist2_id,
            "item1_id": self.item1_id,
            "item2_id": self.item2_id,
            "suggested_text": self.suggested_text,
            "similarity_score": self.similarity_score,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class SuggestionWithItems:
    suggestion: FusionSuggestion
    item1: ChecklistItem
    item2: ChecklistItem

    def to_dict(self) -> Dict[str, Any]:
        payload = self.suggestion.to_dict()
        payload["source_items"] = {"item1": self.item1.to_dict(), "item2": self.item2.to_dict()}
        return payload


@dataclass(frozen=True)
class FusionDecision:
    suggestion_id: str
    status: FusionStatus
    custom_text: Optional[str] = None

    @property
    def is_merge(self) -> bool:
        """True when the decision consumes both source items."""
        return self.status in ("accepted", "edited")


@dataclass
class FusedChecklist(ParsedChecklist):
    # Accepted suggestions skipped because a source item was already consumed.
    conflicts: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["conflicts"] = list(self.conflicts)
        return payload


@dataclass
class ExportRow:
    """One printable checklist row with the ids of the items it came from."""

    item: ChecklistItem
    source_ids: List[str]
    is_fused: bool

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExportRow":
        return cls(
            item=ChecklistItem.from_dict(data["item"]),
            source_ids=[str(value) for value in data.get("source_ids") or []],
            is_fused=bool(data.get("is_fused")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item": self.item.to_dict(),
            "source_ids": list(self.source_ids),
            "is_fused": self.is_fused,
        }
