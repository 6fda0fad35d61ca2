"""Fused wording for matched checklist items."""

from __future__ import annotations

from typing import Protocol

from app.services.checklists.models import ChecklistItem
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

SYSTEM_INSTRUCTION = (
    "You are an expert at merging audit checklist items while preserving all critical requirements."
)

PROMPT_TEMPLATE = """You are an expert at merging audit checklist items. Given two similar checklist items from different standards, create a single, comprehensive checklist item that satisfies both requirements.

Item 1 ({category1}):
{text1}
{references1}

Item 2 ({category2}):
{text2}
{references2}

Create a fused checklist item that:
1. Preserves all critical requirements from both items
2. Eliminates redundancy
3. Uses clear, professional language
4. Keeps the references to both regulatory frameworks intact
5. Is concise but complete

Return only the fused text without any explanation or preamble."""


class CompletionProvider(Protocol):
    def complete(self, prompt: str, system_instruction: str) -> str: ...


def _references_line(item: ChecklistItem) -> str:
    if not item.references:
        return ""
    return f"References: {', '.join(item.references)}"


def build_prompt(item_a: ChecklistItem, item_b: ChecklistItem) -> str:
    return PROMPT_TEMPLATE.format(
        category1=item_a.category or "uncategorized",
        text1=item_a.text,
        references1=_references_line(item_a),
        category2=item_b.category or "uncategorized",
        text2=item_b.text,
        references2=_references_line(item_b),
    )


def fallback_text(item_a: ChecklistItem, item_b: ChecklistItem) -> str:
    return f"{item_a.text} {item_b.text}"


class FusionTextGenerator:
    """Ask the language model for merged wording; concatenate on any failure."""

    def __init__(self, provider: CompletionProvider) -> None:
        self.provider = provider

    def generate(self, item_a: ChecklistItem, item_b: ChecklistItem) -> str:
        try:
            text = self.provider.complete(build_prompt(item_a, item_b), SYSTEM_INSTRUCTION)
        except Exception as exc:  # noqa: BLE001 - any provider failure degrades to fallback
            LOGGER.warning(
                "Fusion text generation failed for %s/%s, using concatenation: %s",
                item_a.id,
                item_b.id,
                exc,
            )
            return fallback_text(item_a, item_b)

        text = (text or "").strip()
        if not text:
            LOGGER.warning(
                "Empty fusion text for %s/%s, using concatenation", item_a.id, item_b.id
            )
            return fallback_text(item_a, item_b)
        return text
