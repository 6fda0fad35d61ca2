from typing import Dict, List, Sequence

import pytest

from app.services.checklists.models import ChecklistItem, ChecklistMetadata, ParsedChecklist
from app.services.llm.client import LLMError


class FakeEmbedder:
    """Embedding provider backed by a text -> vector table."""

    def __init__(self) -> None:
        self.vectors: Dict[str, List[float]] = {}
        self.fail = False
        self.calls: List[List[str]] = []

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise LLMError("embedding quota exceeded")
        return [list(self.vectors[text]) for text in texts]


class FakeCompleter:
    """Completion provider returning a fixed reply, failing when a marker is in the prompt."""

    def __init__(self) -> None:
        self.reply = "Merged requirement."
        self.fail_on: List[str] = []
        self.prompts: List[str] = []

    def complete(self, prompt: str, system_instruction: str) -> str:
        self.prompts.append(prompt)
        for marker in self.fail_on:
            if marker in prompt:
                raise LLMError("request timed out")
        return self.reply


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def completer() -> FakeCompleter:
    return FakeCompleter()


@pytest.fixture
def staff_checklists() -> tuple[ParsedChecklist, ParsedChecklist]:
    """The training example: one item per checklist describing the same control."""
    checklist1 = ParsedChecklist(
        items=[
            ChecklistItem(
                id="a1",
                section="A. General",
                text="Staff must be trained annually.",
                category="Personnel",
                references=["3.2"],
            )
        ],
        metadata=ChecklistMetadata(title="Standard A", sections=["A. General"]),
    )
    checklist2 = ParsedChecklist(
        items=[
            ChecklistItem(
                id="b1",
                section="B. HR",
                text="Personnel require yearly training.",
                category="Personnel",
                references=["3.2"],
            )
        ],
        metadata=ChecklistMetadata(title="Standard B", sections=["B. HR"]),
    )
    return checklist1, checklist2
