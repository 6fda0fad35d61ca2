"""Pairwise similarity scoring for checklist items."""

from __future__ import annotations

import math
from typing import Sequence

from app.services.checklists.models import ChecklistItem

REFERENCE_BOOST = 0.15
CATEGORY_BOOST = 0.10


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors; 0.0 when either has zero norm."""
    if len(vec_a) != len(vec_b):
        raise ValueError(
            f"Vectors must have the same length (got {len(vec_a)} and {len(vec_b)})"
        )
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for a, b in zip(vec_a, vec_b):
        dot += a * b
        norm_a += a * a
        norm_b += b * b
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def has_matching_references(item_a: ChecklistItem, item_b: ChecklistItem) -> bool:
    refs_a = {ref.lower() for ref in item_a.references}
    refs_b = {ref.lower() for ref in item_b.references}
    return not refs_a.isdisjoint(refs_b)


def is_same_category(item_a: ChecklistItem, item_b: ChecklistItem) -> bool:
    if not item_a.category or not item_b.category:
        return False
    return item_a.category.lower() == item_b.category.lower()


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def score_pair(
    item_a: ChecklistItem,
    item_b: ChecklistItem,
    vec_a: Sequence[float],
    vec_b: Sequence[float],
) -> float:
    """Blend embedding similarity with reference and category boosts, in [0, 1]."""
    score = _clamp(cosine_similarity(vec_a, vec_b))
    if has_matching_references(item_a, item_b):
        score = min(1.0, score + REFERENCE_BOOST)
    if is_same_category(item_a, item_b):
        score = min(1.0, score + CATEGORY_BOOST)
    return score
