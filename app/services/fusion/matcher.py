"""Cross-checklist candidate matching."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import List, Protocol, Sequence

from app.services.checklists.models import ChecklistItem, FusionCandidate
from app.services.fusion.errors import MatchingUnavailableError
from app.services.fusion.generator import FusionTextGenerator
from app.services.fusion.scorer import score_pair
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_THRESHOLD = 0.7
DEFAULT_MAX_RESULTS = 50


class EmbeddingProvider(Protocol):
    def embed(self, texts: Sequence[str]) -> List[List[float]]: ...


class CandidateMatcher:
    """Score every A x B item pair, keep the best ones and attach fused wording.

    Matching is not one-to-one: an item may appear in several candidates.
    Which of them wins is decided later by the user's decisions.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        generator: FusionTextGenerator,
        *,
        max_workers: int = 8,
    ) -> None:
        self.embedder = embedder
        self.generator = generator
        self.max_workers = max(1, max_workers)

    def match(
        self,
        items_a: Sequence[ChecklistItem],
        items_b: Sequence[ChecklistItem],
        threshold: float = DEFAULT_THRESHOLD,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> List[FusionCandidate]:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        if max_results < 1:
            raise ValueError(f"max_results must be at least 1, got {max_results}")

        vectors_a = self._embed(items_a, "checklist1")
        vectors_b = self._embed(items_b, "checklist2")

        scored: List[FusionCandidate] = []
        for item_a, vec_a in zip(items_a, vectors_a):
            for item_b, vec_b in zip(items_b, vectors_b):
                similarity = score_pair(item_a, item_b, vec_a, vec_b)
                if similarity >= threshold:
                    scored.append(FusionCandidate(item1=item_a, item2=item_b, similarity=similarity))

        # sorted() is stable: equal scores keep A-major enumeration order.
        ranked = sorted(scored, key=lambda candidate: candidate.similarity, reverse=True)
        selected = ranked[:max_results]
        LOGGER.info(
            "Matched %d x %d items: %d above threshold %.2f, keeping %d",
            len(items_a),
            len(items_b),
            len(scored),
            threshold,
            len(selected),
        )

        self._attach_fused_text(selected)
        return selected

    def _embed(self, items: Sequence[ChecklistItem], label: str) -> List[List[float]]:
        if not items:
            return []
        try:
            vectors = self.embedder.embed([item.text for item in items])
        except Exception as exc:
            raise MatchingUnavailableError(f"Embedding retrieval failed for {label}: {exc}") from exc
        if len(vectors) != len(items):
            raise MatchingUnavailableError(
                f"Embedding retrieval for {label} returned {len(vectors)} vectors "
                f"for {len(items)} items"
            )
        return list(vectors)

    def _attach_fused_text(self, candidates: List[FusionCandidate]) -> None:
        if not candidates:
            return
        workers = min(self.max_workers, len(candidates))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            # map() yields results in submission order regardless of completion order.
            texts = list(
                pool.map(
                    lambda candidate: self.generator.generate(candidate.item1, candidate.item2),
                    candidates,
                )
            )
        for candidate, text in zip(candidates, texts):
            candidate.fused_text = text
