import pytest

from app.services.checklists.models import ChecklistItem
from app.services.fusion.errors import MatchingUnavailableError
from app.services.fusion.generator import FusionTextGenerator
from app.services.fusion.matcher import CandidateMatcher

TRAINING = "Staff must be trained annually."
CLEANING = "Cleaning plans are documented."
YEARLY = "Personnel require yearly training."
REFRESHER = "Refresher courses are logged."
DUPLICATE = "Employees are trained every year."


@pytest.fixture
def items_a() -> list[ChecklistItem]:
    return [
        ChecklistItem(id="a1", section="A. General", text=TRAINING),
        ChecklistItem(id="a2", section="A. General", text=CLEANING),
    ]


@pytest.fixture
def items_b() -> list[ChecklistItem]:
    return [
        ChecklistItem(id="b1", section="B. HR", text=YEARLY),
        ChecklistItem(id="b2", section="B. HR", text=REFRESHER),
    ]


@pytest.fixture
def matcher(embedder, completer) -> CandidateMatcher:
    embedder.vectors = {
        TRAINING: [1.0, 0.0],
        CLEANING: [0.0, 1.0],
        YEARLY: [1.0, 0.0],
        REFRESHER: [0.8, 0.6],
        DUPLICATE: [1.0, 0.0],
    }
    return CandidateMatcher(embedder, FusionTextGenerator(completer), max_workers=4)


def _pairs(candidates) -> list[tuple[str, str]]:
    return [(c.item1.id, c.item2.id) for c in candidates]


def test_match_filters_and_ranks(matcher, items_a, items_b, embedder) -> None:
    candidates = matcher.match(items_a, items_b, threshold=0.7)
    assert _pairs(candidates) == [("a1", "b1"), ("a1", "b2")]
    assert candidates[0].similarity == pytest.approx(1.0)
    assert candidates[1].similarity == pytest.approx(0.8)
    assert all(c.fused_text == "Merged requirement." for c in candidates)
    # one batched call per checklist
    assert embedder.calls == [[TRAINING, CLEANING], [YEARLY, REFRESHER]]


def test_match_allows_item_in_several_candidates(matcher, items_a, items_b) -> None:
    candidates = matcher.match(items_a, items_b, threshold=0.5)
    assert _pairs(candidates) == [("a1", "b1"), ("a1", "b2"), ("a2", "b2")]


def test_match_ties_keep_enumeration_order(matcher, items_a, items_b) -> None:
    items_b = items_b + [ChecklistItem(id="b3", section="B. HR", text=DUPLICATE)]
    candidates = matcher.match(items_a, items_b, threshold=0.9)
    assert _pairs(candidates) == [("a1", "b1"), ("a1", "b3")]


def test_match_truncates_before_generation(matcher, items_a, items_b, completer) -> None:
    candidates = matcher.match(items_a, items_b, threshold=0.5, max_results=1)
    assert _pairs(candidates) == [("a1", "b1")]
    assert len(completer.prompts) == 1


def test_threshold_monotonicity(matcher, items_a, items_b) -> None:
    counts = [len(matcher.match(items_a, items_b, threshold=t)) for t in (0.0, 0.5, 0.7, 0.9, 1.0)]
    assert counts == sorted(counts, reverse=True)


def test_match_is_deterministic(matcher, items_a, items_b) -> None:
    first = matcher.match(items_a, items_b, threshold=0.0)
    second = matcher.match(items_a, items_b, threshold=0.0)
    assert [(c.item1.id, c.item2.id, c.similarity, c.fused_text) for c in first] == [
        (c.item1.id, c.item2.id, c.similarity, c.fused_text) for c in second
    ]


def test_generation_failure_falls_back_per_pair(matcher, items_a, items_b, completer) -> None:
    completer.fail_on = [REFRESHER]
    candidates = matcher.match(items_a, items_b, threshold=0.5)
    texts = {(c.item1.id, c.item2.id): c.fused_text for c in candidates}
    assert texts[("a1", "b2")] == f"{TRAINING} {REFRESHER}"
    assert texts[("a2", "b2")] == f"{CLEANING} {REFRESHER}"
    assert texts[("a1", "b1")] == "Merged requirement."


def test_embedding_failure_is_fatal(matcher, items_a, items_b, embedder, completer) -> None:
    embedder.fail = True
    with pytest.raises(MatchingUnavailableError):
        matcher.match(items_a, items_b)
    assert completer.prompts == []


def test_empty_checklist_skips_embedding(matcher, items_a, embedder) -> None:
    assert matcher.match(items_a, [], threshold=0.5) == []
    assert embedder.calls == [[TRAINING, CLEANING]]


@pytest.mark.parametrize("threshold,max_results", [(-0.1, 10), (1.5, 10), (0.7, 0)])
def test_match_rejects_invalid_parameters(matcher, items_a, items_b, threshold, max_results) -> None:
    with pytest.raises(ValueError):
        matcher.match(items_a, items_b, threshold=threshold, max_results=max_results)
