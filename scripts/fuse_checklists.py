"""Fuse two parsed checklists from the command line."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Sequence

from app.config import get_settings
from app.services.checklists.models import FusionCandidate, FusionSuggestion, ParsedChecklist
from app.services.export.renderer import ExportDocument, render_checklist_pdf
from app.services.fusion.builder import build_fused_checklist, export_rows
from app.services.fusion.errors import FusionError
from app.services.fusion.generator import FusionTextGenerator
from app.services.fusion.ledger import DecisionLedger
from app.services.fusion.matcher import CandidateMatcher
from app.services.llm.client import LLMClient


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Match and fuse two parsed checklists.")
    parser.add_argument("checklist1", help="Parsed checklist JSON (items + metadata).")
    parser.add_argument("checklist2", help="Parsed checklist JSON (items + metadata).")
    parser.add_argument("--threshold", type=float, default=settings.fusion_similarity_threshold)
    parser.add_argument("--max-suggestions", type=int, default=settings.fusion_max_suggestions)
    parser.add_argument(
        "--accept-above",
        type=float,
        default=0.9,
        help="Accept suggestions scoring at or above this value (default: 0.9).",
    )
    parser.add_argument("--out", default="fused_checklist.json", help="Output JSON path.")
    parser.add_argument("--pdf", default=None, help="Optional PDF output path.")
    return parser.parse_args()


def load_parsed(path: Path) -> ParsedChecklist:
    return ParsedChecklist.from_dict(json.loads(path.read_text(encoding="utf-8")))


def to_suggestions(candidates: Sequence[FusionCandidate]) -> List[FusionSuggestion]:
    """Number candidates as in-memory suggestions for a one-shot run."""
    return [
        FusionSuggestion.from_candidate(
            candidate,
            suggestion_id=f"s{idx}",
            checklist1_id="checklist1",
            checklist2_id="checklist2",
        )
        for idx, candidate in enumerate(candidates, start=1)
    ]


def auto_decide(suggestions: Sequence[FusionSuggestion], min_score: float) -> DecisionLedger:
    ledger = DecisionLedger()
    for suggestion in suggestions:
        if suggestion.similarity_score >= min_score:
            ledger.accept(suggestion.id)
        else:
            ledger.reject(suggestion.id)
    return ledger


def main() -> int:
    args = parse_args()
    settings = get_settings()
    checklist1 = load_parsed(Path(args.checklist1))
    checklist2 = load_parsed(Path(args.checklist2))

    client = LLMClient(
        base_url=settings.llm_base_url or None,
        api_key=settings.llm_api_key,
        default_model=settings.llm_model,
        embedding_model=settings.embedding_model,
        provider=settings.llm_provider,
        timeout_s=settings.llm_timeout_seconds,
    )
    matcher = CandidateMatcher(
        embedder=client,
        generator=FusionTextGenerator(client),
        max_workers=settings.fusion_max_workers,
    )
    try:
        candidates = matcher.match(
            checklist1.items,
            checklist2.items,
            threshold=args.threshold,
            max_results=args.max_suggestions,
        )
    except (FusionError, ValueError) as exc:
        print(f"Matching error: {exc}", file=sys.stderr)
        return 1

    suggestions = to_suggestions(candidates)
    ledger = auto_decide(suggestions, args.accept_above)
    fused = build_fused_checklist(checklist1, checklist2, suggestions, ledger)

    out_path = Path(args.out)
    out_path.write_text(json.dumps(fused.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
    accepted = sum(1 for decision in ledger if decision.is_merge)
    print(
        f"[fuse] suggestions={len(suggestions)}, accepted={accepted}, "
        f"items={len(fused.items)}, saved to {out_path}"
    )

    if args.pdf:
        document = ExportDocument(
            title=fused.metadata.title,
            version=fused.metadata.version,
            date=fused.metadata.date,
            rows=export_rows(fused),
            metadata={
                "checklist1_name": checklist1.metadata.title,
                "checklist2_name": checklist2.metadata.title,
            },
        )
        Path(args.pdf).write_bytes(render_checklist_pdf(document, settings.export_font_path))
        print(f"[fuse] pdf saved to {args.pdf}")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
