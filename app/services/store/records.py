"""File-backed record store for checklists and fusion suggestions."""

from __future__ import annotations

import datetime as dt
import json
import os
import tempfile
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from app.services.checklists.models import (
    Checklist,
    FusionCandidate,
    FusionSuggestion,
    ParsedChecklist,
)
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class StoreError(Exception):
    """Raised when a record cannot be read or written."""


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _safe_key(value: str) -> str:
    key = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in value)
    if not key:
        raise StoreError(f"Invalid record key: {value!r}")
    return key


class RecordStore:
    """Checklists keyed by content hash, suggestions keyed by ordered checklist pair.

    Layout::

        <root>/checklists/<file_hash>.json
        <root>/suggestions/<checklist1_id>__<checklist2_id>.json
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._locks_guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    @property
    def checklists_dir(self) -> Path:
        return self.root / "checklists"

    @property
    def suggestions_dir(self) -> Path:
        return self.root / "suggestions"

    def _checklist_path(self, file_hash: str) -> Path:
        return self.checklists_dir / f"{_safe_key(file_hash)}.json"

    def _pair_key(self, checklist1_id: str, checklist2_id: str) -> str:
        return f"{_safe_key(checklist1_id)}__{_safe_key(checklist2_id)}"

    def _suggestions_path(self, checklist1_id: str, checklist2_id: str) -> Path:
        return self.suggestions_dir / f"{self._pair_key(checklist1_id, checklist2_id)}.json"

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def pair_lock(self, checklist1_id: str, checklist2_id: str) -> Iterator[None]:
        """Serialize check-then-save for one ordered checklist pair."""
        with self._lock_for(f"pair:{self._pair_key(checklist1_id, checklist2_id)}"):
            yield

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Cannot read record {path}: {exc}") from exc

    def _write(self, path: Path, payload: Dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        except OSError as exc:
            raise StoreError(f"Cannot write record {path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as exc:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreError(f"Cannot write record {path}: {exc}") from exc

    def find_checklist(self, file_hash: str) -> Optional[Checklist]:
        data = self._read(self._checklist_path(file_hash))
        if data is None:
            return None
        try:
            return Checklist.from_dict(data)
        except (KeyError, ValueError) as exc:
            raise StoreError(f"Corrupt checklist record {file_hash}: {exc}") from exc

    def save_checklist(
        self, file_hash: str, file_name: str, parsed: ParsedChecklist
    ) -> Checklist:
        """Insert a checklist; an existing record with the same hash wins."""
        with self._lock_for(f"checklist:{_safe_key(file_hash)}"):
            existing = self.find_checklist(file_hash)
            if existing is not None:
                return existing
            now = _now()
            checklist = Checklist(
                id=uuid.uuid4().hex,
                file_hash=file_hash,
                file_name=file_name,
                parsed_content=parsed,
                created_at=now,
                updated_at=now,
            )
            self._write(self._checklist_path(file_hash), checklist.to_dict())
        LOGGER.info("Saved checklist %s (%s, %d items)", checklist.id, file_name, len(parsed.items))
        return checklist

    def _load_suggestion_record(
        self, checklist1_id: str, checklist2_id: str
    ) -> Optional[Dict[str, Any]]:
        return self._read(self._suggestions_path(checklist1_id, checklist2_id))

    def find_suggestions(self, checklist1_id: str, checklist2_id: str) -> List[FusionSuggestion]:
        """Stored suggestions for the pair, highest similarity first."""
        record = self._load_suggestion_record(checklist1_id, checklist2_id)
        if record is None:
            return []
        try:
            suggestions = [FusionSuggestion.from_dict(raw) for raw in record.get("suggestions", [])]
        except (KeyError, ValueError, TypeError) as exc:
            raise StoreError(
                f"Corrupt suggestion record {checklist1_id}/{checklist2_id}: {exc}"
            ) from exc
        return sorted(suggestions, key=lambda s: s.similarity_score, reverse=True)

    def suggestion_params(self, checklist1_id: str, checklist2_id: str) -> Dict[str, Any]:
        """Matching parameters that produced the stored suggestions, if any."""
        record = self._load_suggestion_record(checklist1_id, checklist2_id)
        if record is None:
            return {}
        return dict(record.get("params") or {})

    def save_suggestions(
        self,
        checklist1_id: str,
        checklist2_id: str,
        candidates: Sequence[FusionCandidate],
        params: Optional[Dict[str, Any]] = None,
    ) -> List[FusionSuggestion]:
        """Persist candidates as new suggestions, replacing any stored set for the pair."""
        created_at = _now()
        suggestions = [
            FusionSuggestion.from_candidate(
                candidate,
                suggestion_id=uuid.uuid4().hex,
                checklist1_id=checklist1_id,
                checklist2_id=checklist2_id,
                created_at=created_at,
            )
            for candidate in candidates
        ]
        self._write(
            self._suggestions_path(checklist1_id, checklist2_id),
            {
                "checklist1_id": checklist1_id,
                "checklist2_id": checklist2_id,
                "params": dict(params or {}),
                "created_at": created_at,
                "suggestions": [s.to_dict() for s in suggestions],
            },
        )
        LOGGER.info(
            "Saved %d suggestions for %s/%s", len(suggestions), checklist1_id, checklist2_id
        )
        return suggestions
