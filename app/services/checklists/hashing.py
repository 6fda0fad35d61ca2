"""Content hashing for uploaded checklist files."""

from __future__ import annotations

import hashlib


def file_hash(data: bytes) -> str:
    """Return the sha256 hex digest used as the checklist identity key."""
    return hashlib.sha256(data).hexdigest()
