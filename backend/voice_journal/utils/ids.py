"""Identifier helpers for entries, tags and media files."""

from __future__ import annotations

import uuid

MEDIA_FILE_PREFIX = "voice_entry_"


def new_id(prefix: str | None = None) -> str:
    """Generate a random UUID4 string with optional prefix."""
    base = uuid.uuid4().hex
    return f"{prefix}_{base}" if prefix else base


def media_file_name(extension: str, token: str | None = None) -> str:
    """Return a collision-free file name for a new recording."""
    return f"{MEDIA_FILE_PREFIX}{token or uuid.uuid4().hex}{extension}"
