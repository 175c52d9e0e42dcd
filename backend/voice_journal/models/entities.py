"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

DEFAULT_ENTRY_TITLE = "Voice Entry"
UNCATEGORIZED_NAME = "Uncategorized"


@dataclass(slots=True)
class Entry:
    id: str
    audio_path: str | None
    duration: float
    created_at: datetime
    title: str | None = DEFAULT_ENTRY_TITLE
    transcript: str | None = None
    summary: str | None = None
    category_id: str | None = None
    tags: tuple[str, ...] = ()

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_path)


@dataclass(slots=True)
class Category:
    id: str
    name: str
    color: str | None
    icon: str | None
    is_custom: bool
    created_at: datetime


@dataclass(slots=True)
class Tag:
    id: str
    label: str
    created_at: datetime


@dataclass(slots=True)
class CategoryStatistics:
    """Entry count and recorded time for one category.

    ``category`` is ``None`` for the virtual "Uncategorized" bucket.
    """

    category: Category | None
    entry_count: int
    total_duration: float

    @property
    def name(self) -> str:
        return self.category.name if self.category is not None else UNCATEGORIZED_NAME


@dataclass(slots=True)
class TagStatistics:
    tag: Tag
    entry_count: int
    total_duration: float
