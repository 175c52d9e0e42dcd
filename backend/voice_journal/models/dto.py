"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from voice_journal.models.entities import Category, CategoryStatistics, Entry, Tag, TagStatistics
from voice_journal.utils.time import format_duration

UNCATEGORIZED_COLOR = "#8E8E93"
UNCATEGORIZED_ICON = "folder"


class EntryResponse(BaseModel):
    id: str
    title: str | None = None
    audio_path: str | None = None
    duration: float
    created_at: datetime
    transcript: str | None = None
    summary: str | None = None
    category_id: str | None = None
    tags: list[str] = Field(default_factory=list)

    @classmethod
    def from_entry(cls, entry: Entry) -> "EntryResponse":
        return cls(
            id=entry.id,
            title=entry.title,
            audio_path=entry.audio_path,
            duration=entry.duration,
            created_at=entry.created_at,
            transcript=entry.transcript,
            summary=entry.summary,
            category_id=entry.category_id,
            tags=list(entry.tags),
        )


class CategoryResponse(BaseModel):
    id: str
    name: str
    color: str | None = None
    icon: str | None = None
    is_custom: bool = False

    @classmethod
    def from_category(cls, category: Category) -> "CategoryResponse":
        return cls(
            id=category.id,
            name=category.name,
            color=category.color,
            icon=category.icon,
            is_custom=category.is_custom,
        )


class WorkflowResponse(BaseModel):
    success: bool = True
    entry: EntryResponse | None = None
    output_path: str | None = None
    duration: float | None = None
    enrichment_scheduled: bool = False
    warnings: list[dict[str, Any]] = Field(default_factory=list)


class CompleteRecordingRequest(BaseModel):
    path: str
    duration: float = Field(ge=0)


class TagsRequest(BaseModel):
    tags: list[str] | None = None
    text: str | None = Field(default=None, description="Comma or newline separated tags")


class TagsResponse(BaseModel):
    entry_id: str
    tags: list[str]


class CategoryRequest(BaseModel):
    category_id: str | None = None


class CategoryCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    color: str | None = None
    icon: str | None = None


class CategoryUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=64)
    color: str | None = None
    icon: str | None = None


class CategoryStatsResponse(BaseModel):
    category_id: str | None = None
    name: str
    color: str | None = None
    icon: str | None = None
    entry_count: int
    total_duration: float
    formatted_duration: str

    @classmethod
    def from_stats(cls, stats: CategoryStatistics) -> "CategoryStatsResponse":
        category = stats.category
        return cls(
            category_id=category.id if category else None,
            name=stats.name,
            color=category.color if category else UNCATEGORIZED_COLOR,
            icon=category.icon if category else UNCATEGORIZED_ICON,
            entry_count=stats.entry_count,
            total_duration=stats.total_duration,
            formatted_duration=format_duration(stats.total_duration),
        )


class TagResponse(BaseModel):
    id: str
    label: str

    @classmethod
    def from_tag(cls, tag: Tag) -> "TagResponse":
        return cls(id=tag.id, label=tag.label)


class TagStatsResponse(BaseModel):
    id: str
    label: str
    entry_count: int
    total_duration: float

    @classmethod
    def from_stats(cls, stats: TagStatistics) -> "TagStatsResponse":
        return cls(
            id=stats.tag.id,
            label=stats.tag.label,
            entry_count=stats.entry_count,
            total_duration=stats.total_duration,
        )


class TagMergeRequest(BaseModel):
    sources: list[str] = Field(min_length=1)
    target: str = Field(min_length=1)


class TagMergeResponse(BaseModel):
    target: str
    entries_moved: int


class DeleteResponse(BaseModel):
    status: str
    deleted: int


class HealthResponse(BaseModel):
    is_healthy: bool
    has_record_permission: bool
    has_enough_storage: bool
    available_storage_mb: int
    persistence_healthy: bool
    audio_system_healthy: bool
    orphaned_files_count: int
    total_entries: int
    total_audio_files_mb: float
    enrichment_configured: bool


class IntegrityResponse(BaseModel):
    integrity_score: float
    total_entries: int
    valid_entries: int
    entries_with_missing_files: int
    entries_without_audio_path: int
    total_audio_files: int
    orphaned_audio_files: int
    missing_entry_ids: list[str] = Field(default_factory=list)
    orphaned_paths: list[str] = Field(default_factory=list)


class MaintenanceResponse(BaseModel):
    deleted_count: int
    deleted: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    entries_with_missing_files: list[str] = Field(default_factory=list)
    tags_removed: int = 0


class DiagnosticsResponse(BaseModel):
    total_errors: int
    recent: list[dict[str, Any]]
    notifications: list[dict[str, Any]]
    report: str


__all__ = [
    "EntryResponse",
    "CategoryResponse",
    "WorkflowResponse",
    "CompleteRecordingRequest",
    "TagsRequest",
    "TagsResponse",
    "CategoryRequest",
    "CategoryCreateRequest",
    "CategoryUpdateRequest",
    "CategoryStatsResponse",
    "TagResponse",
    "TagStatsResponse",
    "TagMergeRequest",
    "TagMergeResponse",
    "DeleteResponse",
    "HealthResponse",
    "IntegrityResponse",
    "MaintenanceResponse",
    "DiagnosticsResponse",
]
