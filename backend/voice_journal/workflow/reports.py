"""Read-only reports produced by the workflow coordinator."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(slots=True)
class HealthReport:
    has_record_permission: bool
    has_enough_storage: bool
    available_storage_mb: int
    persistence_healthy: bool
    audio_system_healthy: bool
    orphaned_files_count: int
    total_entries: int
    total_audio_files_mb: float
    enrichment_configured: bool = False

    @property
    def is_healthy(self) -> bool:
        # orphans and enrichment are advisory only
        return (
            self.has_record_permission
            and self.has_enough_storage
            and self.persistence_healthy
            and self.audio_system_healthy
        )

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "is_healthy": self.is_healthy}


@dataclass(slots=True)
class IntegrityReport:
    total_entries: int
    valid_entries: int
    entries_with_missing_files: int
    entries_without_audio_path: int
    total_audio_files: int
    orphaned_audio_files: int
    missing_entry_ids: list[str] = field(default_factory=list)
    orphaned_paths: list[str] = field(default_factory=list)

    @property
    def integrity_score(self) -> float:
        if self.total_entries == 0:
            return 1.0
        return self.valid_entries / self.total_entries

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "integrity_score": self.integrity_score}


@dataclass(slots=True)
class MaintenanceReport:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    entries_with_missing_files: list[str] = field(default_factory=list)
    tags_removed: int = 0

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "deleted_count": self.deleted_count}


__all__ = ["HealthReport", "IntegrityReport", "MaintenanceReport"]
