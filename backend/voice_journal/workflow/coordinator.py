"""Workflow coordinator: pre-flight checks, recording/playback, post-conditions.

The coordinator is the only component that sequences the collaborators. Each
workflow checks its pre-conditions, delegates to the audio controller or the
repository, then verifies the post-conditions it promises. Expected failures
come back as a ``WorkflowResult`` carrying a typed ``JournalError``; they are
never raised to the caller.
"""

from __future__ import annotations

import sqlite3
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any

from voice_journal.audio.controller import AudioSessionController
from voice_journal.core.errors import (
    AudioFileNotCreated,
    AudioFileNotFound,
    AudioSystemUnavailable,
    EmptyAudioFile,
    EnrichmentNotConfigured,
    EntryNotFound,
    EntrySaveFailed,
    JournalError,
    MediaOutsideLibrary,
    NoAudioFile,
    NoRecordPermission,
    StorageSpaceLow,
)
from voice_journal.core.events import EventStream
from voice_journal.core.logging import get_logger
from voice_journal.core.metrics import ENTRY_COUNT, ORPHANED_FILES, WORKFLOW_OUTCOMES
from voice_journal.db.entries import EntryRepository
from voice_journal.enrichment.runner import EnrichmentOutcome, EnrichmentRunner
from voice_journal.models.entities import Entry
from voice_journal.storage.media import BYTES_PER_MB, MediaStore, bytes_to_mb
from voice_journal.workflow.classifier import ErrorCategory
from voice_journal.workflow.error_log import ErrorLog
from voice_journal.workflow.reports import HealthReport, IntegrityReport, MaintenanceReport

logger = get_logger(__name__)

STORAGE_WARNING = "storage_warning"
ENTRY_CREATED = "entry_created"
ENTRY_DELETED = "entry_deleted"
WORKFLOW_FAILED = "workflow_failed"


@dataclass(slots=True)
class WorkflowResult:
    success: bool
    entry: Entry | None = None
    error: JournalError | None = None
    warnings: list[JournalError] = field(default_factory=list)
    enrichment: Future[EnrichmentOutcome] | None = None
    output_path: str | None = None
    duration: float | None = None

    @classmethod
    def ok(cls, **kwargs: Any) -> "WorkflowResult":
        return cls(success=True, **kwargs)

    @classmethod
    def fail(cls, error: JournalError, warnings: list[JournalError] | None = None) -> "WorkflowResult":
        return cls(success=False, error=error, warnings=list(warnings or []))


class WorkflowCoordinator:
    """Sequences the media store, audio controller, repository and enrichment.

    Collaborators are injected so tests can swap any of them for a double.
    ``events`` carries coordinator-level notifications: ``storage_warning``
    (non-fatal low space during pre-flight), ``entry_created``,
    ``entry_deleted`` and ``workflow_failed``.
    """

    def __init__(
        self,
        media: MediaStore,
        audio: AudioSessionController,
        repository: EntryRepository,
        enrichment: EnrichmentRunner | None = None,
        error_log: ErrorLog | None = None,
        min_free_storage_mb: int = 10,
    ) -> None:
        self.media = media
        self.audio = audio
        self.repository = repository
        self.enrichment = enrichment
        self.error_log = error_log
        self.min_free_storage_mb = min_free_storage_mb
        self.events = EventStream("workflow")
        # recordings started here whose entry has not been written yet
        self._pending_paths: set[str] = set()
        self._lock = threading.Lock()

    # Recording ----------------------------------------------------------

    def start_recording_workflow(self) -> WorkflowResult:
        """Pre-flight checks, then hand a fresh media path to the recorder.

        Low storage is reported as a warning on the result and a
        ``storage_warning`` event; it does not stop the recording.
        """
        workflow = "start_recording"
        warnings: list[JournalError] = []
        if not self.audio.has_record_permission:
            return self._failed(workflow, NoRecordPermission())

        available_mb = bytes_to_mb(self.media.available_free_space())
        if available_mb < self.min_free_storage_mb:
            warning = StorageSpaceLow(available_mb)
            warnings.append(warning)
            logger.warning(
                "Low storage before recording: %s MB available",
                available_mb,
                extra={"ctx_available_mb": available_mb, "ctx_threshold_mb": self.min_free_storage_mb},
            )
            self.events.publish(STORAGE_WARNING, available_mb=available_mb, error=warning)

        if not self.audio.check_available():
            return self._failed(workflow, AudioSystemUnavailable(), warnings)

        try:
            output_path = self.media.new_media_path()
        except OSError as exc:
            return self._failed(workflow, AudioFileNotCreated(f"Cannot prepare recordings directory: {exc}"), warnings)

        with self._lock:
            self._pending_paths.add(output_path)
        try:
            self.audio.start_recording(output_path)
        except JournalError as exc:
            self._release(output_path)
            return self._failed(workflow, exc, warnings)
        return self._succeeded(workflow, output_path=output_path, warnings=warnings)

    def stop_recording_workflow(self) -> WorkflowResult:
        """Stop the active recording and run the completion checks on its file."""
        path = self.audio.active_recording_path
        try:
            stopped = self.audio.stop_recording()
        except JournalError as exc:
            if path:
                self._release(path)
            return self._failed("stop_recording", exc)
        return self.complete_recording_workflow(stopped.path, stopped.duration)

    def complete_recording_workflow(self, media_path: str | None, duration: float) -> WorkflowResult:
        """Verify the recorded file, persist the entry and confirm it was saved.

        Only files inside the recordings directory are accepted. When the
        entry cannot be confirmed the just-written media file is deleted so no
        orphan is left behind. Enrichment is started in the background only
        after the entry is confirmed.
        """
        workflow = "complete_recording"
        if not media_path:
            return self._failed(workflow, AudioFileNotCreated())
        path = self.media.normalize(media_path)
        if not self.media.contains(path):
            return self._failed(workflow, MediaOutsideLibrary(path=path))
        try:
            if not self.media.exists(path):
                return self._failed(workflow, AudioFileNotCreated())
            if self.media.size(path) <= 0:
                return self._failed(workflow, EmptyAudioFile())

            entry = self._save_entry(path, duration)
            if entry is None:
                self.media.delete(path)
                return self._failed(workflow, EntrySaveFailed())
        finally:
            self._release(path)

        future = None
        if self.enrichment is not None and self.enrichment.is_configured():
            future = self.enrichment.submit(entry)
        logger.info(
            "Recorded entry %s",
            entry.id,
            extra={"ctx_entry_id": entry.id, "ctx_duration": entry.duration, "ctx_enrich": future is not None},
        )
        self.events.publish(ENTRY_CREATED, entry_id=entry.id, path=path)
        return self._succeeded(workflow, entry=entry, enrichment=future, output_path=path, duration=entry.duration)

    def _save_entry(self, path: str, duration: float) -> Entry | None:
        try:
            created = self.repository.create_entry(path, duration)
        except (sqlite3.Error, ValueError) as exc:
            logger.error("Failed to save entry for %s: %s", path, exc, extra={"ctx_path": path})
            return None
        try:
            saved = next((entry for entry in self.repository.fetch_all() if entry.id == created.id), None)
        except sqlite3.Error as exc:
            logger.error("Failed to confirm entry %s: %s", created.id, exc, extra={"ctx_entry_id": created.id})
            saved = None
        if saved is None:
            logger.error("Entry %s missing after save", created.id, extra={"ctx_entry_id": created.id})
            self._discard_entry(created.id)
        return saved

    def _discard_entry(self, entry_id: str) -> None:
        # an entry must not outlive its media file
        try:
            self.repository.delete_entry(entry_id)
        except sqlite3.Error as exc:
            logger.error("Failed to discard unconfirmed entry %s: %s", entry_id, exc, extra={"ctx_entry_id": entry_id})

    def _release(self, path: str) -> None:
        with self._lock:
            self._pending_paths.discard(path)

    # Playback -----------------------------------------------------------

    def start_playback_workflow(self, entry: Entry) -> WorkflowResult:
        workflow = "start_playback"
        if not entry.audio_path:
            return self._failed(workflow, NoAudioFile(), category=ErrorCategory.PLAYBACK)
        path = self.media.normalize(entry.audio_path)
        if not self.media.exists(path):
            return self._failed(workflow, AudioFileNotFound(path=path), category=ErrorCategory.PLAYBACK)
        try:
            duration = self.audio.load_and_play(path)
        except JournalError as exc:
            return self._failed(workflow, exc, category=ErrorCategory.PLAYBACK)
        return self._succeeded(workflow, entry=entry, output_path=path, duration=duration)

    def pause_playback(self) -> WorkflowResult:
        return self._playback_action("pause_playback", self.audio.pause_playback)

    def resume_playback(self) -> WorkflowResult:
        return self._playback_action("resume_playback", self.audio.resume_playback)

    def stop_playback(self) -> WorkflowResult:
        return self._playback_action("stop_playback", self.audio.stop_playback)

    def _playback_action(self, workflow: str, action) -> WorkflowResult:
        path = self.audio.now_playing
        try:
            action()
        except JournalError as exc:
            return self._failed(workflow, exc, category=ErrorCategory.PLAYBACK)
        return self._succeeded(workflow, output_path=path)

    # Reports ------------------------------------------------------------

    def perform_system_health_check(self) -> HealthReport:
        """Read-only snapshot of everything a recording depends on."""
        has_permission = self.audio.has_record_permission
        available_mb = bytes_to_mb(self.media.available_free_space())

        persistence_healthy = True
        total_entries = 0
        referenced: set[str] = set()
        try:
            self.repository.ping()
            total_entries = self.repository.count()
            referenced = {self.media.normalize(path) for path in self.repository.media_paths()}
        except sqlite3.Error as exc:
            logger.error("Persistence check failed: %s", exc)
            persistence_healthy = False

        audio_healthy = self.audio.check_available()
        media_files = self.media.list_all()
        if persistence_healthy:
            orphaned = sum(1 for path in media_files if path not in referenced)
        else:
            # without entries every file would look orphaned
            orphaned = 0
        total_bytes = sum(self.media.size(path) for path in media_files)

        report = HealthReport(
            has_record_permission=has_permission,
            has_enough_storage=available_mb >= self.min_free_storage_mb,
            available_storage_mb=available_mb,
            persistence_healthy=persistence_healthy,
            audio_system_healthy=audio_healthy,
            orphaned_files_count=orphaned,
            total_entries=total_entries,
            total_audio_files_mb=round(total_bytes / BYTES_PER_MB, 2),
            enrichment_configured=self.enrichment is not None and self.enrichment.is_configured(),
        )
        if persistence_healthy:
            ENTRY_COUNT.set(report.total_entries)
            ORPHANED_FILES.set(orphaned)
        logger.info(
            "Health check: %s",
            "healthy" if report.is_healthy else "unhealthy",
            extra={"ctx_report": report.to_dict()},
        )
        return report

    def validate_data_integrity(self) -> IntegrityReport:
        """Cross-check entries against the media directory.

        One entry fetch and one directory listing; a file created or removed
        between the two can be misreported until the next scan.
        """
        entries = self.repository.fetch_all()
        media_files = self.media.list_all()
        listed = set(media_files)

        valid = 0
        missing_ids: list[str] = []
        without_path = 0
        referenced: set[str] = set()
        for entry in entries:
            if not entry.audio_path:
                without_path += 1
                continue
            path = self.media.normalize(entry.audio_path)
            referenced.add(path)
            if path in listed or self.media.exists(path):
                valid += 1
            else:
                missing_ids.append(entry.id)

        orphaned_paths = [path for path in media_files if path not in referenced]
        ORPHANED_FILES.set(len(orphaned_paths))
        report = IntegrityReport(
            total_entries=len(entries),
            valid_entries=valid,
            entries_with_missing_files=len(missing_ids),
            entries_without_audio_path=without_path,
            total_audio_files=len(media_files),
            orphaned_audio_files=len(orphaned_paths),
            missing_entry_ids=missing_ids,
            orphaned_paths=orphaned_paths,
        )
        logger.info(
            "Integrity score %.2f",
            report.integrity_score,
            extra={"ctx_missing": report.entries_with_missing_files, "ctx_orphaned": report.orphaned_audio_files},
        )
        return report

    # Maintenance --------------------------------------------------------

    def perform_maintenance_cleanup(self) -> MaintenanceReport:
        """Delete unreferenced media files and unused tags.

        Files belonging to a recording in progress are left alone. Entries
        whose media is missing are only reported.
        """
        entries = self.repository.fetch_all()
        referenced = self._referenced_paths(entries)
        protected = self._protected_paths()

        report = MaintenanceReport()
        for path in self.media.list_all():
            if path in referenced or path in protected:
                continue
            if self.media.delete(path):
                report.deleted.append(path)
            else:
                report.failed.append(path)

        for entry in entries:
            if entry.audio_path and not self.media.exists(entry.audio_path):
                logger.warning(
                    "Entry %s references missing media %s",
                    entry.id,
                    entry.audio_path,
                    extra={"ctx_entry_id": entry.id},
                )
                report.entries_with_missing_files.append(entry.id)

        report.tags_removed = self.repository.remove_unused_tags()
        logger.info(
            "Maintenance removed %s orphaned files",
            report.deleted_count,
            extra={"ctx_failed": len(report.failed), "ctx_tags_removed": report.tags_removed},
        )
        return report

    def _protected_paths(self) -> set[str]:
        with self._lock:
            protected = set(self._pending_paths)
        active = self.audio.active_recording_path
        if active:
            protected.add(self.media.normalize(active))
        return protected

    def _referenced_paths(self, entries: list[Entry]) -> set[str]:
        return {self.media.normalize(entry.audio_path) for entry in entries if entry.audio_path}

    # Entries ------------------------------------------------------------

    def delete_entry(self, entry_id: str) -> WorkflowResult:
        """Remove an entry and its media file, stopping its playback first."""
        workflow = "delete_entry"
        entry = self.repository.get_entry(entry_id)
        if entry is None:
            return self._failed(workflow, EntryNotFound(entry_id=entry_id), category=ErrorCategory.DATA)

        path = self.media.normalize(entry.audio_path) if entry.audio_path else None
        if path is not None and self.audio.now_playing == path:
            try:
                self.audio.stop_playback()
            except JournalError as exc:
                logger.warning("Failed to stop playback of %s: %s", entry_id, exc)

        if not self.repository.delete_entry(entry_id):
            return self._failed(workflow, EntryNotFound(entry_id=entry_id), category=ErrorCategory.DATA)
        if path is not None and not self.media.contains(path):
            logger.warning(
                "Media for deleted entry %s is outside the recordings directory; not removed",
                entry_id,
                extra={"ctx_path": path},
            )
        elif path is not None and not self.media.delete(path):
            # the row is gone; maintenance will pick the file up as an orphan
            logger.warning("Media for deleted entry %s left on disk", entry_id, extra={"ctx_path": path})
        self.events.publish(ENTRY_DELETED, entry_id=entry_id)
        return self._succeeded(workflow, entry=entry, output_path=path)

    def enrich_entry(self, entry_id: str) -> WorkflowResult:
        """Queue transcription and summarization for an existing entry."""
        workflow = "enrich_entry"
        entry = self.repository.get_entry(entry_id)
        if entry is None:
            return self._failed(workflow, EntryNotFound(entry_id=entry_id), category=ErrorCategory.DATA)
        if self.enrichment is None or not self.enrichment.is_configured():
            return self._failed(workflow, EnrichmentNotConfigured())
        if not entry.audio_path:
            return self._failed(workflow, NoAudioFile())
        if not self.media.contains(entry.audio_path):
            return self._failed(workflow, MediaOutsideLibrary(path=entry.audio_path))
        if not self.media.exists(entry.audio_path):
            return self._failed(workflow, AudioFileNotFound(path=entry.audio_path))
        future = self.enrichment.submit(entry)
        return self._succeeded(workflow, entry=entry, enrichment=future)

    # Result helpers -----------------------------------------------------

    def _succeeded(self, workflow: str, **kwargs: Any) -> WorkflowResult:
        WORKFLOW_OUTCOMES.labels(workflow=workflow, outcome="success").inc()
        return WorkflowResult.ok(**kwargs)

    def _failed(
        self,
        workflow: str,
        error: JournalError,
        warnings: list[JournalError] | None = None,
        category: ErrorCategory | None = None,
    ) -> WorkflowResult:
        WORKFLOW_OUTCOMES.labels(workflow=workflow, outcome=error.code).inc()
        logger.warning(
            "%s failed: %s",
            workflow,
            error.message,
            extra={"ctx_workflow": workflow, "ctx_error_code": error.code},
        )
        if self.error_log is not None:
            self.error_log.record(error, category, context=workflow.replace("_", " "))
        self.events.publish(WORKFLOW_FAILED, workflow=workflow, error=error)
        return WorkflowResult.fail(error, warnings)


__all__ = [
    "WorkflowCoordinator",
    "WorkflowResult",
    "STORAGE_WARNING",
    "ENTRY_CREATED",
    "ENTRY_DELETED",
    "WORKFLOW_FAILED",
]
