"""Workflow coordinator tests."""

from __future__ import annotations

import os
import sqlite3
from concurrent.futures import Future
from pathlib import Path

import pytest

from conftest import FakeAudioBackend, FakeClock, FakeResponse, FakeSession, write_media
from voice_journal.audio.state import PlayerState, RecorderState
from voice_journal.core import errors
from voice_journal.core.config import Settings
from voice_journal.db.entries import EntryRepository
from voice_journal.enrichment.client import EnrichmentClient
from voice_journal.enrichment.runner import EnrichmentOutcome, EnrichmentRunner
from voice_journal.storage.media import BYTES_PER_MB, MediaStore
from voice_journal.workflow import ErrorLog, WorkflowCoordinator
from voice_journal.workflow.coordinator import ENTRY_CREATED, STORAGE_WARNING, WORKFLOW_FAILED


class LosingRepository(EntryRepository):
    """Accepts writes but never returns them from ``fetch_all``."""

    def fetch_all(self):
        return []


class BrokenRepository(EntryRepository):
    def create_entry(self, audio_path, duration, title="Voice Entry"):
        raise sqlite3.OperationalError("disk I/O error")

    def fetch_all(self):
        raise sqlite3.OperationalError("database is locked")

    def ping(self):
        raise sqlite3.OperationalError("database is locked")


class UnconfirmableRepository(EntryRepository):
    """Commits the insert, then fails to read it back."""

    def fetch_all(self):
        raise sqlite3.OperationalError("database is locked")


class StubRunner:
    def __init__(self, configured: bool = True) -> None:
        self.configured = configured
        self.submitted = []

    def is_configured(self) -> bool:
        return self.configured

    def submit(self, entry):
        self.submitted.append(entry)
        future: Future = Future()
        future.set_result(EnrichmentOutcome(entry_id=entry.id, success=True, transcript="hi", summary="hi"))
        return future


def test_permission_denied_starts_nothing(
    coordinator: WorkflowCoordinator, audio_backend: FakeAudioBackend, media: MediaStore
) -> None:
    audio_backend.permission = False

    result = coordinator.start_recording_workflow()

    assert not result.success
    assert isinstance(result.error, errors.NoRecordPermission)
    assert coordinator.audio.recorder_state is RecorderState.IDLE
    assert audio_backend.capturing is None
    assert media.list_all() == []


def test_low_storage_warns_but_records(
    coordinator: WorkflowCoordinator, media: MediaStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(media, "available_free_space", lambda: 3 * BYTES_PER_MB)
    seen = []
    coordinator.events.subscribe(seen.append, kinds={STORAGE_WARNING})

    result = coordinator.start_recording_workflow()

    assert result.success
    assert [type(w) for w in result.warnings] == [errors.StorageSpaceLow]
    assert result.warnings[0].available_mb == 3
    assert len(seen) == 1 and seen[0].payload["available_mb"] == 3
    assert coordinator.audio.is_recording


def test_storage_exactly_at_threshold_is_enough(
    coordinator: WorkflowCoordinator, media: MediaStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(media, "available_free_space", lambda: 10 * BYTES_PER_MB)

    result = coordinator.start_recording_workflow()

    assert result.success
    assert result.warnings == []


def test_audio_unavailable_fails(coordinator: WorkflowCoordinator, audio_backend: FakeAudioBackend) -> None:
    audio_backend.available = False

    result = coordinator.start_recording_workflow()

    assert isinstance(result.error, errors.AudioSystemUnavailable)
    assert not coordinator.audio.is_recording


def test_second_start_is_an_illegal_transition(coordinator: WorkflowCoordinator) -> None:
    assert coordinator.start_recording_workflow().success

    result = coordinator.start_recording_workflow()

    assert isinstance(result.error, errors.IllegalStateTransition)


def test_capture_start_failure_is_returned(coordinator: WorkflowCoordinator, audio_backend: FakeAudioBackend) -> None:
    audio_backend.start_error = errors.RecordingStartFailed()

    result = coordinator.start_recording_workflow()

    assert isinstance(result.error, errors.RecordingStartFailed)
    assert coordinator.audio.recorder_state is RecorderState.IDLE


def test_record_and_stop_creates_entry(
    coordinator: WorkflowCoordinator, clock: FakeClock, repository: EntryRepository
) -> None:
    started = coordinator.start_recording_workflow()
    clock.advance(5.2)

    result = coordinator.stop_recording_workflow()

    assert result.success
    assert result.entry is not None
    assert result.entry.audio_path == started.output_path
    assert result.entry.duration == pytest.approx(5.2)
    assert os.path.getsize(started.output_path) == 40 * 1024
    assert [e.id for e in repository.fetch_all()] == [result.entry.id]
    assert result.enrichment is None


def test_complete_recording_scenario(
    coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository
) -> None:
    path = write_media(media, size=40 * 1024)
    created = []
    coordinator.events.subscribe(created.append, kinds={ENTRY_CREATED})

    result = coordinator.complete_recording_workflow(path, 5.2)

    assert result.success
    entry = result.entry
    assert entry.duration == 5.2
    assert entry.audio_path == path
    assert media.exists(entry.audio_path) and media.size(entry.audio_path) == 40 * 1024
    assert entry.id in {e.id for e in repository.fetch_all()}
    assert created[0].payload["entry_id"] == entry.id


def test_complete_without_file_fails(coordinator: WorkflowCoordinator, media: MediaStore) -> None:
    missing = str(media.media_dir / "voice_entry_missing.wav")

    result = coordinator.complete_recording_workflow(missing, 1.0)

    assert isinstance(result.error, errors.AudioFileNotCreated)


def test_complete_with_empty_file_fails(
    coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository
) -> None:
    path = write_media(media, size=0)

    result = coordinator.complete_recording_workflow(path, 1.0)

    assert isinstance(result.error, errors.EmptyAudioFile)
    assert repository.count() == 0


def test_stop_that_writes_nothing_fails(coordinator: WorkflowCoordinator, audio_backend: FakeAudioBackend) -> None:
    audio_backend.capture_bytes = None
    coordinator.start_recording_workflow()

    result = coordinator.stop_recording_workflow()

    assert isinstance(result.error, errors.AudioFileNotCreated)


def test_unconfirmed_save_deletes_media(
    media: MediaStore, controller, database, error_log: ErrorLog
) -> None:
    coordinator = WorkflowCoordinator(media, controller, LosingRepository(database), error_log=error_log)
    path = write_media(media, size=2048)

    result = coordinator.complete_recording_workflow(path, 2.0)

    assert isinstance(result.error, errors.EntrySaveFailed)
    assert not os.path.exists(path)
    assert EntryRepository(database).count() == 0


def test_repository_error_on_save_deletes_media(media: MediaStore, controller, database) -> None:
    coordinator = WorkflowCoordinator(media, controller, BrokenRepository(database))
    path = write_media(media, size=2048)

    result = coordinator.complete_recording_workflow(path, 2.0)

    assert isinstance(result.error, errors.EntrySaveFailed)
    assert not os.path.exists(path)


def test_enrichment_submitted_only_when_configured(
    media: MediaStore, controller, repository: EntryRepository
) -> None:
    runner = StubRunner(configured=True)
    coordinator = WorkflowCoordinator(media, controller, repository, enrichment=runner)

    result = coordinator.complete_recording_workflow(write_media(media), 1.0)

    assert result.success
    assert [e.id for e in runner.submitted] == [result.entry.id]
    assert result.enrichment.result().success

    runner.configured = False
    second = coordinator.complete_recording_workflow(write_media(media), 1.0)
    assert second.success
    assert second.enrichment is None
    assert len(runner.submitted) == 1


def test_playback_of_entry_without_audio(coordinator: WorkflowCoordinator, repository: EntryRepository) -> None:
    entry = repository.create_entry(None, 0.0)

    result = coordinator.start_playback_workflow(entry)

    assert isinstance(result.error, errors.NoAudioFile)


def test_playback_of_externally_deleted_file(
    coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository
) -> None:
    path = write_media(media)
    entry = repository.create_entry(path, 1.0)
    os.remove(path)

    result = coordinator.start_playback_workflow(entry)

    assert isinstance(result.error, errors.AudioFileNotFound)
    assert coordinator.audio.player_state is PlayerState.IDLE


def test_playback_lifecycle(
    coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository, audio_backend: FakeAudioBackend
) -> None:
    entry = repository.create_entry(write_media(media), 5.2)

    started = coordinator.start_playback_workflow(entry)
    assert started.success
    assert started.duration == 5.2
    assert coordinator.audio.now_playing == entry.audio_path

    assert coordinator.pause_playback().success
    assert coordinator.audio.player_state is PlayerState.PAUSED
    assert coordinator.resume_playback().success
    assert coordinator.stop_playback().success
    assert coordinator.audio.player_state is PlayerState.IDLE

    again = coordinator.pause_playback()
    assert isinstance(again.error, errors.IllegalStateTransition)


def test_decode_failure_is_returned(
    coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository, audio_backend: FakeAudioBackend
) -> None:
    audio_backend.load_error = errors.DecodingError()
    entry = repository.create_entry(write_media(media), 1.0)

    result = coordinator.start_playback_workflow(entry)

    assert isinstance(result.error, errors.DecodingError)
    assert coordinator.audio.player_state is PlayerState.IDLE


def test_health_check_all_good(coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository) -> None:
    repository.create_entry(write_media(media, size=BYTES_PER_MB), 1.0)
    write_media(media)

    report = coordinator.perform_system_health_check()

    assert report.is_healthy
    assert report.total_entries == 1
    assert report.orphaned_files_count == 1
    assert report.available_storage_mb == 500
    assert report.total_audio_files_mb >= 1.0
    assert report.enrichment_configured is False


@pytest.mark.parametrize("failure", ["permission", "storage", "persistence", "audio"])
def test_health_check_any_failure_is_unhealthy(
    failure: str,
    media: MediaStore,
    controller,
    database,
    repository: EntryRepository,
    audio_backend: FakeAudioBackend,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    repo = repository
    if failure == "permission":
        audio_backend.permission = False
    elif failure == "storage":
        monkeypatch.setattr(media, "available_free_space", lambda: 9 * BYTES_PER_MB)
    elif failure == "persistence":
        repo = BrokenRepository(database)
    else:
        audio_backend.available = False
    coordinator = WorkflowCoordinator(media, controller, repo)

    report = coordinator.perform_system_health_check()

    assert not report.is_healthy
    if failure == "persistence":
        assert report.persistence_healthy is False
        assert report.total_entries == 0


def test_orphans_do_not_affect_health(coordinator: WorkflowCoordinator, media: MediaStore) -> None:
    write_media(media)
    write_media(media)

    report = coordinator.perform_system_health_check()

    assert report.orphaned_files_count == 2
    assert report.is_healthy


def test_integrity_of_empty_journal(coordinator: WorkflowCoordinator) -> None:
    report = coordinator.validate_data_integrity()

    assert report.total_entries == 0
    assert report.integrity_score == 1.0


def test_integrity_counts_add_up(
    coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository
) -> None:
    repository.create_entry(write_media(media), 1.0)
    missing_path = write_media(media)
    missing = repository.create_entry(missing_path, 1.0)
    os.remove(missing_path)
    repository.create_entry(None, 0.0)

    report = coordinator.validate_data_integrity()

    assert report.total_entries == 3
    assert report.valid_entries == 1
    assert report.entries_with_missing_files == 1
    assert report.entries_without_audio_path == 1
    assert (
        report.valid_entries + report.entries_with_missing_files + report.entries_without_audio_path
        == report.total_entries
    )
    assert report.missing_entry_ids == [missing.id]
    assert 0.0 <= report.integrity_score <= 1.0
    assert report.integrity_score == pytest.approx(1 / 3)


def test_entry_outside_media_dir_is_valid(
    coordinator: WorkflowCoordinator, repository: EntryRepository, tmp_path: Path
) -> None:
    outside = tmp_path / "imported.wav"
    outside.write_bytes(b"\0" * 16)
    repository.create_entry(str(outside), 1.0)

    report = coordinator.validate_data_integrity()

    assert report.valid_entries == 1
    assert report.total_audio_files == 0


def test_orphan_scenario(coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository) -> None:
    kept = repository.create_entry(write_media(media), 1.0)
    orphan_a = write_media(media)
    orphan_b = write_media(media)

    report = coordinator.validate_data_integrity()
    assert report.orphaned_audio_files == 2
    assert sorted(report.orphaned_paths) == sorted([orphan_a, orphan_b])

    first = coordinator.perform_maintenance_cleanup()
    assert sorted(first.deleted) == sorted([orphan_a, orphan_b])
    assert first.failed == []
    assert media.exists(kept.audio_path)

    second = coordinator.perform_maintenance_cleanup()
    assert second.deleted == []


def test_cleanup_keeps_active_recording(coordinator: WorkflowCoordinator, media: MediaStore) -> None:
    started = coordinator.start_recording_workflow()
    Path(started.output_path).write_bytes(b"\0" * 128)
    orphan = write_media(media)

    report = coordinator.perform_maintenance_cleanup()

    assert report.deleted == [orphan]
    assert media.exists(started.output_path)


def test_cleanup_reports_missing_media_and_unused_tags(
    coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository
) -> None:
    path = write_media(media)
    entry = repository.create_entry(path, 1.0)
    repository.set_tags(entry.id, ["idea"])
    repository.set_tags(entry.id, [])
    os.remove(path)

    report = coordinator.perform_maintenance_cleanup()

    assert report.entries_with_missing_files == [entry.id]
    assert report.tags_removed == 1
    assert repository.get_entry(entry.id) is not None


def test_delete_entry_removes_row_and_media(
    coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository
) -> None:
    entry = repository.create_entry(write_media(media), 1.0)
    coordinator.start_playback_workflow(entry)

    result = coordinator.delete_entry(entry.id)

    assert result.success
    assert repository.get_entry(entry.id) is None
    assert not media.exists(entry.audio_path)
    assert coordinator.audio.player_state is PlayerState.IDLE


def test_delete_unknown_entry(coordinator: WorkflowCoordinator) -> None:
    result = coordinator.delete_entry("entry_missing")

    assert isinstance(result.error, errors.EntryNotFound)


def test_enrich_entry_checks(
    media: MediaStore, controller, repository: EntryRepository
) -> None:
    unconfigured = WorkflowCoordinator(media, controller, repository, enrichment=StubRunner(configured=False))
    entry = repository.create_entry(write_media(media), 1.0)
    assert isinstance(unconfigured.enrich_entry(entry.id).error, errors.EnrichmentNotConfigured)

    runner = StubRunner()
    coordinator = WorkflowCoordinator(media, controller, repository, enrichment=runner)
    assert isinstance(coordinator.enrich_entry("entry_missing").error, errors.EntryNotFound)
    no_audio = repository.create_entry(None, 0.0)
    assert isinstance(coordinator.enrich_entry(no_audio.id).error, errors.NoAudioFile)

    result = coordinator.enrich_entry(entry.id)
    assert result.success
    assert runner.submitted[0].id == entry.id


def test_failures_are_logged_and_published(
    coordinator: WorkflowCoordinator, audio_backend: FakeAudioBackend, error_log: ErrorLog
) -> None:
    audio_backend.permission = False
    failures = []
    with coordinator.events.subscribe(failures.append, kinds={WORKFLOW_FAILED}):
        coordinator.start_recording_workflow()

    assert failures[0].payload["workflow"] == "start_recording"
    record = error_log.records()[-1]
    assert record.classification.code == "no_record_permission"
    assert record.context == "start recording"
    assert coordinator.events.subscriber_count == 0


def test_complete_rejects_file_outside_recordings(
    coordinator: WorkflowCoordinator, repository: EntryRepository, error_log: ErrorLog, tmp_path: Path
) -> None:
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    foreign = elsewhere / "important.txt"
    foreign.write_bytes(b"keep me")

    result = coordinator.complete_recording_workflow(str(foreign), 1.0)

    assert isinstance(result.error, errors.MediaOutsideLibrary)
    assert result.error.context["path"] == str(foreign)
    assert foreign.read_bytes() == b"keep me"
    assert repository.count() == 0
    assert error_log.records()[-1].classification.code == "media_outside_library"


def test_complete_rejects_relative_escape(coordinator: WorkflowCoordinator, media: MediaStore, tmp_path: Path) -> None:
    foreign = tmp_path / "journal.txt"
    foreign.write_bytes(b"notes")

    result = coordinator.complete_recording_workflow(str(media.media_dir / ".." / "journal.txt"), 1.0)

    assert isinstance(result.error, errors.MediaOutsideLibrary)
    assert foreign.exists()


def test_delete_entry_leaves_media_outside_recordings(
    coordinator: WorkflowCoordinator, repository: EntryRepository, tmp_path: Path
) -> None:
    outside = tmp_path / "imported.wav"
    outside.write_bytes(b"\0" * 16)
    entry = repository.create_entry(str(outside), 1.0)

    result = coordinator.delete_entry(entry.id)

    assert result.success
    assert repository.get_entry(entry.id) is None
    assert outside.exists()


def test_enrich_entry_refuses_media_outside_recordings(
    media: MediaStore, controller, repository: EntryRepository, tmp_path: Path
) -> None:
    outside = tmp_path / "imported.wav"
    outside.write_bytes(b"\0" * 16)
    entry = repository.create_entry(str(outside), 1.0)
    runner = StubRunner()
    coordinator = WorkflowCoordinator(media, controller, repository, enrichment=runner)

    result = coordinator.enrich_entry(entry.id)

    assert isinstance(result.error, errors.MediaOutsideLibrary)
    assert runner.submitted == []


def test_failed_confirmation_discards_row_and_media(media: MediaStore, controller, database) -> None:
    coordinator = WorkflowCoordinator(media, controller, UnconfirmableRepository(database))
    path = write_media(media, size=2048)

    result = coordinator.complete_recording_workflow(path, 2.0)

    assert isinstance(result.error, errors.EntrySaveFailed)
    assert not os.path.exists(path)
    assert EntryRepository(database).count() == 0


def test_failed_background_enrichment_keeps_recording(
    settings: Settings, media: MediaStore, controller, repository: EntryRepository, error_log: ErrorLog
) -> None:
    session = FakeSession(FakeResponse(500, {"error": {"message": "server melted"}}))
    client = EnrichmentClient(settings, api_key="sk-test-0123456789abcdef", session=session)
    runner = EnrichmentRunner(client, repository, media, error_log)
    coordinator = WorkflowCoordinator(media, controller, repository, enrichment=runner, error_log=error_log)

    result = coordinator.complete_recording_workflow(write_media(media, size=4096), 3.0)
    outcome = result.enrichment.result(timeout=5)
    runner.shutdown()

    assert result.success is True
    assert outcome.success is False
    stored = repository.get_entry(result.entry.id)
    assert stored is not None
    assert stored.transcript is None and stored.summary is None
    assert media.exists(stored.audio_path)
    record = error_log.records()[-1]
    assert record.classification.category.value == "network"
    assert record.context == "background enrichment"


def test_health_check_reads_media_references(
    coordinator: WorkflowCoordinator, media: MediaStore, repository: EntryRepository
) -> None:
    repository.create_entry(write_media(media), 1.0)
    repository.create_entry(None, 0.0)

    report = coordinator.perform_system_health_check()

    assert report.persistence_healthy
    assert report.total_entries == 2
    assert report.orphaned_files_count == 0
