"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from voice_journal.audio.backend import AudioBackend, SoundDeviceBackend
from voice_journal.audio.controller import AudioSessionController
from voice_journal.core.config import Settings, get_settings
from voice_journal.db.entries import EntryRepository
from voice_journal.db.sqlite import SQLiteDatabase
from voice_journal.enrichment.client import EnrichmentClient
from voice_journal.enrichment.runner import EnrichmentRunner
from voice_journal.storage.media import MediaStore
from voice_journal.workflow import ErrorLog, WorkflowCoordinator

_DB: SQLiteDatabase | None = None
_REPOSITORY: EntryRepository | None = None
_MEDIA: MediaStore | None = None
_AUDIO_BACKEND: AudioBackend | None = None
_CONTROLLER: AudioSessionController | None = None
_ERROR_LOG: ErrorLog | None = None
_RUNNER: EnrichmentRunner | None = None
_COORDINATOR: WorkflowCoordinator | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_repository() -> EntryRepository:
    global _REPOSITORY
    if _REPOSITORY is None:
        repository = EntryRepository(get_database())
        repository.ensure_predefined_categories()
        _REPOSITORY = repository
    return _REPOSITORY


def get_media_store() -> MediaStore:
    global _MEDIA
    if _MEDIA is None:
        settings = get_app_settings()
        media = MediaStore(settings.media_dir, extension=settings.media_extension)
        media.ensure_directory()
        _MEDIA = media
    return _MEDIA


def get_audio_backend() -> AudioBackend:
    global _AUDIO_BACKEND
    if _AUDIO_BACKEND is None:
        settings = get_app_settings()
        _AUDIO_BACKEND = SoundDeviceBackend(sample_rate=settings.sample_rate, channels=settings.channels)
    return _AUDIO_BACKEND


def get_audio_controller() -> AudioSessionController:
    global _CONTROLLER
    if _CONTROLLER is None:
        _CONTROLLER = AudioSessionController(get_audio_backend())
    return _CONTROLLER


def get_error_log() -> ErrorLog:
    global _ERROR_LOG
    if _ERROR_LOG is None:
        _ERROR_LOG = ErrorLog(max_entries=get_app_settings().error_log_size)
    return _ERROR_LOG


def get_enrichment_runner() -> EnrichmentRunner:
    global _RUNNER
    if _RUNNER is None:
        settings = get_app_settings()
        _RUNNER = EnrichmentRunner(
            client=EnrichmentClient(settings),
            repository=get_repository(),
            media=get_media_store(),
            error_log=get_error_log(),
            max_workers=settings.enrichment_workers,
        )
    return _RUNNER


def get_coordinator() -> WorkflowCoordinator:
    global _COORDINATOR
    if _COORDINATOR is None:
        _COORDINATOR = WorkflowCoordinator(
            media=get_media_store(),
            audio=get_audio_controller(),
            repository=get_repository(),
            enrichment=get_enrichment_runner(),
            error_log=get_error_log(),
            min_free_storage_mb=get_app_settings().min_free_storage_mb,
        )
    return _COORDINATOR


def shutdown() -> None:
    """Stop background work and release the database."""
    global _RUNNER, _DB
    if _RUNNER is not None:
        _RUNNER.shutdown(wait=False)
        _RUNNER = None
    if _DB is not None:
        _DB.close()
        _DB = None


__all__ = [
    "get_app_settings",
    "get_database",
    "get_repository",
    "get_media_store",
    "get_audio_backend",
    "get_audio_controller",
    "get_error_log",
    "get_enrichment_runner",
    "get_coordinator",
    "shutdown",
]
