"""Test fixtures for Voice Journal."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from voice_journal.audio.controller import AudioSessionController  # noqa: E402
from voice_journal.core.config import Settings, get_settings  # noqa: E402
from voice_journal.core.errors import PlaybackFileNotFound  # noqa: E402
from voice_journal.db.entries import EntryRepository  # noqa: E402
from voice_journal.db.sqlite import SQLiteDatabase  # noqa: E402
from voice_journal.storage.media import BYTES_PER_MB, MediaStore  # noqa: E402
from voice_journal.workflow import ErrorLog, WorkflowCoordinator  # noqa: E402


class FakeAudioBackend:
    """In-memory stand-in for the sound device.

    ``stop_capture`` writes ``capture_bytes`` zero bytes to the output path;
    ``None`` writes nothing, so the file is never created.
    """

    def __init__(self) -> None:
        self.permission = True
        self.available = True
        self.capture_bytes: int | None = 40 * 1024
        self.load_duration = 5.2
        self.start_error: Exception | None = None
        self.stop_error: Exception | None = None
        self.load_error: Exception | None = None
        self.active = False
        self.capturing: str | None = None
        self.loaded: str | None = None
        self.playing = False
        self.on_finished: Callable[[bool], None] | None = None

    def has_input_permission(self) -> bool:
        return self.permission

    def request_input_permission(self) -> bool:
        return self.permission

    def is_available(self) -> bool:
        return self.available

    def activate(self) -> None:
        self.active = True

    def deactivate(self) -> None:
        self.active = False

    def start_capture(self, output_path: str) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.capturing = output_path

    def stop_capture(self) -> None:
        path, self.capturing = self.capturing, None
        if self.stop_error is not None:
            raise self.stop_error
        if path and self.capture_bytes is not None:
            Path(path).write_bytes(b"\0" * self.capture_bytes)

    def load(self, path: str) -> float:
        if self.load_error is not None:
            raise self.load_error
        if not os.path.isfile(path):
            raise PlaybackFileNotFound()
        self.loaded = path
        return self.load_duration

    def play(self, on_finished: Callable[[bool], None]) -> None:
        self.on_finished = on_finished
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    def resume(self) -> None:
        self.playing = True

    def stop(self) -> None:
        self.playing = False

    def finish(self, completed: bool = True) -> None:
        self.playing = False
        assert self.on_finished is not None
        self.on_finished(completed)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Replays queued responses (or raises queued exceptions) for ``post``."""

    def __init__(self, *responses: FakeResponse | Exception) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def write_media(media: MediaStore, size: int = 1024, name: str | None = None) -> str:
    path = media.new_media_path() if name is None else media.normalize(media.media_dir / name)
    Path(path).write_bytes(b"\0" * size)
    return path


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("VJ_DB_PATH", str(tmp_path / "journal.db"))
    monkeypatch.setenv("VJ_MEDIA_DIR", str(tmp_path / "recordings"))
    monkeypatch.setenv("VJ_USE_KEYCHAIN", "false")
    monkeypatch.delenv("VJ_CONFIG", raising=False)
    monkeypatch.delenv("VJ_OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    from voice_journal.api import dependencies as deps

    _reset_dependencies(deps)
    yield
    deps.shutdown()
    _reset_dependencies(deps)


def _reset_dependencies(deps) -> None:
    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps._DB = None
    deps._REPOSITORY = None
    deps._MEDIA = None
    deps._AUDIO_BACKEND = None
    deps._CONTROLLER = None
    deps._ERROR_LOG = None
    deps._RUNNER = None
    deps._COORDINATOR = None


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        db_path=tmp_path / "journal.db",
        media_dir=tmp_path / "recordings",
        use_keychain=False,
    )


@pytest.fixture
def database(settings: Settings) -> SQLiteDatabase:
    db = SQLiteDatabase(settings.db_path)
    db.ensure_schema()
    yield db
    db.close()


@pytest.fixture
def repository(database: SQLiteDatabase) -> EntryRepository:
    repo = EntryRepository(database)
    repo.ensure_predefined_categories()
    return repo


@pytest.fixture
def media(settings: Settings, monkeypatch: pytest.MonkeyPatch) -> MediaStore:
    store = MediaStore(settings.media_dir, extension=settings.media_extension)
    store.ensure_directory()
    # plenty of space unless a test says otherwise
    monkeypatch.setattr(store, "available_free_space", lambda: 500 * BYTES_PER_MB)
    return store


@pytest.fixture
def audio_backend() -> FakeAudioBackend:
    return FakeAudioBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def controller(audio_backend: FakeAudioBackend, clock: FakeClock) -> AudioSessionController:
    return AudioSessionController(audio_backend, clock=clock)


@pytest.fixture
def error_log() -> ErrorLog:
    return ErrorLog(max_entries=20)


@pytest.fixture
def coordinator(
    media: MediaStore,
    controller: AudioSessionController,
    repository: EntryRepository,
    error_log: ErrorLog,
) -> WorkflowCoordinator:
    return WorkflowCoordinator(
        media=media,
        audio=controller,
        repository=repository,
        error_log=error_log,
        min_free_storage_mb=10,
    )
