"""Audio session controller: one recording slot and one playback slot."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from voice_journal.audio.backend import AudioBackend
from voice_journal.audio.state import PlayerState, RecorderState, player_machine, recorder_machine
from voice_journal.core.errors import JournalError, PlaybackFailed
from voice_journal.core.events import EventStream

logger = logging.getLogger(__name__)

RECORDING_STARTED = "recording_started"
RECORDING_STOPPED = "recording_stopped"
RECORDING_FAILED = "recording_failed"
PLAYBACK_STARTED = "playback_started"
PLAYBACK_PAUSED = "playback_paused"
PLAYBACK_RESUMED = "playback_resumed"
PLAYBACK_STOPPED = "playback_stopped"
PLAYBACK_FINISHED = "playback_finished"
PLAYBACK_FAILED = "playback_failed"


@dataclass(slots=True)
class RecordingStopped:
    path: str
    duration: float


class AudioSessionController:
    """Drives an ``AudioBackend`` through explicit recorder/player state machines.

    Lifecycle notifications are published on ``events``; illegal requests
    (a second recording, pausing while idle, ...) raise
    ``IllegalStateTransition`` instead of being ignored.
    """

    def __init__(self, backend: AudioBackend, clock: Callable[[], float] = time.monotonic) -> None:
        self.backend = backend
        self.events = EventStream("audio")
        self._clock = clock
        self._recorder = recorder_machine()
        self._player = player_machine()
        self._lock = threading.RLock()
        self._recording_path: str | None = None
        self._recording_started_at: float | None = None
        self._now_playing: str | None = None
        self._playback_duration = 0.0

    # Session ------------------------------------------------------------

    @property
    def has_record_permission(self) -> bool:
        return self.backend.has_input_permission()

    def request_permission(self, callback: Callable[[bool], None] | None = None) -> bool:
        granted = self.backend.request_input_permission()
        if callback is not None:
            callback(granted)
        return granted

    def check_available(self) -> bool:
        """Liveness check that does not keep the session open."""
        return self.backend.is_available()

    def activate_session(self) -> None:
        self.backend.activate()

    def deactivate_session(self) -> None:
        try:
            self.backend.deactivate()
        except JournalError as exc:
            logger.warning("Failed to deactivate audio session: %s", exc)

    # Recording ----------------------------------------------------------

    @property
    def recorder_state(self) -> RecorderState:
        return self._recorder.state

    @property
    def is_recording(self) -> bool:
        return self._recorder.state is RecorderState.RECORDING

    @property
    def active_recording_path(self) -> str | None:
        return self._recording_path

    def current_recording_time(self) -> float:
        if self._recording_started_at is None:
            return 0.0
        return max(0.0, self._clock() - self._recording_started_at)

    def start_recording(self, output_path: str) -> None:
        with self._lock:
            self._recorder.move(RecorderState.RECORDING)
            try:
                self.backend.activate()
                self.backend.start_capture(output_path)
            except JournalError as exc:
                self._recorder.move(RecorderState.IDLE)
                self.events.publish(RECORDING_FAILED, path=output_path, error=exc)
                raise
            self._recording_path = output_path
            self._recording_started_at = self._clock()
        logger.info("Recording started", extra={"ctx_path": output_path})
        self.events.publish(RECORDING_STARTED, path=output_path)

    def stop_recording(self) -> RecordingStopped:
        with self._lock:
            self._recorder.move(RecorderState.STOPPING)
            path = self._recording_path or ""
            duration = self.current_recording_time()
            try:
                self.backend.stop_capture()
            except JournalError as exc:
                self._reset_recording()
                self.events.publish(RECORDING_FAILED, path=path, error=exc)
                raise
            finally:
                self.deactivate_session()
            self._reset_recording()
        stopped = RecordingStopped(path=path, duration=round(duration, 3))
        logger.info("Recording stopped", extra={"ctx_path": path, "ctx_duration": stopped.duration})
        self.events.publish(RECORDING_STOPPED, path=path, duration=stopped.duration)
        return stopped

    def _reset_recording(self) -> None:
        self._recording_path = None
        self._recording_started_at = None
        self._recorder.move(RecorderState.IDLE)

    # Playback -----------------------------------------------------------

    @property
    def player_state(self) -> PlayerState:
        return self._player.state

    @property
    def now_playing(self) -> str | None:
        return self._now_playing

    @property
    def playback_duration(self) -> float:
        return self._playback_duration

    def load_and_play(self, path: str) -> float:
        """Load ``path`` and start playing it, replacing any current playback."""
        with self._lock:
            if self._player.state in (PlayerState.PLAYING, PlayerState.PAUSED):
                self.stop_playback()
            self._player.move(PlayerState.LOADING)
            try:
                self.backend.activate()
                duration = self.backend.load(path)
                self.backend.play(self._on_playback_finished)
            except JournalError as exc:
                self._player.move(PlayerState.IDLE)
                self._now_playing = None
                self.events.publish(PLAYBACK_FAILED, path=path, error=exc)
                raise
            self._player.move(PlayerState.PLAYING)
            self._now_playing = path
            self._playback_duration = duration
        self.events.publish(PLAYBACK_STARTED, path=path, duration=duration)
        return duration

    def pause_playback(self) -> None:
        with self._lock:
            self._player.require(PlayerState.PLAYING)
            self.backend.pause()
            self._player.move(PlayerState.PAUSED)
        self.events.publish(PLAYBACK_PAUSED, path=self._now_playing)

    def resume_playback(self) -> None:
        with self._lock:
            self._player.require(PlayerState.PAUSED)
            self.backend.resume()
            self._player.move(PlayerState.PLAYING)
        self.events.publish(PLAYBACK_RESUMED, path=self._now_playing)

    def stop_playback(self) -> None:
        with self._lock:
            self._player.move(PlayerState.STOPPED)
            path = self._now_playing
            try:
                self.backend.stop()
            finally:
                self.deactivate_session()
                self._finish_playback()
        self.events.publish(PLAYBACK_STOPPED, path=path)

    def _on_playback_finished(self, completed: bool) -> None:
        with self._lock:
            if self._player.state is not PlayerState.PLAYING:
                return
            path = self._now_playing
            self.deactivate_session()
            self._player.move(PlayerState.IDLE)
            self._now_playing = None
            self._playback_duration = 0.0
        if completed:
            self.events.publish(PLAYBACK_FINISHED, path=path)
        else:
            self.events.publish(PLAYBACK_FAILED, path=path, error=PlaybackFailed())

    def _finish_playback(self) -> None:
        self._now_playing = None
        self._playback_duration = 0.0
        self._player.move(PlayerState.IDLE)


__all__ = [
    "AudioSessionController",
    "RecordingStopped",
    "RECORDING_STARTED",
    "RECORDING_STOPPED",
    "RECORDING_FAILED",
    "PLAYBACK_STARTED",
    "PLAYBACK_PAUSED",
    "PLAYBACK_RESUMED",
    "PLAYBACK_STOPPED",
    "PLAYBACK_FINISHED",
    "PLAYBACK_FAILED",
]
