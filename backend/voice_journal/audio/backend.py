"""Hardware audio backends driven by the session controller."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Protocol

from voice_journal.core.errors import (
    AudioSessionError,
    DecodingError,
    EncodingError,
    PlaybackFileNotFound,
    PlaybackLoadFailed,
    PlaybackStartFailed,
    RecordingStartFailed,
)

logger = logging.getLogger(__name__)

FinishedCallback = Callable[[bool], None]


class AudioBackend(Protocol):
    """Device-level primitives; state bookkeeping lives in the controller."""

    def has_input_permission(self) -> bool: ...

    def request_input_permission(self) -> bool: ...

    def is_available(self) -> bool: ...

    def activate(self) -> None: ...

    def deactivate(self) -> None: ...

    def start_capture(self, output_path: str) -> None: ...

    def stop_capture(self) -> None: ...

    def load(self, path: str) -> float: ...

    def play(self, on_finished: FinishedCallback) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...


class SoundDeviceBackend:
    """PortAudio backend built on ``sounddevice`` and ``soundfile``.

    Both libraries ship in the ``audio`` extra and are imported on first use,
    so the service can run (and report the audio subsystem as unavailable) on
    hosts without PortAudio.
    """

    def __init__(self, sample_rate: int = 44100, channels: int = 1, device: int | str | None = None) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = device
        self._lock = threading.Lock()
        self._input_stream: Any = None
        self._writer: Any = None
        self._output_stream: Any = None
        self._frames: Any = None
        self._frame_rate = sample_rate
        self._position = 0
        self._interrupted = False

    @staticmethod
    def _sounddevice():
        import sounddevice

        return sounddevice

    @staticmethod
    def _soundfile():
        import soundfile

        return soundfile

    # Session ------------------------------------------------------------

    def has_input_permission(self) -> bool:
        # Desktop platforms gate microphone access when an input device is opened.
        try:
            sd = self._sounddevice()
            sd.check_input_settings(device=self.device, channels=self.channels, samplerate=self.sample_rate)
        except Exception as exc:  # noqa: BLE001
            logger.info("Input device not usable: %s", exc)
            return False
        return True

    def request_input_permission(self) -> bool:
        return self.has_input_permission()

    def is_available(self) -> bool:
        try:
            devices = self._sounddevice().query_devices()
        except Exception as exc:  # noqa: BLE001
            logger.info("Audio subsystem check failed: %s", exc)
            return False
        return len(devices) > 0

    def activate(self) -> None:
        try:
            sd = self._sounddevice()
            sd.query_devices(self.device, kind="input")
            sd.query_devices(kind="output")
        except Exception as exc:  # noqa: BLE001
            raise AudioSessionError(f"Failed to activate audio session: {exc}") from exc

    def deactivate(self) -> None:
        # PortAudio keeps no shared session; streams are closed by their owners.
        logger.debug("Audio session released")

    # Capture ------------------------------------------------------------

    def start_capture(self, output_path: str) -> None:
        sd = self._sounddevice()
        sf = self._soundfile()
        with self._lock:
            try:
                self._writer = sf.SoundFile(
                    output_path,
                    mode="w",
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    subtype="PCM_16",
                )
                self._input_stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    device=self.device,
                    dtype="int16",
                    callback=self._on_input,
                )
                self._input_stream.start()
            except (sd.PortAudioError, RuntimeError, OSError) as exc:
                self._close_capture()
                raise RecordingStartFailed(f"Failed to start recording: {exc}") from exc

    def _on_input(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        writer = self._writer
        if writer is not None:
            writer.write(indata.copy())

    def stop_capture(self) -> None:
        with self._lock:
            try:
                if self._input_stream is not None:
                    self._input_stream.stop()
            except RuntimeError as exc:
                raise EncodingError(f"Failed to finalize recording: {exc}") from exc
            finally:
                self._close_capture()

    def _close_capture(self) -> None:
        if self._input_stream is not None:
            self._input_stream.close()
            self._input_stream = None
        if self._writer is not None:
            self._writer.close()
            self._writer = None

    # Playback -----------------------------------------------------------

    def load(self, path: str) -> float:
        sf = self._soundfile()
        try:
            frames, rate = sf.read(path, dtype="float32", always_2d=True)
        except FileNotFoundError as exc:
            raise PlaybackFileNotFound() from exc
        except RuntimeError as exc:
            raise DecodingError(f"Audio decoding error: {exc}") from exc
        except OSError as exc:
            raise PlaybackLoadFailed(f"Failed to load audio file: {exc}") from exc
        with self._lock:
            self._close_output()
            self._frames = frames
            self._frame_rate = rate
            self._position = 0
        return len(frames) / float(rate) if rate else 0.0

    def play(self, on_finished: FinishedCallback) -> None:
        sd = self._sounddevice()
        if self._frames is None:
            raise PlaybackStartFailed("No audio loaded")

        def _finished() -> None:
            if not self._interrupted:
                on_finished(True)

        with self._lock:
            self._interrupted = False
            try:
                self._output_stream = sd.OutputStream(
                    samplerate=self._frame_rate,
                    channels=self._frames.shape[1],
                    dtype="float32",
                    callback=self._on_output,
                    finished_callback=_finished,
                )
                self._output_stream.start()
            except (sd.PortAudioError, RuntimeError) as exc:
                self._close_output()
                raise PlaybackStartFailed(f"Failed to start playback: {exc}") from exc

    def _on_output(self, outdata, frames, time_info, status) -> None:
        chunk = self._frames[self._position : self._position + frames]
        outdata[: len(chunk)] = chunk
        if len(chunk) < frames:
            outdata[len(chunk) :] = 0
            raise self._sounddevice().CallbackStop()
        self._position += frames

    def pause(self) -> None:
        with self._lock:
            if self._output_stream is not None:
                self._interrupted = True
                self._output_stream.stop()

    def resume(self) -> None:
        with self._lock:
            if self._output_stream is None:
                raise PlaybackStartFailed("Nothing to resume")
            self._interrupted = False
            self._output_stream.start()

    def stop(self) -> None:
        with self._lock:
            self._interrupted = True
            self._close_output()
            self._position = 0

    def _close_output(self) -> None:
        if self._output_stream is not None:
            self._output_stream.stop()
            self._output_stream.close()
            self._output_stream = None


__all__ = ["AudioBackend", "SoundDeviceBackend", "FinishedCallback"]
