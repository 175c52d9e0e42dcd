"""Exception hierarchy shared by the workflow layer and its collaborators.

Every failure carries a stable ``code`` and a human readable ``message``.
Workflow pre/post-condition failures are returned inside a ``WorkflowResult``
rather than raised across the coordinator boundary; collaborator errors are
raised and caught by the coordinator.
"""

from __future__ import annotations

from typing import Any


class JournalError(Exception):
    """Base class for every error the backend knows how to classify."""

    code = "journal_error"
    default_message = "Voice journal error"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.context}


# Workflow taxonomy -------------------------------------------------------


class WorkflowError(JournalError):
    code = "workflow_error"


class NoRecordPermission(WorkflowError):
    code = "no_record_permission"
    default_message = "Microphone permission is required to record audio"


class AudioSystemUnavailable(WorkflowError):
    code = "audio_system_unavailable"
    default_message = "Audio system is not available"


class AudioFileNotCreated(WorkflowError):
    code = "audio_file_not_created"
    default_message = "Failed to create audio file"


class EmptyAudioFile(WorkflowError):
    code = "empty_audio_file"
    default_message = "Audio file is empty or corrupted"


class EntrySaveFailed(WorkflowError):
    code = "entry_save_failed"
    default_message = "Failed to save entry to database"


class NoAudioFile(WorkflowError):
    code = "no_audio_file"
    default_message = "Entry does not have an associated audio file"


class AudioFileNotFound(WorkflowError):
    code = "audio_file_not_found"
    default_message = "Audio file not found on device"


class StorageSpaceLow(WorkflowError):
    code = "storage_space_low"
    default_message = "Not enough storage space available"

    def __init__(self, available_mb: int, message: str | None = None) -> None:
        super().__init__(message, available_mb=available_mb)
        self.available_mb = available_mb


class EntryNotFound(WorkflowError):
    code = "entry_not_found"
    default_message = "Journal entry not found"


class MediaOutsideLibrary(WorkflowError):
    code = "media_outside_library"
    default_message = "Audio file is not inside the recordings directory"


# Audio collaborator ------------------------------------------------------


class AudioError(JournalError):
    code = "audio_error"
    default_message = "Audio error"


class IllegalStateTransition(AudioError):
    code = "illegal_state_transition"

    def __init__(self, machine: str, current: str, target: str) -> None:
        super().__init__(
            f"Cannot move {machine} from {current} to {target}",
            machine=machine,
            current=current,
            target=target,
        )


class AudioSessionError(AudioError):
    code = "audio_session_error"
    default_message = "Failed to configure the audio session"


class RecordingError(AudioError):
    code = "recording_error"
    default_message = "Recording error"


class RecordingStartFailed(RecordingError):
    code = "recording_start_failed"
    default_message = "Failed to start recording"


class RecordingFailed(RecordingError):
    code = "recording_failed"
    default_message = "Recording failed"


class EncodingError(RecordingError):
    code = "encoding_error"
    default_message = "Audio encoding error"


class PlaybackError(AudioError):
    code = "playback_error"
    default_message = "Playback error"


class PlaybackFileNotFound(PlaybackError):
    code = "playback_file_not_found"
    default_message = "Audio file not found"


class PlaybackLoadFailed(PlaybackError):
    code = "playback_load_failed"
    default_message = "Failed to load audio file"


class PlaybackStartFailed(PlaybackError):
    code = "playback_start_failed"
    default_message = "Failed to start playback"


class PlaybackFailed(PlaybackError):
    code = "playback_failed"
    default_message = "Playback failed"


class DecodingError(PlaybackError):
    code = "decoding_error"
    default_message = "Audio decoding error"


# Enrichment collaborator -------------------------------------------------


class EnrichmentError(JournalError):
    code = "enrichment_error"
    default_message = "Enrichment failed"


class EnrichmentNotConfigured(EnrichmentError):
    code = "enrichment_not_configured"
    default_message = "OpenAI API key not configured. Add an API key to use AI features."


class InvalidAPIKey(EnrichmentError):
    code = "invalid_api_key"
    default_message = "Invalid OpenAI API key. Check the API key and try again."


class EnrichmentNetworkError(EnrichmentError):
    code = "enrichment_network_error"
    default_message = "Network error occurred. Check the internet connection."


class EnrichmentQuotaExceeded(EnrichmentError):
    code = "enrichment_quota_exceeded"
    default_message = "The transcription service rate limit or quota was exceeded."


class EnrichmentAPIError(EnrichmentError):
    code = "enrichment_api_error"
    default_message = "OpenAI API error"


class EmptyEnrichmentResponse(EnrichmentError):
    code = "empty_enrichment_response"
    default_message = "No response received from OpenAI API."


__all__ = [
    "JournalError",
    "WorkflowError",
    "NoRecordPermission",
    "AudioSystemUnavailable",
    "AudioFileNotCreated",
    "EmptyAudioFile",
    "EntrySaveFailed",
    "NoAudioFile",
    "AudioFileNotFound",
    "StorageSpaceLow",
    "EntryNotFound",
    "MediaOutsideLibrary",
    "AudioError",
    "IllegalStateTransition",
    "AudioSessionError",
    "RecordingError",
    "RecordingStartFailed",
    "RecordingFailed",
    "EncodingError",
    "PlaybackError",
    "PlaybackFileNotFound",
    "PlaybackLoadFailed",
    "PlaybackStartFailed",
    "PlaybackFailed",
    "DecodingError",
    "EnrichmentError",
    "EnrichmentNotConfigured",
    "InvalidAPIKey",
    "EnrichmentNetworkError",
    "EnrichmentQuotaExceeded",
    "EnrichmentAPIError",
    "EmptyEnrichmentResponse",
]
