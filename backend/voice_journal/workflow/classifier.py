"""Severity and recovery classification for raised errors.

``classify`` is a pure mapping from an exception plus a coarse category to a
``Classification``. Lookups walk the exception's MRO so subclasses inherit the
rule of their closest mapped ancestor; anything unmapped becomes a MEDIUM
"Unexpected Error".
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from enum import Enum, IntEnum

from voice_journal.core import errors


class ErrorCategory(str, Enum):
    RECORDING = "recording"
    PLAYBACK = "playback"
    STORAGE = "storage"
    PERMISSIONS = "permissions"
    NETWORK = "network"
    DATA = "data"
    SYSTEM = "system"


class Severity(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @property
    def title(self) -> str:
        return _SEVERITY_TITLES[self]


_SEVERITY_TITLES = {
    Severity.LOW: "Notice",
    Severity.MEDIUM: "Warning",
    Severity.HIGH: "Error",
    Severity.CRITICAL: "Critical Error",
}


class RecoveryAction(str, Enum):
    RETRY = "retry"
    OPEN_SETTINGS = "open_settings"
    MANAGE_STORAGE = "manage_storage"
    DISMISS = "dismiss"
    CONTACT_SUPPORT = "contact_support"

    @property
    def label(self) -> str:
        return _ACTION_LABELS[self]


_ACTION_LABELS = {
    RecoveryAction.RETRY: "Try Again",
    RecoveryAction.OPEN_SETTINGS: "Open Settings",
    RecoveryAction.MANAGE_STORAGE: "Manage Storage",
    RecoveryAction.DISMISS: "OK",
    RecoveryAction.CONTACT_SUPPORT: "Get Help",
}


@dataclass(frozen=True, slots=True)
class Classification:
    code: str
    category: ErrorCategory
    severity: Severity
    title: str
    message: str
    actions: tuple[RecoveryAction, ...]
    suggestions: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "title": self.title,
            "message": self.message,
            "actions": [action.value for action in self.actions],
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True, slots=True)
class _Rule:
    severity: Severity
    title: str
    message: str
    actions: tuple[RecoveryAction, ...]
    code: str | None = None


_RETRY = (RecoveryAction.RETRY, RecoveryAction.DISMISS)
_DISMISS = (RecoveryAction.DISMISS,)

_RULES: dict[type[BaseException], _Rule] = {
    errors.NoRecordPermission: _Rule(
        Severity.HIGH,
        "Microphone Permission Required",
        "Voice journal needs microphone access to record entries. Grant permission in system settings.",
        (RecoveryAction.OPEN_SETTINGS, RecoveryAction.DISMISS),
    ),
    errors.AudioSystemUnavailable: _Rule(
        Severity.HIGH,
        "Audio System Unavailable",
        "The audio system is currently unavailable. Close other audio apps and try again.",
        _RETRY,
    ),
    errors.EntrySaveFailed: _Rule(
        Severity.HIGH,
        "Failed to Save Entry",
        "The recording couldn't be saved to the database. Try recording again.",
        _RETRY,
    ),
    errors.AudioFileNotCreated: _Rule(
        Severity.HIGH,
        "Recording Error",
        "The audio recording couldn't be created or is empty. Try recording again.",
        _RETRY,
    ),
    errors.EmptyAudioFile: _Rule(
        Severity.MEDIUM,
        "Recording Error",
        "The audio recording couldn't be created or is empty. Try recording again.",
        _RETRY,
    ),
    errors.AudioFileNotFound: _Rule(
        Severity.MEDIUM,
        "Audio File Missing",
        "The audio file for this entry could not be found. It may have been deleted or moved.",
        _DISMISS,
    ),
    errors.MediaOutsideLibrary: _Rule(
        Severity.MEDIUM,
        "Invalid Recording Location",
        "Only recordings stored in the journal's recordings folder can be used.",
        _DISMISS,
    ),
    errors.StorageSpaceLow: _Rule(
        Severity.MEDIUM,
        "Storage Space Low",
        "The device is running low on storage space. Consider deleting old entries or freeing up space.",
        (RecoveryAction.MANAGE_STORAGE, RecoveryAction.DISMISS),
    ),
    errors.NoAudioFile: _Rule(
        Severity.LOW,
        "No Audio File",
        "This entry doesn't have an associated audio file.",
        _DISMISS,
    ),
    errors.EntryNotFound: _Rule(
        Severity.LOW,
        "Entry Not Found",
        "This entry no longer exists.",
        _DISMISS,
    ),
    errors.IllegalStateTransition: _Rule(
        Severity.LOW,
        "Audio Busy",
        "That action isn't possible right now. Finish the current recording or playback first.",
        _DISMISS,
    ),
    errors.AudioSessionError: _Rule(
        Severity.HIGH,
        "Audio Session Error",
        "The audio session couldn't be configured. Close other audio apps and try again.",
        _RETRY,
    ),
    errors.RecordingError: _Rule(
        Severity.HIGH,
        "Recording Error",
        "Recording stopped unexpectedly. Try recording again.",
        _RETRY,
    ),
    errors.PlaybackFileNotFound: _Rule(
        Severity.MEDIUM,
        "Audio File Missing",
        "The audio file could not be found.",
        _DISMISS,
    ),
    errors.PlaybackLoadFailed: _Rule(
        Severity.MEDIUM,
        "Playback Error",
        "The audio file couldn't be loaded.",
        _RETRY,
    ),
    errors.DecodingError: _Rule(
        Severity.MEDIUM,
        "Playback Error",
        "The audio file couldn't be decoded. It may be corrupted.",
        _DISMISS,
    ),
    errors.PlaybackError: _Rule(
        Severity.LOW,
        "Playback Error",
        "Playback couldn't start or was interrupted. Try again.",
        _RETRY,
    ),
    errors.EnrichmentNotConfigured: _Rule(
        Severity.LOW,
        "AI Features Disabled",
        "Add an OpenAI API key to enable transcription and summaries.",
        (RecoveryAction.OPEN_SETTINGS, RecoveryAction.DISMISS),
    ),
    errors.InvalidAPIKey: _Rule(
        Severity.MEDIUM,
        "Invalid API Key",
        "The OpenAI API key was rejected. Check the key in settings.",
        (RecoveryAction.OPEN_SETTINGS, RecoveryAction.DISMISS),
    ),
    errors.EnrichmentQuotaExceeded: _Rule(
        Severity.MEDIUM,
        "Transcription Limit Reached",
        "The transcription service quota or rate limit was exceeded. Try again later.",
        _RETRY,
    ),
    errors.EnrichmentError: _Rule(
        Severity.LOW,
        "Transcription Failed",
        "The entry couldn't be transcribed or summarized. The recording itself is safe.",
        _RETRY,
    ),
    sqlite3.DatabaseError: _Rule(
        Severity.CRITICAL,
        "Database Unavailable",
        "The journal database can't be read or written.",
        (RecoveryAction.CONTACT_SUPPORT, RecoveryAction.DISMISS),
        code="database_unavailable",
    ),
}

RECOVERY_SUGGESTIONS: dict[ErrorCategory, tuple[str, ...]] = {
    ErrorCategory.RECORDING: (
        "Check that microphone access is granted",
        "Close other audio apps",
        "Restart the app",
        "Ensure you have enough storage space",
    ),
    ErrorCategory.PLAYBACK: (
        "Check that the audio file exists",
        "Try playing a different entry",
        "Restart the app",
    ),
    ErrorCategory.STORAGE: (
        "Free up storage space on your device",
        "Delete old voice entries",
        "Clean up orphaned audio files",
    ),
    ErrorCategory.PERMISSIONS: (
        "Grant microphone permission in Settings",
        "Check privacy settings for the app",
    ),
    ErrorCategory.DATA: (
        "Restart the app to refresh data",
        "Check available storage space",
        "Try the operation again",
    ),
    ErrorCategory.SYSTEM: (
        "Restart the app",
        "Restart your device",
        "Update to the latest OS version",
    ),
    ErrorCategory.NETWORK: (
        "Check your internet connection",
        "Try again in a moment",
        "Switch to a different network",
    ),
}

# Categories callers would pick when they have no better context.
DEFAULT_CATEGORIES: dict[type[BaseException], ErrorCategory] = {
    errors.NoRecordPermission: ErrorCategory.PERMISSIONS,
    errors.StorageSpaceLow: ErrorCategory.STORAGE,
    errors.MediaOutsideLibrary: ErrorCategory.STORAGE,
    errors.EntrySaveFailed: ErrorCategory.DATA,
    errors.EntryNotFound: ErrorCategory.DATA,
    errors.AudioFileNotFound: ErrorCategory.PLAYBACK,
    errors.NoAudioFile: ErrorCategory.PLAYBACK,
    errors.PlaybackError: ErrorCategory.PLAYBACK,
    errors.EnrichmentError: ErrorCategory.NETWORK,
    sqlite3.DatabaseError: ErrorCategory.DATA,
}


def _lookup(table: dict[type[BaseException], object], error: BaseException):
    for klass in type(error).__mro__:
        if klass in table:
            return table[klass]
    return None


def default_category(error: BaseException) -> ErrorCategory:
    mapped = _lookup(DEFAULT_CATEGORIES, error)
    if mapped is not None:
        return mapped
    if isinstance(error, (errors.AudioError, errors.WorkflowError)):
        return ErrorCategory.RECORDING
    return ErrorCategory.SYSTEM


def classify(error: BaseException, category: ErrorCategory | None = None, context: str = "") -> Classification:
    """Map ``error`` to severity, user-facing text and recovery actions."""
    category = category or default_category(error)
    rule = _lookup(_RULES, error)
    code = getattr(error, "code", None) or (rule.code if rule else None) or "unexpected_error"
    if rule is None:
        where = f" in {context}" if context else ""
        return Classification(
            code=code,
            category=category,
            severity=Severity.MEDIUM,
            title="Unexpected Error",
            message=f"An error occurred{where}: {error}",
            actions=_RETRY,
            suggestions=RECOVERY_SUGGESTIONS[category],
        )
    return Classification(
        code=code,
        category=category,
        severity=rule.severity,
        title=rule.title,
        message=rule.message,
        actions=rule.actions,
        suggestions=RECOVERY_SUGGESTIONS[category],
    )


__all__ = [
    "ErrorCategory",
    "Severity",
    "RecoveryAction",
    "Classification",
    "RECOVERY_SUGGESTIONS",
    "classify",
    "default_category",
]
