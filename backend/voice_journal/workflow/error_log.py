"""Bounded history of classified errors and pending user notifications."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime

from voice_journal.utils.time import utc_now
from voice_journal.workflow.classifier import Classification, ErrorCategory, Severity, classify

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}

NOTIFY_AT = Severity.MEDIUM
RECENT_IN_REPORT = 10


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    classification: Classification
    context: str
    detail: str
    timestamp: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            **self.classification.to_dict(),
            "context": self.context,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
        }


class ErrorLog:
    """Keeps the last ``max_entries`` classified errors.

    Records at MEDIUM severity or above are also queued as notifications that
    a UI can drain when convenient; nothing here interrupts the caller.
    """

    def __init__(self, max_entries: int = 100) -> None:
        self._records: deque[ErrorRecord] = deque(maxlen=max_entries)
        self._notifications: deque[ErrorRecord] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def record(self, error: BaseException, category: ErrorCategory | None = None, context: str = "") -> ErrorRecord:
        classification = classify(error, category, context)
        entry = ErrorRecord(
            classification=classification,
            context=context,
            detail=str(error),
            timestamp=utc_now(),
        )
        with self._lock:
            self._records.append(entry)
            if classification.severity >= NOTIFY_AT:
                self._notifications.append(entry)
        logger.log(
            _LOG_LEVELS[classification.severity],
            "[%s] %s: %s - %s",
            classification.severity.title,
            classification.category.value,
            classification.title,
            classification.message,
            extra={"ctx_error_code": classification.code, "ctx_context": context},
        )
        return entry

    def records(self) -> list[ErrorRecord]:
        with self._lock:
            return list(self._records)

    def drain_notifications(self) -> list[ErrorRecord]:
        with self._lock:
            pending = list(self._notifications)
            self._notifications.clear()
        return pending

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._notifications.clear()

    def diagnostic_report(self) -> str:
        records = self.records()
        lines = [
            "=== Voice Journal Error Diagnostic Report ===",
            "",
            f"Generated: {utc_now().isoformat(timespec='seconds')}",
            f"Total Errors: {len(records)}",
            "",
        ]
        if not records:
            lines.append("No errors recorded.")
            return "\n".join(lines) + "\n"
        lines.append("Recent Errors:")
        for record in records[-RECENT_IN_REPORT:]:
            c = record.classification
            lines.extend(
                [
                    "",
                    f"[{c.category.value}] {c.severity.title}",
                    f"Time: {record.timestamp.isoformat(timespec='seconds')}",
                    f"Title: {c.title}",
                    f"Message: {c.message}",
                    f"Details: {record.detail}",
                    "---",
                ]
            )
        return "\n".join(lines) + "\n"


__all__ = ["ErrorLog", "ErrorRecord"]
