"""Translate workflow results and errors into HTTP responses."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException

from voice_journal.core import errors
from voice_journal.models.dto import EntryResponse, WorkflowResponse
from voice_journal.workflow import ErrorCategory, WorkflowResult, classify

_STATUS_BY_TYPE: tuple[tuple[type[BaseException], int], ...] = (
    (errors.NoRecordPermission, 403),
    (errors.AudioSystemUnavailable, 503),
    (errors.StorageSpaceLow, 507),
    (errors.EntryNotFound, 404),
    (errors.AudioFileNotFound, 404),
    (errors.PlaybackFileNotFound, 404),
    (errors.NoAudioFile, 422),
    (errors.EmptyAudioFile, 422),
    (errors.MediaOutsideLibrary, 422),
    (errors.IllegalStateTransition, 409),
    (errors.EnrichmentNotConfigured, 412),
    (errors.EnrichmentError, 502),
    (errors.AudioSessionError, 503),
)


def status_for(error: BaseException) -> int:
    for klass, status in _STATUS_BY_TYPE:
        if isinstance(error, klass):
            return status
    return 500


def error_payload(error: BaseException, category: ErrorCategory | None = None) -> dict[str, Any]:
    payload = classify(error, category).to_dict()
    payload["detail"] = getattr(error, "message", str(error))
    context = getattr(error, "context", None)
    if context:
        payload["context"] = context
    return payload


def http_error(error: BaseException, category: ErrorCategory | None = None) -> HTTPException:
    return HTTPException(status_code=status_for(error), detail=error_payload(error, category))


def raise_for_result(result: WorkflowResult, category: ErrorCategory | None = None) -> WorkflowResult:
    if not result.success and result.error is not None:
        raise http_error(result.error, category)
    return result


def to_workflow_response(result: WorkflowResult) -> WorkflowResponse:
    return WorkflowResponse(
        success=result.success,
        entry=EntryResponse.from_entry(result.entry) if result.entry is not None else None,
        output_path=result.output_path,
        duration=result.duration,
        enrichment_scheduled=result.enrichment is not None,
        warnings=[error_payload(warning) for warning in result.warnings],
    )


__all__ = ["status_for", "error_payload", "http_error", "raise_for_result", "to_workflow_response"]
