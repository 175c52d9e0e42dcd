"""Recording and playback workflow routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from voice_journal.api.dependencies import get_coordinator, get_repository
from voice_journal.api.results import http_error, raise_for_result, to_workflow_response
from voice_journal.core.errors import EntryNotFound
from voice_journal.db.entries import EntryRepository
from voice_journal.models.dto import CompleteRecordingRequest, WorkflowResponse
from voice_journal.workflow import ErrorCategory, WorkflowCoordinator

router = APIRouter()


@router.post("/recording/start", response_model=WorkflowResponse, summary="Run pre-flight checks and start recording")
def start_recording(coordinator: WorkflowCoordinator = Depends(get_coordinator)) -> WorkflowResponse:
    result = raise_for_result(coordinator.start_recording_workflow())
    return to_workflow_response(result)


@router.post("/recording/stop", response_model=WorkflowResponse, summary="Stop recording and save the entry")
def stop_recording(coordinator: WorkflowCoordinator = Depends(get_coordinator)) -> WorkflowResponse:
    result = raise_for_result(coordinator.stop_recording_workflow())
    return to_workflow_response(result)


@router.post(
    "/recording/complete",
    response_model=WorkflowResponse,
    summary="Verify an externally recorded file and save it as an entry",
)
def complete_recording(
    request: CompleteRecordingRequest,
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
) -> WorkflowResponse:
    result = raise_for_result(coordinator.complete_recording_workflow(request.path, request.duration))
    return to_workflow_response(result)


# Fixed paths first so they are not captured by /playback/{entry_id}
@router.post("/playback/pause", response_model=WorkflowResponse, summary="Pause playback")
def pause_playback(coordinator: WorkflowCoordinator = Depends(get_coordinator)) -> WorkflowResponse:
    result = raise_for_result(coordinator.pause_playback(), ErrorCategory.PLAYBACK)
    return to_workflow_response(result)


@router.post("/playback/resume", response_model=WorkflowResponse, summary="Resume paused playback")
def resume_playback(coordinator: WorkflowCoordinator = Depends(get_coordinator)) -> WorkflowResponse:
    result = raise_for_result(coordinator.resume_playback(), ErrorCategory.PLAYBACK)
    return to_workflow_response(result)


@router.post("/playback/stop", response_model=WorkflowResponse, summary="Stop playback")
def stop_playback(coordinator: WorkflowCoordinator = Depends(get_coordinator)) -> WorkflowResponse:
    result = raise_for_result(coordinator.stop_playback(), ErrorCategory.PLAYBACK)
    return to_workflow_response(result)


@router.post("/playback/{entry_id}", response_model=WorkflowResponse, summary="Play an entry's recording")
def start_playback(
    entry_id: str,
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
    repository: EntryRepository = Depends(get_repository),
) -> WorkflowResponse:
    entry = repository.get_entry(entry_id)
    if entry is None:
        raise http_error(EntryNotFound(entry_id=entry_id))
    result = raise_for_result(coordinator.start_playback_workflow(entry), ErrorCategory.PLAYBACK)
    return to_workflow_response(result)


__all__ = ["router"]
