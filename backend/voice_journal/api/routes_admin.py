"""Health, integrity and maintenance routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from voice_journal.api.dependencies import get_coordinator, get_error_log
from voice_journal.core.metrics import metrics_response
from voice_journal.models.dto import DiagnosticsResponse, HealthResponse, IntegrityResponse, MaintenanceResponse
from voice_journal.workflow import ErrorLog, WorkflowCoordinator

router = APIRouter()


@router.get("/health/system", response_model=HealthResponse, summary="Pre-flight system health report")
def system_health(coordinator: WorkflowCoordinator = Depends(get_coordinator)) -> HealthResponse:
    report = coordinator.perform_system_health_check()
    return HealthResponse(**report.to_dict())


@router.get("/integrity", response_model=IntegrityResponse, summary="Cross-check entries against media files")
def integrity(coordinator: WorkflowCoordinator = Depends(get_coordinator)) -> IntegrityResponse:
    report = coordinator.validate_data_integrity()
    return IntegrityResponse(**report.to_dict())


@router.post("/maintenance/cleanup", response_model=MaintenanceResponse, summary="Delete orphaned media files")
def cleanup(coordinator: WorkflowCoordinator = Depends(get_coordinator)) -> MaintenanceResponse:
    report = coordinator.perform_maintenance_cleanup()
    return MaintenanceResponse(**report.to_dict())


@router.get("/diagnostics", response_model=DiagnosticsResponse, summary="Recent classified errors")
async def diagnostics(
    drain: bool = False,
    error_log: ErrorLog = Depends(get_error_log),
) -> DiagnosticsResponse:
    records = error_log.records()
    notifications = error_log.drain_notifications() if drain else []
    return DiagnosticsResponse(
        total_errors=len(records),
        recent=[record.to_dict() for record in records[-10:]],
        notifications=[record.to_dict() for record in notifications],
        report=error_log.diagnostic_report(),
    )


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
