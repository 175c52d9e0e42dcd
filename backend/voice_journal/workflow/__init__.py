"""Workflow coordination, classification and reporting."""

from .classifier import Classification, ErrorCategory, RecoveryAction, Severity, classify
from .error_log import ErrorLog, ErrorRecord
from .reports import HealthReport, IntegrityReport, MaintenanceReport
from .coordinator import WorkflowCoordinator, WorkflowResult

__all__ = [
    "Classification",
    "ErrorCategory",
    "RecoveryAction",
    "Severity",
    "classify",
    "ErrorLog",
    "ErrorRecord",
    "HealthReport",
    "IntegrityReport",
    "MaintenanceReport",
    "WorkflowCoordinator",
    "WorkflowResult",
]
