"""Reconciliation engine - server-confirmed status changes, audit trail, undo."""

from .audit import AuditLogError, build_status_event, derive_event_kind
from .engine import ReconciliationEngine, WorkflowState

__all__ = [
    "ReconciliationEngine",
    "WorkflowState",
    "AuditLogError",
    "build_status_event",
    "derive_event_kind",
]
