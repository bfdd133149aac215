"""
Workflow domain model

Ideas move Pending -> Approved/Rejected -> In Progress -> Completed.
Every business-significant transition leaves an audit trail entry.
"""

from .types import (
    Attachment,
    AuditEvent,
    AuditEventDraft,
    AuditEventKind,
    DiscussionMessage,
    Idea,
    IdeaDraft,
    IdeaStatus,
    LastAction,
    Person,
    Task,
    TaskDraft,
    TaskStatus,
)

__all__ = [
    "Attachment",
    "AuditEvent",
    "AuditEventDraft",
    "AuditEventKind",
    "DiscussionMessage",
    "Idea",
    "IdeaDraft",
    "IdeaStatus",
    "LastAction",
    "Person",
    "Task",
    "TaskDraft",
    "TaskStatus",
]
