"""Workflow domain types - ideas, tasks, discussions, and the audit trail."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class IdeaStatus(str, Enum):
    """Status of an idea through the approval workflow."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"

    @classmethod
    def _missing_(cls, value):
        # Older list items use the long label
        if value == "Pending Approval":
            return cls.PENDING
        return None


class TaskStatus(str, Enum):
    """Status of an implementation task."""
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"


class AuditEventKind(str, Enum):
    """Event-kind tag of an audit trail entry."""
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTATION_STARTED = "implementation_started"
    IMPLEMENTATION_COMPLETED = "implementation_completed"
    STATUS_CHANGED = "status_changed"
    COMMENTED = "commented"
    TASK_CREATED = "task_created"


@dataclass(frozen=True, slots=True)
class Person:
    """A user on the platform (creator, approver, assignee, actor)."""
    id: int
    name: str
    email: str | None = None


@dataclass(frozen=True, slots=True)
class Attachment:
    """A file attached to a list item."""
    file_name: str
    server_relative_url: str


@dataclass(frozen=True, slots=True)
class Idea:
    """
    An idea as seen by the client.

    Only ``status`` changes through the workflow; everything else is set when
    the idea is submitted.
    """
    id: int
    title: str
    status: IdeaStatus
    created: datetime
    modified: datetime
    description: str = ""
    category: str = "Other"
    priority: str = "Medium"
    created_by: Person | None = None
    decided_by: Person | None = None
    attachments: tuple[Attachment, ...] = ()


@dataclass(frozen=True, slots=True)
class Task:
    """An implementation task attached to an idea."""
    id: int
    title: str
    status: TaskStatus
    created: datetime
    modified: datetime
    description: str = ""
    priority: str = "Normal"
    percent_complete: float = 0.0   # 0-100
    start_date: datetime | None = None
    due_date: datetime | None = None
    assigned_to: tuple[Person, ...] = ()
    idea_id: int | None = None


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """An immutable, append-only audit trail entry."""
    id: int
    idea_id: int
    kind: AuditEventKind | str
    title: str
    description: str
    actor: str
    actor_id: int
    timestamp: datetime
    previous_status: str | None = None
    new_status: str | None = None
    comments: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AuditEventDraft:
    """An audit trail entry that has not been written yet."""
    idea_id: int
    kind: AuditEventKind
    title: str
    description: str
    actor: str = "Unknown User"
    actor_id: int = 0
    previous_status: str | None = None
    new_status: str | None = None
    comments: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class IdeaDraft:
    """Fields supplied when submitting a new idea."""
    title: str
    description: str
    category: str = "Other"
    priority: str = "Medium"
    status: IdeaStatus = IdeaStatus.PENDING


@dataclass(frozen=True, slots=True)
class TaskDraft:
    """Fields supplied when creating a task for an idea."""
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.NOT_STARTED
    priority: str = "Normal"
    percent_complete: float = 0.0
    start_date: datetime | None = None
    due_date: datetime | None = None
    assigned_to: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class DiscussionMessage:
    """A discussion thread or reply on a task."""
    id: int
    subject: str
    body: str
    task_id: int
    idea_id: int
    created: datetime
    modified: datetime
    author: Person
    is_question: bool = False
    attachments: tuple[Attachment, ...] = ()
    parent_item_id: int | None = None


@dataclass(frozen=True, slots=True)
class LastAction:
    """
    The most recent status-changing action, kept for one-level undo.

    ``previous_status`` is the status the idea held the moment the action
    was initiated.
    """
    idea_id: int
    kind: AuditEventKind
    previous_status: IdeaStatus
    new_status: IdeaStatus
