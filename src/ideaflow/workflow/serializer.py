"""Envelope translation - converts OData list items to domain types and back."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from ..gateway.errors import MalformedResponseError
from .types import (
    Attachment,
    AuditEvent,
    AuditEventDraft,
    AuditEventKind,
    DiscussionMessage,
    Idea,
    IdeaDraft,
    IdeaStatus,
    Person,
    Task,
    TaskDraft,
    TaskStatus,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Envelopes
# =============================================================================

def unwrap(envelope: dict[str, Any]) -> Any:
    """Return the payload of a ``{"d": ...}`` envelope."""
    try:
        return envelope["d"]
    except (KeyError, TypeError) as e:
        raise MalformedResponseError("Response has no 'd' envelope") from e


def unwrap_results(envelope: dict[str, Any]) -> list[dict[str, Any]]:
    """Return the rows of a ``{"d": {"results": [...]}}`` collection envelope."""
    payload = unwrap(envelope)
    results = payload.get("results") if isinstance(payload, dict) else None
    if not isinstance(results, list):
        raise MalformedResponseError("Collection response has no 'results' list")
    return results


def created_item_id(envelope: dict[str, Any], kind: str) -> int:
    """ID of the item echoed back by a create call."""
    payload = unwrap(envelope)
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"Created {kind} response is not an item")
    return _require_id(payload, kind)


def list_item_type(list_name: str) -> str:
    """OData entity type name for items of a list, e.g. SP.Data.Innovative_x005f_ideasListItem."""
    encoded = list_name.replace("_", "_x005f_")
    return f"SP.Data.{encoded[:1].upper()}{encoded[1:]}ListItem"


# =============================================================================
# Field helpers
# =============================================================================

def _parse_datetime(value: Any, default: datetime | None = None) -> datetime | None:
    if not value:
        return default
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.error(f"Invalid date value from server: {value!r}")
        return default


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _as_int(value: Any, what: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(f"Non-numeric {what}: {value!r}") from e


def _optional_int(value: Any, what: str) -> int | None:
    return None if value is None else _as_int(value, what)


def _as_float(value: Any, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(f"Non-numeric {what}: {value!r}") from e


def _require_id(raw: dict[str, Any], kind: str) -> int:
    item_id = raw.get("ID", raw.get("Id"))
    if item_id is None:
        raise MalformedResponseError(f"{kind} item has no ID")
    return _as_int(item_id, f"{kind} ID")


def _results(value: Any) -> list[dict[str, Any]]:
    """Multi-value fields come back either as a list or wrapped in {"results": [...]}."""
    if isinstance(value, dict):
        value = value.get("results")
    return value if isinstance(value, list) else []


def parse_person(raw: dict[str, Any] | None) -> Person | None:
    """Parse an expanded user field (Author, ApprovedBy, AssignedTo...)."""
    if not raw or raw.get("Id") is None:
        return None
    return Person(
        id=_as_int(raw["Id"], "user Id"),
        name=raw.get("Title") or "Unknown",
        email=raw.get("EMail") or raw.get("Email"),
    )


def _parse_attachments(raw: dict[str, Any]) -> tuple[Attachment, ...]:
    return tuple(
        Attachment(
            file_name=f.get("FileName", ""),
            server_relative_url=f.get("ServerRelativeUrl", ""),
        )
        for f in _results(raw.get("AttachmentFiles"))
    )


# =============================================================================
# Ideas
# =============================================================================

def parse_idea(raw: dict[str, Any]) -> Idea:
    """Parse a single idea list item."""
    idea_id = _require_id(raw, "Idea")
    now = datetime.now(timezone.utc)
    created = _parse_datetime(raw.get("Created"), now)
    modified = _parse_datetime(raw.get("Modified"), created)

    try:
        status = IdeaStatus(raw.get("Status"))
    except ValueError as e:
        raise MalformedResponseError(f"Idea {idea_id} has unknown status {raw.get('Status')!r}") from e

    description = raw.get("Description") or ""
    category = raw.get("Category")
    priority = raw.get("Priority")

    # Items written before Category/Priority existed keep them after a '---' line
    if not category and not priority and "\n---\n" in f"\n{description}\n":
        lines = description.split("\n")
        marker = lines.index("---")
        description = "\n".join(lines[:marker])
        for line in lines[marker + 1:]:
            if line.startswith("Category: "):
                category = line[len("Category: "):]
            elif line.startswith("Priority: "):
                priority = line[len("Priority: "):]

    return Idea(
        id=idea_id,
        title=raw.get("Title") or "",
        status=status,
        created=created,
        modified=modified,
        description=description,
        category=category or "Other",
        priority=priority or "Medium",
        created_by=parse_person(raw.get("Author")),
        decided_by=parse_person(raw.get("ApprovedBy")),
        attachments=_parse_attachments(raw),
    )


def serialize_idea_draft(draft: IdeaDraft, list_name: str) -> dict[str, Any]:
    """Build the create payload for a new idea."""
    return {
        "__metadata": {"type": list_item_type(list_name)},
        "Title": draft.title,
        "Description": draft.description,
        "Status": draft.status.value,
        "Category": draft.category,
        "Priority": draft.priority,
    }


# =============================================================================
# Tasks
# =============================================================================

def parse_task(raw: dict[str, Any]) -> Task:
    """Parse a single task list item."""
    task_id = _require_id(raw, "Task")
    now = datetime.now(timezone.utc)
    created = _parse_datetime(raw.get("Created"), now)

    try:
        status = TaskStatus(raw.get("Status"))
    except ValueError as e:
        raise MalformedResponseError(f"Task {task_id} has unknown status {raw.get('Status')!r}") from e

    assignees = tuple(
        p for p in (parse_person(u) for u in _results(raw.get("AssignedTo"))) if p is not None
    )

    idea_id = raw.get("IdeaId")
    if isinstance(idea_id, dict):
        idea_id = idea_id.get("Id")
    # Stored as a 0-1 fraction on the list
    fraction = _as_float(raw.get("PercentComplete") or 0, f"PercentComplete of task {task_id}")

    return Task(
        id=task_id,
        title=raw.get("Title") or "",
        status=status,
        created=created,
        modified=_parse_datetime(raw.get("Modified"), created),
        description=raw.get("Body") or "",
        priority=raw.get("Priority") or "Normal",
        percent_complete=round(fraction * 100, 2),
        start_date=_parse_datetime(raw.get("StartDate")),
        due_date=_parse_datetime(raw.get("DueDate")),
        assigned_to=assignees,
        idea_id=_optional_int(idea_id, f"IdeaId of task {task_id}"),
    )


def serialize_task_draft(idea_id: int, draft: TaskDraft, list_name: str) -> dict[str, Any]:
    """Build the create payload for a new task."""
    return {
        "__metadata": {"type": list_item_type(list_name)},
        "Title": draft.title,
        "Body": draft.description,
        "Status": draft.status.value,
        "Priority": draft.priority,
        "PercentComplete": draft.percent_complete / 100,
        "StartDate": _format_datetime(draft.start_date),
        "DueDate": _format_datetime(draft.due_date),
        "AssignedToId": {"results": list(draft.assigned_to)},
        "IdeaId": idea_id,
    }


# =============================================================================
# Audit trail
# =============================================================================

def parse_audit_event(raw: dict[str, Any]) -> AuditEvent:
    """Parse a single audit trail list item."""
    event_id = _require_id(raw, "Audit event")

    metadata: dict[str, Any] = {}
    if raw.get("Metadata"):
        try:
            metadata = json.loads(raw["Metadata"])
        except (TypeError, ValueError):
            logger.error(f"Failed to parse metadata of audit event {event_id}")

    idea = raw.get("Idea") or {}
    actor = raw.get("Actor") or {}
    kind = raw.get("EventType") or ""
    try:
        kind = AuditEventKind(kind)
    except ValueError:
        pass  # keep unknown tags as plain strings

    return AuditEvent(
        id=event_id,
        idea_id=_as_int(idea.get("Id") or raw.get("IdeaId") or 0, "audit IdeaId"),
        kind=kind,
        title=raw.get("Title") or "",
        description=raw.get("Description") or "",
        actor=actor.get("Title") or "Unknown",
        actor_id=_as_int(actor.get("Id") or raw.get("ActorId") or 0, "audit ActorId"),
        timestamp=_parse_datetime(raw.get("Created"), datetime.now(timezone.utc)),
        previous_status=raw.get("PreviousStatus"),
        new_status=raw.get("NewStatus"),
        comments=raw.get("Comments"),
        metadata=metadata,
    )


def serialize_audit_event(draft: AuditEventDraft, list_name: str) -> dict[str, Any]:
    """Build the create payload for an audit trail entry."""
    return {
        "__metadata": {"type": list_item_type(list_name)},
        "IdeaId": draft.idea_id,
        "EventType": draft.kind.value,
        "Title": draft.title,
        "Description": draft.description,
        "ActorId": draft.actor_id,
        "PreviousStatus": draft.previous_status,
        "NewStatus": draft.new_status,
        "Comments": draft.comments,
        "Metadata": json.dumps(draft.metadata),
    }


def audit_event_from_created(draft: AuditEventDraft, created: dict[str, Any]) -> AuditEvent:
    """Combine a draft with the item the server echoed back after creation."""
    return AuditEvent(
        id=_require_id(created, "Audit event"),
        idea_id=draft.idea_id,
        kind=draft.kind,
        title=draft.title,
        description=draft.description,
        actor=draft.actor,
        actor_id=draft.actor_id,
        timestamp=_parse_datetime(created.get("Created"), datetime.now(timezone.utc)),
        previous_status=draft.previous_status,
        new_status=draft.new_status,
        comments=draft.comments,
        metadata=dict(draft.metadata),
    )


# =============================================================================
# Discussions
# =============================================================================

def parse_discussion_message(raw: dict[str, Any]) -> DiscussionMessage:
    """Parse a discussion thread or reply item."""
    message_id = _require_id(raw, "Discussion")
    now = datetime.now(timezone.utc)
    created = _parse_datetime(raw.get("Created"), now)

    task = raw.get("TaskId")
    idea = raw.get("IdeaId")
    task_id = task.get("Id") if isinstance(task, dict) else raw.get("TaskIdId")
    idea_id = idea.get("Id") if isinstance(idea, dict) else raw.get("IdeaIdId")

    return DiscussionMessage(
        id=message_id,
        subject=raw.get("Title") or "",
        body=raw.get("Body") or "",
        task_id=_as_int(task_id or 0, "discussion TaskId"),
        idea_id=_as_int(idea_id or 0, "discussion IdeaId"),
        created=created,
        modified=_parse_datetime(raw.get("Modified"), created),
        author=parse_person(raw.get("Author")) or Person(id=0, name="Unknown"),
        is_question=bool(raw.get("IsQuestion")),
        attachments=_parse_attachments(raw),
        parent_item_id=_optional_int(raw.get("ParentItemID") or None, "ParentItemID"),
    )
