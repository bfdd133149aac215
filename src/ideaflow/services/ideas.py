"""Idea service - typed business operations over the secure gateway."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from ..config import ListNames
from ..gateway.client import SecureApiClient
from ..validation import ValidationError, optional_text, require_text
from ..workflow.serializer import (
    audit_event_from_created,
    created_item_id,
    list_item_type,
    parse_audit_event,
    parse_idea,
    parse_task,
    serialize_audit_event,
    serialize_idea_draft,
    serialize_task_draft,
    unwrap,
    unwrap_results,
)
from ..workflow.types import (
    AuditEvent,
    AuditEventDraft,
    AuditEventKind,
    Idea,
    IdeaDraft,
    IdeaStatus,
    Person,
    Task,
    TaskDraft,
)

logger = logging.getLogger(__name__)

IDEA_SELECT = (
    "ID,Title,Description,Status,Category,Priority,Created,Modified,"
    "Author/Id,Author/Title,ApprovedBy/Id,ApprovedBy/Title,Attachments,AttachmentFiles"
)
TASK_SELECT = (
    "ID,Title,Body,Status,Priority,PercentComplete,DueDate,StartDate,Created,Modified,IdeaId,"
    "AssignedTo/Id,AssignedTo/Title,AssignedTo/EMail"
)
AUDIT_SELECT = (
    "ID,Idea/Id,Idea/Title,EventType,Title,Description,Actor/Id,Actor/Title,"
    "PreviousStatus,NewStatus,Comments,Metadata,Created"
)

TITLE_MAX_LENGTH = 255


def _list_items(list_name: str) -> str:
    return f"/_api/web/lists/getbytitle('{list_name}')/items"


@dataclass
class IdeaService:
    """
    Business operations on ideas, tasks and the audit trail.

    Each operation is one gateway call plus translation of the server
    envelope; retry and serialization are the gateway's job. Errors
    propagate unchanged.
    """
    client: SecureApiClient
    lists: ListNames = field(default_factory=ListNames)

    # =========================================================================
    # Ideas
    # =========================================================================

    async def get_ideas(self, filter: str | None = None) -> list[Idea]:
        """Get all ideas, newest first."""
        endpoint = (
            f"{_list_items(self.lists.ideas)}?$select={IDEA_SELECT}"
            f"&$expand=Author,ApprovedBy,AttachmentFiles&$orderby=Created desc&$top=500"
        )
        if filter:
            endpoint += f"&$filter={filter}"

        envelope = await self.client.get(endpoint)
        return [parse_idea(raw) for raw in unwrap_results(envelope)]

    async def get_entities(self) -> list[Idea]:
        """Alias of get_ideas() used by the reconciliation engine."""
        return await self.get_ideas()

    async def get_idea(self, idea_id: int) -> Idea:
        """Get a single idea by ID."""
        endpoint = (
            f"{_list_items(self.lists.ideas)}({idea_id})?$select={IDEA_SELECT}"
            f"&$expand=Author,ApprovedBy,AttachmentFiles"
        )
        envelope = await self.client.get(endpoint)
        return parse_idea(unwrap(envelope))

    async def update_entity_status(
        self,
        idea_id: int,
        new_status: IdeaStatus,
        extra_fields: dict[str, Any] | None = None,
    ) -> None:
        """
        Change an idea's status on the server.

        Args:
            idea_id: Idea to update
            new_status: Target status
            extra_fields: Additional wire fields written in the same MERGE
                (e.g. ``ApprovedById``)
        """
        body: dict[str, Any] = {
            "__metadata": {"type": list_item_type(self.lists.ideas)},
            **(extra_fields or {}),
            "Status": IdeaStatus(new_status).value,
        }
        await self.client.update(f"{_list_items(self.lists.ideas)}({idea_id})", body)
        logger.info(f"Idea {idea_id} status -> {IdeaStatus(new_status).value}")

    async def create_idea(self, draft: IdeaDraft, actor: Person | None = None) -> Idea:
        """
        Submit a new idea.

        Writes a best-effort ``submitted`` trail entry, then returns the idea
        as stored by the server.

        Raises:
            ValidationError: If title or description are missing or unsafe
        """
        draft = IdeaDraft(
            title=require_text("title", draft.title, min_length=3, max_length=TITLE_MAX_LENGTH),
            description=require_text("description", draft.description, min_length=10),
            category=optional_text("category", draft.category) or "Other",
            priority=optional_text("priority", draft.priority) or "Medium",
            status=draft.status,
        )

        envelope = await self.client.create(
            _list_items(self.lists.ideas),
            serialize_idea_draft(draft, self.lists.ideas),
        )
        idea_id = created_item_id(envelope, "Idea")
        logger.info(f"Idea created: {idea_id}")

        await self._record_quietly(AuditEventDraft(
            idea_id=idea_id,
            kind=AuditEventKind.SUBMITTED,
            title="Idea Submitted",
            description=f'Idea "{draft.title}" was submitted for review',
            actor=actor.name if actor else "Unknown User",
            actor_id=actor.id if actor else 0,
            new_status=draft.status.value,
            metadata={"category": draft.category, "priority": draft.priority},
        ))

        return await self.get_idea(idea_id)

    # =========================================================================
    # Tasks
    # =========================================================================

    async def get_tasks_for_idea(self, idea_id: int) -> list[Task]:
        """Get the tasks attached to an idea."""
        endpoint = (
            f"{_list_items(self.lists.tasks)}?$select={TASK_SELECT}&$expand=AssignedTo"
            f"&$filter=IdeaId eq {idea_id}&$orderby=Created desc&$top=100"
        )
        envelope = await self.client.get(endpoint)
        tasks = []
        for raw in unwrap_results(envelope):
            task = parse_task(raw)
            if task.idea_id is None:
                task = _with_idea(task, idea_id)
            tasks.append(task)
        return tasks

    async def create_task(
        self,
        idea_id: int,
        draft: TaskDraft,
        actor: Person | None = None,
    ) -> Task:
        """
        Create a task for an idea and write a best-effort ``task_created`` entry.

        Raises:
            ValidationError: If the title is missing/unsafe or progress is out of range
        """
        title = require_text("title", draft.title, max_length=TITLE_MAX_LENGTH)
        description = optional_text("description", draft.description)
        if not 0 <= draft.percent_complete <= 100:
            raise ValidationError("percent_complete", "Must be between 0 and 100")

        draft = TaskDraft(
            title=title,
            description=description,
            status=draft.status,
            priority=draft.priority,
            percent_complete=draft.percent_complete,
            start_date=draft.start_date,
            due_date=draft.due_date,
            assigned_to=draft.assigned_to,
        )

        envelope = await self.client.create(
            _list_items(self.lists.tasks),
            serialize_task_draft(idea_id, draft, self.lists.tasks),
        )
        created = unwrap(envelope)
        task = _with_idea(parse_task({"Status": draft.status.value, **created}), idea_id)
        logger.info(f"Task created: {task.id} for idea {idea_id}")

        await self._record_quietly(AuditEventDraft(
            idea_id=idea_id,
            kind=AuditEventKind.TASK_CREATED,
            title="Task Created",
            description=f'Task "{title}" was created for the idea',
            actor=actor.name if actor else "Unknown User",
            actor_id=actor.id if actor else 0,
            metadata={
                "taskId": task.id,
                "taskTitle": title,
                "assignedTo": list(draft.assigned_to),
                "priority": draft.priority,
                "dueDate": draft.due_date.isoformat() if draft.due_date else None,
            },
        ))

        return task

    # =========================================================================
    # Audit trail
    # =========================================================================

    async def get_audit_events(self, idea_id: int | None = None) -> list[AuditEvent]:
        """Get audit trail entries, newest first, optionally for one idea."""
        endpoint = (
            f"{_list_items(self.lists.idea_trail)}?$select={AUDIT_SELECT}"
            f"&$expand=Actor,Idea&$orderby=Created desc&$top=1000"
        )
        if idea_id:
            endpoint += f"&$filter=Idea/Id eq {idea_id}"

        envelope = await self.client.get(endpoint)
        return [parse_audit_event(raw) for raw in unwrap_results(envelope)]

    async def create_audit_event(self, draft: AuditEventDraft) -> AuditEvent:
        """Append an entry to the audit trail."""
        envelope = await self.client.create(
            _list_items(self.lists.idea_trail),
            serialize_audit_event(draft, self.lists.idea_trail),
        )
        event = audit_event_from_created(draft, unwrap(envelope))
        logger.info(f"Audit event {event.kind.value} recorded for idea {draft.idea_id}")
        return event

    async def _record_quietly(self, draft: AuditEventDraft) -> None:
        """Write a trail entry without letting its failure undo the caller's work."""
        try:
            await self.create_audit_event(draft)
        except Exception as e:
            logger.error(f"Failed to create {draft.kind.value} trail event for idea {draft.idea_id}: {e}")


def _with_idea(task: Task, idea_id: int) -> Task:
    return replace(task, idea_id=idea_id)
