"""Audit trail helpers for status changes."""

from __future__ import annotations

from ..workflow.types import AuditEventDraft, AuditEventKind, Idea, IdeaStatus, Person

EVENT_TITLES = {
    AuditEventKind.APPROVED: "Idea Approved",
    AuditEventKind.REJECTED: "Idea Rejected",
    AuditEventKind.IMPLEMENTATION_STARTED: "Implementation Started",
    AuditEventKind.IMPLEMENTATION_COMPLETED: "Implementation Completed",
    AuditEventKind.STATUS_CHANGED: "Status Changed",
}


class AuditLogError(Exception):
    """Raised (and logged, never propagated to callers) when a trail entry could not be written."""
    def __init__(self, idea_id: int, kind: AuditEventKind, cause: Exception):
        super().__init__(f"Failed to record {kind.value} for idea {idea_id}: {cause}")
        self.idea_id = idea_id
        self.kind = kind
        self.cause = cause


def derive_event_kind(previous: IdeaStatus, new: IdeaStatus) -> AuditEventKind:
    """Map a status transition to the trail's event-kind tag."""
    if new == IdeaStatus.APPROVED:
        return AuditEventKind.APPROVED
    if new == IdeaStatus.REJECTED:
        return AuditEventKind.REJECTED
    if previous == IdeaStatus.APPROVED and new == IdeaStatus.IN_PROGRESS:
        return AuditEventKind.IMPLEMENTATION_STARTED
    if previous == IdeaStatus.IN_PROGRESS and new == IdeaStatus.COMPLETED:
        return AuditEventKind.IMPLEMENTATION_COMPLETED
    return AuditEventKind.STATUS_CHANGED


def build_status_event(
    idea: Idea,
    previous: IdeaStatus,
    new: IdeaStatus,
    actor: Person | None = None,
) -> AuditEventDraft:
    """Trail entry describing a status change of ``idea``."""
    kind = derive_event_kind(previous, new)
    return AuditEventDraft(
        idea_id=idea.id,
        kind=kind,
        title=EVENT_TITLES[kind],
        description=f'Idea "{idea.title}" status changed to {new.value}',
        actor=actor.name if actor else "Unknown User",
        actor_id=actor.id if actor else 0,
        previous_status=previous.value,
        new_status=new.value,
    )
