"""
State reconciliation engine.

Holds the client-side view of ideas, tasks and approvers, applies status
changes once the server has acknowledged them, writes best-effort audit trail
entries, converges with the server through a delayed re-fetch, and offers a
one-level undo.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from ..config import WorkflowConfig
from ..gateway.errors import GatewayError
from ..services.discussions import DiscussionService
from ..services.ideas import IdeaService
from ..services.users import UserService
from ..validation import ValidationError
from ..workflow.types import (
    DiscussionMessage,
    Idea,
    IdeaStatus,
    LastAction,
    Person,
    Task,
)
from .audit import AuditLogError, build_status_event, derive_event_kind


logger = logging.getLogger(__name__)

COLLECTIONS = ("ideas", "tasks", "approvers")


@dataclass
class WorkflowState:
    """Client-visible snapshot of the workflow data."""
    ideas: list[Idea] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    approvers: list[Person] = field(default_factory=list)
    last_updated: datetime | None = None
    loading: dict[str, bool] = field(default_factory=lambda: dict.fromkeys(COLLECTIONS, False))
    errors: dict[str, str | None] = field(default_factory=lambda: dict.fromkeys(COLLECTIONS))

    def find_idea(self, idea_id: int) -> Idea | None:
        for idea in self.ideas:
            if idea.id == idea_id:
                return idea
        return None

    def touch(self) -> None:
        self.last_updated = datetime.now(timezone.utc)


@dataclass
class ReconciliationEngine:
    """
    Applies status-changing actions and keeps local state converged with the server.

    Status changes follow a fixed order:
    1. The Last Action Record is written before any I/O
    2. The server update is awaited; on failure nothing local changes
    3. The local idea takes the new status
    4. An audit trail entry is attempted; its failure is logged only
    5. Unless ``skip_reconcile``, one delayed ``load_ideas()`` is scheduled

    ``skip_reconcile`` marks a reversal (undo): it does not record a new
    action and clears the current one once the server confirms.

    Usage:
        engine = ReconciliationEngine(ideas=IdeaService(client), actor=me)
        await engine.load_ideas()
        await engine.apply_status_change(42, IdeaStatus.APPROVED)
        await engine.undo_last_action()
        await engine.aclose()
    """
    ideas: IdeaService
    discussions: DiscussionService | None = None
    users: UserService | None = None
    actor: Person | None = None
    config: WorkflowConfig = field(default_factory=WorkflowConfig)

    state: WorkflowState = field(default_factory=WorkflowState, init=False)
    _last_action: LastAction | None = field(default=None, init=False)
    _scheduled: set[asyncio.Task] = field(default_factory=set, init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "status_changes": 0,
            "audit_failures": 0,
            "reconciliations_scheduled": 0,
            "reconciliations_completed": 0,
            "reconciliations_failed": 0,
        }

    @property
    def last_action(self) -> LastAction | None:
        """The action an undo would revert, if any."""
        return self._last_action

    # =========================================================================
    # Loading
    # =========================================================================

    async def load_ideas(self) -> list[Idea]:
        """Replace the local idea list with the server's. Failures are recorded, not raised."""
        self._begin("ideas")
        try:
            ideas = await self.ideas.get_entities()
        except GatewayError as e:
            logger.error(f"Failed to load ideas: {e}")
            self.state.errors["ideas"] = str(e) or "Failed to load ideas"
        else:
            self.state.ideas = ideas
            self.state.touch()
        finally:
            self.state.loading["ideas"] = False
        return self.state.ideas

    async def load_tasks(self) -> list[Task]:
        """Load tasks for every loaded idea, skipping ideas whose tasks fail to load."""
        self._begin("tasks")
        tasks: list[Task] = []
        try:
            for idea in list(self.state.ideas):
                try:
                    tasks.extend(await self.ideas.get_tasks_for_idea(idea.id))
                except GatewayError as e:
                    logger.warning(f"Failed to load tasks for idea {idea.id}: {e}")
            self.state.tasks = tasks
            self.state.touch()
        finally:
            self.state.loading["tasks"] = False
        return self.state.tasks

    async def load_approvers(self) -> list[Person]:
        """Load the approvers group; falls back to an empty list."""
        self._begin("approvers")
        approvers: list[Person] = []
        try:
            if self.users is not None:
                approvers = await self.users.get_group_members(self.config.approver_group)
        except GatewayError as e:
            logger.warning(f"Failed to load approvers from {self.config.approver_group!r}: {e}")
            self.state.errors["approvers"] = str(e) or "Failed to load approvers"
        finally:
            self.state.approvers = approvers
            self.state.loading["approvers"] = False
        return approvers

    def _begin(self, collection: str) -> None:
        self.state.loading[collection] = True
        self.state.errors[collection] = None

    # =========================================================================
    # Status changes
    # =========================================================================

    async def apply_status_change(
        self,
        idea_id: int,
        new_status: IdeaStatus | str,
        skip_reconcile: bool = False,
    ) -> Idea:
        """
        Change an idea's status on the server, then locally.

        Args:
            idea_id: A loaded idea
            new_status: Target status
            skip_reconcile: Reversal mode (used by undo); no re-fetch is
                scheduled and the Last Action Record is cleared on success

        Returns:
            The idea with its new status

        Raises:
            ValidationError: If the idea is not loaded or the status is unknown
            GatewayError: If the server update fails (local state untouched)
        """
        try:
            new_status = IdeaStatus(new_status)
        except ValueError as e:
            raise ValidationError("status", f"Unknown status {new_status!r}") from e

        idea = self.state.find_idea(idea_id)
        if idea is None:
            raise ValidationError("idea_id", f"Idea {idea_id} is not loaded")

        previous_status = idea.status
        prior_action = self._last_action
        action = None
        if not skip_reconcile:
            action = LastAction(
                idea_id=idea_id,
                kind=derive_event_kind(previous_status, new_status),
                previous_status=previous_status,
                new_status=new_status,
            )
            self._last_action = action

        extra_fields: dict[str, Any] = {}
        if new_status in (IdeaStatus.APPROVED, IdeaStatus.REJECTED) and self.actor is not None:
            extra_fields["ApprovedById"] = self.actor.id

        try:
            await self.ideas.update_entity_status(idea_id, new_status, extra_fields or None)
        except Exception as e:
            logger.error(f"Failed to update idea {idea_id} status to {new_status.value}: {e}")
            if action is not None and self._last_action is action:
                self._last_action = prior_action
            raise

        updated = replace(idea, status=new_status)
        self.state.ideas = [
            replace(i, status=new_status) if i.id == idea_id else i
            for i in self.state.ideas
        ]
        self.state.touch()
        self._stats["status_changes"] += 1

        if skip_reconcile and self._last_action is not None and self._last_action.idea_id == idea_id:
            self._last_action = None

        await self._record_status_event(idea, previous_status, new_status)

        if not skip_reconcile:
            self._schedule_reconcile()

        return updated

    async def undo_last_action(self) -> Idea | None:
        """
        Revert the most recent status change.

        Returns None when there is nothing to undo. If the revert fails the
        record is kept so the undo can be retried.
        """
        action = self._last_action
        if action is None:
            return None

        logger.info(
            f"Undoing {action.kind.value} on idea {action.idea_id}: "
            f"{action.new_status.value} -> {action.previous_status.value}"
        )
        return await self.apply_status_change(
            action.idea_id, action.previous_status, skip_reconcile=True
        )

    async def _record_status_event(
        self,
        idea: Idea,
        previous_status: IdeaStatus,
        new_status: IdeaStatus,
    ) -> None:
        draft = build_status_event(idea, previous_status, new_status, self.actor)
        try:
            await self.ideas.create_audit_event(draft)
        except Exception as e:
            self._stats["audit_failures"] += 1
            logger.error(str(AuditLogError(idea.id, draft.kind, e)))

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def _schedule_reconcile(self) -> None:
        task = asyncio.create_task(self._reconcile_later())
        self._scheduled.add(task)
        task.add_done_callback(self._scheduled.discard)
        self._stats["reconciliations_scheduled"] += 1

    async def _reconcile_later(self) -> None:
        await asyncio.sleep(self.config.reconcile_delay_seconds)
        await self.load_ideas()
        if self.state.errors["ideas"] is None:
            self._stats["reconciliations_completed"] += 1
        else:
            self._stats["reconciliations_failed"] += 1

    async def flush(self) -> None:
        """Wait for every scheduled reconciliation to finish."""
        while self._scheduled:
            await asyncio.gather(*list(self._scheduled), return_exceptions=True)

    async def cancel_scheduled(self) -> None:
        """Cancel pending reconciliations."""
        pending = list(self._scheduled)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        """Flush outstanding reconciliations."""
        await self.flush()

    # =========================================================================
    # Discussions and queries
    # =========================================================================

    async def create_task_discussion(
        self,
        task: Task,
        assignees: list[Person] | None = None,
    ) -> DiscussionMessage:
        """
        Open the discussion thread for a task, using the parent idea for context.

        Errors propagate to the caller.
        """
        if self.discussions is None:
            raise RuntimeError("No discussion service configured")
        if task.idea_id is None:
            raise ValidationError("idea_id", f"Task {task.id} has no parent idea")

        idea = self.state.find_idea(task.idea_id)
        return await self.discussions.create_task_discussion(
            task_id=task.id,
            task_title=task.title,
            task_description=task.description,
            idea_id=task.idea_id,
            assignees=list(assignees if assignees is not None else task.assigned_to),
            idea_creator=idea.created_by.name if idea and idea.created_by else None,
            idea_description=idea.description if idea else None,
        )

    def count_by_status(self) -> dict[IdeaStatus, int]:
        """Number of loaded ideas per status."""
        counts = dict.fromkeys(IdeaStatus, 0)
        for idea in self.state.ideas:
            counts[idea.status] += 1
        return counts

    @property
    def stats(self) -> dict:
        """Engine statistics."""
        return {
            **self._stats,
            "pending_reconciliations": len(self._scheduled),
        }
