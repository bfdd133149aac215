"""Discussion service - task discussion threads on the discussion board list."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field

from ..config import ListNames
from ..gateway.client import SecureApiClient
from ..validation import optional_text, require_text
from ..workflow.serializer import (
    created_item_id,
    list_item_type,
    parse_discussion_message,
    unwrap,
    unwrap_results,
)
from ..workflow.types import DiscussionMessage, Person

logger = logging.getLogger(__name__)

MESSAGE_SELECT = (
    "ID,Title,Body,IsQuestion,TaskIdId,IdeaIdId,Author/Id,Author/Title,Author/EMail,"
    "Created,Modified,Attachments,ParentItemID,ContentTypeId"
)

# Content type id prefixes on a discussion board
THREAD_CONTENT_TYPE = "0x0120"
REPLY_CONTENT_TYPE = "0x0107"
REPLY_CONTENT_TYPE_ID = "0x0107000184D056442E7742904D37B7FE5AFF4C"


class DiscussionNotFoundError(Exception):
    """Raised when replying to a task that has no discussion thread."""
    def __init__(self, task_id: int):
        super().__init__(f"Parent discussion not found for task {task_id}")
        self.task_id = task_id


@dataclass
class DiscussionService:
    """Threads and replies attached to tasks."""
    client: SecureApiClient
    lists: ListNames = field(default_factory=ListNames)

    def _items(self) -> str:
        return f"/_api/web/lists/getbytitle('{self.lists.discussions}')/items"

    async def get_messages_for_task(self, task_id: int) -> list[DiscussionMessage]:
        """Get the thread and all replies for a task, oldest first."""
        endpoint = (
            f"{self._items()}?$select={MESSAGE_SELECT}&$expand=Author,AttachmentFiles"
            f"&$filter=(TaskIdId eq {task_id}) and (startswith(ContentTypeId,'{THREAD_CONTENT_TYPE}') "
            f"or startswith(ContentTypeId,'{REPLY_CONTENT_TYPE}'))&$orderby=Created asc&$top=500"
        )
        envelope = await self.client.get(endpoint)
        return [parse_discussion_message(raw) for raw in unwrap_results(envelope)]

    async def create_discussion(
        self,
        task_id: int,
        idea_id: int,
        subject: str,
        body: str,
        is_question: bool = False,
    ) -> DiscussionMessage:
        """Start a new discussion thread for a task."""
        subject = require_text("subject", subject, max_length=255)

        envelope = await self.client.create(self._items(), {
            "__metadata": {"type": list_item_type(self.lists.discussions)},
            "Title": subject,
            "Body": body,
            "TaskIdId": task_id,
            "IdeaIdId": idea_id,
            "IsQuestion": is_question,
        })
        return await self._fetch_created(created_item_id(envelope, "Discussion"))

    async def add_reply(
        self,
        task_id: int,
        idea_id: int,
        subject: str,
        body: str,
        is_question: bool = False,
    ) -> DiscussionMessage:
        """
        Reply to the discussion thread of a task.

        Raises:
            DiscussionNotFoundError: If the task has no thread yet
        """
        subject = require_text("subject", subject, max_length=255)
        body = require_text("body", body)

        endpoint = (
            f"{self._items()}?$select=ID,Title,ContentTypeId"
            f"&$filter=(TaskIdId eq {task_id}) and startswith(ContentTypeId,'{THREAD_CONTENT_TYPE}')&$top=1"
        )
        threads = unwrap_results(await self.client.get(endpoint))
        if not threads:
            raise DiscussionNotFoundError(task_id)

        logger.info(f"Adding reply to discussion {threads[0].get('ID')} for task {task_id}")
        envelope = await self.client.create(self._items(), {
            "__metadata": {"type": list_item_type(self.lists.discussions)},
            "ContentTypeId": REPLY_CONTENT_TYPE_ID,
            "Title": subject,
            "Body": body,
            "TaskIdId": task_id,
            "IdeaIdId": idea_id,
            "IsQuestion": is_question,
        })
        return await self._fetch_created(created_item_id(envelope, "Discussion"))

    async def delete_message(self, message_id: int) -> None:
        """Delete a thread or reply."""
        await self.client.remove(f"{self._items()}({message_id})")
        logger.info(f"Discussion message {message_id} deleted")

    async def create_task_discussion(
        self,
        task_id: int,
        task_title: str,
        task_description: str,
        idea_id: int,
        assignees: list[Person],
        idea_creator: str | None = None,
        idea_description: str | None = None,
    ) -> DiscussionMessage:
        """Open the collaboration thread for a freshly created task."""
        task_title = require_text("task_title", task_title, max_length=240)
        task_description = optional_text("task_description", task_description)
        assignee_names = ", ".join(a.name for a in assignees) or "Unassigned"

        body = render_task_discussion_body(
            task_title=task_title,
            task_description=task_description,
            assignee_names=assignee_names,
            idea_creator=idea_creator,
            idea_description=idea_description,
        )
        message = await self.create_discussion(
            task_id, idea_id, f"Discussion: {task_title}", body, is_question=False
        )
        logger.info(f"Task discussion {message.id} created for task {task_id}")
        return message

    async def _fetch_created(self, item_id: int) -> DiscussionMessage:
        endpoint = f"{self._items()}({item_id})?$select={MESSAGE_SELECT}&$expand=Author"
        return parse_discussion_message(unwrap(await self.client.get(endpoint)))


def render_task_discussion_body(
    task_title: str,
    task_description: str,
    assignee_names: str,
    idea_creator: str | None = None,
    idea_description: str | None = None,
) -> str:
    """HTML body of the opening post of a task discussion."""
    esc = html.escape
    parts = [
        "<div>",
        "<h3>Task Created</h3>",
        f"<p><strong>Title:</strong> {esc(task_title)}</p>",
        f"<p><strong>Assigned To:</strong> {esc(assignee_names)}</p>",
        "</div>",
    ]
    if idea_creator and idea_description:
        parts += [
            "<div>",
            "<h4>Original Idea</h4>",
            f"<p><strong>Created by:</strong> {esc(idea_creator)}</p>",
            f"<p><strong>Description:</strong> {esc(idea_description)}</p>",
            "</div>",
        ]
    parts += [
        "<div>",
        "<h4>Task Details</h4>",
        f"<p>{esc(task_description)}</p>",
        "</div>",
        "<p>This discussion thread is for collaborating on this task. "
        "Ask questions, share updates, and upload relevant files.</p>",
    ]
    return "\n".join(parts)
