"""Tests for discussion threads and user lookups."""

import pytest

from ideaflow.services.discussions import (
    REPLY_CONTENT_TYPE_ID,
    DiscussionNotFoundError,
    render_task_discussion_body,
)
from ideaflow.validation import ValidationError
from ideaflow.workflow.types import Person

from tests.mocks.sharepoint import request_json

DISCUSSIONS = "innovative_idea_discussions"


class TestDiscussionService:
    @pytest.mark.asyncio
    async def test_create_discussion(self, discussion_service, sharepoint):
        message = await discussion_service.create_discussion(8, 4, "Kickoff", "<p>Hello</p>")

        assert message.subject == "Kickoff"
        assert message.task_id == 8
        assert message.idea_id == 4
        assert message.author.name == "Ada Approver"

    @pytest.mark.asyncio
    async def test_reply_requires_thread(self, discussion_service, sharepoint):
        with pytest.raises(DiscussionNotFoundError):
            await discussion_service.add_reply(8, 4, "Re: Kickoff", "Anyone?")

        assert sharepoint.calls("POST", DISCUSSIONS) == []

    @pytest.mark.asyncio
    async def test_thread_and_replies_for_task(self, discussion_service, sharepoint):
        await discussion_service.create_discussion(8, 4, "Kickoff", "Hello")
        await discussion_service.add_reply(8, 4, "Re: Kickoff", "Hi there", is_question=True)
        await discussion_service.create_discussion(9, 4, "Other task", "Hello")

        messages = await discussion_service.get_messages_for_task(8)

        assert [m.subject for m in messages] == ["Kickoff", "Re: Kickoff"]
        assert messages[1].is_question
        reply_post = sharepoint.calls("POST", DISCUSSIONS)[1]
        assert request_json(reply_post)["ContentTypeId"] == REPLY_CONTENT_TYPE_ID

    @pytest.mark.asyncio
    async def test_delete_message(self, discussion_service, sharepoint):
        message = await discussion_service.create_discussion(8, 4, "Kickoff", "Hello")

        await discussion_service.delete_message(message.id)

        assert sharepoint.items(DISCUSSIONS) == []

    @pytest.mark.asyncio
    async def test_create_task_discussion(self, discussion_service, sharepoint):
        message = await discussion_service.create_task_discussion(
            task_id=8,
            task_title="Order <panels>",
            task_description="Get three quotes",
            idea_id=4,
            assignees=[Person(3, "Grace"), Person(5, "Linus")],
            idea_creator="Lin",
            idea_description="Panels on building B",
        )

        assert message.subject == "Discussion: Order <panels>"
        body = sharepoint.items(DISCUSSIONS)[0]["Body"]
        assert "Order &lt;panels&gt;" in body
        assert "Grace, Linus" in body
        assert "Original Idea" in body

    @pytest.mark.asyncio
    async def test_create_task_discussion_validates_title(self, discussion_service, sharepoint):
        with pytest.raises(ValidationError):
            await discussion_service.create_task_discussion(8, "   ", "", 4, [])
        assert sharepoint.requests == []


class TestTaskDiscussionBody:
    def test_without_idea_context(self):
        body = render_task_discussion_body("Order panels", "Get quotes", "Unassigned")

        assert "Original Idea" not in body
        assert "<p><strong>Assigned To:</strong> Unassigned</p>" in body


class TestUserService:
    @pytest.mark.asyncio
    async def test_current_user(self, user_service):
        user = await user_service.get_current_user()

        assert user == Person(id=7, name="Ada Approver", email="ada@example.com")

    @pytest.mark.asyncio
    async def test_groups(self, user_service, sharepoint):
        sharepoint.user_groups = ["Innovative Ideas - Approvers", "Staff"]

        assert await user_service.get_user_groups() == ["Innovative Ideas - Approvers", "Staff"]
        assert await user_service.get_user_groups(12) == ["Innovative Ideas - Approvers", "Staff"]
        assert "GetUserById(12)" in sharepoint.requests[-1].url.path

    @pytest.mark.asyncio
    async def test_group_members(self, user_service, sharepoint):
        sharepoint.groups["Innovative Ideas - Approvers"] = [
            {"Id": 7, "Title": "Ada Approver", "Email": "ada@example.com"},
            {"Id": 9, "Title": "Bo Boss"},
        ]

        members = await user_service.get_group_members("Innovative Ideas - Approvers")

        assert [m.name for m in members] == ["Ada Approver", "Bo Boss"]
