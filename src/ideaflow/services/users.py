"""User service - current user, group membership and approver lookups."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..gateway.client import SecureApiClient
from ..gateway.errors import MalformedResponseError
from ..workflow.serializer import parse_person, unwrap, unwrap_results
from ..workflow.types import Person

logger = logging.getLogger(__name__)


@dataclass
class UserService:
    """Read-only lookups against the platform's user and group endpoints."""
    client: SecureApiClient

    async def get_current_user(self) -> Person:
        """Get the user the session is authenticated as."""
        envelope = await self.client.get("/_api/web/currentuser")
        person = parse_person(unwrap(envelope))
        if person is None:
            raise MalformedResponseError("Current user response has no Id")
        return person

    async def get_user_groups(self, user_id: int | None = None) -> list[str]:
        """Titles of the groups a user belongs to (current user by default)."""
        if user_id is None:
            endpoint = "/_api/web/currentuser/Groups"
        else:
            endpoint = f"/_api/web/GetUserById({user_id})/Groups"

        envelope = await self.client.get(endpoint)
        return [g.get("Title", "") for g in unwrap_results(envelope)]

    async def get_group_members(self, group_name: str) -> list[Person]:
        """Members of a site group, e.g. the approvers group."""
        # OData string literals escape a quote by doubling it
        literal = group_name.replace("'", "''")
        envelope = await self.client.get(f"/_api/web/sitegroups/getbyname('{literal}')/users")

        members = []
        for raw in unwrap_results(envelope):
            person = parse_person(raw)
            if person is not None:
                members.append(person)

        logger.debug(f"Group {group_name!r} has {len(members)} members")
        return members
