"""Typed domain services over the secure gateway."""

from .discussions import DiscussionNotFoundError, DiscussionService
from .ideas import IdeaService
from .users import UserService

__all__ = [
    "IdeaService",
    "DiscussionService",
    "DiscussionNotFoundError",
    "UserService",
]
