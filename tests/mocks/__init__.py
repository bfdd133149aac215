"""Fake list platform and in-memory services for testing."""

from .services import (
    FakeDiscussionService,
    FakeIdeaService,
    FakeUserService,
    make_idea,
    make_task,
)
from .sharepoint import BASE_URL, FakeSharePoint, request_json, wire_method

__all__ = [
    "BASE_URL",
    "FakeSharePoint",
    "FakeIdeaService",
    "FakeUserService",
    "FakeDiscussionService",
    "make_idea",
    "make_task",
    "request_json",
    "wire_method",
]
