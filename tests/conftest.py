"""Shared test fixtures.

The client under test talks to an in-memory list platform through
``httpx.MockTransport``; sleeps are recorded instead of awaited so retry
back-off and request spacing can be asserted without slowing the suite.
"""

import pytest

from ideaflow.config import BackendConfig, Config, GatewayConfig, WorkflowConfig
from ideaflow.gateway.client import SecureApiClient
from ideaflow.services.discussions import DiscussionService
from ideaflow.services.ideas import IdeaService
from ideaflow.services.users import UserService

from tests.mocks.sharepoint import BASE_URL, FakeSharePoint


class SleepRecorder:
    """Drop-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def config() -> Config:
    """Default gateway settings against the fake site, reconciling immediately."""
    return Config(
        backend=BackendConfig(base_url=BASE_URL, timeout=5),
        gateway=GatewayConfig(),
        workflow=WorkflowConfig(reconcile_delay_seconds=0),
    )


# =============================================================================
# Backend + gateway
# =============================================================================

@pytest.fixture
def sharepoint() -> FakeSharePoint:
    return FakeSharePoint()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def client(config, sharepoint, sleeps) -> SecureApiClient:
    return SecureApiClient(
        backend=config.backend,
        gateway=config.gateway,
        transport=sharepoint.transport(),
        sleep=sleeps,
    )


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def idea_service(client, config) -> IdeaService:
    return IdeaService(client, config.backend.lists)


@pytest.fixture
def discussion_service(client, config) -> DiscussionService:
    return DiscussionService(client, config.backend.lists)


@pytest.fixture
def user_service(client) -> UserService:
    return UserService(client)
