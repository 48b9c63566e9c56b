import pytest
from fastapi.testclient import TestClient

from app import create_app
from core.registry import RoomRegistry
from core.room import RevealPolicy, StoryPolicy, Visibility
from core.service import RoomService
from core.sessions import SessionDirectory


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def sessions():
    return SessionDirectory()


@pytest.fixture
def service(registry, sessions):
    return RoomService(registry, sessions)


@pytest.fixture
def room(registry):
    return registry.create_room("Sprint 42")


@pytest.fixture
def creator_only_room(registry):
    return registry.create_room(
        "Locked down",
        reveal_policy=RevealPolicy.CREATOR_ONLY,
        story_policy=StoryPolicy.CREATOR_ONLY,
        visibility=Visibility.PRIVATE,
    )


@pytest.fixture
def approval_room(registry):
    return registry.create_room("Approval", approval_required=True)


@pytest.fixture
def polling_client():
    with TestClient(create_app("polling")) as client:
        yield client


@pytest.fixture
def websocket_client():
    with TestClient(create_app("websocket")) as client:
        yield client


def events_named(outcome, name):
    return [event for event in outcome.events if event.name == name]
