"""Shared fixtures: an in-memory chat core and connection doubles that record frames."""

import pytest

from livechat.core.domain import Identity, Role
from livechat.core.events import EventBus
from livechat.core.gateway import EventGateway
from livechat.core.registry import ConnectionRegistry
from livechat.core.rooms import RoomStore


class FakeConnection:
    def __init__(self, participant_id, role, name="", is_guest=False):
        self.identity = Identity(participant_id, role, display_name=name, is_guest=is_guest)
        self.frames = []

    @property
    def participant_id(self):
        return self.identity.participant_id

    @property
    def role(self):
        return self.identity.role

    def push(self, event, data):
        self.frames.append((event, data))

    def names(self):
        return [event for event, _ in self.frames]

    def of(self, event):
        return [data for name, data in self.frames if name == event]

    def clear(self):
        self.frames.clear()


class BrokenConnection(FakeConnection):
    def push(self, event, data):
        raise ConnectionResetError("socket is gone")


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(bus):
    return RoomStore(bus, max_message_length=200)


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def gateway(store, registry):
    return EventGateway(store, registry)


@pytest.fixture
def customer():
    return FakeConnection("guest:abcdef123", Role.customer, name="Ann", is_guest=True)


@pytest.fixture
def agent_b():
    return FakeConnection("agent-b", Role.agent, name="Bob")


@pytest.fixture
def agent_c():
    return FakeConnection("agent-c", Role.agent, name="Cid")


@pytest.fixture
def admin():
    return FakeConnection("admin-1", Role.admin, name="Root")
