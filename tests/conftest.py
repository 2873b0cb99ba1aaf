import itertools, json
import pytest

from presence import PresenceBroadcaster
from registry import ConnectionRegistry
from relay import Relay
from signaling import SignalingRouter
from snapshot import SnapshotPublisher

_fake_ids = itertools.count(10_000)


class FakeConnection:
    """Stand-in for connection.Connection that records delivered frames."""

    def __init__(self, name: str = '', is_open: bool = True):
        self.id = next(_fake_ids)
        self.name = name
        self.is_open = is_open
        self.sent = []

    def __repr__(self):
        return f'<FakeConnection {self.name or self.id}>'

    def deliver(self, text: str) -> bool:
        if not self.is_open:
            return False
        self.sent.append(text)
        return True

    @property
    def messages(self):
        return [json.loads(t) for t in self.sent]

    def of_type(self, kind):
        return [m for m in self.messages if m.get('type') == kind]


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def presence(registry):
    return PresenceBroadcaster(registry)


@pytest.fixture
def router(registry):
    return SignalingRouter(registry)


@pytest.fixture
def publisher(registry):
    return SnapshotPublisher(registry)


@pytest.fixture
def relay():
    return Relay()
