import os
import random

import pytest

# Keep test runs from writing log files into the working tree
os.environ.setdefault("LOG_TO_FILE", "false")

from beergame.services.coordinator import GameCoordinator, SessionRegistry  # noqa: E402
from beergame.services.engine import Role  # noqa: E402
from beergame.services.game_session import GameConfig, GameSession  # noqa: E402

ROLES = [Role.RETAILER, Role.WHOLESALER, Role.DISTRIBUTOR, Role.FACTORY]


class RecordingPublisher:
    """Captures everything the coordinator publishes."""

    def __init__(self):
        self.events = []
        self.evicted = []

    def publish(self, channel, event):
        self.events.append((channel, event))

    def evict(self, channel):
        self.evicted.append(channel)

    def types(self, channel):
        return [event["type"] for ch, event in self.events if ch == channel]

    def last(self, channel, event_type=None):
        for ch, event in reversed(self.events):
            if ch == channel and (event_type is None or event["type"] == event_type):
                return event
        return None

    def clear(self):
        self.events.clear()
        self.evicted.clear()


def seat_everyone(session):
    for role in ROLES:
        result = session.add_or_replace_participant(f"p-{role.value}", role.value.title(), role)
        assert result.ok


@pytest.fixture()
def config():
    return GameConfig(
        max_rounds=24,
        inventory_cost_per_unit=0.5,
        stockout_cost_per_unit=1.0,
        delivery_delay=2,
    )


@pytest.fixture()
def session(config):
    return GameSession("game-1", "admin-secret", config)


@pytest.fixture()
def started_session(session):
    seat_everyone(session)
    assert session.start().ok
    return session


@pytest.fixture()
def publisher():
    return RecordingPublisher()


@pytest.fixture()
def coordinator(publisher):
    return GameCoordinator(SessionRegistry(), publisher, rng=random.Random(7))


@pytest.fixture()
def full_game(coordinator, config, publisher):
    """A game with all four roles seated, still in the lobby. Returns (game_id, admin_token)."""
    created = coordinator.create_game(config)
    game_id = created.data["game_id"]
    for role in ROLES:
        assert coordinator.join_game(game_id, f"p-{role.value}", role.value.title(), role).ok
    publisher.clear()
    return game_id, created.data["admin_token"]
