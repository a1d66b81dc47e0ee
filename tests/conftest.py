import asyncio
import random

import pytest

from mafia_night.broadcaster import Broadcaster
from mafia_night.config import Settings
from mafia_night.game import GameController
from mafia_night.models import Player, Role, Room
from mafia_night.registry import RoomRegistry


class RecordingBroadcaster(Broadcaster):
    """Keeps every outbound notification so tests can assert on them."""

    def __init__(self):
        self.sent = []
        self.members = {}

    async def emit(self, event, payload, to):
        self.sent.append((event, payload, to))

    async def enter(self, member_id, room_id):
        self.members.setdefault(room_id, set()).add(member_id)

    def events(self, name=None, to=None):
        return [(e, p, t) for e, p, t in self.sent
                if (name is None or e == name) and (to is None or t == to)]

    def payloads(self, name, to=None):
        return [p for _, p, _ in self.events(name, to)]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def settings():
    return Settings(action_delay=0)


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def registry():
    return RoomRegistry(rng=random.Random(7))


@pytest.fixture
def controller(registry, broadcaster, settings):
    return GameController(registry, broadcaster, settings, rng=random.Random(42))


async def drain(room: Room):
    """Wait until every scheduled transition of ``room`` has fired."""
    while room.pending_tasks:
        await asyncio.gather(*list(room.pending_tasks))


async def setup_game(controller, player_count, host='host'):
    """Create a room, join ``player_count`` players and start the game."""
    room = await controller.create_room(host)
    for i in range(player_count):
        await controller.join_room(f"p{i}", room.id, f"Player{i}")
    await controller.start_game(host, room.id)
    return room


def with_role(room: Room, role: Role):
    return [p for p in room.players.values() if p.role == role]


def first_with_role(room: Room, role: Role) -> Player:
    return with_role(room, role)[0]


def make_room(roles, dead=()):
    """Build a room directly from a list of roles; player ids are p0, p1, ..."""
    room = Room('TEST01', 'host')
    for i, role in enumerate(roles):
        player = Player(f"p{i}", f"Player{i}")
        player.role = role
        player.is_alive = f"p{i}" not in dead
        room.players[player.id] = player
    return room
