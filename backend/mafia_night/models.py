import asyncio
import time
from enum import Enum
from typing import Dict, List, Optional, Set


class Role(Enum):
    MAFIA = "MAFIA"
    DETECTIVE = "DETECTIVE"
    NURSE = "NURSE"
    CITIZEN = "CITIZEN"


class Winner(Enum):
    CITIZENS = "CITIZENS"
    MAFIA = "MAFIA"


class GamePhase(Enum):
    LOBBY = "LOBBY"
    NIGHT_INTRO = "NIGHT_INTRO"
    NIGHT_MAFIA = "NIGHT_MAFIA"
    NIGHT_NURSE = "NIGHT_NURSE"
    NIGHT_DETECTIVE = "NIGHT_DETECTIVE"
    NIGHT_RESULT = "NIGHT_RESULT"
    DAY_DISCUSSION = "DAY_DISCUSSION"


class Player:
    def __init__(self, player_id: str, name: str):
        self.id = player_id
        self.name = name
        self.role: Optional[Role] = None
        self.is_alive = True

    def to_dict(self, include_role=False):
        data = {
            'id': self.id,
            'name': self.name,
            'isAlive': self.is_alive,
        }
        if include_role:
            data['role'] = self.role.value if self.role else None
        return data

    def __repr__(self):
        return f"Player({self.id!r}, {self.name!r}, role={self.role}, alive={self.is_alive})"


class NightActions:
    """Actions submitted during the current night.

    Everything but ``nurse_self_heal_used`` is cleared when a new night starts;
    the self-heal flag lives for the whole game.
    """

    def __init__(self):
        self.mafia_target: Optional[str] = None
        self.nurse_target: Optional[str] = None
        self.detective_target: Optional[str] = None
        self.nurse_self_heal_used = False

    def reset(self):
        self.mafia_target = None
        self.nurse_target = None
        self.detective_target = None

    def to_dict(self):
        return {
            'mafiaTarget': self.mafia_target,
            'nurseTarget': self.nurse_target,
            'detectiveTarget': self.detective_target,
            'nurseSelfHealUsed': self.nurse_self_heal_used,
        }


class Room:
    def __init__(self, room_id: str, host_id: str):
        self.id = room_id
        self.host_id = host_id
        self.players: Dict[str, Player] = {}
        self.phase = GamePhase.LOBBY
        self.night_actions = NightActions()
        self.round_count = 1
        self.winner: Optional[Winner] = None
        self.created_at = time.time()
        self.last_activity = self.created_at
        # single writer for phase / night_actions
        self.lock = asyncio.Lock()
        self.pending_tasks: Set[asyncio.Task] = set()
        # phase whose exit is already scheduled, cleared on every phase change
        self.scheduled_phase: Optional[GamePhase] = None

    def touch(self):
        self.last_activity = time.time()

    def is_host(self, player_id: str) -> bool:
        return player_id == self.host_id

    def alive_players(self) -> List[Player]:
        return [p for p in self.players.values() if p.is_alive]

    def has_living(self, role: Role) -> bool:
        return any(p.role == role for p in self.alive_players())

    def public_players(self) -> List[Dict]:
        return [p.to_dict() for p in self.players.values()]

    def to_dict(self):
        return {
            'roomId': self.id,
            'hostId': self.host_id,
            'phase': self.phase.value,
            'round': self.round_count,
            'winner': self.winner.value if self.winner else None,
            'players': self.public_players(),
        }
