"""Outbound notification contract used by the game core.

The core only knows "send event E with payload P to R", where R is either a
room code (everyone who entered that room) or a player id (that player alone).
"""
from abc import ABC, abstractmethod
from typing import Optional

ROOM_CREATED = 'room_created'
PLAYER_JOINED = 'player_joined'
GAME_STARTED = 'game_started'
ROLE_ASSIGNED = 'role_assigned'
PHASE_CHANGE = 'phase_change'
MAFIA_ACTION_CONFIRMED = 'mafia_action_confirmed'
NURSE_ACTION_CONFIRMED = 'nurse_action_confirmed'
DETECTIVE_RESULT = 'detective_result'
PLAYER_KILLED = 'player_killed'
GAME_OVER = 'game_over'
GAME_STATE = 'game_state'
ERROR = 'error'


class Broadcaster(ABC):
    @abstractmethod
    async def emit(self, event: str, payload: Optional[dict], to: str):
        ...

    @abstractmethod
    async def enter(self, member_id: str, room_id: str):
        """Add ``member_id`` to the recipients of ``room_id`` broadcasts."""


class SocketIOBroadcaster(Broadcaster):
    def __init__(self, sio):
        self.sio = sio

    async def emit(self, event, payload, to):
        if payload is None:
            await self.sio.emit(event, to=to)
        else:
            await self.sio.emit(event, payload, to=to)

    async def enter(self, member_id, room_id):
        await self.sio.enter_room(member_id, room_id)
