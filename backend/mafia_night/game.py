"""Per-room phase state machine.

``GameController`` turns inbound intents into room mutations and outbound
notifications. Every intent and every scheduled transition for a room runs
while holding that room's lock, so two handlers never interleave their
read-modify-write of ``phase`` or ``night_actions``.
"""
import asyncio
import logging
import random
from typing import Optional

from . import broadcaster as events
from .broadcaster import Broadcaster
from .config import Settings
from .errors import InvalidPhase, RuleViolation, Unauthorized
from .models import GamePhase, Player, Role, Room, Winner
from .night import record_detective_action, record_mafia_vote, record_nurse_action, resolve_night
from .registry import RoomRegistry
from .roles import assign_roles
from .win_conditions import apply_win_condition

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 32

# wait states and the role whose action ends them
WAIT_STATES = {
    GamePhase.NIGHT_MAFIA: Role.MAFIA,
    GamePhase.NIGHT_NURSE: Role.NURSE,
    GamePhase.NIGHT_DETECTIVE: Role.DETECTIVE,
}


class GameController:
    def __init__(self, registry: RoomRegistry, broadcaster: Broadcaster,
                 settings: Optional[Settings] = None, rng: Optional[random.Random] = None):
        self.registry = registry
        self.broadcaster = broadcaster
        self.settings = settings or Settings()
        self.rng = rng or random.Random()

    # ----------------- lobby -----------------

    async def create_room(self, sender_id: str) -> Room:
        room = self.registry.create_room(sender_id)
        await self.broadcaster.enter(sender_id, room.id)
        await self.broadcaster.emit(events.ROOM_CREATED, {'roomId': room.id}, to=sender_id)
        return room

    async def join_room(self, sender_id: str, room_id: str, name) -> Player:
        room = self.registry.require_room(room_id)
        async with room.lock:
            if room.phase != GamePhase.LOBBY:
                raise InvalidPhase('Game already started')
            name = name.strip() if isinstance(name, str) else ''
            if not name:
                raise RuleViolation('Player name is required')
            if len(name) > MAX_NAME_LENGTH:
                raise RuleViolation('Player name is too long')
            if sender_id in room.players:
                raise RuleViolation('You have already joined this room')
            if any(p.name.lower() == name.lower() for p in room.players.values()):
                raise RuleViolation('Name already taken')

            player = Player(sender_id, name)
            room.players[sender_id] = player
            room.touch()
            await self.broadcaster.enter(sender_id, room.id)
            await self.broadcaster.emit(events.PLAYER_JOINED, {'players': room.public_players()}, to=room.id)
            logger.info("%s joined %s", name, room.id)
            return player

    async def start_game(self, sender_id: str, room_id: str):
        room = self.registry.require_room(room_id)
        async with room.lock:
            self._require_host(room, sender_id, 'Only the host can start the game')
            if room.phase != GamePhase.LOBBY:
                raise InvalidPhase('Game already started')

            assign_roles(room, self.rng, self.settings.min_players)
            room.round_count = 1
            self._set_phase(room, GamePhase.NIGHT_INTRO)

            await self.broadcaster.emit(events.GAME_STARTED, {
                'players': room.public_players(),
                'hostId': room.host_id,
            }, to=room.id)
            # roles go to each player individually
            for player in room.players.values():
                await self.broadcaster.emit(events.ROLE_ASSIGNED, {'role': player.role.value}, to=player.id)
            await self._announce_phase(room)
            logger.info("Game started in %s with %d players", room.id, len(room.players))

    # ----------------- host driven transitions -----------------

    async def next_phase(self, sender_id: str, room_id: str):
        room = self.registry.require_room(room_id)
        async with room.lock:
            self._require_host(room, sender_id, 'Only the host can advance the game')
            self._require_running(room)

            phase = room.phase
            if phase == GamePhase.LOBBY:
                raise InvalidPhase('Game has not started')
            if phase == GamePhase.NIGHT_INTRO:
                self._set_phase(room, GamePhase.NIGHT_MAFIA)
                await self._announce_phase(room)
            elif phase in WAIT_STATES:
                await self._advance_wait_state(room)
            elif phase == GamePhase.NIGHT_RESULT:
                self._set_phase(room, GamePhase.DAY_DISCUSSION)
                await self._announce_phase(room, timer=self.settings.discussion_seconds)
            elif phase == GamePhase.DAY_DISCUSSION:
                await self._start_next_night(room)

    async def _advance_wait_state(self, room: Room):
        role = WAIT_STATES[room.phase]
        # the role's own action moves the night on; the host can only step
        # past a role nobody alive holds
        if room.has_living(role) or room.scheduled_phase == room.phase:
            logger.debug("Room %s: waiting on %s action", room.id, role.value)
            return
        logger.info("Room %s: no living %s, skipping %s", room.id, role.value, room.phase.value)
        self._schedule(room, room.phase, self._step_after(room.phase))

    async def host_kill(self, sender_id: str, room_id: str, target_id):
        room = self.registry.require_room(room_id)
        async with room.lock:
            self._require_host(room, sender_id, 'Only the host can eliminate players')
            self._require_running(room)
            self._require_day(room)
            target = room.players.get(target_id) if isinstance(target_id, str) else None
            if target is None or not target.is_alive:
                raise RuleViolation('Invalid target')

            target.is_alive = False
            room.touch()
            await self.broadcaster.emit(events.PLAYER_KILLED, {'playerId': target.id}, to=room.id)
            logger.info("Room %s: host eliminated %s", room.id, target.id)

            if not await self._check_game_over(room):
                await self._start_next_night(room)

    async def host_skip(self, sender_id: str, room_id: str):
        room = self.registry.require_room(room_id)
        async with room.lock:
            self._require_host(room, sender_id, 'Only the host can skip the vote')
            self._require_running(room)
            self._require_day(room)
            logger.info("Room %s: host skipped the elimination", room.id)
            await self._start_next_night(room)

    # ----------------- night actions -----------------

    async def mafia_vote(self, sender_id: str, room_id: str, target_id):
        room = self.registry.require_room(room_id)
        async with room.lock:
            record_mafia_vote(room, sender_id, target_id)
            room.touch()
            await self.broadcaster.emit(events.MAFIA_ACTION_CONFIRMED, None, to=room.id)
            self._schedule(room, GamePhase.NIGHT_MAFIA, self._step_after(GamePhase.NIGHT_MAFIA))

    async def nurse_action(self, sender_id: str, room_id: str, target_id):
        room = self.registry.require_room(room_id)
        async with room.lock:
            record_nurse_action(room, sender_id, target_id)
            room.touch()
            await self.broadcaster.emit(events.NURSE_ACTION_CONFIRMED, None, to=room.id)
            self._schedule(room, GamePhase.NIGHT_NURSE, self._step_after(GamePhase.NIGHT_NURSE))

    async def detective_action(self, sender_id: str, room_id: str, target_id):
        room = self.registry.require_room(room_id)
        async with room.lock:
            target = record_detective_action(room, sender_id, target_id)
            room.touch()
            # never broadcast: only the detective learns the role
            await self.broadcaster.emit(events.DETECTIVE_RESULT, {
                'targetName': target.name,
                'targetRole': target.role.value if target.role else None,
            }, to=sender_id)
            self._schedule(room, GamePhase.NIGHT_DETECTIVE, self._step_after(GamePhase.NIGHT_DETECTIVE))

    # ----------------- misc intents -----------------

    async def get_game_state(self, sender_id: str, room_id: str) -> dict:
        room = self.registry.require_room(room_id)
        player = room.players.get(sender_id)
        if player is None and not room.is_host(sender_id):
            raise Unauthorized('You are not in this room')
        state = room.to_dict()
        state['yourId'] = sender_id
        state['yourRole'] = player.role.value if player and player.role else None
        state['youAreHost'] = room.is_host(sender_id)
        await self.broadcaster.emit(events.GAME_STATE, state, to=sender_id)
        return state

    async def disconnect(self, sender_id: str):
        # reconnection and offline marking are not handled; rooms keep the player
        logger.info("User disconnected: %s", sender_id)

    # ----------------- scheduled transitions -----------------

    def _step_after(self, phase: GamePhase):
        if phase == GamePhase.NIGHT_MAFIA:
            return lambda room: self._enter_phase(room, GamePhase.NIGHT_NURSE)
        if phase == GamePhase.NIGHT_NURSE:
            return lambda room: self._enter_phase(room, GamePhase.NIGHT_DETECTIVE)
        if phase == GamePhase.NIGHT_DETECTIVE:
            return self._finish_night
        raise ValueError(f"No scheduled step after {phase}")

    def _schedule(self, room: Room, expected_phase: GamePhase, step) -> asyncio.Task:
        room.scheduled_phase = expected_phase
        task = asyncio.create_task(self._run_later(room, expected_phase, step))
        room.pending_tasks.add(task)
        task.add_done_callback(room.pending_tasks.discard)
        return task

    async def _run_later(self, room: Room, expected_phase: GamePhase, step):
        await asyncio.sleep(self.settings.action_delay)
        async with room.lock:
            # re-read the live room; it may be gone or somewhere else by now
            if not self.registry.holds(room):
                logger.info("Room %s no longer exists, dropping scheduled transition", room.id)
                return
            if room.winner is not None or room.phase != expected_phase:
                logger.warning("Room %s: stale transition from %s (now %s)",
                               room.id, expected_phase.value, room.phase.value)
                return
            try:
                await step(room)
            except Exception:
                logger.exception("Room %s: scheduled transition from %s failed", room.id, expected_phase.value)

    async def _enter_phase(self, room: Room, phase: GamePhase):
        self._set_phase(room, phase)
        await self._announce_phase(room)

    async def _finish_night(self, room: Room):
        result = resolve_night(room)
        self._set_phase(room, GamePhase.NIGHT_RESULT)
        await self._announce_phase(room, result=result.to_dict())
        await self._check_game_over(room)

    # ----------------- helpers -----------------

    async def _start_next_night(self, room: Room):
        room.round_count += 1
        room.night_actions.reset()
        self._set_phase(room, GamePhase.NIGHT_INTRO)
        await self._announce_phase(room)

    async def _check_game_over(self, room: Room) -> bool:
        already_over = room.winner is not None
        winner: Optional[Winner] = apply_win_condition(room)
        if winner is None:
            return False
        if not already_over:
            await self.broadcaster.emit(events.GAME_OVER, {
                'winner': winner.value,
                'players': [p.to_dict(include_role=True) for p in room.players.values()],
            }, to=room.id)
            logger.info("Room %s: game over, %s win", room.id, winner.value)
        return True

    def _set_phase(self, room: Room, phase: GamePhase):
        room.phase = phase
        room.scheduled_phase = None
        room.touch()

    async def _announce_phase(self, room: Room, **extra):
        payload = {'phase': room.phase.value, 'round': room.round_count}
        payload.update(extra)
        await self.broadcaster.emit(events.PHASE_CHANGE, payload, to=room.id)
        logger.info("Room %s: phase -> %s (round %d)", room.id, room.phase.value, room.round_count)

    @staticmethod
    def _require_host(room: Room, sender_id: str, message: str):
        if not room.is_host(sender_id):
            raise Unauthorized(message)

    @staticmethod
    def _require_running(room: Room):
        if room.winner is not None:
            raise InvalidPhase('Game is over')

    @staticmethod
    def _require_day(room: Room):
        if room.phase != GamePhase.DAY_DISCUSSION:
            raise InvalidPhase('Not currently in day phase')
