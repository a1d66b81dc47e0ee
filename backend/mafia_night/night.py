"""Night action resolver.

Each ``record_*`` function validates one submission against the room and
either records it or raises a ``GameError`` without touching the room.
Scheduling the follow-up phase is the controller's job.
"""
import logging
from typing import Optional

from .errors import InvalidPhase, RuleViolation, Unauthorized
from .models import GamePhase, Player, Role, Room

logger = logging.getLogger(__name__)


class NightResult:
    def __init__(self, victim_id: Optional[str], saved: bool):
        self.victim_id = victim_id
        self.saved = saved

    def to_dict(self):
        return {'victimId': self.victim_id, 'saved': self.saved}

    def __eq__(self, other):
        if not isinstance(other, NightResult):
            return NotImplemented
        return (self.victim_id, self.saved) == (other.victim_id, other.saved)

    def __repr__(self):
        return f"NightResult(victim_id={self.victim_id!r}, saved={self.saved})"


def _require_phase(room: Room, phase: GamePhase):
    if room.winner is not None:
        raise InvalidPhase("Game is over")
    if room.phase != phase:
        raise InvalidPhase("Invalid action for current game state")


def _require_actor(room: Room, sender_id: str, role: Role) -> Player:
    player = room.players.get(sender_id)
    if player is None or player.role != role:
        raise Unauthorized("Invalid action for your role")
    if not player.is_alive:
        raise Unauthorized("You are eliminated and cannot act")
    return player


def _require_target(room: Room, target_id, alive=True) -> Player:
    target = room.players.get(target_id) if isinstance(target_id, str) else None
    if target is None:
        raise RuleViolation("Invalid target")
    if alive and not target.is_alive:
        raise RuleViolation("Cannot target an eliminated player")
    return target


def record_mafia_vote(room: Room, sender_id: str, target_id: str) -> Player:
    _require_phase(room, GamePhase.NIGHT_MAFIA)
    _require_actor(room, sender_id, Role.MAFIA)
    # first vote of the night is final, even with two mafia
    if room.night_actions.mafia_target is not None:
        raise RuleViolation("A kill has already been recorded this round")
    target = _require_target(room, target_id)

    room.night_actions.mafia_target = target.id
    logger.info("Room %s: mafia vote by %s recorded", room.id, sender_id)
    return target


def record_nurse_action(room: Room, sender_id: str, target_id: str) -> Player:
    _require_phase(room, GamePhase.NIGHT_NURSE)
    nurse = _require_actor(room, sender_id, Role.NURSE)
    actions = room.night_actions
    if actions.nurse_target is not None:
        raise RuleViolation("You have already acted this round")
    target = _require_target(room, target_id)

    if target.id == nurse.id:
        if actions.nurse_self_heal_used:
            raise RuleViolation("Cannot heal self twice")
        actions.nurse_self_heal_used = True

    actions.nurse_target = target.id
    logger.info("Room %s: nurse action recorded", room.id)
    return target


def record_detective_action(room: Room, sender_id: str, target_id: str) -> Player:
    _require_phase(room, GamePhase.NIGHT_DETECTIVE)
    _require_actor(room, sender_id, Role.DETECTIVE)
    if room.night_actions.detective_target is not None:
        raise RuleViolation("You have already acted this round")
    target = _require_target(room, target_id, alive=False)

    room.night_actions.detective_target = target.id
    logger.info("Room %s: detective check recorded", room.id)
    return target


def resolve_night(room: Room) -> NightResult:
    """Apply the mafia kill unless the nurse protected the same player."""
    victim_id = room.night_actions.mafia_target
    if victim_id is None:
        return NightResult(None, False)

    if victim_id == room.night_actions.nurse_target:
        logger.info("Room %s: night victim saved by the nurse", room.id)
        return NightResult(None, True)

    victim = room.players.get(victim_id)
    if victim is not None:
        victim.is_alive = False
    logger.info("Room %s: %s killed during the night", room.id, victim_id)
    return NightResult(victim_id, False)
