import logging
import random
from typing import Dict

from .errors import RuleViolation
from .models import Role, Room

logger = logging.getLogger(__name__)

MIN_PLAYERS = 4


def mafia_count_for(player_count: int) -> int:
    return 2 if player_count >= 9 else 1


def assign_roles(room: Room, rng: random.Random, min_players: int = MIN_PLAYERS) -> Dict[str, Role]:
    """Deal one role to every player in ``room``.

    The ids are shuffled with ``rng`` and sliced in a fixed order: mafia, one
    detective, one nurse, then citizens for everyone left.
    """
    player_ids = list(room.players.keys())
    player_count = len(player_ids)
    min_players = max(min_players, MIN_PLAYERS)

    if player_count < min_players:
        raise RuleViolation(f"Need at least {min_players} players to start")
    if any(p.role is not None for p in room.players.values()):
        raise RuleViolation("Roles have already been assigned")

    mafia_count = mafia_count_for(player_count)
    shuffled = rng.sample(player_ids, player_count)

    assigned = {}
    for pid in shuffled[:mafia_count]:
        assigned[pid] = Role.MAFIA
    assigned[shuffled[mafia_count]] = Role.DETECTIVE
    assigned[shuffled[mafia_count + 1]] = Role.NURSE
    for pid in shuffled[mafia_count + 2:]:
        assigned[pid] = Role.CITIZEN

    for pid, role in assigned.items():
        room.players[pid].role = role

    logger.debug("Roles for room %s: %s", room.id, {pid: r.value for pid, r in assigned.items()})
    return assigned
