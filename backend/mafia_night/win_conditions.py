from typing import Iterable, Optional

from .models import Player, Role, Room, Winner


def evaluate_winner(players: Iterable[Player]) -> Optional[Winner]:
    """Decide the game from the living players alone.

    No mafia left means the citizens won; mafia at parity or better means the
    mafia won; anything else keeps the game going.
    """
    alive = [p for p in players if p.is_alive]
    mafia = sum(1 for p in alive if p.role == Role.MAFIA)
    others = len(alive) - mafia

    if mafia == 0:
        return Winner.CITIZENS
    if mafia >= others:
        return Winner.MAFIA
    return None


def apply_win_condition(room: Room) -> Optional[Winner]:
    # a decided game stays decided
    if room.winner is None:
        room.winner = evaluate_winner(room.players.values())
    return room.winner
