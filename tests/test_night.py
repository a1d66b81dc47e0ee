"""Night action validation and resolution.

Player layout used throughout: p0 mafia, p1 detective, p2 nurse, p3/p4 citizens.
"""
import pytest

from mafia_night.errors import InvalidPhase, RuleViolation, Unauthorized
from mafia_night.models import GamePhase, Role, Winner
from mafia_night.night import (
    NightResult,
    record_detective_action,
    record_mafia_vote,
    record_nurse_action,
    resolve_night,
)

from conftest import make_room

M, D, N, C = Role.MAFIA, Role.DETECTIVE, Role.NURSE, Role.CITIZEN


def night_room(phase, roles=(M, D, N, C, C), dead=()):
    room = make_room(list(roles), dead=dead)
    room.phase = phase
    return room


class TestMafiaVote:
    def test_records_target(self):
        room = night_room(GamePhase.NIGHT_MAFIA)
        record_mafia_vote(room, 'p0', 'p3')
        assert room.night_actions.mafia_target == 'p3'

    def test_first_vote_wins(self):
        room = night_room(GamePhase.NIGHT_MAFIA, roles=(M, M, D, N, C, C, C, C, C))
        record_mafia_vote(room, 'p0', 'p4')

        with pytest.raises(RuleViolation):
            record_mafia_vote(room, 'p1', 'p5')
        assert room.night_actions.mafia_target == 'p4'

    def test_wrong_phase(self):
        room = night_room(GamePhase.NIGHT_NURSE)
        with pytest.raises(InvalidPhase):
            record_mafia_vote(room, 'p0', 'p3')
        assert room.night_actions.mafia_target is None

    def test_non_mafia_sender(self):
        room = night_room(GamePhase.NIGHT_MAFIA)
        with pytest.raises(Unauthorized):
            record_mafia_vote(room, 'p3', 'p4')

    def test_dead_target(self):
        room = night_room(GamePhase.NIGHT_MAFIA, dead={'p4'})
        with pytest.raises(RuleViolation):
            record_mafia_vote(room, 'p0', 'p4')

    def test_unknown_target(self):
        room = night_room(GamePhase.NIGHT_MAFIA)
        with pytest.raises(RuleViolation):
            record_mafia_vote(room, 'p0', 'nobody')


class TestNurseAction:
    def test_records_target(self):
        room = night_room(GamePhase.NIGHT_NURSE)
        record_nurse_action(room, 'p2', 'p3')
        assert room.night_actions.nurse_target == 'p3'
        assert room.night_actions.nurse_self_heal_used is False

    def test_only_nurse_may_act(self):
        room = night_room(GamePhase.NIGHT_NURSE)
        with pytest.raises(Unauthorized):
            record_nurse_action(room, 'p1', 'p3')
        assert room.night_actions.nurse_target is None

    def test_self_heal_once_per_game(self):
        room = night_room(GamePhase.NIGHT_NURSE)
        record_nurse_action(room, 'p2', 'p2')
        assert room.night_actions.nurse_self_heal_used is True

        room.night_actions.reset()
        assert room.night_actions.nurse_self_heal_used is True

        with pytest.raises(RuleViolation) as exc:
            record_nurse_action(room, 'p2', 'p2')
        assert exc.value.message == 'Cannot heal self twice'
        assert room.night_actions.nurse_target is None

        # another target is still fine that night
        record_nurse_action(room, 'p2', 'p4')
        assert room.night_actions.nurse_target == 'p4'

    def test_one_action_per_night(self):
        room = night_room(GamePhase.NIGHT_NURSE)
        record_nurse_action(room, 'p2', 'p3')
        with pytest.raises(RuleViolation):
            record_nurse_action(room, 'p2', 'p4')
        assert room.night_actions.nurse_target == 'p3'


class TestDetectiveAction:
    def test_returns_target(self):
        room = night_room(GamePhase.NIGHT_DETECTIVE)
        target = record_detective_action(room, 'p1', 'p0')
        assert target.role == Role.MAFIA
        assert room.night_actions.detective_target == 'p0'

    def test_can_check_eliminated_player(self):
        room = night_room(GamePhase.NIGHT_DETECTIVE, dead={'p3'})
        assert record_detective_action(room, 'p1', 'p3').id == 'p3'

    def test_dead_detective_cannot_act(self):
        room = night_room(GamePhase.NIGHT_DETECTIVE, dead={'p1'})
        with pytest.raises(Unauthorized):
            record_detective_action(room, 'p1', 'p0')

    def test_rejected_after_game_over(self):
        room = night_room(GamePhase.NIGHT_DETECTIVE)
        room.winner = Winner.MAFIA
        with pytest.raises(InvalidPhase):
            record_detective_action(room, 'p1', 'p0')


class TestResolveNight:
    def test_unprotected_victim_dies(self):
        room = night_room(GamePhase.NIGHT_DETECTIVE)
        room.night_actions.mafia_target = 'p3'
        room.night_actions.nurse_target = 'p4'

        assert resolve_night(room) == NightResult('p3', False)
        assert room.players['p3'].is_alive is False

    def test_protected_victim_is_saved(self):
        room = night_room(GamePhase.NIGHT_DETECTIVE)
        room.night_actions.mafia_target = 'p3'
        room.night_actions.nurse_target = 'p3'

        result = resolve_night(room)
        assert result.to_dict() == {'victimId': None, 'saved': True}
        assert room.players['p3'].is_alive is True

    def test_no_target(self):
        room = night_room(GamePhase.NIGHT_DETECTIVE)
        room.night_actions.nurse_target = 'p3'

        assert resolve_night(room) == NightResult(None, False)
        assert all(p.is_alive for p in room.players.values())
