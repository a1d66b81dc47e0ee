"""Rejections raised by the game core.

Every error here is local to a single intent: the handler that raised it has
not touched room state, and the socket layer reports ``message`` to the sender
only.
"""


class GameError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RoomNotFound(GameError):
    def __init__(self, room_id=None):
        super().__init__('Room not found')
        self.room_id = room_id


class InvalidPhase(GameError):
    pass


class Unauthorized(GameError):
    pass


class RuleViolation(GameError):
    pass
