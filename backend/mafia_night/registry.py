import logging
import random
import string
import time
from typing import Dict, List, Optional

from .errors import RoomNotFound
from .models import Room

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


class RoomRegistry:
    """Owns the live rooms of this process, keyed by room code."""

    def __init__(self, code_length: int = 6, rng: Optional[random.Random] = None):
        self.rooms: Dict[str, Room] = {}
        self.code_length = code_length
        self.rng = rng or random.Random()

    def generate_room_code(self) -> str:
        return ''.join(self.rng.choices(CODE_ALPHABET, k=self.code_length))

    def create_room(self, host_id: str) -> Room:
        room_code = self.generate_room_code()
        # Ensure room code is unique
        while room_code in self.rooms:
            room_code = self.generate_room_code()
        room = Room(room_code, host_id)
        self.rooms[room_code] = room
        logger.info("Room %s created by %s", room_code, host_id)
        return room

    def get_room(self, room_id) -> Optional[Room]:
        if not isinstance(room_id, str):
            return None
        return self.rooms.get(room_id.strip().upper())

    def require_room(self, room_id) -> Room:
        room = self.get_room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    def holds(self, room: Room) -> bool:
        """True while ``room`` is still the live room registered under its code."""
        return self.rooms.get(room.id) is room

    def destroy_room(self, room_id: str) -> Optional[Room]:
        room = self.rooms.pop(room_id, None)
        if room is None:
            return None
        for task in list(room.pending_tasks):
            if not task.done():
                task.cancel()
        room.pending_tasks.clear()
        logger.info("Room %s destroyed", room_id)
        return room

    def reclaim_idle(self, max_idle_seconds: float, now: Optional[float] = None) -> List[str]:
        now = time.time() if now is None else now
        stale = [room_id for room_id, room in self.rooms.items()
                 if now - room.last_activity > max_idle_seconds]
        for room_id in stale:
            self.destroy_room(room_id)
        if stale:
            logger.info("Reclaimed %d idle room(s): %s", len(stale), ', '.join(stale))
        return stale

    def __len__(self):
        return len(self.rooms)

    def __contains__(self, room_id):
        return self.get_room(room_id) is not None
