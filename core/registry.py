import random
import string
import threading
from typing import Dict, List, Optional

from constants import ROOM_ID_LENGTH
from core.errors import RoomNotFound
from core.room import RevealPolicy, Room, StoryPolicy, Visibility
from logging_config import get_logger

logger = get_logger(__name__)


def generate_room_id(length: int = ROOM_ID_LENGTH) -> str:
    return ''.join(random.choices(string.digits, k=length))


class RoomRegistry:
    """Process-wide room_id -> Room mapping."""

    def __init__(self, id_length: int = ROOM_ID_LENGTH):
        self.id_length = id_length
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._rooms)

    def __contains__(self, room_id: str):
        return room_id in self._rooms

    def create_room(
        self,
        name: Optional[str] = None,
        reveal_policy: RevealPolicy = RevealPolicy.ANYONE,
        approval_required: bool = False,
        visibility: Visibility = Visibility.PUBLIC,
        story_policy: StoryPolicy = StoryPolicy.ANYONE,
    ) -> Room:
        with self._lock:
            if len(self._rooms) >= 10 ** self.id_length:
                raise RuntimeError(f"All {self.id_length}-digit room ids are in use")
            room_id = generate_room_id(self.id_length)
            while room_id in self._rooms:
                room_id = generate_room_id(self.id_length)

            room = Room(
                room_id,
                name or f"Room {room_id}",
                reveal_policy=reveal_policy,
                approval_required=approval_required,
                visibility=visibility,
                story_policy=story_policy,
            )
            self._rooms[room_id] = room
        logger.info(f"Room {room_id} created: name={room.name}, visibility={room.visibility.value}, "
                    f"approval_required={approval_required}, reveal={room.reveal_policy.value}, story={room.story_policy.value}")
        return room

    def get(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(f"Room {room_id} not found")
        return room

    def find(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def list_public(self) -> List[dict]:
        return [room.summary() for room in list(self._rooms.values()) if room.is_public]

    def delete(self, room_id: str) -> bool:
        with self._lock:
            deleted = self._rooms.pop(room_id, None) is not None
        if deleted:
            logger.info(f"Room {room_id} deleted")
        return deleted
