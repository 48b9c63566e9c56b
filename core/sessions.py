from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from core.room import Participant
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Session:
    participant_id: str
    room_id: str
    profile: Participant
    pending: bool = False


class SessionDirectory:
    """participant_id -> (room_id, cached profile).

    Holds a back-reference only; the Room owns membership. Kept in step with
    the room by the same operation that changes membership.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, participant_id: str):
        return participant_id in self._sessions

    def get(self, participant_id: str) -> Optional[Session]:
        return self._sessions.get(participant_id)

    def bind(self, participant: Participant, room_id: str, pending: bool = False) -> Session:
        session = Session(participant.id, room_id, participant, pending)
        self._sessions[participant.id] = session
        logger.debug(f"Session bound: {participant.id} -> room {room_id} (pending={pending})")
        return session

    def remove(self, participant_id: str, room_id: Optional[str] = None) -> Optional[Session]:
        """Drop a session. With room_id, only if it still points at that room."""
        session = self._sessions.get(participant_id)
        if session is None or (room_id is not None and session.room_id != room_id):
            return None
        del self._sessions[participant_id]
        logger.debug(f"Session removed: {participant_id} (room {session.room_id})")
        return session

    def remove_many(self, participant_ids: Iterable[str], room_id: Optional[str] = None):
        for participant_id in participant_ids:
            self.remove(participant_id, room_id)
