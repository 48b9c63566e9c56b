"""Operation layer shared by every transport binding.

Each public method resolves the caller's session, runs the room mutation and
the event computation under the room's lock, keeps the session directory in
step, and returns an ``Outcome``. Delivering the events is left to the
transport, outside the lock.
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from core.errors import NotAMember, RoomError, RoomNotFound
from core.events import Event, EventRouter
from core.registry import RoomRegistry
from core.room import JoinStatus, Participant, Room, VoteValue
from core.sessions import SessionDirectory
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Outcome:
    result: Any = None
    events: List[Event] = field(default_factory=list)
    # participants whose sessions were torn down by the operation
    closed: List[str] = field(default_factory=list)


class RoomService:
    def __init__(self, registry: RoomRegistry, sessions: SessionDirectory, router: EventRouter = None):
        self.registry = registry
        self.sessions = sessions
        self.router = router or EventRouter()

    def _room_of(self, participant_id: str) -> Room:
        session = self.sessions.get(participant_id)
        if session is None:
            raise NotAMember()
        room = self.registry.find(session.room_id)
        if room is None:
            self.sessions.remove(participant_id)
            raise RoomNotFound()
        return room

    # -- membership -------------------------------------------------------

    def join(self, participant_id: str, room_id: str, name: str, is_observer: bool = False) -> Outcome:
        room = self.registry.get(room_id)
        outcome = Outcome()

        previous = self.sessions.get(participant_id)
        if previous is not None and previous.room_id != room_id:
            logger.info(f"{participant_id} moves from room {previous.room_id} to {room_id}")
            outcome = self.leave(participant_id)
            outcome.closed.remove(participant_id)

        participant = Participant(participant_id, name or f"User_{participant_id[:8]}", is_observer)
        with room.lock:
            if self.registry.find(room_id) is not room:
                raise RoomNotFound()
            status = room.join(participant)
            if status == JoinStatus.PENDING:
                self.sessions.bind(participant, room.id, pending=True)
                outcome.events.extend(self.router.join_pending(room, participant))
                outcome.result = {"status": status.value, "user": participant.to_dict()}
            else:
                member = room.members[participant_id]
                self.sessions.bind(member, room.id)
                outcome.events.extend(self.router.joined(room, member))
                outcome.result = {
                    "status": status.value,
                    "room": room.snapshot(detailed=True),
                    "user": member.to_dict(),
                }
        return outcome

    def leave(self, participant_id: str) -> Outcome:
        """Remove the participant from their room. No-op when there is nothing to leave."""
        session = self.sessions.get(participant_id)
        if session is None:
            return Outcome()
        room = self.registry.find(session.room_id)
        if room is None:
            self.sessions.remove(participant_id)
            return Outcome(closed=[participant_id])

        outcome = Outcome(closed=[participant_id])
        with room.lock:
            was_member = room.is_member(participant_id)
            removed = room.leave(participant_id)
            self.sessions.remove(participant_id, room.id)
            if removed is None:
                return outcome
            logger.info(f"{participant_id} left room {room.id} ({len(room.members)} members remain)")

            if room.is_empty:
                pending_ids = list(room.pending_join_requests)
                if pending_ids:
                    outcome.events.extend(self.router.session_ended(room, pending_ids))
                    self.sessions.remove_many(pending_ids, room.id)
                    outcome.closed.extend(pending_ids)
                room.pending_join_requests.clear()
                self.registry.delete(room.id)
            elif was_member:
                outcome.events.extend(self.router.user_left(room, removed))
            else:
                outcome.events.extend(self.router.join_requests_updated(room))
        return outcome

    def approve_join_request(self, caller_id: str, target_id: str) -> Outcome:
        room = self._room_of(caller_id)
        with room.lock:
            participant = room.approve_join_request(caller_id, target_id)
            self.sessions.bind(participant, room.id)
            return Outcome({"success": True}, self.router.request_approved(room, participant))

    def reject_join_request(self, caller_id: str, target_id: str) -> Outcome:
        room = self._room_of(caller_id)
        with room.lock:
            participant = room.reject_join_request(caller_id, target_id)
            self.sessions.remove(target_id, room.id)
            return Outcome({"success": True}, self.router.request_rejected(room, participant), [target_id])

    def end_session(self, caller_id: str) -> Outcome:
        room = self._room_of(caller_id)
        with room.lock:
            everyone = room.end_session(caller_id)
            events = self.router.session_ended(room, list(room.pending_join_requests))
            self.sessions.remove_many(everyone, room.id)
            self.registry.delete(room.id)
            logger.info(f"Session of room {room.id} ended by {caller_id}, {len(everyone)} sessions closed")
            return Outcome({"success": True}, events, everyone)

    def toggle_observer(self, participant_id: str) -> Outcome:
        room = self._room_of(participant_id)
        with room.lock:
            participant = room.toggle_observer(participant_id)
            return Outcome({"success": True}, self.router.user_updated(room, participant))

    # -- voting -----------------------------------------------------------

    def cast_vote(self, participant_id: str, vote: VoteValue) -> Outcome:
        if vote is None or isinstance(vote, bool):
            raise RoomError("A vote value is required")
        room = self._room_of(participant_id)
        with room.lock:
            room.cast_vote(participant_id, vote)
            return Outcome({"success": True}, self.router.room_updated(room))

    def remove_vote(self, participant_id: str) -> Outcome:
        room = self._room_of(participant_id)
        with room.lock:
            room.remove_vote(participant_id)
            return Outcome({"success": True}, self.router.vote_removed(room, participant_id))

    def reveal_votes(self, participant_id: str) -> Outcome:
        room = self._room_of(participant_id)
        with room.lock:
            room.reveal_votes(participant_id)
            logger.info(f"Votes revealed in room {room.id} by {participant_id}")
            return Outcome({"success": True}, self.router.votes_revealed(room))

    def reset_votes(self, participant_id: str) -> Outcome:
        room = self._room_of(participant_id)
        with room.lock:
            room.reset_votes(participant_id)
            logger.info(f"Votes reset in room {room.id} by {participant_id}")
            return Outcome({"success": True}, self.router.votes_reset(room))

    def set_story(self, participant_id: str, story: Optional[str]) -> Outcome:
        room = self._room_of(participant_id)
        with room.lock:
            room.set_story(participant_id, story)
            return Outcome({"success": True}, self.router.story_updated(room))

    def error(self, participant_id: str, error: RoomError) -> Outcome:
        return Outcome(error.to_dict(), self.router.error(participant_id, error))

    def stats(self) -> Tuple[int, int]:
        return len(self.registry), len(self.sessions)
