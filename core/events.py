"""Addressed events produced by room operations.

Every operation yields an ordered list of ``Event``. An event is addressed
either to one participant (``to_user``) or to a room (``to_room``). Room
events carry the member ids resolved at the time the event was computed, so
a transport never needs to look the room up again (the room may already be
gone, e.g. after ``session-ended``).
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from core.room import Participant, Room

USER = "user"
ROOM = "room"


@dataclass
class Event:
    name: str
    payload: dict
    scope: str
    target: str  # participant id for USER scope, room id for ROOM scope
    recipients: Tuple[str, ...] = ()
    exclude: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def is_broadcast(self) -> bool:
        return self.scope == ROOM

    def recipient_ids(self) -> List[str]:
        if self.scope == USER:
            return [self.target]
        return [pid for pid in self.recipients if pid != self.exclude]

    def to_message(self) -> dict:
        return {"event": self.name, "data": self.payload, "timestamp": self.timestamp}


def to_user(participant_id: str, name: str, payload: dict = None) -> Event:
    return Event(name, payload or {}, USER, participant_id)


def to_room(room: Room, name: str, payload: dict = None, exclude: str = None) -> Event:
    return Event(name, payload or {}, ROOM, room.id, tuple(room.members), exclude)


def _presence(room: Room) -> dict:
    return {
        "users": room.users(),
        "vote_count": room.vote_count(),
        "participant_count": room.participant_count(),
    }


class EventRouter:
    """Turns the result of a room operation into addressed events."""

    def joined(self, room: Room, participant: Participant) -> List[Event]:
        return [
            to_user(participant.id, "joined-room", {
                "room": room.snapshot(detailed=True),
                "user": participant.to_dict(),
            }),
            to_room(room, "user-joined", {"user": participant.to_dict(), **_presence(room)},
                    exclude=participant.id),
        ]

    def join_pending(self, room: Room, participant: Participant) -> List[Event]:
        events = []
        if room.is_member(room.creator_id):
            events.append(to_user(room.creator_id, "join-request", {
                "user": participant.to_dict(),
                "room_id": room.id,
            }))
        events.append(to_user(participant.id, "join-request-pending", {
            "message": "Your join request has been sent to the room creator for approval.",
        }))
        return events

    def room_updated(self, room: Room) -> List[Event]:
        return [to_room(room, "room-updated", {"room": room.snapshot()})]

    def vote_removed(self, room: Room, participant_id: str) -> List[Event]:
        return [to_user(participant_id, "vote-removed")] + self.room_updated(room)

    def votes_revealed(self, room: Room) -> List[Event]:
        return [to_room(room, "votes-revealed", {
            "votes": room.vote_results(),
            "average_vote": room.average_vote(),
            "vote_count": room.vote_count(),
            "participant_count": room.participant_count(),
        })]

    def votes_reset(self, room: Room) -> List[Event]:
        return [to_room(room, "votes-reset")]

    def story_updated(self, room: Room) -> List[Event]:
        return [to_room(room, "story-updated", {"story": room.current_story})]

    def user_updated(self, room: Room, participant: Participant) -> List[Event]:
        return [to_room(room, "user-updated", {"user": participant.to_dict(), **_presence(room)})]

    def join_requests_updated(self, room: Room) -> List[Event]:
        # the creator may have left the room; nobody to notify then
        if not room.is_member(room.creator_id):
            return []
        return [to_user(room.creator_id, "join-requests-updated", {
            "join_requests": room.join_requests(),
        })]

    def request_approved(self, room: Room, participant: Participant) -> List[Event]:
        return [
            to_user(participant.id, "join-request-approved", {
                "message": "Your join request has been approved!",
                "room": room.snapshot(detailed=True),
                "user": participant.to_dict(),
            }),
            to_room(room, "user-joined", {"user": participant.to_dict(), **_presence(room)}),
            *self.join_requests_updated(room),
        ]

    def request_rejected(self, room: Room, participant: Participant) -> List[Event]:
        return [
            to_user(participant.id, "join-request-rejected", {
                "message": "Your join request has been rejected.",
            }),
            *self.join_requests_updated(room),
        ]

    def session_ended(self, room: Room, pending_ids: List[str] = ()) -> List[Event]:
        message = {"message": "The session has been ended by the room creator"}
        events = [to_room(room, "session-ended", message)]
        events.extend(to_user(pid, "session-ended", message) for pid in pending_ids)
        return events

    def user_left(self, room: Room, participant: Participant) -> List[Event]:
        return [to_room(room, "user-left", {"user_id": participant.id, **_presence(room)})]

    def error(self, participant_id: str, error) -> List[Event]:
        return [to_user(participant_id, "error", error.to_dict())]
