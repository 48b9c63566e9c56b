import math
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from core.avatars import generate_avatar
from core.errors import (
    Forbidden,
    NotAMember,
    RequestNotFound,
    Unauthorized,
    VotesAlreadyRevealed,
)
from logging_config import get_logger

logger = get_logger(__name__)

# Numeric estimate or a sentinel such as "?" / "coffee"
VoteValue = Union[int, float, str]


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class RevealPolicy(str, Enum):
    ANYONE = "anyone"
    CREATOR_ONLY = "creator_only"


class StoryPolicy(str, Enum):
    ANYONE = "anyone"
    CREATOR_ONLY = "creator_only"


class JoinStatus(str, Enum):
    JOINED = "joined"
    PENDING = "pending"


@dataclass
class Participant:
    id: str
    name: str
    is_observer: bool = False
    avatar: str = ""

    def __post_init__(self):
        if not self.avatar:
            self.avatar = generate_avatar(self.id)

    def to_dict(self) -> dict:
        return asdict(self)


def is_numeric_vote(vote) -> bool:
    return isinstance(vote, (int, float)) and not isinstance(vote, bool)


class Room:
    """One estimation session: membership, join requests, votes and story.

    All mutation goes through the methods below. Callers hold ``lock`` around
    a method call and the event computation that follows it.
    """

    def __init__(
        self,
        room_id: str,
        name: str,
        reveal_policy: RevealPolicy = RevealPolicy.ANYONE,
        approval_required: bool = False,
        visibility: Visibility = Visibility.PUBLIC,
        story_policy: StoryPolicy = StoryPolicy.ANYONE,
    ):
        self.id = room_id
        self.name = name
        self.creator_id: Optional[str] = None
        self.visibility = Visibility(visibility)
        self.approval_required = approval_required
        self.reveal_policy = RevealPolicy(reveal_policy)
        self.story_policy = StoryPolicy(story_policy)
        self.members: Dict[str, Participant] = {}
        self.pending_join_requests: Dict[str, Participant] = {}
        self.votes: Dict[str, VoteValue] = {}
        self.votes_revealed = False
        self.current_story: Optional[str] = None
        self.created_at = datetime.now()
        self.lock = threading.RLock()

    def __repr__(self):
        return f"<Room {self.id} members={len(self.members)} pending={len(self.pending_join_requests)}>"

    @property
    def is_public(self) -> bool:
        return self.visibility == Visibility.PUBLIC

    @property
    def is_empty(self) -> bool:
        return not self.members

    def is_member(self, participant_id: str) -> bool:
        return participant_id in self.members

    def is_creator(self, participant_id: str) -> bool:
        return self.creator_id is not None and self.creator_id == participant_id

    def can_reveal_votes(self, participant_id: str) -> bool:
        return self.reveal_policy == RevealPolicy.ANYONE or self.is_creator(participant_id)

    def can_set_story(self, participant_id: str) -> bool:
        return self.story_policy == StoryPolicy.ANYONE or self.is_creator(participant_id)

    def _require_member(self, participant_id: str) -> Participant:
        participant = self.members.get(participant_id)
        if participant is None:
            raise NotAMember()
        return participant

    def _require_creator(self, participant_id: str):
        if not self.is_creator(participant_id):
            raise Unauthorized()

    # -- membership -------------------------------------------------------

    def join(self, participant: Participant) -> JoinStatus:
        if self.creator_id is None:
            self.creator_id = participant.id
            logger.info(f"{participant.id} is the creator of room {self.id}")
        elif (
            self.approval_required
            and not self.is_creator(participant.id)
            and participant.id not in self.members
        ):
            self.pending_join_requests[participant.id] = participant
            logger.info(f"Join request from {participant.id} queued in room {self.id}")
            return JoinStatus.PENDING

        self.pending_join_requests.pop(participant.id, None)
        existing = self.members.get(participant.id)
        if existing is not None:
            # Rejoin: keep join position, refresh profile
            existing.name = participant.name
            existing.is_observer = participant.is_observer
            participant = existing
        else:
            self.members[participant.id] = participant
        if participant.is_observer:
            self.votes.pop(participant.id, None)
        logger.info(f"{participant.id} joined room {self.id} ({len(self.members)} members)")
        return JoinStatus.JOINED

    def leave(self, participant_id: str) -> Optional[Participant]:
        """Drop the participant from members and pending requests. Returns who was removed."""
        removed = self.members.pop(participant_id, None)
        self.votes.pop(participant_id, None)
        pending = self.pending_join_requests.pop(participant_id, None)
        return removed or pending

    def approve_join_request(self, caller_id: str, target_id: str) -> Participant:
        self._require_creator(caller_id)
        participant = self.pending_join_requests.pop(target_id, None)
        if participant is None:
            raise RequestNotFound()
        self.members[target_id] = participant
        logger.info(f"Join request of {target_id} approved in room {self.id}")
        return participant

    def reject_join_request(self, caller_id: str, target_id: str) -> Participant:
        self._require_creator(caller_id)
        participant = self.pending_join_requests.pop(target_id, None)
        if participant is None:
            raise RequestNotFound()
        logger.info(f"Join request of {target_id} rejected in room {self.id}")
        return participant

    def end_session(self, caller_id: str) -> List[str]:
        """Check the caller may end the session and return everyone to tear down."""
        self._require_creator(caller_id)
        return list(self.members) + list(self.pending_join_requests)

    def toggle_observer(self, participant_id: str) -> Participant:
        participant = self._require_member(participant_id)
        participant.is_observer = not participant.is_observer
        if participant.is_observer:
            self.votes.pop(participant_id, None)
        return participant

    # -- voting -----------------------------------------------------------

    def cast_vote(self, participant_id: str, vote: VoteValue):
        participant = self._require_member(participant_id)
        if self.votes_revealed:
            raise VotesAlreadyRevealed()
        if participant.is_observer:
            raise Forbidden("Observers cannot vote")
        self.votes[participant_id] = vote

    def remove_vote(self, participant_id: str):
        self._require_member(participant_id)
        if self.votes_revealed:
            raise VotesAlreadyRevealed()
        self.votes.pop(participant_id, None)

    def reveal_votes(self, participant_id: str):
        self._require_member(participant_id)
        if not self.can_reveal_votes(participant_id):
            raise Forbidden("Only the room creator can reveal votes in this room")
        self.votes_revealed = True

    def reset_votes(self, participant_id: str):
        self._require_member(participant_id)
        if not self.can_reveal_votes(participant_id):
            raise Forbidden("Only the room creator can start a new round in this room")
        self.votes.clear()
        self.votes_revealed = False

    def set_story(self, participant_id: str, story: Optional[str]):
        self._require_member(participant_id)
        if not self.can_set_story(participant_id):
            raise Forbidden("Only the room creator can set the story in this room")
        self.current_story = story

    # -- projections ------------------------------------------------------

    def vote_results(self) -> Optional[Dict[str, VoteValue]]:
        """Display name -> vote. None while votes are hidden."""
        if not self.votes_revealed:
            return None
        return {
            self.members[pid].name: vote
            for pid, vote in self.votes.items()
            if pid in self.members
        }

    def vote_status_masked(self) -> Dict[str, Union[VoteValue, bool]]:
        if self.votes_revealed:
            return self.vote_results()
        return {self.members[pid].name: True for pid in self.votes if pid in self.members}

    def vote_count(self) -> int:
        return len(self.votes)

    def participant_count(self) -> int:
        return sum(1 for p in self.members.values() if not p.is_observer)

    def average_vote(self) -> Optional[int]:
        numeric = [v for v in self.votes.values() if is_numeric_vote(v) and v > 0]
        if not numeric:
            return None
        return math.floor(sum(numeric) / len(numeric) + 0.5)

    def users(self) -> List[dict]:
        return [p.to_dict() for p in self.members.values()]

    def join_requests(self) -> List[dict]:
        return [p.to_dict() for p in self.pending_join_requests.values()]

    def snapshot(self, detailed: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "users": self.users(),
            "show_votes": self.votes_revealed,
            "votes": self.vote_status_masked(),
            "average_vote": self.average_vote() if self.votes_revealed else None,
            "current_story": self.current_story,
            "vote_count": self.vote_count(),
            "participant_count": self.participant_count(),
            "creator_id": self.creator_id,
            "reveal_policy": self.reveal_policy.value,
            "story_policy": self.story_policy.value,
            "approval_required": self.approval_required,
            "visibility": self.visibility.value,
        }
        if detailed:
            data["join_requests"] = self.join_requests()
        return data

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "member_count": len(self.members),
            "created_at": self.created_at.isoformat(),
        }
