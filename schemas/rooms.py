from pydantic import BaseModel
from typing import Any, Optional, Union

from core.room import RevealPolicy, StoryPolicy, Visibility


class CreateRoomRequest(BaseModel):
    name: Optional[str] = None
    reveal_policy: RevealPolicy = RevealPolicy.ANYONE
    approval_required: bool = False
    visibility: Visibility = Visibility.PUBLIC
    story_policy: StoryPolicy = StoryPolicy.ANYONE

class CreateRoomResponse(BaseModel):
    id: str
    name: str
    reveal_policy: RevealPolicy
    approval_required: bool
    visibility: Visibility
    story_policy: StoryPolicy

class RoomSummary(BaseModel):
    id: str
    name: str
    member_count: int
    created_at: str

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    provider: str
    rooms: int
    users: int

class JoinRoomRequest(BaseModel):
    room_id: str
    user_id: str
    user_name: Optional[str] = None
    is_observer: bool = False

class JoinRoomResponse(BaseModel):
    user_id: str
    pending: bool = False
    message: Optional[str] = None
    room: Optional[dict] = None
    user: Optional[dict] = None

class ParticipantRequest(BaseModel):
    user_id: str

class CastVoteRequest(ParticipantRequest):
    vote: Union[int, float, str]

class SetStoryRequest(ParticipantRequest):
    story: Optional[str] = None

class JoinRequestDecision(ParticipantRequest):
    # Pending participant the creator decides on; the caller is user_id
    target_id: str

class SuccessResponse(BaseModel):
    success: bool = True

class ChannelAuthRequest(BaseModel):
    socket_id: str
    channel_name: str
    user_id: str

class ChannelAuthResponse(BaseModel):
    auth: str
    channel_data: Optional[str] = None

class PollResponse(BaseModel):
    updates: list[dict[str, Any]]
