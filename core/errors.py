class RoomError(Exception):
    """Base class for recoverable room errors reported back to the caller."""

    code = "room_error"
    status_code = 400
    default_message = "Room operation failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class RoomNotFound(RoomError):
    code = "room_not_found"
    status_code = 404
    default_message = "Room not found"


class NotAMember(RoomError):
    code = "not_a_member"
    status_code = 404
    default_message = "You are not a member of this room"


class Forbidden(RoomError):
    code = "forbidden"
    status_code = 403
    default_message = "This action is not allowed in this room"


class VotesAlreadyRevealed(RoomError):
    code = "votes_already_revealed"
    status_code = 409
    default_message = "Votes have already been revealed"


class Unauthorized(RoomError):
    code = "unauthorized"
    status_code = 403
    default_message = "Only the room creator can do this"


class RequestNotFound(RoomError):
    code = "request_not_found"
    status_code = 404
    default_message = "Join request not found"
