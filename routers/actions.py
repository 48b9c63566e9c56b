"""Room operations over HTTP, shared by the relay and long-poll bindings.

The caller is identified by ``user_id`` in the body. Privileged operations
authorise against that id; a client-supplied creator id is never consulted.
"""
from typing import Callable

from fastapi import APIRouter, HTTPException, Request

from core.errors import RoomError
from core.service import Outcome, RoomService
from logging_config import get_logger
from schemas.rooms import (
    CastVoteRequest,
    JoinRequestDecision,
    JoinRoomRequest,
    JoinRoomResponse,
    ParticipantRequest,
    SetStoryRequest,
    SuccessResponse,
)
from transports.base import dispatch

logger = get_logger(__name__)


def get_service(request: Request) -> RoomService:
    return request.app.state.service


async def perform(request: Request, action: str, operation: Callable[[], Outcome]) -> Outcome:
    """Run a room operation, deliver its events and map room errors to HTTP errors."""
    try:
        outcome = operation()
    except RoomError as e:
        logger.warning(f"{action} rejected: {e.code} ({e.message})")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    await dispatch(request.app.state.transport, outcome)
    return outcome


def build_actions_router(prefix: str, tag: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.post("/join-room", response_model=JoinRoomResponse)
    async def join_room(body: JoinRoomRequest, request: Request):
        logger.info(f"Join room request for {body.room_id} from {body.user_id}, name: {body.user_name}")
        outcome = await perform(request, "join-room", lambda: get_service(request).join(
            body.user_id, body.room_id, body.user_name, body.is_observer))
        result = outcome.result
        if result["status"] == "pending":
            return JoinRoomResponse(
                user_id=body.user_id,
                pending=True,
                message="Join request pending approval",
                user=result["user"],
            )
        return JoinRoomResponse(user_id=body.user_id, room=result["room"], user=result["user"])

    @router.post("/cast-vote", response_model=SuccessResponse)
    async def cast_vote(body: CastVoteRequest, request: Request):
        await perform(request, "cast-vote", lambda: get_service(request).cast_vote(body.user_id, body.vote))
        return SuccessResponse()

    @router.post("/remove-vote", response_model=SuccessResponse)
    async def remove_vote(body: ParticipantRequest, request: Request):
        await perform(request, "remove-vote", lambda: get_service(request).remove_vote(body.user_id))
        return SuccessResponse()

    @router.post("/reveal-votes", response_model=SuccessResponse)
    async def reveal_votes(body: ParticipantRequest, request: Request):
        await perform(request, "reveal-votes", lambda: get_service(request).reveal_votes(body.user_id))
        return SuccessResponse()

    @router.post("/reset-votes", response_model=SuccessResponse)
    async def reset_votes(body: ParticipantRequest, request: Request):
        await perform(request, "reset-votes", lambda: get_service(request).reset_votes(body.user_id))
        return SuccessResponse()

    @router.post("/set-story", response_model=SuccessResponse)
    async def set_story(body: SetStoryRequest, request: Request):
        await perform(request, "set-story", lambda: get_service(request).set_story(body.user_id, body.story))
        return SuccessResponse()

    @router.post("/toggle-observer", response_model=SuccessResponse)
    async def toggle_observer(body: ParticipantRequest, request: Request):
        await perform(request, "toggle-observer", lambda: get_service(request).toggle_observer(body.user_id))
        return SuccessResponse()

    @router.post("/approve-join-request", response_model=SuccessResponse)
    async def approve_join_request(body: JoinRequestDecision, request: Request):
        await perform(request, "approve-join-request",
                      lambda: get_service(request).approve_join_request(body.user_id, body.target_id))
        return SuccessResponse()

    @router.post("/reject-join-request", response_model=SuccessResponse)
    async def reject_join_request(body: JoinRequestDecision, request: Request):
        await perform(request, "reject-join-request",
                      lambda: get_service(request).reject_join_request(body.user_id, body.target_id))
        return SuccessResponse()

    @router.post("/end-session", response_model=SuccessResponse)
    async def end_session(body: ParticipantRequest, request: Request):
        await perform(request, "end-session", lambda: get_service(request).end_session(body.user_id))
        return SuccessResponse()

    @router.post("/disconnect", response_model=SuccessResponse)
    async def disconnect(body: ParticipantRequest, request: Request):
        await perform(request, "disconnect", lambda: get_service(request).leave(body.user_id))
        return SuccessResponse()

    return router
