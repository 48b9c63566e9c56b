from fastapi import APIRouter, HTTPException, Request

from core.registry import RoomRegistry
from logging_config import get_logger
from schemas.rooms import CreateRoomRequest, CreateRoomResponse, RoomSummary

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api/rooms", tags=["rooms"])


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


@rooms_router.get("", response_model=list[RoomSummary])
async def list_rooms(request: Request):
    """Public rooms with their member count, in creation order."""
    return get_registry(request).list_public()


@rooms_router.post("", response_model=CreateRoomResponse)
async def create_room(room: CreateRoomRequest, request: Request):
    client_host = request.client.host if request.client else "unknown"
    logger.info(f"Room creation request from {client_host}, name: {room.name}")
    try:
        created = get_registry(request).create_room(
            name=room.name,
            reveal_policy=room.reveal_policy,
            approval_required=room.approval_required,
            visibility=room.visibility,
            story_policy=room.story_policy,
        )
    except RuntimeError as e:
        logger.error(f"Error creating room: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Failed to create room")

    return CreateRoomResponse(
        id=created.id,
        name=created.name,
        reveal_policy=created.reveal_policy,
        approval_required=created.approval_required,
        visibility=created.visibility,
        story_policy=created.story_policy,
    )
