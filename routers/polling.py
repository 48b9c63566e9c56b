from typing import Optional

from fastapi import HTTPException, Query, Request

from constants import POLL_TIMEOUT_MAX_MS, POLL_TIMEOUT_MS
from logging_config import get_logger
from routers.actions import build_actions_router, get_service
from schemas.rooms import PollResponse

logger = get_logger(__name__)

polling_router = build_actions_router("/api/polling", "polling")


@polling_router.get("/poll", response_model=PollResponse)
async def poll(
    request: Request,
    user_id: str = Query(..., description="Participant id used when joining"),
    timeout: Optional[int] = Query(None, description="Wait time in milliseconds"),
):
    """Long-poll for queued updates.

    Returns as soon as at least one update is queued, or with an empty list
    once the timeout elapses. Clients re-issue the poll right away.
    """
    transport = request.app.state.transport
    if user_id not in get_service(request).sessions and not transport.has_mailbox(user_id):
        logger.warning(f"Poll rejected: unknown participant {user_id}")
        raise HTTPException(status_code=404, detail="User not found")

    timeout_ms = POLL_TIMEOUT_MS if timeout is None else timeout
    timeout_ms = min(max(timeout_ms, 0), POLL_TIMEOUT_MAX_MS)
    updates = await transport.await_updates_for(user_id, timeout_ms / 1000)
    logger.debug(f"Poll for {user_id} returned {len(updates)} updates")
    return PollResponse(updates=updates)
