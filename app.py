from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
import uuid
import json
from datetime import datetime
from typing import Callable, Dict, Optional
import os

from constants import REALTIME_PROVIDER, RELAY_BACKEND
from core.errors import RoomError
from core.events import EventRouter
from core.registry import RoomRegistry
from core.service import Outcome, RoomService
from core.sessions import SessionDirectory
from logging_config import get_logger, setup_logging
from routers.rooms import rooms_router
from schemas.rooms import CastVoteRequest, HealthResponse, SetStoryRequest
from transports.base import dispatch

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)

PROVIDERS = ("websocket", "relay", "polling")


def build_transport(provider: str, relay_backend: Optional[str] = None, sessions: Optional[SessionDirectory] = None):
    if provider == "websocket":
        from transports.websocket import WebSocketTransport
        return WebSocketTransport()
    if provider == "polling":
        from transports.polling import PollingTransport
        return PollingTransport(sessions)
    if provider == "relay":
        from transports.relay import PusherRelayBackend, RelayTransport
        if (relay_backend or RELAY_BACKEND) == "redis":
            from backend import RedisRelayBackend
            return RelayTransport(RedisRelayBackend())
        return RelayTransport(PusherRelayBackend())
    raise ValueError(f"Unknown realtime provider: {provider}")


# Client event name -> operation on the service
WEBSOCKET_ACTIONS: Dict[str, Callable[[RoomService, str, dict], Outcome]] = {
    "join-room": lambda s, pid, d: s.join(pid, str(d.get("room_id", "")), d.get("user_name"), bool(d.get("is_observer", False))),
    "cast-vote": lambda s, pid, d: s.cast_vote(pid, CastVoteRequest.model_validate({**d, "user_id": pid}).vote),
    "remove-vote": lambda s, pid, d: s.remove_vote(pid),
    "reveal-votes": lambda s, pid, d: s.reveal_votes(pid),
    "reset-votes": lambda s, pid, d: s.reset_votes(pid),
    "set-story": lambda s, pid, d: s.set_story(pid, SetStoryRequest.model_validate({**d, "user_id": pid}).story),
    "toggle-observer": lambda s, pid, d: s.toggle_observer(pid),
    "approve-join-request": lambda s, pid, d: s.approve_join_request(pid, d.get("user_id", "")),
    "reject-join-request": lambda s, pid, d: s.reject_join_request(pid, d.get("user_id", "")),
    "end-session": lambda s, pid, d: s.end_session(pid),
    "leave-room": lambda s, pid, d: s.leave(pid),
}


async def websocket_endpoint(websocket: WebSocket):
    """Push binding: one connection per participant, the connection id is the participant id.

    Clients send ``{"event": "<action>", "data": {...}}`` and receive events in
    the same envelope. Room errors come back as a point-to-point ``error`` event.
    """
    service: RoomService = websocket.app.state.service
    transport = websocket.app.state.transport

    await websocket.accept()
    connection_id = str(uuid.uuid4())
    transport.register(connection_id, websocket)
    logger.info(f"WebSocket connection {connection_id} accepted")
    await websocket.send_text(json.dumps({"event": "connected", "data": {"user_id": connection_id}}))

    try:
        message_count = 0
        while True:
            data = await websocket.receive_text()
            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection_id}")

            try:
                message = json.loads(data)
                event = message["event"]
                payload = message.get("data") or {}
                if not isinstance(event, str) or not isinstance(payload, dict):
                    raise TypeError("event must be a string and data an object")
            except (json.JSONDecodeError, KeyError, TypeError, AttributeError):
                await dispatch(transport, service.error(connection_id, RoomError("Malformed message")))
                continue

            action = WEBSOCKET_ACTIONS.get(event)
            if action is None:
                await dispatch(transport, service.error(connection_id, RoomError(f"Unknown event: {event}")))
                continue

            try:
                outcome = action(service, connection_id, payload)
            except RoomError as e:
                logger.warning(f"{event} from {connection_id} rejected: {e.code} ({e.message})")
                outcome = service.error(connection_id, e)
            except ValidationError as e:
                logger.warning(f"{event} from {connection_id} rejected: {e.error_count()} invalid fields")
                outcome = service.error(connection_id, RoomError(f"Invalid data for {event}"))
            await dispatch(transport, outcome)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected normally for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        transport.unregister(connection_id)
        await dispatch(transport, service.leave(connection_id))


def create_app(provider: str = None, transport=None) -> FastAPI:
    provider = provider or REALTIME_PROVIDER
    if provider not in PROVIDERS:
        raise ValueError(f"Unknown realtime provider: {provider}")

    app = FastAPI(title="Planning Poker")

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.provider = provider
    app.state.registry = RoomRegistry()
    app.state.sessions = SessionDirectory()
    app.state.service = RoomService(app.state.registry, app.state.sessions, EventRouter())
    app.state.transport = transport or build_transport(provider, sessions=app.state.sessions)

    app.include_router(rooms_router)
    if provider == "websocket":
        app.add_api_websocket_route("/ws", websocket_endpoint)
    elif provider == "relay":
        from routers.relay import relay_router
        app.include_router(relay_router)
    else:
        from routers.polling import polling_router
        app.include_router(polling_router)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        rooms, users = app.state.service.stats()
        return HealthResponse(
            status="OK",
            timestamp=datetime.now().isoformat(),
            provider=provider,
            rooms=rooms,
            users=users,
        )

    logger.info(f"FastAPI application initialized with {provider} provider")
    return app


app = create_app()
