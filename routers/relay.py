import asyncio
import json
import random
from typing import Dict

from fastapi import HTTPException, Request, WebSocket, WebSocketDisconnect

from logging_config import get_logger
from redis_keys import RELAY_CHANNEL_PREFIX
from routers.actions import build_actions_router, get_service
from schemas.rooms import ChannelAuthRequest, ChannelAuthResponse
from transports.relay import room_channel, user_channel

logger = get_logger(__name__)

relay_router = build_actions_router("/api/relay", "relay")


def can_subscribe(service, user_id: str, channel: str) -> bool:
    """A participant may listen on their own private channel and on the room they are a member of."""
    if channel == user_channel(user_id):
        return True
    session = service.sessions.get(user_id)
    if session is None or session.pending:
        return False
    return channel == room_channel(session.room_id)


@relay_router.post("/auth", response_model=ChannelAuthResponse, response_model_exclude_none=True)
async def authorize_channel(body: ChannelAuthRequest, request: Request):
    if not body.channel_name.startswith(RELAY_CHANNEL_PREFIX):
        raise HTTPException(status_code=400, detail="Only private channels need authorization")
    if not can_subscribe(get_service(request), body.user_id, body.channel_name):
        logger.warning(f"Channel auth denied for {body.user_id} on {body.channel_name}")
        raise HTTPException(status_code=403, detail="Not allowed to subscribe to this channel")
    logger.debug(f"Channel auth granted for {body.user_id} on {body.channel_name}")
    return request.app.state.transport.authorize_channel(body.socket_id, body.channel_name)


def generate_socket_id() -> str:
    return f"{random.randint(1, 10 ** 9)}.{random.randint(1, 10 ** 9)}"


async def listen_to_channel(backend, channel: str, websocket: WebSocket):
    """Forward messages published on a Redis channel to one bridged websocket."""
    pubsub = None
    try:
        pubsub = backend.subscribe(channel)
        loop = asyncio.get_running_loop()

        def get_message():
            return pubsub.get_message(timeout=1.0, ignore_subscribe_messages=True)

        while True:
            message = await loop.run_in_executor(None, get_message)
            if message is None or message.get("type") != "message":
                continue
            try:
                payload = json.loads(message["data"])
            except json.JSONDecodeError as e:
                logger.error(f"Error parsing relay message on {channel}: {e}")
                continue
            payload["channel"] = channel
            await websocket.send_text(json.dumps(payload))
    except asyncio.CancelledError:
        logger.debug(f"Relay listener cancelled for channel {channel}")
        raise
    except Exception as e:
        logger.error(f"Error in relay listener for channel {channel}: {e}", exc_info=True)
    finally:
        if pubsub:
            try:
                pubsub.close()
            except Exception as e:
                logger.error(f"Error closing pub/sub for channel {channel}: {e}")


@relay_router.websocket("/ws")
async def relay_bridge(websocket: WebSocket):
    """Websocket bridge for the Redis relay backend.

    The server greets with ``connection_established`` carrying a socket id;
    the client obtains tokens from ``/api/relay/auth`` for that socket id and
    sends ``{"event": "subscribe", "data": {"channel": ..., "auth": ...}}``.
    """
    backend = websocket.app.state.transport.backend
    if not hasattr(backend, "verify_channel_auth"):
        await websocket.close(code=1008, reason="Relay bridge requires the redis backend")
        return

    await websocket.accept()
    socket_id = generate_socket_id()
    listeners: Dict[str, asyncio.Task] = {}
    await websocket.send_text(json.dumps({"event": "connection_established", "data": {"socket_id": socket_id}}))
    logger.info(f"Relay bridge connection {socket_id} accepted")

    try:
        while True:
            try:
                message = json.loads(await websocket.receive_text())
            except json.JSONDecodeError:
                await websocket.send_text(json.dumps({"event": "error", "data": {"message": "Invalid JSON"}}))
                continue

            data = message.get("data") or {}
            channel = data.get("channel", "")
            if message.get("event") == "subscribe":
                if not backend.verify_channel_auth(socket_id, channel, data.get("auth")):
                    logger.warning(f"Relay bridge {socket_id}: invalid auth for {channel}")
                    await websocket.send_text(json.dumps({"event": "subscription_error", "data": {"channel": channel}}))
                    continue
                if channel not in listeners:
                    listeners[channel] = asyncio.create_task(listen_to_channel(backend, channel, websocket))
                await websocket.send_text(json.dumps({"event": "subscription_succeeded", "data": {"channel": channel}}))
            elif message.get("event") == "unsubscribe" and channel in listeners:
                listeners.pop(channel).cancel()
    except WebSocketDisconnect:
        logger.info(f"Relay bridge connection {socket_id} closed")
    finally:
        for task in listeners.values():
            task.cancel()
