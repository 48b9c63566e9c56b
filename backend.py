import hashlib
import hmac
import json

import redis

from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, RELAY_KEY, RELAY_SECRET
from logging_config import get_logger

logger = get_logger(__name__)


def sign_channel(secret: str, socket_id: str, channel: str) -> str:
    """HMAC-SHA256 over ``socket_id:channel``, the same scheme Pusher uses for private channels."""
    return hmac.new(secret.encode(), f"{socket_id}:{channel}".encode(), hashlib.sha256).hexdigest()


class RedisRelayBackend:
    """Relay backed by Redis pub/sub.

    Server side publishes events to channels; the ``/relay/ws`` bridge
    subscribes on behalf of clients holding a valid channel token.
    """

    name = "redis"

    def __init__(self, redis_client=None, pubsub_client=None, key: str = RELAY_KEY, secret: str = RELAY_SECRET):
        self.key = key
        self.secret = secret
        if redis_client is None:
            logger.info(f"Initializing RedisRelayBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
            try:
                redis_client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True)
                redis_client.ping()
                logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
            except Exception as e:
                logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
                raise
        self.redis_client = redis_client
        # Separate connection for pub/sub (required by Redis)
        self.pubsub_client = pubsub_client or redis_client

    def trigger(self, channels, event: str, data: dict):
        if isinstance(channels, str):
            channels = [channels]
        message_json = json.dumps({"event": event, "data": data})
        for channel in channels:
            subscribers = self.redis_client.publish(channel, message_json)
            logger.debug(f"Published {event} to channel {channel}, {subscribers} subscribers")

    def authorize_channel(self, socket_id: str, channel: str) -> dict:
        return {"auth": f"{self.key}:{sign_channel(self.secret, socket_id, channel)}"}

    def verify_channel_auth(self, socket_id: str, channel: str, auth: str) -> bool:
        key, _, signature = (auth or "").partition(":")
        if key != self.key or not signature:
            return False
        return hmac.compare_digest(signature, sign_channel(self.secret, socket_id, channel))

    def subscribe(self, channel: str):
        """Create a pubsub subscriber for one channel."""
        logger.debug(f"Subscribing to Redis channel {channel}")
        pubsub = self.pubsub_client.pubsub()
        pubsub.subscribe(channel)
        return pubsub
