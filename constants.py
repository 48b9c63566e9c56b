import os

# websocket | relay | polling
REALTIME_PROVIDER = os.getenv("REALTIME_PROVIDER", "websocket")
# pusher | redis, only used when REALTIME_PROVIDER == "relay"
RELAY_BACKEND = os.getenv("RELAY_BACKEND", "pusher")

PUSHER_APP_ID = os.getenv("PUSHER_APP_ID", "")
PUSHER_KEY = os.getenv("PUSHER_KEY", "")
PUSHER_SECRET = os.getenv("PUSHER_SECRET", "")
PUSHER_CLUSTER = os.getenv("PUSHER_CLUSTER", "us2")

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

# Secret used to sign relay channel tokens when the redis backend is active
RELAY_SECRET = os.getenv("RELAY_SECRET", PUSHER_SECRET or "change-me")
RELAY_KEY = os.getenv("RELAY_KEY", PUSHER_KEY or "planning-poker")

ROOM_ID_LENGTH = int(os.getenv("ROOM_ID_LENGTH", 4))

POLL_TIMEOUT_MS = int(os.getenv("POLL_TIMEOUT_MS", 30000))
POLL_TIMEOUT_MAX_MS = int(os.getenv("POLL_TIMEOUT_MAX_MS", 60000))
