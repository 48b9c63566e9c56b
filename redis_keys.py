RELAY_ROOM_CHANNEL = "private-room-{room_id}" # broadcast channel for one room
RELAY_USER_CHANNEL = "private-user-{participant_id}" # point-to-point channel
RELAY_CHANNEL_PREFIX = "private-"

# **Relay message envelope**
# - `event` = event name, e.g. `room-updated`
# - `data` = JSON payload of the event
