from unittest import mock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app import create_app
from transports.relay import PusherRelayBackend, RelayTransport


def create_room(client, **body):
    resp = client.post("/api/rooms", json={"name": "Sprint", **body})
    assert resp.status_code == 200
    return resp.json()


def poll(client, user_id, timeout=0):
    resp = client.get("/api/polling/poll", params={"user_id": user_id, "timeout": timeout})
    assert resp.status_code == 200
    return [u["event"] for u in resp.json()["updates"]]


def test_create_room_echoes_policy(polling_client):
    room = create_room(polling_client, reveal_policy="creator_only", approval_required=True,
                       visibility="private", story_policy="creator_only")
    assert room["name"] == "Sprint"
    assert room["reveal_policy"] == "creator_only"
    assert room["approval_required"] is True
    assert room["visibility"] == "private"
    assert room["story_policy"] == "creator_only"
    assert polling_client.get("/api/rooms").json() == []


def test_list_rooms_and_health(polling_client):
    room = create_room(polling_client)
    polling_client.post("/api/polling/join-room", json={"room_id": room["id"], "user_id": "a", "user_name": "Ann"})

    listed = polling_client.get("/api/rooms").json()
    assert listed[0]["id"] == room["id"]
    assert listed[0]["member_count"] == 1

    health = polling_client.get("/health").json()
    assert health["status"] == "OK"
    assert health["provider"] == "polling"
    assert (health["rooms"], health["users"]) == (1, 1)


def test_polling_round(polling_client):
    rid = create_room(polling_client)["id"]
    joined = polling_client.post("/api/polling/join-room",
                                 json={"room_id": rid, "user_id": "a", "user_name": "Ann"}).json()
    assert joined["pending"] is False
    assert joined["room"]["creator_id"] == "a"
    polling_client.post("/api/polling/join-room", json={"room_id": rid, "user_id": "b", "user_name": "Bob"})

    assert poll(polling_client, "a") == ["joined-room", "user-joined"]
    assert poll(polling_client, "b") == ["joined-room"]

    assert polling_client.post("/api/polling/cast-vote", json={"user_id": "b", "vote": 8}).status_code == 200
    resp = polling_client.get("/api/polling/poll", params={"user_id": "a", "timeout": 0})
    update = resp.json()["updates"][0]
    assert update["event"] == "room-updated"
    assert update["data"]["room"]["votes"] == {"Bob": True}

    polling_client.post("/api/polling/reveal-votes", json={"user_id": "a"})
    revealed = polling_client.get("/api/polling/poll", params={"user_id": "b", "timeout": 0}).json()["updates"]
    assert revealed[-1]["data"]["votes"] == {"Bob": 8}

    resp = polling_client.post("/api/polling/cast-vote", json={"user_id": "a", "vote": 3})
    assert resp.status_code == 409


def test_polling_errors_map_to_http_status(polling_client):
    rid = create_room(polling_client, reveal_policy="creator_only")["id"]
    resp = polling_client.post("/api/polling/join-room", json={"room_id": "nope", "user_id": "a"})
    assert resp.status_code == 404

    polling_client.post("/api/polling/join-room", json={"room_id": rid, "user_id": "a", "user_name": "Ann"})
    polling_client.post("/api/polling/join-room", json={"room_id": rid, "user_id": "b", "user_name": "Bob"})
    resp = polling_client.post("/api/polling/reveal-votes", json={"user_id": "b"})
    assert resp.status_code == 403
    assert "creator" in resp.json()["detail"]

    resp = polling_client.post("/api/polling/end-session", json={"user_id": "b"})
    assert resp.status_code == 403

    assert polling_client.post("/api/polling/remove-vote", json={"user_id": "ghost"}).status_code == 404
    assert polling_client.get("/api/polling/poll", params={"user_id": "ghost", "timeout": 0}).status_code == 404


def test_polling_approval_uses_caller_identity(polling_client):
    rid = create_room(polling_client, approval_required=True)["id"]
    polling_client.post("/api/polling/join-room", json={"room_id": rid, "user_id": "x", "user_name": "Xavier"})
    pending = polling_client.post("/api/polling/join-room",
                                  json={"room_id": rid, "user_id": "y", "user_name": "Yara"}).json()
    assert pending["pending"] is True
    assert poll(polling_client, "y") == ["join-request-pending"]
    assert poll(polling_client, "x") == ["joined-room", "join-request"]

    # y cannot approve itself, whatever else it sends along
    resp = polling_client.post("/api/polling/approve-join-request",
                               json={"user_id": "y", "target_id": "y", "creator_id": "x"})
    assert resp.status_code == 403

    resp = polling_client.post("/api/polling/approve-join-request", json={"user_id": "x", "target_id": "y"})
    assert resp.status_code == 200
    assert poll(polling_client, "y") == ["join-request-approved", "user-joined"]
    assert poll(polling_client, "x") == ["user-joined", "join-requests-updated"]

    resp = polling_client.post("/api/polling/approve-join-request", json={"user_id": "x", "target_id": "y"})
    assert resp.status_code == 404


def test_polling_departed_creator_stops_receiving(polling_client):
    rid = create_room(polling_client, approval_required=True)["id"]
    polling_client.post("/api/polling/join-room", json={"room_id": rid, "user_id": "x", "user_name": "Xavier"})
    polling_client.post("/api/polling/join-room", json={"room_id": rid, "user_id": "y", "user_name": "Yara"})
    polling_client.post("/api/polling/approve-join-request", json={"user_id": "x", "target_id": "y"})
    poll(polling_client, "x")
    polling_client.post("/api/polling/disconnect", json={"user_id": "x"})
    assert polling_client.get("/api/polling/poll", params={"user_id": "x", "timeout": 0}).status_code == 404

    polling_client.post("/api/polling/join-room", json={"room_id": rid, "user_id": "z", "user_name": "Zoe"})
    assert poll(polling_client, "z") == ["join-request-pending"]
    assert polling_client.get("/api/polling/poll", params={"user_id": "x", "timeout": 0}).status_code == 404


def test_polling_end_session_leaves_final_notice(polling_client):
    rid = create_room(polling_client)["id"]
    polling_client.post("/api/polling/join-room", json={"room_id": rid, "user_id": "a", "user_name": "Ann"})
    polling_client.post("/api/polling/join-room", json={"room_id": rid, "user_id": "b", "user_name": "Bob"})
    poll(polling_client, "b")

    assert polling_client.post("/api/polling/end-session", json={"user_id": "a"}).status_code == 200
    assert poll(polling_client, "b") == ["session-ended"]
    assert polling_client.get("/api/polling/poll", params={"user_id": "b", "timeout": 0}).status_code == 404
    assert polling_client.get("/api/rooms").json() == []


def test_polling_disconnect_is_idempotent(polling_client):
    rid = create_room(polling_client)["id"]
    polling_client.post("/api/polling/join-room", json={"room_id": rid, "user_id": "a", "user_name": "Ann"})
    for _ in range(2):
        assert polling_client.post("/api/polling/disconnect", json={"user_id": "a"}).status_code == 200
    assert polling_client.get("/api/rooms").json() == []


@pytest.fixture
def relay():
    backend = mock.Mock(spec=PusherRelayBackend)
    backend.authorize_channel.return_value = {"auth": "key:signature"}
    with TestClient(create_app("relay", transport=RelayTransport(backend))) as client:
        yield client, backend


def test_relay_join_and_vote_trigger_channels(relay):
    client, backend = relay
    rid = create_room(client)["id"]
    joined = client.post("/api/relay/join-room", json={"room_id": rid, "user_id": "a", "user_name": "Ann"})
    assert joined.json()["room"]["id"] == rid

    client.post("/api/relay/cast-vote", json={"user_id": "a", "vote": "?"})
    channels = [c.args[0] for c in backend.trigger.call_args_list]
    assert channels[0] == "private-user-a"
    assert channels[-1] == f"private-room-{rid}"


def test_relay_channel_auth_follows_session(relay):
    client, backend = relay
    rid = create_room(client, approval_required=True)["id"]
    client.post("/api/relay/join-room", json={"room_id": rid, "user_id": "x", "user_name": "Xavier"})
    client.post("/api/relay/join-room", json={"room_id": rid, "user_id": "y", "user_name": "Yara"})

    def auth(user_id, channel):
        return client.post("/api/relay/auth", json={"socket_id": "1.2", "channel_name": channel, "user_id": user_id})

    ok = auth("x", f"private-room-{rid}")
    assert ok.status_code == 200
    assert ok.json() == {"auth": "key:signature"}
    assert auth("y", "private-user-y").status_code == 200
    assert auth("y", f"private-room-{rid}").status_code == 403
    assert auth("y", "private-user-x").status_code == 403
    assert auth("x", "presence-lobby").status_code == 400


def test_relay_bridge_requires_redis_backend(relay):
    client, _ = relay
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/relay/ws") as ws:
            ws.receive_json()


def test_unknown_provider_is_rejected():
    with pytest.raises(ValueError):
        create_app("carrier-pigeon")
