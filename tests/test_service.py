import pytest

from conftest import events_named
from core.errors import Forbidden, NotAMember, RequestNotFound, RoomError, RoomNotFound, Unauthorized
from core.events import ROOM, USER


def test_join_emits_snapshot_to_caller_and_presence_to_others(service, room):
    service.join("a", room.id, "Ann")
    outcome = service.join("b", room.id, "Bob")

    assert outcome.result["status"] == "joined"
    assert [u["id"] for u in outcome.result["room"]["users"]] == ["a", "b"]
    snapshot, presence = outcome.events
    assert (snapshot.name, snapshot.scope, snapshot.target) == ("joined-room", USER, "b")
    assert "join_requests" in snapshot.payload["room"]
    assert (presence.name, presence.scope) == ("user-joined", ROOM)
    assert presence.recipient_ids() == ["a"]
    assert presence.payload["participant_count"] == 2


def test_join_unknown_room(service):
    with pytest.raises(RoomNotFound):
        service.join("a", "9999", "Ann")
    assert "a" not in service.sessions


def test_approval_flow_end_to_end(service, approval_room, registry):
    rid = approval_room.id
    assert service.join("x", rid, "Xavier").result["status"] == "joined"

    pending = service.join("y", rid, "Yara")
    assert pending.result["status"] == "pending"
    assert "y" in approval_room.pending_join_requests
    assert "y" not in approval_room.members
    request = events_named(pending, "join-request")[0]
    assert request.target == "x"
    assert events_named(pending, "join-request-pending")[0].target == "y"
    assert service.sessions.get("y").pending is True

    approved = service.approve_join_request("x", "y")
    assert list(approval_room.members) == ["x", "y"]
    names = [e.name for e in approved.events]
    assert names == ["join-request-approved", "user-joined", "join-requests-updated"]
    snapshot = approved.events[0]
    assert snapshot.target == "y"
    assert [u["id"] for u in snapshot.payload["room"]["users"]] == ["x", "y"]
    assert approved.events[1].recipient_ids() == ["x", "y"]
    assert approved.events[2].target == "x"
    assert service.sessions.get("y").pending is False

    left = service.leave("y")
    assert list(approval_room.members) == ["x"]
    assert [e.name for e in left.events] == ["user-left"]
    assert left.events[0].recipient_ids() == ["x"]
    assert registry.find(rid) is approval_room


def test_client_supplied_creator_is_not_trusted(service, approval_room):
    service.join("x", approval_room.id, "Xavier")
    service.join("y", approval_room.id, "Yara")
    service.join("z", approval_room.id, "Zed")
    with pytest.raises(Unauthorized):
        service.approve_join_request("z", "y")
    with pytest.raises(RequestNotFound):
        service.approve_join_request("x", "nobody")


def test_reject_tears_down_target_session(service, approval_room):
    service.join("x", approval_room.id, "Xavier")
    service.join("y", approval_room.id, "Yara")
    outcome = service.reject_join_request("x", "y")
    assert [e.name for e in outcome.events] == ["join-request-rejected", "join-requests-updated"]
    assert outcome.events[1].payload["join_requests"] == []
    assert outcome.closed == ["y"]
    assert "y" not in service.sessions
    assert approval_room.pending_join_requests == {}


def test_leave_twice_is_noop(service, room):
    service.join("a", room.id, "Ann")
    service.join("b", room.id, "Bob")
    first = service.leave("b")
    second = service.leave("b")
    assert len(first.events) == 1
    assert second.events == []
    assert second.closed == []


def test_last_member_leaving_deletes_room(service, room, registry):
    service.join("a", room.id, "Ann")
    outcome = service.leave("a")
    assert outcome.events == []
    with pytest.raises(RoomNotFound):
        registry.get(room.id)
    assert "a" not in service.sessions


def test_pending_requesters_are_closed_when_room_empties(service, approval_room, registry):
    service.join("x", approval_room.id, "Xavier")
    service.join("y", approval_room.id, "Yara")
    outcome = service.leave("x")
    assert registry.find(approval_room.id) is None
    ended = events_named(outcome, "session-ended")
    assert [e.target for e in ended if e.scope == USER] == ["y"]
    assert "y" not in service.sessions
    assert set(outcome.closed) == {"x", "y"}


def test_pending_requester_leaving_updates_creator(service, approval_room):
    service.join("x", approval_room.id, "Xavier")
    service.join("y", approval_room.id, "Yara")
    outcome = service.leave("y")
    assert [e.name for e in outcome.events] == ["join-requests-updated"]
    assert outcome.events[0].target == "x"


def test_departed_creator_gets_no_join_requests(service, approval_room):
    rid = approval_room.id
    service.join("x", rid, "Xavier")
    service.join("y", rid, "Yara")
    service.approve_join_request("x", "y")
    service.leave("x")
    assert approval_room.creator_id == "x"

    pending = service.join("z", rid, "Zoe")
    assert [e.name for e in pending.events] == ["join-request-pending"]

    left = service.leave("z")
    assert left.events == []
    assert "z" not in approval_room.pending_join_requests


def test_end_session_closes_everyone(service, room, registry):
    service.join("a", room.id, "Ann")
    service.join("b", room.id, "Bob")
    with pytest.raises(Unauthorized):
        service.end_session("b")

    outcome = service.end_session("a")
    ended = outcome.events[0]
    assert ended.name == "session-ended"
    assert ended.recipient_ids() == ["a", "b"]
    assert registry.find(room.id) is None
    assert sorted(outcome.closed) == ["a", "b"]
    assert len(service.sessions) == 0
    with pytest.raises(NotAMember):
        service.cast_vote("b", 3)


def test_vote_events_are_masked_until_reveal(service, room):
    service.join("a", room.id, "Ann")
    service.join("b", room.id, "Bob")

    cast = service.cast_vote("a", 5)
    assert cast.events[0].name == "room-updated"
    assert cast.events[0].payload["room"]["votes"] == {"Ann": True}
    assert cast.events[0].recipient_ids() == ["a", "b"]

    removed = service.remove_vote("a")
    assert [(e.name, e.scope) for e in removed.events] == [("vote-removed", USER), ("room-updated", ROOM)]
    assert removed.events[0].target == "a"

    service.cast_vote("a", 5)
    service.cast_vote("b", "?")
    revealed = service.reveal_votes("b")
    payload = revealed.events[0].payload
    assert payload == {"votes": {"Ann": 5, "Bob": "?"}, "average_vote": 5,
                       "vote_count": 2, "participant_count": 2}


def test_reset_and_story_broadcasts(service, room):
    service.join("a", room.id, "Ann")
    service.cast_vote("a", 2)
    reset = service.reset_votes("a")
    assert reset.events[0].name == "votes-reset"
    assert reset.events[0].payload == {}
    assert room.vote_count() == 0

    story = service.set_story("a", "Login page")
    assert story.events[0].payload == {"story": "Login page"}


def test_creator_only_policies_through_service(service, creator_only_room):
    service.join("a", creator_only_room.id, "Ann")
    service.join("b", creator_only_room.id, "Bob")
    with pytest.raises(Forbidden):
        service.reveal_votes("b")
    with pytest.raises(Forbidden):
        service.set_story("b", "nope")
    assert creator_only_room.votes_revealed is False


def test_toggle_observer_broadcasts_counts(service, room):
    service.join("a", room.id, "Ann")
    service.join("b", room.id, "Bob")
    outcome = service.toggle_observer("b")
    event = outcome.events[0]
    assert event.name == "user-updated"
    assert event.payload["user"]["is_observer"] is True
    assert event.payload["participant_count"] == 1


def test_joining_another_room_leaves_the_first(service, registry, room):
    other = registry.create_room("Other")
    service.join("a", room.id, "Ann")
    service.join("b", room.id, "Bob")
    outcome = service.join("b", other.id, "Bob")
    assert [e.name for e in outcome.events] == ["user-left", "joined-room", "user-joined"]
    assert "b" not in room.members
    assert service.sessions.get("b").room_id == other.id
    assert outcome.closed == []


def test_missing_vote_value_is_rejected(service, room):
    service.join("a", room.id, "Ann")
    with pytest.raises(RoomError):
        service.cast_vote("a", None)


def test_unknown_participant_is_not_a_member(service):
    with pytest.raises(NotAMember):
        service.reveal_votes("ghost")
