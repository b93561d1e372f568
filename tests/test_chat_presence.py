from datetime import datetime

from dropship.models.chat import ChatStatus
from dropship.services import chat_service
from dropship.services.chat_presence import (
    CONNECTED, LEFT, RECONNECTING, ChatPresenceTracker, PresenceRegistry, mark_user_left, restore_session,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _tracker():
    return ChatPresenceTracker(inactivity_timeout=30, grace_period=30, clock=lambda: 0.0)


def test_inactivity_leads_to_reconnecting_then_left():
    tracker = _tracker()
    tracker.record_activity(now=0)

    assert tracker.state(now=29) == CONNECTED
    assert tracker.state(now=30) == RECONNECTING
    assert tracker.grace_remaining(now=45) == 15
    assert tracker.state(now=60) == LEFT


def test_disconnect_starts_grace_immediately():
    tracker = _tracker()
    tracker.record_activity(now=0)
    tracker.disconnect(now=5)

    assert tracker.state(now=5) == RECONNECTING
    assert tracker.state(now=35) == LEFT


def test_reconnect_inside_grace_restores_connection():
    tracker = _tracker()
    tracker.disconnect(now=5)
    tracker.reconnect(now=20)

    assert tracker.state(now=21) == CONNECTED
    assert tracker.grace_remaining(now=21) == 0


def test_mark_left_and_restore_waiting(db, user):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)

    session = mark_user_left(db, user.id, now=NOW)
    assert session.status == ChatStatus.USER_LEFT
    assert session.user_left_at == NOW

    session = restore_session(db, user.id, now=NOW)
    assert session.status == ChatStatus.WAITING_FOR_SUPPORT
    assert session.user_left_at is None


def test_restore_assigned_session_goes_active(db, user, admin, edge_client):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)
    edge_client.invoke.return_value = {"assigned_agent_id": admin.id}
    chat_service.assign_to_agent(db, edge_client, user.id, admin, "token")
    mark_user_left(db, user.id, now=NOW)

    session = restore_session(db, user.id, now=NOW)

    assert session.status == ChatStatus.ACTIVE
    assert session.assigned_agent_id == admin.id


def test_closed_sessions_are_left_alone(db, user, admin):
    chat_service.end_chat(db, user.id, "Bye", "resolved", admin, now=NOW)

    assert mark_user_left(db, user.id, now=NOW).status == ChatStatus.CLOSED
    assert restore_session(db, user.id, now=NOW).status == ChatStatus.CLOSED


def test_missing_session_is_a_no_op(db, user):
    assert mark_user_left(db, user.id) is None
    assert restore_session(db, user.id) is None


def test_user_message_brings_a_left_user_back(db, user):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)
    mark_user_left(db, user.id, now=NOW)

    chat_service.send_user_message(db, user.id, "Back again", now=NOW)

    assert chat_service.get_session(db, user.id).status == ChatStatus.WAITING_FOR_SUPPORT


def test_registry_keeps_one_tracker_per_user():
    registry = PresenceRegistry(inactivity_timeout=30, grace_period=30, clock=lambda: 0.0)

    assert registry.tracker("a") is registry.tracker("a")
    assert registry.tracker("a") is not registry.tracker("b")


def test_registry_persists_left_only_after_grace(db, user):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)
    clock = {"now": 0.0}
    registry = PresenceRegistry(inactivity_timeout=30, grace_period=30, clock=lambda: clock["now"])
    registry.activity(user.id)

    assert registry.disconnect(db, user.id)["presence"] == RECONNECTING
    assert chat_service.get_session(db, user.id).status == ChatStatus.WAITING_FOR_SUPPORT

    clock["now"] = 29
    assert registry.sync(db, user.id) == {"presence": RECONNECTING, "graceRemaining": 1}
    assert chat_service.get_session(db, user.id).status == ChatStatus.WAITING_FOR_SUPPORT

    clock["now"] = 30
    assert registry.sync(db, user.id)["presence"] == LEFT
    assert chat_service.get_session(db, user.id).status == ChatStatus.USER_LEFT
