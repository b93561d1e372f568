from datetime import datetime, timedelta

import pytest

from dropship.exceptions import NotFoundError, RemoteError, ValidationError
from dropship.models.chat import (
    ChatCustomerName, ChatMessage, ChatReassignmentLog, ChatStatus, SenderRole, SupportAgentPresence,
)
from dropship.models.notification import Notification, NotificationOutbox
from dropship.services import chat_service

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _emails(db, type_):
    return [e for e in db.query(NotificationOutbox).all() if e.payload["type"] == type_]


def test_first_message_gets_one_welcome_and_one_admin_email(db, user):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)

    messages = chat_service.visible_messages(db, user.id)
    assert [m.sender_role for m in messages] == [SenderRole.USER, SenderRole.ADMIN]
    assert messages[1].message == chat_service.welcome_message(db)
    [email] = _emails(db, "new_chat_message")
    assert email.payload["isFirstMessage"] is True
    session = chat_service.get_session(db, user.id)
    assert session.status == ChatStatus.WAITING_FOR_SUPPORT
    assert session.assigned_agent_id is None


def test_later_messages_get_no_welcome(db, user):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)
    chat_service.send_user_message(db, user.id, "Anyone?", now=NOW + timedelta(minutes=1))

    admin_messages = db.query(ChatMessage).filter(ChatMessage.sender_role == SenderRole.ADMIN).count()
    assert admin_messages == 1
    emails = _emails(db, "new_chat_message")
    assert [e.payload["isFirstMessage"] for e in emails].count(True) == 1


def test_empty_message_is_rejected(db, user):
    with pytest.raises(ValidationError):
        chat_service.send_user_message(db, user.id, "   ")


def test_admin_reply_does_not_assign(db, user, admin):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)

    chat_service.send_admin_message(db, user.id, "Hi there", admin, now=NOW + timedelta(minutes=1))

    session = chat_service.get_session(db, user.id)
    assert session.assigned_agent_id is None
    assert len(_emails(db, "admin_chat_message")) == 1


def test_unread_counts_only_the_counterpart(db, user, admin):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)
    chat_service.send_admin_message(db, user.id, "Hi", admin, now=NOW + timedelta(minutes=1))

    assert chat_service.unread_count(db, user.id, "user") == 2
    assert chat_service.unread_count(db, user.id, "admin") == 1

    assert chat_service.mark_as_read(db, user.id, "user") == 2
    assert chat_service.unread_count(db, user.id, "user") == 0
    assert chat_service.unread_count(db, user.id, "admin") == 1


def test_end_chat_then_new_conversation(db, user, admin, edge_client):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)
    edge_client.invoke.return_value = {"assigned_agent_id": admin.id}
    chat_service.assign_to_agent(db, edge_client, user.id, admin, "token")
    chat_service.set_customer_name(db, user.id, "Jane from Store")

    session = chat_service.end_chat(db, user.id, "Thanks for reaching out!", "resolved", admin,
                                    now=NOW + timedelta(minutes=5))
    assert session.status == ChatStatus.CLOSED
    assert session.previous_agent_id == admin.id
    assert session.close_reason == "resolved"
    assert db.query(ChatCustomerName).count() == 0
    assert db.query(Notification).filter(Notification.type == "chat_ended").count() == 1
    assert db.query(ChatReassignmentLog).filter(ChatReassignmentLog.action == "chat_ended").count() == 1
    presence = db.query(SupportAgentPresence).filter(SupportAgentPresence.admin_id == admin.id).one()
    assert presence.active_chat_count == 0

    cleared_at = NOW + timedelta(minutes=10)
    session = chat_service.start_new_conversation(db, user.id, now=cleared_at)

    assert session.status == ChatStatus.ACTIVE
    assert session.assigned_agent_id is None
    assert chat_service.visible_messages(db, user.id) == []
    assert len(chat_service.thread(db, user.id)) == 3


def test_end_chat_without_session_creates_a_closed_one(db, user, admin):
    session = chat_service.end_chat(db, user.id, "Closing", "spam", admin, now=NOW)

    assert session.status == ChatStatus.CLOSED
    assert session.user_messages_cleared_at == NOW


def test_assign_mirrors_remote_answer(db, user, make_admin, admin, edge_client):
    agent = make_admin(name="Agent")
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)
    edge_client.invoke.return_value = {"assigned_agent_id": agent.id}

    session = chat_service.assign_to_agent(db, edge_client, user.id, admin, "token", target_agent_id=agent.id)

    assert session.assigned_agent_id == agent.id
    assert session.status == ChatStatus.ACTIVE
    assert session.reassignment_count == 1
    name, body = edge_client.invoke.call_args[0]
    assert name == "chat-reassignment"
    assert body["action"] == "manual_assign"
    assert body["trigger_reason"] == "admin_manual_assignment"
    assert edge_client.invoke.call_args[1]["access_token"] == "token"


def test_failed_assignment_writes_nothing(db, user, admin, edge_client):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)
    edge_client.invoke.side_effect = RemoteError("No agents available")

    with pytest.raises(RemoteError):
        chat_service.assign_to_agent(db, edge_client, user.id, admin, "token")

    session = chat_service.get_session(db, user.id)
    assert session.assigned_agent_id is None
    assert db.query(ChatReassignmentLog).count() == 0


def test_unassign_returns_chat_to_waiting(db, user, admin, edge_client):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)
    edge_client.invoke.return_value = {"assigned_agent_id": admin.id}
    chat_service.assign_to_agent(db, edge_client, user.id, admin, "token")
    edge_client.invoke.return_value = {}

    session = chat_service.unassign(db, edge_client, user.id, admin, "token")

    assert session.assigned_agent_id is None
    assert session.previous_agent_id == admin.id
    assert session.status == ChatStatus.WAITING_FOR_SUPPORT


def test_unassign_without_session(db, user, admin, edge_client):
    with pytest.raises(NotFoundError):
        chat_service.unassign(db, edge_client, user.id, admin, "token")
    edge_client.invoke.assert_not_called()


def test_conversations_summarise_each_user(db, make_user, admin):
    first = make_user(name="First")
    second = make_user(name="Second")
    chat_service.send_user_message(db, first.id, "Order missing", now=NOW)
    chat_service.send_user_message(db, second.id, "Refund?", now=NOW + timedelta(minutes=1))

    rows = chat_service.conversations(db)

    assert [r["user_name"] for r in rows] == ["Second", "First"]
    assert rows[0]["unread_count"] == 1
    assert rows[0]["status"] == "waiting_for_support"


def test_rating_window(db, user):
    with pytest.raises(ValidationError):
        chat_service.submit_rating(db, user.id, 6)

    rating = chat_service.submit_rating(db, user.id, 5, "Great help")

    assert chat_service.has_rated_recently(db, user.id, now=rating.created_at + timedelta(hours=1))
    assert not chat_service.has_rated_recently(db, user.id, now=rating.created_at + timedelta(hours=25))


def test_close_reason_labels():
    assert chat_service.close_reason_label("resolved") == "Issue Resolved"
    assert chat_service.close_reason_label(None) == "Closed by Support"


def test_customer_sees_their_own_close_reason_wording():
    assert chat_service.user_close_reason_label("no_response") == "No Response"
    assert chat_service.user_close_reason_label("spam") == "Marked as Spam"
    assert chat_service.user_close_reason_label("other") == "Closed by Support"
    assert chat_service.close_reason_label("other") == "Other"


def test_chat_ended_notification_uses_customer_wording(db, user, admin):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)

    chat_service.end_chat(db, user.id, "Closing", "transferred", admin, now=NOW)

    notification = db.query(Notification).filter(Notification.type == "chat_ended").one()
    assert notification.message == "Your support chat was closed (Transferred)."


def test_ending_an_unassigned_chat_clears_the_previous_agent(db, user, admin, edge_client):
    chat_service.send_user_message(db, user.id, "Hello?", now=NOW)
    edge_client.invoke.return_value = {"assigned_agent_id": admin.id}
    chat_service.assign_to_agent(db, edge_client, user.id, admin, "token")
    chat_service.end_chat(db, user.id, "Bye", "resolved", admin, now=NOW + timedelta(minutes=1))
    chat_service.start_new_conversation(db, user.id, now=NOW + timedelta(minutes=2))

    session = chat_service.end_chat(db, user.id, "Bye again", "no_response", admin,
                                    now=NOW + timedelta(minutes=3))

    assert session.previous_agent_id is None
