from decimal import Decimal

from dropship.exceptions import RemoteError
from dropship.models.admin import AdminRole
from dropship.models.order import OrderStatus
from dropship.services import chat_service, payout_service
from dropship.utils.security import create_access_token


def _admin_headers(admin):
    return {"Authorization": f"Bearer {create_access_token({'sub': admin.id, 'adminId': admin.id})}"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_requests_without_token_are_unauthorised(client):
    assert client.get("/api/v1/postpaid").status_code == 401
    assert client.get("/admin/payouts").status_code == 401


def test_bad_token_is_unauthorised(client):
    response = client.get("/api/v1/wallet", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_postpaid_status(client, db, user, user_headers):
    user.postpaid_credit_limit = Decimal("200.00")
    user.postpaid_used = Decimal("50.00")
    db.commit()

    response = client.get("/api/v1/postpaid", headers=user_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["enabled"] is True
    assert data["available_credit"] == 150.0
    assert data["can_request_payout"] is False


def test_repay_over_dues_uses_error_envelope(client, db, user, user_headers):
    user.postpaid_used = Decimal("10.00")
    db.commit()

    response = client.post("/api/v1/postpaid/repay", json={"amount": 20}, headers=user_headers)

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "AMOUNT_EXCEEDS_DUES"
    assert body["error"]["details"] == "Amount exceeds outstanding postpaid dues"


def test_repay(client, db, user, user_headers):
    user.postpaid_used = Decimal("30.00")
    db.commit()

    response = client.post("/api/v1/postpaid/repay", json={"amount": 30}, headers=user_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["new_postpaid_used"] == 0.0
    assert data["new_wallet_balance"] == 70.0


def test_invalid_body_is_422(client, user_headers):
    response = client.post("/api/v1/postpaid/repay", json={"amount": -1}, headers=user_headers)

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_payout_request_blocked_by_dues(client, db, user, user_headers):
    user.postpaid_used = Decimal("40.00")
    db.commit()

    response = client.post(
        "/api/v1/payouts",
        json={"amount": 60, "payment_method": "bank_transfer", "payment_details": {"iban": "DE00"}},
        headers=user_headers,
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DUES_BLOCKED"


def test_payout_lifecycle(client, db, user, user_headers, admin, admin_headers):
    response = client.post(
        "/api/v1/payouts",
        json={"amount": 60, "payment_method": "bank_transfer"},
        headers={**user_headers, "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    assert response.status_code == 201
    payout = response.json()["data"]
    assert payout["status"] == "pending"
    assert payout["amount"] == 60.0

    response = client.get("/admin/payouts", headers=admin_headers)
    assert response.json()["data"]["pendingCount"] == 1
    assert response.json()["data"]["totalPending"] == 60.0

    response = client.put(
        f"/admin/payouts/{payout['id']}/status",
        json={"status": "approved", "previous_status": "pending"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "approved"

    # a second admin still looking at "pending"
    response = client.put(
        f"/admin/payouts/{payout['id']}/status",
        json={"status": "approved", "previous_status": "pending"},
        headers=admin_headers,
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "STALE_STATE"

    response = client.get("/api/v1/wallet", headers=user_headers)
    assert response.json()["data"]["balance"] == 40.0

    response = client.post(f"/api/v1/payouts/{payout['id']}/cancel", json={}, headers=user_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_TRANSITION"

    history = client.get(f"/admin/payouts/{payout['id']}/history", headers=admin_headers).json()["data"]["history"]
    assert [h["new_status"] for h in history] == ["approved"]


def test_support_agents_cannot_process_payouts(client, db, user, make_admin):
    agent = make_admin(role=AdminRole.SUPPORT)
    payout = payout_service.create(db, user.id, "60", "bank_transfer")

    response = client.put(
        f"/admin/payouts/{payout.id}/status",
        json={"status": "approved"},
        headers=_admin_headers(agent),
    )

    assert response.status_code == 403


def test_missing_payout_is_404(client, admin_headers):
    response = client.get("/admin/payouts/nope/history", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_admin_order_completion_credits_wallet(client, db, user, user_headers, admin_headers):
    response = client.post(
        "/admin/orders",
        json={
            "dropshipper_id": user.id,
            "product_name": "Desk Lamp",
            "customer_name": "Jane",
            "base_price": 20,
            "selling_price": 35,
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    order_id = response.json()["data"]["id"]

    response = client.put(f"/admin/orders/{order_id}/status", json={"status": "completed"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == OrderStatus.COMPLETED.value

    assert client.get("/api/v1/wallet", headers=user_headers).json()["data"]["balance"] == 115.0

    notifications = client.get("/api/v1/notifications", headers=user_headers).json()["data"]
    assert notifications["unreadCount"] == 1
    assert notifications["notifications"][0]["type"] == "order_completed"


def test_chat_round_trip(client, db, user, user_headers, admin, admin_headers, edge_client):
    response = client.post("/api/v1/chat/messages", json={"message": "Where is my order?"}, headers=user_headers)
    assert response.status_code == 201

    data = client.get("/api/v1/chat/messages", headers=user_headers).json()["data"]
    assert len(data["messages"]) == 2
    assert data["session"]["status"] == "waiting_for_support"
    assert data["unreadCount"] == 1

    edge_client.invoke.return_value = {"assigned_agent_id": admin.id}
    response = client.post(f"/admin/chat/{user.id}/assign", json={}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["assigned_agent_id"] == admin.id

    conversations = client.get("/admin/chat/conversations", headers=admin_headers).json()["data"]["conversations"]
    assert conversations[0]["user_id"] == user.id

    response = client.post(
        f"/admin/chat/{user.id}/end",
        json={"end_message": "Glad we could help", "close_reason": "resolved"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "closed"
    assert client.get("/api/v1/chat/messages", headers=user_headers).json()["data"]["closeReasonLabel"] == "Issue Resolved"

    response = client.post("/api/v1/chat/new-conversation", headers=user_headers)
    assert response.json()["data"]["status"] == "active"
    assert client.get("/api/v1/chat/messages", headers=user_headers).json()["data"]["messages"] == []


def test_assignment_failure_surfaces_as_remote_error(client, db, user, admin_headers, edge_client):
    chat_service.send_user_message(db, user.id, "Hello?")
    edge_client.invoke.side_effect = RemoteError("Agent is at capacity")

    response = client.post(f"/admin/chat/{user.id}/assign", json={}, headers=admin_headers)

    assert response.status_code == 502
    assert response.json()["error"]["details"] == "Agent is at capacity"


def test_chat_rating(client, user_headers):
    assert client.get("/api/v1/chat/rating", headers=user_headers).json()["data"]["hasRatedRecently"] is False

    response = client.post("/api/v1/chat/rating", json={"rating": 4, "feedback": "Quick"}, headers=user_headers)
    assert response.status_code == 201

    assert client.get("/api/v1/chat/rating", headers=user_headers).json()["data"]["hasRatedRecently"] is True


def test_admin_postpaid_controls(client, db, user, admin_headers):
    response = client.put(f"/admin/postpaid/{user.id}/credit-limit", json={"credit_limit": 250},
                          headers=admin_headers)
    assert response.status_code == 200

    response = client.post(
        f"/admin/postpaid/{user.id}/adjust",
        json={"amount": 30, "reason": "Manual invoice"},
        headers=admin_headers,
    )
    assert response.status_code == 200

    summary = client.get("/admin/postpaid/summary", headers=admin_headers).json()["data"]
    assert summary["enabled_users"] == 1
    assert summary["total_outstanding"] == 30.0


def test_disconnect_inside_grace_period_keeps_the_session(client, user_headers, clock):
    client.post("/api/v1/chat/messages", json={"message": "Hello?"}, headers=user_headers)

    data = client.post("/api/v1/chat/presence/left", headers=user_headers).json()["data"]

    assert data["presence"] == "reconnecting"
    assert data["graceRemaining"] == 30
    assert data["session"]["status"] == "waiting_for_support"

    clock.advance(10)
    data = client.post("/api/v1/chat/presence/restore", headers=user_headers).json()["data"]
    assert data["presence"] == "connected"
    assert data["session"]["status"] == "waiting_for_support"


def test_user_left_is_persisted_once_grace_runs_out(client, user_headers, clock):
    client.post("/api/v1/chat/messages", json={"message": "Hello?"}, headers=user_headers)
    client.post("/api/v1/chat/presence/left", headers=user_headers)

    clock.advance(31)
    data = client.get("/api/v1/chat/presence", headers=user_headers).json()["data"]

    assert data["presence"] == "left"
    assert data["graceRemaining"] == 0
    assert data["session"]["status"] == "user_left"

    data = client.post("/api/v1/chat/presence/restore", headers=user_headers).json()["data"]
    assert data["presence"] == "connected"
    assert data["session"]["status"] == "waiting_for_support"


def test_heartbeat_holds_off_the_inactivity_timeout(client, user_headers, clock):
    client.post("/api/v1/chat/messages", json={"message": "Hello?"}, headers=user_headers)

    clock.advance(25)
    client.post("/api/v1/chat/presence/heartbeat", headers=user_headers)
    clock.advance(25)
    data = client.get("/api/v1/chat/presence", headers=user_headers).json()["data"]

    assert data["presence"] == "connected"
    assert data["session"]["status"] == "waiting_for_support"
