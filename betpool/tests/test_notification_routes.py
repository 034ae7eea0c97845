"""
Unit tests for notification API routes.
Tests GET, PUT endpoints for notifications.
"""
import pytest
from betpool.database.models import NotificationType, UserStatus
from betpool.services import notification_service

MOCK_NOTIFICATION = {
    "id": 1,
    "user_id": 1,
    "type": NotificationType.BET_RESOLVED.value,
    "title": "Bet resolved",
    "message": '"Derby" was resolved. Winning option: Home',
    "data": {"bet_id": 7, "winning_option": "Home"},
    "is_read": False,
    "read_at": None,
    "link_url": "/bet/7",
    "created_at": "2024-01-01T00:00:00+00:00",
}


@pytest.fixture
def member(user_payload):
    return user_payload(1)


def test_get_notifications(api_client, member, monkeypatch):
    """Test getting user notifications."""
    client, headers = api_client(member)

    async def fake_get_user_notifications(session, user_id, limit=50, offset=0, unread_only=False):
        return {"notifications": [MOCK_NOTIFICATION], "total_count": 1, "has_more": False}

    monkeypatch.setattr(
        notification_service, "get_user_notifications", fake_get_user_notifications, raising=True
    )

    response = client.get("/api/notifications", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 1
    assert data["notifications"][0]["data"]["winning_option"] == "Home"


def test_get_notifications_with_params(api_client, member, monkeypatch):
    """Query parameters reach the service."""
    client, headers = api_client(member)
    seen = {}

    async def fake_get_user_notifications(session, user_id, limit=50, offset=0, unread_only=False):
        seen.update(user_id=user_id, limit=limit, offset=offset, unread_only=unread_only)
        return {"notifications": [], "total_count": 0, "has_more": False}

    monkeypatch.setattr(
        notification_service, "get_user_notifications", fake_get_user_notifications, raising=True
    )

    response = client.get("/api/notifications?limit=10&offset=5&unread_only=true", headers=headers)
    assert response.status_code == 200
    assert seen == {"user_id": 1, "limit": 10, "offset": 5, "unread_only": True}


def test_pending_account_can_read_notifications(api_client, user_payload, monkeypatch):
    """Account notifications (approval) must be readable before the account is active."""
    client, headers = api_client(user_payload(3, status=UserStatus.PENDING))

    async def fake_get_unread_count(session, user_id):
        return 1

    monkeypatch.setattr(notification_service, "get_unread_count", fake_get_unread_count, raising=True)

    response = client.get("/api/notifications/unread-count", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"count": 1}


@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/notifications"),
        ("get", "/api/notifications/unread-count"),
        ("put", "/api/notifications/1/read"),
        ("put", "/api/notifications/mark-all-read"),
    ],
)
def test_notifications_unauthorized(api_client, method, path):
    """Every notification endpoint requires a token."""
    client, _ = api_client(None)

    response = getattr(client, method)(path)
    assert response.status_code == 401


def test_mark_notification_as_read(api_client, member, monkeypatch):
    """Test marking a notification as read."""
    client, headers = api_client(member)

    async def fake_mark_as_read(session, notification_id, user_id):
        return {**MOCK_NOTIFICATION, "is_read": True, "read_at": "2024-01-02T00:00:00+00:00"}

    monkeypatch.setattr(notification_service, "mark_as_read", fake_mark_as_read, raising=True)

    response = client.put("/api/notifications/1/read", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == 1
    assert data["is_read"] is True
    assert data["read_at"] is not None


def test_mark_notification_as_read_not_found(api_client, member, monkeypatch):
    """Test marking a nonexistent (or someone else's) notification as read."""
    client, headers = api_client(member)

    async def fake_mark_as_read(session, notification_id, user_id):
        raise ValueError("Notification not found or access denied")

    monkeypatch.setattr(notification_service, "mark_as_read", fake_mark_as_read, raising=True)

    response = client.put("/api/notifications/999/read", headers=headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Notification not found or access denied"}


def test_mark_all_notifications_as_read(api_client, member, monkeypatch):
    """Test marking all notifications as read."""
    client, headers = api_client(member)

    async def fake_mark_all_as_read(session, user_id):
        return 3

    monkeypatch.setattr(notification_service, "mark_all_as_read", fake_mark_all_as_read, raising=True)

    response = client.put("/api/notifications/mark-all-read", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "count": 3}


def test_get_notifications_error_handling(api_client, member, monkeypatch):
    """Test error handling in get notifications endpoint."""
    client, headers = api_client(member)

    async def fake_get_user_notifications(session, user_id, limit=50, offset=0, unread_only=False):
        raise Exception("Database error")

    monkeypatch.setattr(
        notification_service, "get_user_notifications", fake_get_user_notifications, raising=True
    )

    response = client.get("/api/notifications", headers=headers)
    assert response.status_code == 500
    assert response.json() == {"error": "Error fetching notifications"}
