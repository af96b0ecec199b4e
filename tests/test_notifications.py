"""Tests for the order-created publisher."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import json
import logging
import uuid
from datetime import date

import httpx
import pytest

from services import notifications
from services.errors import NotificationError
from services.notifications import (
    LogOnlyNotifier, RealtimeOrderNotifier, build_notifier, build_order_created_message,
)

USER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
ORDER_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")


@pytest.mark.asyncio
async def test_publishes_to_user_and_order_channels():
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={})

    notifier = RealtimeOrderNotifier(
        "http://realtime:8000/", api_key="secret", transport=httpx.MockTransport(handler),
    )
    await notifier.publish_order_created(USER_ID, ORDER_ID, date(2026, 10, 16))

    assert len(captured) == 1
    request = captured[0]
    assert str(request.url) == "http://realtime:8000/api/broadcast"
    assert request.headers["X-API-Key"] == "secret"
    body = json.loads(request.content)
    assert body["channels"] == [f"order:{USER_ID}", f"order:{USER_ID}:{ORDER_ID}"]
    assert body["data"]["order_id"] == str(ORDER_ID)
    assert body["data"]["status"] == "pending"
    assert body["data"]["data"]["pickup_date"] == "2026-10-16"


@pytest.mark.asyncio
async def test_rejected_publish_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable"))
    notifier = RealtimeOrderNotifier("http://realtime:8000", transport=transport)

    with pytest.raises(NotificationError):
        await notifier.publish_order_created(USER_ID, ORDER_ID)


@pytest.mark.asyncio
async def test_error_body_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"error": {"code": 102}}))
    notifier = RealtimeOrderNotifier("http://realtime:8000", transport=transport)

    with pytest.raises(NotificationError):
        await notifier.publish_order_created(USER_ID, ORDER_ID)


@pytest.mark.asyncio
async def test_non_json_body_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>proxy page</html>"))
    notifier = RealtimeOrderNotifier("http://realtime:8000", transport=transport)

    with pytest.raises(NotificationError):
        await notifier.publish_order_created(USER_ID, ORDER_ID)


@pytest.mark.asyncio
async def test_connection_failure_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    notifier = RealtimeOrderNotifier("http://realtime:8000", transport=httpx.MockTransport(handler))

    with pytest.raises(NotificationError):
        await notifier.publish_order_created(USER_ID, ORDER_ID)


@pytest.mark.asyncio
async def test_log_only_notifier(caplog):
    with caplog.at_level(logging.INFO):
        await LogOnlyNotifier().publish_order_created(USER_ID, ORDER_ID, date(2026, 10, 16))
    assert str(ORDER_ID) in caplog.text


def test_message_without_pickup_date():
    message = build_order_created_message(ORDER_ID)
    assert message["data"]["pickup_date"] is None
    assert message["data"]["auto_scheduled"] is True


def test_build_notifier_follows_settings(monkeypatch):
    monkeypatch.setattr(notifications.settings, "REALTIME_API_URL", "")
    assert isinstance(build_notifier(), LogOnlyNotifier)

    monkeypatch.setattr(notifications.settings, "REALTIME_API_URL", "http://realtime:8000")
    monkeypatch.setattr(notifications.settings, "REALTIME_API_KEY", "k")
    notifier = build_notifier()
    assert isinstance(notifier, RealtimeOrderNotifier)
    assert notifier.api_key == "k"
