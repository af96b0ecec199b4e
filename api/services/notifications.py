"""
Notification Service — Publish order-created events to the real-time server.

Events go through the Centrifugo HTTP API (`broadcast`) to the same channels
the web client subscribes to:
  - order:{user_id}             all order updates for a user
  - order:{user_id}:{order_id}  updates for a single order

Delivery is best effort. Callers bound the call with a timeout and treat
NotificationError as log-only.
"""

from __future__ import annotations
import logging
import uuid
from datetime import date, datetime
from typing import Any, Protocol

import httpx

from config import settings
from services.errors import NotificationError

logger = logging.getLogger(__name__)


class OrderCreatedNotifier(Protocol):
    async def publish_order_created(
        self,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
        pickup_date: date | None = None,
    ) -> None:
        ...


def user_channel(user_id: uuid.UUID) -> str:
    return f"order:{user_id}"


def order_channel(user_id: uuid.UUID, order_id: uuid.UUID) -> str:
    return f"order:{user_id}:{order_id}"


def build_order_created_message(
    order_id: uuid.UUID,
    pickup_date: date | None = None,
) -> dict[str, Any]:
    """Payload shape shared with manual order status updates."""
    when = pickup_date.strftime("%A, %b %d") if pickup_date else "soon"
    return {
        "type": "order_status_update",
        "order_id": str(order_id),
        "status": "pending",
        "message": f"Your recurring pickup is scheduled for {when}.",
        "timestamp": datetime.utcnow().isoformat(),
        "data": {
            "auto_scheduled": True,
            "pickup_date": pickup_date.isoformat() if pickup_date else None,
        },
    }


class RealtimeOrderNotifier:
    """Publishes through the real-time server's HTTP API."""

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        timeout: float = 3.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def publish_order_created(
        self,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
        pickup_date: date | None = None,
    ) -> None:
        payload = {
            "channels": [user_channel(user_id), order_channel(user_id, order_id)],
            "data": build_order_created_message(order_id, pickup_date),
        }
        headers = {"X-API-Key": self.api_key} if self.api_key else {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(f"{self.api_url}/api/broadcast", json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise NotificationError(f"Real-time publish failed for order {order_id}: {e}") from e

        if resp.status_code != 200:
            raise NotificationError(
                f"Real-time publish rejected for order {order_id}: "
                f"status={resp.status_code}, body={resp.text[:200]}"
            )

        try:
            body = resp.json() if resp.content else {}
        except ValueError as e:
            raise NotificationError(
                f"Real-time publish returned invalid JSON for order {order_id}: {resp.text[:200]}"
            ) from e
        if isinstance(body, dict) and body.get("error"):
            raise NotificationError(f"Real-time publish error for order {order_id}: {body['error']}")

        logger.info("Published order created: user=%s, order=%s", user_id, order_id)


class LogOnlyNotifier:
    """Used when no real-time server is configured."""

    async def publish_order_created(
        self,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
        pickup_date: date | None = None,
    ) -> None:
        logger.info(
            "Real-time server not configured — order created: user=%s, order=%s, pickup=%s",
            user_id, order_id, pickup_date,
        )


def build_notifier() -> OrderCreatedNotifier:
    """Notifier for the configured environment."""
    if settings.REALTIME_API_URL:
        return RealtimeOrderNotifier(
            settings.REALTIME_API_URL,
            api_key=settings.REALTIME_API_KEY,
            timeout=settings.NOTIFY_TIMEOUT_SECONDS,
        )
    return LogOnlyNotifier()
