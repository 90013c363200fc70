"""Real-time relay for order events.

Events are published to one channel per cafe (``private-cafe-{cafe_id}``) so a
browser session only ever receives its own tenant's orders. Publishing is
best-effort: a relay never raises into the caller, it logs and returns.
"""
import json
import logging

import redis

from cafeapp.config import Settings

logger = logging.getLogger(__name__)

ORDER_CREATED = "order-created"
ORDER_STATUS_UPDATED = "order-status-updated"


def channel_for(cafe_id: str) -> str:
    return f"private-cafe-{cafe_id}"


class NotificationRelay:
    def publish(self, channel: str, message: str) -> None:
        raise NotImplementedError

    def notify(self, cafe_id: str, event: str, payload: dict) -> None:
        channel = channel_for(cafe_id)
        try:
            message = json.dumps({"event": event, "data": payload}, default=str)
            self.publish(channel, message)
        except Exception:
            logger.warning("failed to publish %s on %s", event, channel, exc_info=True)


class NullRelay(NotificationRelay):
    """Used when no transport is configured."""

    def publish(self, channel: str, message: str) -> None:
        logger.debug("relay disabled, dropping message for %s", channel)


class RedisRelay(NotificationRelay):
    def __init__(self, client: redis.Redis):
        self.client = client

    def publish(self, channel: str, message: str) -> None:
        self.client.publish(channel, message)


def build_relay(settings: Settings) -> NotificationRelay:
    if not settings.REDIS_URL:
        logger.warning("REDIS_URL is not set; real-time order notifications are disabled")
        return NullRelay()
    # from_url does not connect; the first publish opens the connection
    client = redis.from_url(
        settings.REDIS_URL,
        socket_timeout=settings.NOTIFY_TIMEOUT_SEC,
        socket_connect_timeout=settings.NOTIFY_TIMEOUT_SEC,
    )
    return RedisRelay(client)
