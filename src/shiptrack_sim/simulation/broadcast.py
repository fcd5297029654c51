"""
In-process broadcast channel: one value fanned out to N listeners.

Publishing is fire-and-forget. A listener that raises is logged and skipped;
the publisher never sees the failure.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

SHIPMENTS_UPDATE = "shipments-update"
SHIPMENT_CREATED = "shipment-created"
CLIENT_COUNT = "client-count"

Listener = Callable[[str, Any], None]


class Subscription:
    def __init__(self, channel: "BroadcastChannel", listener: Listener) -> None:
        self._channel = channel
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._channel._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.unsubscribe()


class BroadcastChannel:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self, listener: Listener) -> Subscription:
        subscription = Subscription(self, listener)
        with self._lock:
            self._subscriptions.append(subscription)
            count = len(self._subscriptions)
        logger.info("Client connected. Total: %d", count)
        self.publish(CLIENT_COUNT, count)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
            count = len(self._subscriptions)
        logger.info("Client disconnected. Total: %d", count)
        self.publish(CLIENT_COUNT, count)

    def publish(self, topic: str, payload: Any) -> int:
        """Deliver to every current listener. Returns how many accepted it."""
        with self._lock:
            targets = list(self._subscriptions)

        delivered = 0
        for subscription in targets:
            try:
                subscription.listener(topic, payload)
            except Exception:
                logger.exception("Listener failed on %s; skipping", topic)
            else:
                delivered += 1
        return delivered
