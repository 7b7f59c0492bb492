"""
Event Broadcaster

Per-shop fan-out of committed state changes to connected clients.
Delivery is at-most-once: every subscription owns a bounded queue, a full
queue or a dead event loop drops the event (clients also poll, so a missed
event only delays a refresh). Publishing never blocks the writer.
"""

import asyncio
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    type: str
    shop_id: int
    payload: Dict[str, Any] = field(default_factory=dict)

    def as_message(self):
        return {'type': self.type, 'shop_id': self.shop_id, 'payload': self.payload}


class Subscription:
    """One client's channel for a single shop."""

    def __init__(self, broadcaster, shop_id, user_id=None, loop=None, maxsize=100):
        self.broadcaster = broadcaster
        self.shop_id = shop_id
        self.user_id = user_id
        self.loop = loop
        self.queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def __repr__(self):
        return f"<Subscription shop={self.shop_id} user={self.user_id}>"

    def deliver(self, event):
        if self.closed:
            return False
        if self.loop is None:
            return self._put(event)
        try:
            self.loop.call_soon_threadsafe(self._put, event)
        except RuntimeError:
            # Event loop is gone: the connection died without unsubscribing
            logger.warning("Dropping %s for %r: event loop closed", event.type, self)
            self.broadcaster.unsubscribe(self)
            return False
        return True

    def _put(self, event):
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Dropping %s for slow client %r", event.type, self)
            return False
        return True

    async def get(self):
        return await self.queue.get()

    def close(self):
        self.broadcaster.unsubscribe(self)


class Broadcaster:
    """Single-writer fan-out keyed by shop."""

    def __init__(self, queue_size=100):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscriptions = defaultdict(set)

    def subscribe(self, shop_id, user_id=None, loop=None) -> Subscription:
        subscription = Subscription(
            self, shop_id, user_id=user_id, loop=loop, maxsize=self.queue_size,
        )
        with self._lock:
            self._subscriptions[shop_id].add(subscription)
        logger.info("Client %s subscribed to shop %s", user_id, shop_id)
        return subscription

    def unsubscribe(self, subscription):
        with self._lock:
            subscribers = self._subscriptions.get(subscription.shop_id)
            if subscribers is None:
                return
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscriptions[subscription.shop_id]
        subscription.closed = True

    def shop_ids(self):
        """Shops with at least one subscriber."""
        with self._lock:
            return sorted(self._subscriptions)

    def subscriber_count(self, shop_id: Optional[int] = None):
        with self._lock:
            if shop_id is not None:
                return len(self._subscriptions.get(shop_id, ()))
            return sum(len(s) for s in self._subscriptions.values())

    def publish(self, event: Event) -> int:
        """Fan ``event`` out to the shop's subscribers; returns deliveries queued."""
        with self._lock:
            subscribers = list(self._subscriptions.get(event.shop_id, ()))
        delivered = 0
        for subscription in subscribers:
            try:
                if subscription.deliver(event):
                    delivered += 1
            except Exception:
                logger.exception("Broadcast of %s to %r failed", event.type, subscription)
        logger.debug("Published %s to %d/%d clients of shop %s",
                     event.type, delivered, len(subscribers), event.shop_id)
        return delivered
