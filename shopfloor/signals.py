"""
Shopfloor Module Signals

Domain signals are sent after the surrounding transaction commits. The
``relay_event`` receiver (connected in ``ShopfloorConfig.ready``) turns each
one into a realtime event: it invalidates the query cache for the shop and
fans the event out to connected clients.
"""

import logging

from django.apps import apps
from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# Signals this module emits. All provide: shop_id, payload
order_created = Signal()
order_updated = Signal()
payment_completed = Signal()
order_cancelled = Signal()
reservation_created = Signal()
reservation_updated = Signal()
table_updated = Signal()
kitchen_ticket_created = Signal()
kitchen_ticket_updated = Signal()
analytics_updated = Signal()
shop_updated = Signal()
shop_deleted = Signal()

EVENT_TYPES = {
    order_created: 'NEW_ORDER',
    order_updated: 'ORDER_UPDATED',
    payment_completed: 'PAYMENT_COMPLETED',
    order_cancelled: 'ORDER_CANCELLED',
    reservation_created: 'RESERVATION_CREATED',
    reservation_updated: 'RESERVATION_UPDATED',
    table_updated: 'TABLE_UPDATED',
    kitchen_ticket_created: 'KITCHEN_TICKET_CREATED',
    kitchen_ticket_updated: 'KITCHEN_TICKET_UPDATED',
    analytics_updated: 'PREDICTION_UPDATE',
    shop_updated: 'SHOP_UPDATED',
    shop_deleted: 'SHOP_DELETED',
}


def send_event(signal, sender, shop_id, **payload):
    """Send a domain signal now, isolating receiver failures."""
    results = signal.send_robust(sender=sender, shop_id=shop_id, payload=payload)
    for receiver, result in results:
        if isinstance(result, Exception):
            logger.error(
                "Receiver %r failed for %s (shop %s): %s",
                receiver, EVENT_TYPES.get(signal), shop_id, result,
            )


def emit_on_commit(signal, sender, shop_id, **payload):
    """Send a domain signal once the current transaction commits."""
    transaction.on_commit(lambda: send_event(signal, sender, shop_id, **payload))


def relay_event(sender, signal, shop_id, payload, **kwargs):
    from .realtime.broadcaster import Event

    event = Event(type=EVENT_TYPES[signal], shop_id=shop_id, payload=payload)
    config = apps.get_app_config('shopfloor')
    config.query_cache.invalidate_for_event(event)
    config.broadcaster.publish(event)
