"""
Query cache for the read endpoints.

Entries are keyed by ``CacheKey(resource_type, shop_id, params)``. Each
(shop, resource type) pair carries a generation counter that is part of
every key, so bumping it invalidates all entries of that type for the shop
at once. Entries never expire on their own; only writes make them stale.
"""

import logging
from collections import namedtuple

from django.core.cache import caches

logger = logging.getLogger(__name__)

ORDERS = 'orders'
TABLES = 'tables'
RESERVATIONS = 'reservations'
KITCHEN_TICKETS = 'kitchen_tickets'
PRODUCTS = 'products'
ANALYTICS = 'analytics'
SHOP = 'shop'

RESOURCE_TYPES = (ORDERS, TABLES, RESERVATIONS, KITCHEN_TICKETS, PRODUCTS, ANALYTICS, SHOP)

# Resource types dirtied by each event type
INVALIDATION_RULES = {
    'NEW_ORDER': (ORDERS, TABLES, KITCHEN_TICKETS, PRODUCTS, ANALYTICS),
    'ORDER_UPDATED': (ORDERS, KITCHEN_TICKETS, PRODUCTS, ANALYTICS),
    'PAYMENT_COMPLETED': (ORDERS, TABLES, ANALYTICS),
    'ORDER_CANCELLED': (ORDERS, TABLES, KITCHEN_TICKETS, PRODUCTS, ANALYTICS),
    'RESERVATION_CREATED': (RESERVATIONS,),
    'RESERVATION_UPDATED': (RESERVATIONS, TABLES),
    'TABLE_UPDATED': (TABLES,),
    'KITCHEN_TICKET_CREATED': (KITCHEN_TICKETS,),
    'KITCHEN_TICKET_UPDATED': (KITCHEN_TICKETS, ORDERS, PRODUCTS),
    'PREDICTION_UPDATE': (ANALYTICS,),
    'SHOP_UPDATED': RESOURCE_TYPES,
    'SHOP_DELETED': RESOURCE_TYPES,
}


class CacheKey(namedtuple('CacheKey', ['resource_type', 'shop_id', 'params'])):
    """Typed cache key; ``params`` is a tuple of (name, value) pairs."""

    __slots__ = ()

    @classmethod
    def build(cls, resource_type, shop_id, **params):
        if resource_type not in RESOURCE_TYPES:
            raise ValueError(f"Unknown resource type: {resource_type}")
        return cls(resource_type, shop_id, tuple(sorted(params.items())))


def resource_types_for(event_type):
    return INVALIDATION_RULES.get(event_type, ())


class QueryCache:

    def __init__(self, alias='default', prefix='shopfloor'):
        self.alias = alias
        self.prefix = prefix

    @property
    def cache(self):
        return caches[self.alias]

    def _generation_key(self, resource_type, shop_id):
        return f"{self.prefix}:gen:{shop_id}:{resource_type}"

    def generation(self, resource_type, shop_id):
        return self.cache.get_or_set(self._generation_key(resource_type, shop_id), 1, None)

    def storage_key(self, key: CacheKey):
        generation = self.generation(key.resource_type, key.shop_id)
        params = ','.join(f"{name}={value}" for name, value in key.params)
        return f"{self.prefix}:{key.shop_id}:{key.resource_type}:v{generation}:{params}"

    def get_or_fetch(self, key: CacheKey, fetch):
        storage_key = self.storage_key(key)
        value = self.cache.get(storage_key)
        if value is None:
            value = fetch()
            self.cache.set(storage_key, value, None)
        return value

    def invalidate(self, resource_type, shop_id):
        generation_key = self._generation_key(resource_type, shop_id)
        try:
            self.cache.incr(generation_key)
        except ValueError:
            # Nothing cached yet for this pair; start past the default generation
            self.cache.set(generation_key, 2, None)

    def invalidate_for_event(self, event):
        resource_types = resource_types_for(event.type)
        for resource_type in resource_types:
            self.invalidate(resource_type, event.shop_id)
        logger.debug("Invalidated %s for shop %s after %s",
                     ', '.join(resource_types), event.shop_id, event.type)
