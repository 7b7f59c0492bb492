"""
Shop Service

Shop lifecycle, per-shop settings and the per-shop write lock.
"""

import logging
from typing import Any, Dict, Optional

from django.db import transaction

from ..exceptions import ConfirmationRequired, NotFoundError, ValidationError
from ..models import Shop, ShopSettings
from ..signals import emit_on_commit, shop_deleted, shop_updated

logger = logging.getLogger(__name__)


def lock_shop(shop_id) -> Shop:
    """
    Lock the shop row for the rest of the current transaction.

    Every mutating operation on a shop's tables, orders and reservations
    takes this lock first, so writes to one shop are serialized.
    """
    try:
        return Shop.objects.select_for_update().get(pk=shop_id)
    except Shop.DoesNotExist:
        raise NotFoundError('Shop not found')


def get_shop(shop_id) -> Shop:
    try:
        return Shop.objects.get(pk=shop_id)
    except Shop.DoesNotExist:
        raise NotFoundError('Shop not found')


def require_restaurant(shop: Shop, feature='This feature'):
    if not shop.is_restaurant:
        raise ValidationError(f"{feature} is only available in restaurant mode")


class ShopService:

    SETTINGS_FIELDS = ('stock_policy', 'release_table_to', 'currency')

    @staticmethod
    @transaction.atomic
    def create_shop(name: str, business_mode: str = Shop.MODE_SHOP,
                    owner_id: Optional[int] = None) -> Shop:
        name = (name or '').strip()
        if not name:
            raise ValidationError('Shop name is required', errors={'name': ['This field is required.']})
        if business_mode not in dict(Shop.MODE_CHOICES):
            raise ValidationError(f"Invalid business mode: {business_mode}")

        shop = Shop.objects.create(name=name, business_mode=business_mode, owner_id=owner_id)
        ShopSettings.get_settings(shop)

        emit_on_commit(shop_updated, Shop, shop.pk, name=shop.name,
                       business_mode=shop.business_mode)
        logger.info("Created shop %s (%s) for user %s", shop.pk, shop.business_mode, owner_id)
        return shop

    @staticmethod
    @transaction.atomic
    def update_shop(shop_id, name: Optional[str] = None,
                    business_mode: Optional[str] = None) -> Shop:
        shop = lock_shop(shop_id)
        update_fields = []
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError('Shop name is required', errors={'name': ['This field is required.']})
            shop.name = name
            update_fields.append('name')
        if business_mode is not None:
            if business_mode not in dict(Shop.MODE_CHOICES):
                raise ValidationError(f"Invalid business mode: {business_mode}")
            shop.business_mode = business_mode
            update_fields.append('business_mode')

        if update_fields:
            shop.save(update_fields=update_fields + ['updated_at'])
            emit_on_commit(shop_updated, Shop, shop.pk, name=shop.name,
                           business_mode=shop.business_mode)
        return shop

    @staticmethod
    @transaction.atomic
    def update_settings(shop_id, **values) -> ShopSettings:
        shop = lock_shop(shop_id)
        config = ShopSettings.get_settings(shop)

        unknown = set(values) - set(ShopService.SETTINGS_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        if 'stock_policy' in values and values['stock_policy'] not in dict(ShopSettings.STOCK_POLICY_CHOICES):
            raise ValidationError(f"Invalid stock policy: {values['stock_policy']}")
        if 'release_table_to' in values and values['release_table_to'] not in dict(ShopSettings.RELEASE_CHOICES):
            raise ValidationError(f"Invalid table release status: {values['release_table_to']}")

        for name, value in values.items():
            setattr(config, name, value)
        config.save()

        emit_on_commit(shop_updated, ShopSettings, shop.pk, settings=values)
        return config

    @staticmethod
    @transaction.atomic
    def delete_shop(shop_id, confirmation_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Delete a shop.

        An empty shop is deleted right away. A shop with data is only
        deleted when ``confirmation_name`` matches its name exactly;
        without it ``ConfirmationRequired`` tells the caller to ask.

        Returns:
            Dict with ``cascade_delete`` and the deleted ``shop_id``
        """
        shop = lock_shop(shop_id)
        cascade = shop.has_data()

        if cascade:
            if not confirmation_name:
                raise ConfirmationRequired(
                    'This shop has data. Confirm by typing the shop name.',
                    requires_confirmation=True,
                    shop_name=shop.name,
                )
            if confirmation_name != shop.name:
                raise ValidationError('Shop name confirmation does not match')
            # Orders first: their items protect products from deletion
            shop.orders.all().delete()

        pk = shop.pk
        shop.delete()

        emit_on_commit(shop_deleted, Shop, pk, cascade_delete=cascade)
        logger.info("Deleted shop %s (cascade=%s)", pk, cascade)
        return {'shop_id': pk, 'cascade_delete': cascade}
