"""
Order Service

Handles the order lifecycle: open -> completed, or open -> cancelled.
Every transition runs in one transaction under the shop lock, and status
changes are written with compare-and-swap updates so a double submit is
rejected rather than applied twice.
"""

import logging
from typing import Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from ..exceptions import NotFoundError, OrderAlreadyCompleted, StateError, ValidationError
from ..models import Order, OrderItem, Product, ShopSettings
from ..signals import (
    emit_on_commit, order_cancelled, order_created, order_updated, payment_completed,
)
from .kitchen_service import KitchenService, deduct_stock, held_stock, restore_stock
from .shop_service import lock_shop
from .table_service import get_table, occupy, release

logger = logging.getLogger(__name__)


def order_payload(order):
    return {
        'order_id': order.pk,
        'table_id': order.table_id,
        'status': order.status,
        'total': str(order.total),
    }


class OrderService:
    """Service for managing orders."""

    @staticmethod
    def _resolve_items(shop, items: List[Dict]):
        """
        Validate item dicts (``product_id``, ``quantity``) against the shop's
        catalog and current stock, less units held by deferred kitchen lines.

        Returns:
            List of (product, quantity) tuples in request order
        """
        if not items:
            raise ValidationError('Order must contain at least one item')

        lines = []
        errors = {}
        for index, item_data in enumerate(items):
            try:
                product_id = int(item_data.get('product_id'))
            except (TypeError, ValueError):
                errors[f'items.{index}.product_id'] = ['A valid product is required.']
                continue
            try:
                quantity = int(item_data.get('quantity', 1))
            except (TypeError, ValueError):
                quantity = 0
            if quantity < 1:
                errors[f'items.{index}.quantity'] = ['Quantity must be at least 1.']
                continue
            lines.append((product_id, quantity))
        if errors:
            raise ValidationError('Invalid order items', errors=errors)

        products = Product.objects.in_bulk([product_id for product_id, _ in lines])
        requested = {}
        resolved = []
        for product_id, quantity in lines:
            product = products.get(product_id)
            if product is None or product.shop_id != shop.pk:
                raise ValidationError(f"Product {product_id} not found in this shop")
            requested[product.pk] = requested.get(product.pk, 0) + quantity
            resolved.append((product, quantity))

        held = held_stock(list(requested))
        for product_id, quantity in requested.items():
            product = products[product_id]
            available = product.stock - held.get(product_id, 0)
            if available < quantity:
                raise ValidationError(
                    f"Insufficient stock for {product.name}",
                    errors={'stock': [f"{product.name}: {max(available, 0)} available, {quantity} requested"]},
                )
        return resolved

    @staticmethod
    def _add_lines(shop, order, lines):
        """Create order lines with price snapshots and take stock per the shop policy."""
        settings = ShopSettings.get_settings(shop)
        defer_kitchen = (
            shop.is_restaurant
            and settings.stock_policy == ShopSettings.STOCK_ON_TICKET_READY
        )
        for product, quantity in lines:
            item = OrderItem.objects.create(
                order=order,
                product=product,
                product_name=product.name,
                price=product.price,
                quantity=quantity,
            )
            if not (defer_kitchen and product.requires_kitchen):
                deduct_stock(item)

        KitchenService.sync_ticket(shop, order)

        order.total = order.calculate_total()
        order.save(update_fields=['total', 'updated_at'])

    @staticmethod
    def _get_order(order_id, shop_id=None):
        """Lock the order's shop and return the order."""
        if shop_id is None:
            shop_id = Order.objects.filter(pk=order_id).values_list('shop_id', flat=True).first()
            if shop_id is None:
                raise NotFoundError('Order not found')
        shop = lock_shop(shop_id)
        try:
            order = Order.objects.select_related('table').get(pk=order_id, shop=shop)
        except Order.DoesNotExist:
            raise NotFoundError('Order not found')
        return shop, order

    @staticmethod
    @transaction.atomic
    def create_order(
        shop_id,
        items: List[Dict],
        table_id: Optional[int] = None,
        user_id: Optional[int] = None,
        guest_count: int = 1,
        notes: str = '',
    ) -> Order:
        """
        Create an open order with items.

        Args:
            shop_id: Shop the order belongs to
            items: List of dicts with product_id and quantity
            table_id: Table ID (restaurant mode only)
            user_id: Server or cashier
            guest_count: Number of guests
            notes: Order notes

        Returns:
            Created Order instance
        """
        shop = lock_shop(shop_id)
        lines = OrderService._resolve_items(shop, items)

        table = None
        if table_id is not None:
            if not shop.is_restaurant:
                raise ValidationError('Table orders are only available in restaurant mode')
            table = get_table(shop, table_id)
            occupy(table)

        order = Order.objects.create(
            shop=shop,
            table=table,
            user_id=user_id,
            guest_count=max(1, int(guest_count or 1)),
            notes=notes or '',
        )
        OrderService._add_lines(shop, order, lines)

        emit_on_commit(order_created, Order, shop.pk, item_count=len(lines), **order_payload(order))
        logger.info("Created order %s for shop %s (table=%s, total=%s)",
                    order.pk, shop.pk, table_id, order.total)
        return order

    @staticmethod
    @transaction.atomic
    def add_items_to_order(order_id, items: List[Dict], shop_id: Optional[int] = None) -> Order:
        """Add items to an open order; kitchen lines join the order's ticket."""
        shop, order = OrderService._get_order(order_id, shop_id)
        if order.status != Order.STATUS_OPEN:
            raise StateError(f"Cannot add items to a {order.status} order")

        lines = OrderService._resolve_items(shop, items)
        OrderService._add_lines(shop, order, lines)

        emit_on_commit(order_updated, Order, shop.pk, item_count=order.item_count, **order_payload(order))
        logger.info("Added %d items to order %s", len(lines), order.pk)
        return order

    @staticmethod
    @transaction.atomic
    def complete_payment(order_id, shop_id, method: str) -> Order:
        """
        Complete payment of an open order and release its table.

        The order status change and the table release commit together.
        Completing twice raises OrderAlreadyCompleted and changes nothing.
        """
        if method not in dict(Order.PAYMENT_METHOD_CHOICES):
            raise ValidationError(f"Invalid payment method: {method}")

        shop, order = OrderService._get_order(order_id, shop_id)
        if order.status == Order.STATUS_COMPLETED:
            raise OrderAlreadyCompleted(f"Order #{order.pk} is already completed")
        if order.status != Order.STATUS_OPEN:
            raise StateError(f"Cannot complete a {order.status} order")

        now = timezone.now()
        updated = Order.objects.filter(pk=order.pk, status=Order.STATUS_OPEN).update(
            status=Order.STATUS_COMPLETED,
            payment_method=method,
            completed_at=now,
            updated_at=now,
        )
        if not updated:
            raise OrderAlreadyCompleted(f"Order #{order.pk} is already completed")
        order.refresh_from_db()

        released = False
        if order.table_id:
            table = get_table(shop, order.table_id)
            settings = ShopSettings.get_settings(shop)
            released = release(table, to_status=settings.release_table_to)

        emit_on_commit(payment_completed, Order, shop.pk, payment_method=method,
                       table_released=released, **order_payload(order))
        logger.info("Completed payment of order %s (%s %s)", order.pk, order.total, method)
        return order

    @staticmethod
    @transaction.atomic
    def cancel_order(order_id, shop_id: Optional[int] = None, reason: str = '') -> Order:
        """Cancel an open order, restore taken stock and free its table."""
        shop, order = OrderService._get_order(order_id, shop_id)
        if order.status != Order.STATUS_OPEN:
            raise StateError(f"Cannot cancel a {order.status} order")

        notes = order.notes
        if reason:
            notes = f"{notes}\nCancelled: {reason}".strip()
        now = timezone.now()
        updated = Order.objects.filter(pk=order.pk, status=Order.STATUS_OPEN).update(
            status=Order.STATUS_CANCELLED, notes=notes, updated_at=now,
        )
        if not updated:
            raise StateError(f"Order #{order.pk} changed status concurrently")
        order.refresh_from_db()

        for item in order.items.filter(stock_deducted=True):
            restore_stock(item)

        if order.table_id:
            release(get_table(shop, order.table_id), keep_if_seated=True)

        emit_on_commit(order_cancelled, Order, shop.pk, reason=reason, **order_payload(order))
        logger.info("Cancelled order %s of shop %s", order.pk, shop.pk)
        return order

    @staticmethod
    def get_order(order_id, shop_id) -> Order:
        try:
            return (
                Order.objects.select_related('table', 'kitchen_ticket')
                .prefetch_related('items')
                .get(pk=order_id, shop_id=shop_id)
            )
        except Order.DoesNotExist:
            raise NotFoundError('Order not found')

    @staticmethod
    def list_orders(shop_id, status: Optional[str] = None) -> List[Order]:
        qs = Order.objects.filter(shop_id=shop_id).select_related('table').prefetch_related('items')
        if status:
            qs = qs.filter(status=status)
        return list(qs.order_by('-created_at'))

