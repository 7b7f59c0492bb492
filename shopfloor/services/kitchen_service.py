"""
Kitchen Service

One kitchen ticket per order holding the order's kitchen-prepared lines.
Tickets only move forward: pending -> preparing -> ready -> served.
"""

import logging
from typing import List, Optional

from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from ..exceptions import NotFoundError, StateError, ValidationError
from ..models import KitchenTicket, Order, OrderItem, Product, ShopSettings
from ..signals import emit_on_commit, kitchen_ticket_created, kitchen_ticket_updated
from .shop_service import lock_shop

logger = logging.getLogger(__name__)

# Statuses at which deferred kitchen stock is taken
STOCK_TAKEN_STATUSES = (KitchenTicket.STATUS_READY, KitchenTicket.STATUS_SERVED)


def ticket_payload(ticket):
    return {
        'ticket_id': ticket.pk,
        'ticket_number': ticket.ticket_number,
        'order_id': ticket.order_id,
        'status': ticket.status,
    }


def deduct_stock(item):
    """Take ``item.quantity`` from the product's stock or raise ValidationError."""
    updated = Product.objects.filter(pk=item.product_id, stock__gte=item.quantity).update(
        stock=F('stock') - item.quantity, updated_at=timezone.now(),
    )
    if not updated:
        raise ValidationError(f"Insufficient stock for {item.product_name}")
    OrderItem.objects.filter(pk=item.pk).update(stock_deducted=True)
    item.stock_deducted = True


def restore_stock(item):
    if not item.stock_deducted:
        return
    Product.objects.filter(pk=item.product_id).update(
        stock=F('stock') + item.quantity, updated_at=timezone.now(),
    )
    OrderItem.objects.filter(pk=item.pk).update(stock_deducted=False)
    item.stock_deducted = False


def held_stock(product_ids):
    """
    Units promised to deferred kitchen lines that have not been taken yet,
    keyed by product ID.
    """
    rows = (
        OrderItem.objects
        .filter(
            product_id__in=product_ids,
            stock_deducted=False,
            kitchen_ticket__status__in=[KitchenTicket.STATUS_PENDING, KitchenTicket.STATUS_PREPARING],
        )
        .exclude(order__status=Order.STATUS_CANCELLED)
        .values('product_id')
        .annotate(held=Sum('quantity'))
        .order_by()
    )
    return {row['product_id']: row['held'] for row in rows}


def deduct_deferred_stock(ticket):
    for item in ticket.items.filter(stock_deducted=False).order_by('pk'):
        deduct_stock(item)


class KitchenService:

    @staticmethod
    def sync_ticket(shop, order):
        """
        Attach the order's unticketed kitchen lines to its ticket, creating the
        ticket on first use. Must run inside the caller's transaction.

        Returns:
            Tuple of (ticket or None, created, number of lines attached)
        """
        if not shop.is_restaurant:
            return None, False, 0

        lines = OrderItem.objects.filter(
            order=order, kitchen_ticket__isnull=True, product__requires_kitchen=True,
        )
        ticket = KitchenTicket.objects.filter(order=order).first()
        if not lines.exists():
            return ticket, False, 0

        created = ticket is None
        if created:
            ticket = KitchenTicket.objects.create(
                shop=shop, order=order, ticket_number=shop.next_ticket_number(),
            )
        attached = lines.update(kitchen_ticket=ticket)

        if ticket.status in STOCK_TAKEN_STATUSES:
            deduct_deferred_stock(ticket)

        if created:
            emit_on_commit(kitchen_ticket_created, KitchenTicket, shop.pk, **ticket_payload(ticket))
            logger.info("Created kitchen ticket #%s for order %s", ticket.ticket_number, order.pk)
        else:
            emit_on_commit(kitchen_ticket_updated, KitchenTicket, shop.pk,
                           items_added=attached, **ticket_payload(ticket))
        return ticket, created, attached

    @staticmethod
    @transaction.atomic
    def advance_kitchen_ticket(ticket_id, next_status: str, shop_id: Optional[int] = None) -> KitchenTicket:
        if next_status not in KitchenTicket.STATUS_FLOW:
            raise ValidationError(f"Invalid ticket status: {next_status}")

        if shop_id is None:
            shop_id = KitchenTicket.objects.filter(pk=ticket_id).values_list('shop_id', flat=True).first()
            if shop_id is None:
                raise NotFoundError('Kitchen ticket not found')
        shop = lock_shop(shop_id)

        try:
            ticket = KitchenTicket.objects.select_related('order').get(pk=ticket_id, shop=shop)
        except KitchenTicket.DoesNotExist:
            raise NotFoundError('Kitchen ticket not found')

        if ticket.order.status == Order.STATUS_CANCELLED:
            raise StateError(f"Order of ticket #{ticket.ticket_number} was cancelled")
        if not ticket.can_advance_to(next_status):
            raise StateError(
                f"Cannot move ticket #{ticket.ticket_number} from {ticket.status} to {next_status}"
            )

        now = timezone.now()
        fields = {'status': next_status, 'updated_at': now}
        position = KitchenTicket.STATUS_FLOW.index(next_status)
        if position >= 1 and ticket.started_at is None:
            fields['started_at'] = now
        if position >= 2 and ticket.ready_at is None:
            fields['ready_at'] = now
        if next_status == KitchenTicket.STATUS_SERVED:
            fields['served_at'] = now

        updated = KitchenTicket.objects.filter(pk=ticket.pk, status=ticket.status).update(**fields)
        if not updated:
            raise StateError(f"Ticket #{ticket.ticket_number} changed status concurrently")
        ticket.refresh_from_db()

        settings = ShopSettings.get_settings(shop)
        if settings.stock_policy == ShopSettings.STOCK_ON_TICKET_READY and next_status in STOCK_TAKEN_STATUSES:
            deduct_deferred_stock(ticket)

        emit_on_commit(kitchen_ticket_updated, KitchenTicket, shop.pk, **ticket_payload(ticket))
        logger.info("Kitchen ticket #%s of shop %s -> %s", ticket.ticket_number, shop.pk, next_status)
        return ticket

    @staticmethod
    def list_tickets(shop_id, statuses: Optional[List[str]] = None) -> List[KitchenTicket]:
        if statuses is None:
            statuses = [
                KitchenTicket.STATUS_PENDING,
                KitchenTicket.STATUS_PREPARING,
                KitchenTicket.STATUS_READY,
            ]
        return list(
            KitchenTicket.objects.filter(shop_id=shop_id, status__in=statuses)
            .exclude(order__status=Order.STATUS_CANCELLED)
            .select_related('order', 'order__table')
            .prefetch_related('items')
            .order_by('ticket_number')
        )
