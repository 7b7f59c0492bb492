"""
Table Service

Floor-plan tables and their status transitions. ``occupied`` is only ever
entered through orders or seating; staff moves cover the rest.
"""

import logging
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from ..exceptions import NotFoundError, StateError, ValidationError
from ..models import Table
from ..signals import emit_on_commit, table_updated
from .shop_service import lock_shop, require_restaurant

logger = logging.getLogger(__name__)

# Manual moves; occupied is reached through orders and seating only
ALLOWED_TRANSITIONS = {
    Table.STATUS_AVAILABLE: {Table.STATUS_RESERVED},
    Table.STATUS_RESERVED: {Table.STATUS_AVAILABLE},
    Table.STATUS_OCCUPIED: {Table.STATUS_CLEANING, Table.STATUS_AVAILABLE},
    Table.STATUS_CLEANING: {Table.STATUS_AVAILABLE},
}


def table_payload(table):
    return {'table_id': table.pk, 'number': table.number, 'status': table.status}


def get_table(shop, table_id, lock=False) -> Table:
    qs = Table.objects.filter(shop=shop)
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=table_id)
    except Table.DoesNotExist:
        raise NotFoundError('Table not found')


def swap_status(table, from_statuses, to_status, **fields):
    """
    Compare-and-swap the table status.

    Raises StateError when the row is no longer in one of ``from_statuses``.
    """
    now = timezone.now()
    updated = Table.objects.filter(pk=table.pk, status__in=from_statuses).update(
        status=to_status, updated_at=now, **fields,
    )
    if not updated:
        raise StateError(f"Table {table.number} changed status concurrently")
    table.status = to_status
    for name, value in fields.items():
        setattr(table, name, value)
    return table


def occupy(table):
    """Mark a seatable table occupied; an occupied table is left as is."""
    if table.status == Table.STATUS_OCCUPIED:
        return False
    if not table.is_seatable:
        raise StateError(f"Table {table.number} is {table.status}")
    swap_status(table, Table.SEATABLE_STATUSES, Table.STATUS_OCCUPIED,
                occupied_since=timezone.now())
    emit_on_commit(table_updated, Table, table.shop_id, **table_payload(table))
    return True


def release(table, to_status=Table.STATUS_AVAILABLE, exclude_order_id=None, keep_if_seated=False):
    """
    Release an occupied table unless an open order still claims it (or, with
    ``keep_if_seated``, a party seated during the current occupancy).
    Returns True when released.
    """
    if table.status != Table.STATUS_OCCUPIED:
        return False
    open_orders = table.open_orders()
    if exclude_order_id is not None:
        open_orders = open_orders.exclude(pk=exclude_order_id)
    if open_orders.exists():
        return False
    if keep_if_seated and table.seated_reservations().exists():
        return False
    swap_status(table, [Table.STATUS_OCCUPIED], to_status, occupied_since=None)
    emit_on_commit(table_updated, Table, table.shop_id, **table_payload(table))
    logger.info("Released table %s of shop %s to %s", table.number, table.shop_id, to_status)
    return True


class TableService:

    @staticmethod
    def list_tables(shop_id) -> List[Table]:
        return list(Table.objects.filter(shop_id=shop_id).order_by('number'))

    @staticmethod
    @transaction.atomic
    def create_table(shop_id, number: int, capacity: int = 4, section: str = '') -> Table:
        shop = lock_shop(shop_id)
        require_restaurant(shop, 'Tables')

        errors = {}
        if number is None or int(number) < 1:
            errors['number'] = ['Table number must be a positive integer.']
        elif Table.objects.filter(shop=shop, number=number).exists():
            errors['number'] = [f"Table {number} already exists."]
        if capacity is None or int(capacity) < 1:
            errors['capacity'] = ['Capacity must be at least 1.']
        if errors:
            raise ValidationError('Invalid table', errors=errors)

        table = Table.objects.create(shop=shop, number=number, capacity=capacity, section=section or '')
        emit_on_commit(table_updated, Table, shop.pk, **table_payload(table))
        return table

    @staticmethod
    @transaction.atomic
    def set_status(table_id, status: str, shop_id: Optional[int] = None) -> Table:
        if status not in dict(Table.STATUS_CHOICES):
            raise ValidationError(f"Invalid table status: {status}")

        if shop_id is None:
            shop_id = Table.objects.filter(pk=table_id).values_list('shop_id', flat=True).first()
            if shop_id is None:
                raise NotFoundError('Table not found')
        shop = lock_shop(shop_id)
        table = get_table(shop, table_id)

        if table.status == status:
            return table
        if status == Table.STATUS_OCCUPIED:
            raise StateError('Tables become occupied by opening an order or seating a reservation')
        if status not in ALLOWED_TRANSITIONS[table.status]:
            raise StateError(f"Cannot move table {table.number} from {table.status} to {status}")
        if table.status == Table.STATUS_OCCUPIED and table.open_orders().exists():
            raise StateError(f"Table {table.number} still has open orders")

        fields = {}
        if table.status == Table.STATUS_OCCUPIED:
            fields['occupied_since'] = None
        swap_status(table, [table.status], status, **fields)
        emit_on_commit(table_updated, Table, shop.pk, **table_payload(table))
        logger.info("Table %s of shop %s set to %s", table.number, shop.pk, status)
        return table
