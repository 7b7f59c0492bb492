"""
Reservation Service

Reservation lifecycle: confirmed -> seated, or confirmed -> cancelled/no_show.

``check_reservation`` runs the conflict detector read-only for UI warnings.
The write paths never trust that earlier check: they take the shop lock,
load a fresh snapshot and run the detector again before anything is
written.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from django.db import transaction
from django.utils import timezone

from ..exceptions import ConflictError, NotFoundError, StateError, ValidationError
from ..models import Reservation, Table
from ..signals import emit_on_commit, reservation_created, reservation_updated, table_updated
from .conflict_detector import SEVERITY_HIGH, ConflictReport, detect_conflicts
from .shop_service import get_shop, lock_shop, require_restaurant
from .table_service import get_table, swap_status, table_payload

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('customer_name', 'customer_phone', 'party_size', 'reservation_time', 'table_id', 'notes')

# Reservations farther than this from a proposed time cannot conflict with it
SNAPSHOT_WINDOW = timedelta(hours=3)


def reservation_payload(reservation):
    return {
        'reservation_id': reservation.pk,
        'table_id': reservation.table_id,
        'status': reservation.status,
        'party_size': reservation.party_size,
        'reservation_time': reservation.reservation_time.isoformat(),
    }


def validate_reservation(customer_name, party_size, reservation_time, require_future=True):
    errors = {}
    if customer_name is not None and not customer_name.strip():
        errors['customer_name'] = ['Customer name is required.']
    try:
        size = int(party_size)
    except (TypeError, ValueError):
        size = 0
    if not 1 <= size <= Reservation.MAX_PARTY_SIZE:
        errors['party_size'] = [f"Party size must be between 1 and {Reservation.MAX_PARTY_SIZE}."]
    if not isinstance(reservation_time, datetime):
        errors['reservation_time'] = ['A valid date and time is required.']
    elif require_future and reservation_time <= timezone.now():
        errors['reservation_time'] = ['Reservation time must be in the future.']
    if errors:
        message = next(iter(errors.values()))[0]
        raise ValidationError(message, errors=errors)


class ReservationService:

    @staticmethod
    def snapshot(shop, around):
        """Active reservations within ``SNAPSHOT_WINDOW`` of ``around`` and all tables."""
        reservations = list(Reservation.objects.filter(
            shop=shop,
            status__in=Reservation.ACTIVE_STATUSES,
            reservation_time__range=(around - SNAPSHOT_WINDOW, around + SNAPSHOT_WINDOW),
        ))
        tables = list(Table.objects.filter(shop=shop))
        return reservations, tables

    @staticmethod
    def _evaluate(shop, reservation_time, party_size, table=None,
                  exclude_reservation_id=None, seating=False) -> ConflictReport:
        reservations, tables = ReservationService.snapshot(shop, reservation_time)
        return detect_conflicts(
            reservation_time,
            int(party_size),
            reservations,
            tables,
            selected_table=table,
            exclude_reservation_id=exclude_reservation_id,
            seating=seating,
        )

    @staticmethod
    def _enforce(report: ConflictReport, message):
        if not report.can_proceed:
            high = [c for c in report.conflicts if c.severity == SEVERITY_HIGH]
            logger.info("%s: %s", message, '; '.join(c.message for c in high))
            raise ConflictError(message, conflicts=report.conflicts)

    @staticmethod
    def _get_reservation(reservation_id, shop_id=None):
        if shop_id is None:
            shop_id = Reservation.objects.filter(pk=reservation_id).values_list('shop_id', flat=True).first()
            if shop_id is None:
                raise NotFoundError('Reservation not found')
        shop = lock_shop(shop_id)
        try:
            reservation = Reservation.objects.select_related('table').get(pk=reservation_id, shop=shop)
        except Reservation.DoesNotExist:
            raise NotFoundError('Reservation not found')
        return shop, reservation

    @staticmethod
    def check_reservation(shop_id, reservation_time, party_size: int,
                          table_id: Optional[int] = None,
                          exclude_reservation_id: Optional[int] = None) -> ConflictReport:
        """Read-only availability check; nothing is locked or written."""
        shop = get_shop(shop_id)
        require_restaurant(shop, 'Reservations')
        validate_reservation(None, party_size, reservation_time, require_future=False)
        table = get_table(shop, table_id) if table_id is not None else None
        return ReservationService._evaluate(
            shop, reservation_time, party_size, table=table,
            exclude_reservation_id=exclude_reservation_id,
        )

    @staticmethod
    @transaction.atomic
    def create_reservation(
        shop_id,
        customer_name: str,
        party_size: int,
        reservation_time,
        table_id: Optional[int] = None,
        customer_phone: str = '',
        notes: str = '',
    ):
        """
        Create a confirmed reservation.

        Raises ConflictError when a high-severity conflict exists at commit
        time. Medium-severity conflicts are returned as advisory.

        Returns:
            Tuple of (Reservation, ConflictReport)
        """
        validate_reservation(customer_name, party_size, reservation_time)
        shop = lock_shop(shop_id)
        require_restaurant(shop, 'Reservations')
        table = get_table(shop, table_id) if table_id is not None else None

        report = ReservationService._evaluate(shop, reservation_time, party_size, table=table)
        ReservationService._enforce(report, 'Reservation conflicts with existing bookings')

        reservation = Reservation.objects.create(
            shop=shop,
            table=table,
            customer_name=customer_name.strip(),
            customer_phone=customer_phone or '',
            party_size=int(party_size),
            reservation_time=reservation_time,
            notes=notes or '',
        )
        emit_on_commit(reservation_created, Reservation, shop.pk, **reservation_payload(reservation))
        logger.info("Created reservation %s for shop %s at %s (party of %s)",
                    reservation.pk, shop.pk, reservation_time, party_size)
        return reservation, report

    @staticmethod
    @transaction.atomic
    def update_reservation(reservation_id, shop_id: Optional[int] = None, **changes):
        """
        Edit a confirmed reservation. The conflict check excludes the
        reservation itself.

        Returns:
            Tuple of (Reservation, ConflictReport)
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update: {', '.join(sorted(unknown))}")

        shop, reservation = ReservationService._get_reservation(reservation_id, shop_id)
        if reservation.status != Reservation.STATUS_CONFIRMED:
            raise StateError(f"Cannot edit a {reservation.status} reservation")

        time_changed = (
            'reservation_time' in changes
            and changes['reservation_time'] != reservation.reservation_time
        )
        for name, value in changes.items():
            setattr(reservation, name, value)
        validate_reservation(
            reservation.customer_name, reservation.party_size,
            reservation.reservation_time, require_future=time_changed,
        )

        table = None
        if reservation.table_id is not None:
            table = get_table(shop, reservation.table_id)
            reservation.table = table

        report = ReservationService._evaluate(
            shop, reservation.reservation_time, reservation.party_size,
            table=table, exclude_reservation_id=reservation.pk,
        )
        ReservationService._enforce(report, 'Reservation conflicts with existing bookings')

        reservation.customer_name = reservation.customer_name.strip()
        reservation.party_size = int(reservation.party_size)
        reservation.save()

        emit_on_commit(reservation_updated, Reservation, shop.pk, **reservation_payload(reservation))
        return reservation, report

    @staticmethod
    @transaction.atomic
    def seat_reservation(reservation_id, shop_id: Optional[int] = None,
                         table_id: Optional[int] = None) -> Reservation:
        """
        Seat a confirmed reservation and occupy its table.

        The conflict check is repeated here on a fresh snapshot under the
        shop lock, and both rows are written with compare-and-swap updates,
        so of two concurrent seat requests for one table only one succeeds.
        """
        shop, reservation = ReservationService._get_reservation(reservation_id, shop_id)
        if reservation.status != Reservation.STATUS_CONFIRMED:
            raise StateError(f"Cannot seat a {reservation.status} reservation")

        table_id = table_id if table_id is not None else reservation.table_id
        if table_id is None:
            raise ValidationError('A table is required to seat a reservation')
        table = get_table(shop, table_id)

        report = ReservationService._evaluate(
            shop, reservation.reservation_time, reservation.party_size,
            table=table, exclude_reservation_id=reservation.pk, seating=True,
        )
        ReservationService._enforce(report, f"Table {table.number} cannot be seated")

        now = timezone.now()
        try:
            swap_status(table, Table.SEATABLE_STATUSES, Table.STATUS_OCCUPIED, occupied_since=now)
        except StateError:
            raise ConflictError(f"Table {table.number} was taken by another party")

        updated = Reservation.objects.filter(
            pk=reservation.pk, status=Reservation.STATUS_CONFIRMED,
        ).update(status=Reservation.STATUS_SEATED, table=table, seated_at=now, updated_at=now)
        if not updated:
            raise ConflictError('Reservation was changed by another request')
        reservation.refresh_from_db()

        emit_on_commit(reservation_updated, Reservation, shop.pk, **reservation_payload(reservation))
        emit_on_commit(table_updated, Table, shop.pk, **table_payload(table))
        logger.info("Seated reservation %s at table %s (shop %s)", reservation.pk, table.number, shop.pk)
        return reservation

    @staticmethod
    def _close(reservation_id, shop_id, status) -> Reservation:
        shop, reservation = ReservationService._get_reservation(reservation_id, shop_id)
        if reservation.status != Reservation.STATUS_CONFIRMED:
            raise StateError(f"Cannot mark a {reservation.status} reservation as {status}")

        now = timezone.now()
        updated = Reservation.objects.filter(
            pk=reservation.pk, status=Reservation.STATUS_CONFIRMED,
        ).update(status=status, updated_at=now)
        if not updated:
            raise StateError('Reservation was changed by another request')
        reservation.refresh_from_db()

        # A table held for this party goes back to the floor
        table = reservation.table
        if table is not None and table.status == Table.STATUS_RESERVED:
            others = Reservation.objects.filter(
                table=table, status=Reservation.STATUS_CONFIRMED,
            ).exclude(pk=reservation.pk)
            if not others.exists():
                swap_status(table, [Table.STATUS_RESERVED], Table.STATUS_AVAILABLE)
                emit_on_commit(table_updated, Table, shop.pk, **table_payload(table))

        emit_on_commit(reservation_updated, Reservation, shop.pk, **reservation_payload(reservation))
        logger.info("Reservation %s of shop %s marked %s", reservation.pk, shop.pk, status)
        return reservation

    @staticmethod
    @transaction.atomic
    def cancel_reservation(reservation_id, shop_id: Optional[int] = None) -> Reservation:
        return ReservationService._close(reservation_id, shop_id, Reservation.STATUS_CANCELLED)

    @staticmethod
    @transaction.atomic
    def mark_no_show(reservation_id, shop_id: Optional[int] = None) -> Reservation:
        return ReservationService._close(reservation_id, shop_id, Reservation.STATUS_NO_SHOW)

    @staticmethod
    def list_reservations(shop_id, date=None, status: Optional[str] = None):
        qs = Reservation.objects.filter(shop_id=shop_id).select_related('table')
        if date is not None:
            qs = qs.filter(reservation_time__date=date)
        if status:
            qs = qs.filter(status=status)
        return list(qs.order_by('reservation_time'))
