"""
Tests for the reservation lifecycle and commit-time conflict enforcement.
"""

import threading

import pytest
from datetime import timedelta

from django.db import connection
from django.utils import timezone

from shopfloor.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from shopfloor.models import Reservation, Table
from shopfloor.services import ReservationService
from shopfloor.services import reservation_service
from shopfloor.services.conflict_detector import TIME_OVERLAP
from shopfloor.tests.helpers import drain, tomorrow_at


def create(shop, time, party_size=2, table=None, name='Grace Hopper'):
    reservation, _ = ReservationService.create_reservation(
        shop.pk, name, party_size, time, table_id=table.pk if table else None,
    )
    return reservation


# ==============================================================================
# CREATE
# ==============================================================================

@pytest.mark.django_db
class TestCreateReservation:
    """Tests for ReservationService.create_reservation."""

    def test_create_with_table(self, shop, table):
        reservation, report = ReservationService.create_reservation(
            shop.pk, '  Grace Hopper ', 4, tomorrow_at(19), table_id=table.pk,
            customer_phone='555-0199', notes='Window seat',
        )

        assert reservation.status == Reservation.STATUS_CONFIRMED
        assert reservation.customer_name == 'Grace Hopper'
        assert reservation.table_id == table.pk
        assert not report.has_conflicts

    def test_create_without_table(self, shop, tables):
        reservation = create(shop, tomorrow_at(13))
        assert reservation.table is None

    def test_table_status_untouched(self, shop, table):
        create(shop, tomorrow_at(19), table=table)
        table.refresh_from_db()
        assert table.status == Table.STATUS_AVAILABLE

    def test_past_time_rejected(self, shop, table):
        with pytest.raises(ValidationError) as exc_info:
            create(shop, timezone.now() - timedelta(minutes=1), table=table)
        assert 'reservation_time' in exc_info.value.extra['errors']
        assert not Reservation.objects.exists()

    @pytest.mark.parametrize('party_size', [0, -2, 101, 'four'])
    def test_party_size_bounds(self, shop, tables, party_size):
        with pytest.raises(ValidationError):
            create(shop, tomorrow_at(19), party_size=party_size)

    def test_blank_name_rejected(self, shop, tables):
        with pytest.raises(ValidationError):
            create(shop, tomorrow_at(19), name='   ')

    def test_retail_shop_rejected(self, retail_shop):
        with pytest.raises(ValidationError):
            create(retail_shop, tomorrow_at(19))

    def test_unknown_table(self, shop, tables):
        with pytest.raises(NotFoundError):
            ReservationService.create_reservation(shop.pk, 'Grace', 2, tomorrow_at(19), table_id=999)

    def test_high_severity_conflict_blocks(self, shop, table, reservation):
        """Twenty minutes after an existing booking on the same table."""
        with pytest.raises(ConflictError) as exc_info:
            create(shop, tomorrow_at(19, 20), table=table)

        conflicts = exc_info.value.conflicts
        assert [c.type for c in conflicts] == [TIME_OVERLAP]
        assert conflicts[0].affected_reservation_id == reservation.pk
        assert exc_info.value.as_dict()['conflicts'][0]['severity'] == 'high'
        assert Reservation.objects.count() == 1

    def test_too_small_table_blocks(self, shop, tables):
        with pytest.raises(ConflictError):
            create(shop, tomorrow_at(16), party_size=3, table=tables[1])

    def test_medium_severity_conflict_is_advisory(self, shop, table, reservation):
        reservation2, report = ReservationService.create_reservation(
            shop.pk, 'Grace', 2, tomorrow_at(20, 10), table_id=table.pk,
        )
        assert reservation2.pk is not None
        assert report.can_proceed
        assert report.has_medium_severity_conflicts

    def test_earlier_evenings_do_not_count_toward_peak(self, shop, tables):
        """Parties seated at 19:00 on past days leave tomorrow's 19:00 open."""
        for days in range(1, 6):
            Reservation.objects.create(
                shop=shop, customer_name=f'Regular {days}', party_size=5,
                reservation_time=tomorrow_at(19) - timedelta(days=days),
                status=Reservation.STATUS_SEATED,
            )

        report = ReservationService.check_reservation(shop.pk, tomorrow_at(19), 2)
        assert report.conflicts == []

        reservation, report = ReservationService.create_reservation(shop.pk, 'Grace', 2, tomorrow_at(19))
        assert reservation.status == Reservation.STATUS_CONFIRMED
        assert report.can_proceed

    def test_event(self, shop, table, subscription, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            reservation = create(shop, tomorrow_at(19), table=table)

        events = drain(subscription)
        assert [e.type for e in events] == ['RESERVATION_CREATED']
        assert events[0].payload['reservation_id'] == reservation.pk
        assert events[0].payload['table_id'] == table.pk


# ==============================================================================
# CHECK
# ==============================================================================

@pytest.mark.django_db
class TestCheckReservation:
    """Tests for the read-only availability check."""

    def test_clean_check(self, shop, table):
        report = ReservationService.check_reservation(shop.pk, tomorrow_at(19), 4, table_id=table.pk)
        assert report.can_proceed
        assert not report.has_conflicts

    def test_check_reports_overlap_without_writing(self, shop, table, reservation):
        before = Reservation.objects.count()
        report = ReservationService.check_reservation(shop.pk, tomorrow_at(19, 20), 2, table_id=table.pk)

        assert not report.can_proceed
        assert Reservation.objects.count() == before
        table.refresh_from_db()
        assert table.status == Table.STATUS_AVAILABLE

    def test_check_excluding_reservation_being_edited(self, shop, table, reservation):
        report = ReservationService.check_reservation(
            shop.pk, tomorrow_at(19, 20), 4, table_id=table.pk,
            exclude_reservation_id=reservation.pk,
        )
        assert not report.has_conflicts

    def test_check_accepts_past_times(self, shop, table):
        report = ReservationService.check_reservation(shop.pk, timezone.now() - timedelta(hours=1), 2)
        assert report.can_proceed

    def test_check_invalid_party_size(self, shop, tables):
        with pytest.raises(ValidationError):
            ReservationService.check_reservation(shop.pk, tomorrow_at(19), 0)


# ==============================================================================
# UPDATE
# ==============================================================================

@pytest.mark.django_db
class TestUpdateReservation:
    """Tests for ReservationService.update_reservation."""

    def test_move_time_on_same_table(self, shop, reservation):
        """The reservation does not conflict with itself."""
        updated, report = ReservationService.update_reservation(
            reservation.pk, shop.pk, reservation_time=tomorrow_at(19, 30),
        )
        assert updated.reservation_time == tomorrow_at(19, 30)
        assert not report.has_conflicts

    def test_move_into_other_booking_rejected(self, shop, table, reservation):
        create(shop, tomorrow_at(21, 30), table=table)
        with pytest.raises(ConflictError):
            ReservationService.update_reservation(
                reservation.pk, shop.pk, reservation_time=tomorrow_at(21),
            )
        reservation.refresh_from_db()
        assert reservation.reservation_time == tomorrow_at(19)

    def test_change_table(self, shop, tables, reservation):
        updated, _ = ReservationService.update_reservation(reservation.pk, shop.pk, table_id=tables[4].pk)
        assert updated.table_id == tables[4].pk

    def test_grow_party_beyond_table(self, shop, reservation):
        with pytest.raises(ConflictError):
            ReservationService.update_reservation(reservation.pk, shop.pk, party_size=7)

    def test_past_time_rejected(self, shop, reservation):
        with pytest.raises(ValidationError):
            ReservationService.update_reservation(
                reservation.pk, shop.pk, reservation_time=timezone.now() - timedelta(hours=1),
            )

    def test_unchanged_past_time_allows_edits(self, shop, table):
        """A late booking can still get a note."""
        late = Reservation.objects.create(
            shop=shop, table=table, customer_name='Late', party_size=2,
            reservation_time=timezone.now() - timedelta(minutes=10),
        )
        updated, _ = ReservationService.update_reservation(late.pk, shop.pk, notes='Running late')
        assert updated.notes == 'Running late'

    def test_unknown_field_rejected(self, shop, reservation):
        with pytest.raises(ValidationError):
            ReservationService.update_reservation(reservation.pk, shop.pk, status='seated')

    def test_only_confirmed_editable(self, shop, reservation):
        ReservationService.cancel_reservation(reservation.pk, shop.pk)
        with pytest.raises(StateError):
            ReservationService.update_reservation(reservation.pk, shop.pk, notes='Too late')


# ==============================================================================
# SEAT
# ==============================================================================

@pytest.mark.django_db
class TestSeatReservation:
    """Tests for ReservationService.seat_reservation."""

    def test_seat_occupies_table(self, shop, table, reservation):
        seated = ReservationService.seat_reservation(reservation.pk, shop.pk)
        table.refresh_from_db()

        assert seated.status == Reservation.STATUS_SEATED
        assert seated.seated_at is not None
        assert table.status == Table.STATUS_OCCUPIED
        assert table.occupied_since == seated.seated_at

    def test_seat_reserved_table(self, shop, table, reservation):
        Table.objects.filter(pk=table.pk).update(status=Table.STATUS_RESERVED)
        ReservationService.seat_reservation(reservation.pk, shop.pk)
        table.refresh_from_db()
        assert table.status == Table.STATUS_OCCUPIED

    def test_seat_at_other_table(self, shop, tables, reservation):
        seated = ReservationService.seat_reservation(reservation.pk, shop.pk, table_id=tables[4].pk)
        assert seated.table_id == tables[4].pk
        assert Table.objects.get(pk=tables[4].pk).status == Table.STATUS_OCCUPIED
        assert Table.objects.get(pk=tables[3].pk).status == Table.STATUS_AVAILABLE

    def test_table_required(self, shop, tables):
        reservation = create(shop, tomorrow_at(13))
        with pytest.raises(ValidationError):
            ReservationService.seat_reservation(reservation.pk, shop.pk)

    def test_seat_twice_rejected(self, shop, reservation):
        ReservationService.seat_reservation(reservation.pk, shop.pk)
        with pytest.raises(StateError):
            ReservationService.seat_reservation(reservation.pk, shop.pk)

    def test_seat_at_occupied_table_rejected(self, shop, table, reservation, beer):
        from shopfloor.services import OrderService

        OrderService.create_order(shop.pk, [{'product_id': beer.pk}], table_id=table.pk)
        with pytest.raises(ConflictError):
            ReservationService.seat_reservation(reservation.pk, shop.pk)
        reservation.refresh_from_db()
        assert reservation.status == Reservation.STATUS_CONFIRMED

    def test_seat_at_cleaning_table_rejected(self, shop, table, reservation):
        """Cleaning is only a warning, but the table cannot take the party yet."""
        Table.objects.filter(pk=table.pk).update(status=Table.STATUS_CLEANING)
        with pytest.raises(ConflictError):
            ReservationService.seat_reservation(reservation.pk, shop.pk)

    def test_two_parties_one_table(self, shop, table):
        """
        Both checks pass, both parties head for the table; the first seat
        wins and the second is refused at commit time. Runs the two requests
        one after the other; test_concurrent_seat_requests races them on
        databases with row locks.
        """
        walk_in = create(shop, tomorrow_at(19))
        booked = create(shop, tomorrow_at(21), table=table)

        assert ReservationService.check_reservation(shop.pk, tomorrow_at(19), 2, table_id=table.pk).can_proceed
        assert ReservationService.check_reservation(
            shop.pk, tomorrow_at(21), 2, table_id=table.pk, exclude_reservation_id=booked.pk,
        ).can_proceed

        ReservationService.seat_reservation(booked.pk, shop.pk)
        with pytest.raises(ConflictError):
            ReservationService.seat_reservation(walk_in.pk, shop.pk, table_id=table.pk)

        walk_in.refresh_from_db()
        assert walk_in.status == Reservation.STATUS_CONFIRMED
        assert walk_in.table_id is None
        assert Reservation.objects.filter(table=table, status=Reservation.STATUS_SEATED).count() == 1

    def test_lost_table_swap_is_conflict(self, shop, table, reservation, monkeypatch):
        """The table row changed after it was read: the status swap fails."""
        stale = Table.objects.get(pk=table.pk)
        Table.objects.filter(pk=table.pk).update(status=Table.STATUS_OCCUPIED)
        monkeypatch.setattr(reservation_service, 'get_table', lambda shop, table_id, lock=False: stale)

        with pytest.raises(ConflictError, match='taken by another party'):
            ReservationService.seat_reservation(reservation.pk, shop.pk)
        reservation.refresh_from_db()
        assert reservation.status == Reservation.STATUS_CONFIRMED

    @pytest.mark.django_db(transaction=True)
    @pytest.mark.skipif(
        not connection.features.has_select_for_update,
        reason='needs a database with row locks (select_for_update)',
    )
    def test_concurrent_seat_requests(self, shop, table):
        """Two threads seat different parties at one table at the same moment."""
        walk_in = create(shop, tomorrow_at(19))
        booked = create(shop, tomorrow_at(21), table=table)
        barrier = threading.Barrier(2)
        outcomes = []

        def seat(reservation_id):
            try:
                barrier.wait(timeout=5)
                ReservationService.seat_reservation(reservation_id, shop.pk, table_id=table.pk)
                outcomes.append('seated')
            except ConflictError:
                outcomes.append('conflict')
            finally:
                connection.close()

        threads = [threading.Thread(target=seat, args=(pk,)) for pk in (walk_in.pk, booked.pk)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert sorted(outcomes) == ['conflict', 'seated']
        assert Reservation.objects.filter(table=table, status=Reservation.STATUS_SEATED).count() == 1

    def test_events(self, shop, reservation, subscription, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            ReservationService.seat_reservation(reservation.pk, shop.pk)

        events = drain(subscription)
        assert [e.type for e in events] == ['RESERVATION_UPDATED', 'TABLE_UPDATED']
        assert events[0].payload['status'] == 'seated'
        assert events[1].payload['status'] == 'occupied'


# ==============================================================================
# CANCEL / NO SHOW
# ==============================================================================

@pytest.mark.django_db
class TestCloseReservation:
    """Tests for cancel_reservation and mark_no_show."""

    def test_cancel(self, shop, reservation):
        cancelled = ReservationService.cancel_reservation(reservation.pk, shop.pk)
        assert cancelled.status == Reservation.STATUS_CANCELLED

    def test_no_show(self, shop, reservation):
        missed = ReservationService.mark_no_show(reservation.pk, shop.pk)
        assert missed.status == Reservation.STATUS_NO_SHOW

    def test_reserved_table_released(self, shop, table, reservation):
        Table.objects.filter(pk=table.pk).update(status=Table.STATUS_RESERVED)
        ReservationService.cancel_reservation(reservation.pk, shop.pk)
        table.refresh_from_db()
        assert table.status == Table.STATUS_AVAILABLE

    def test_reserved_table_kept_for_other_booking(self, shop, table, reservation):
        create(shop, tomorrow_at(22), table=table)
        Table.objects.filter(pk=table.pk).update(status=Table.STATUS_RESERVED)
        ReservationService.mark_no_show(reservation.pk, shop.pk)
        table.refresh_from_db()
        assert table.status == Table.STATUS_RESERVED

    def test_seated_cannot_be_cancelled(self, shop, reservation):
        ReservationService.seat_reservation(reservation.pk, shop.pk)
        with pytest.raises(StateError):
            ReservationService.cancel_reservation(reservation.pk, shop.pk)

    def test_cancelled_frees_slot(self, shop, table, reservation):
        ReservationService.cancel_reservation(reservation.pk, shop.pk)
        report = ReservationService.check_reservation(shop.pk, tomorrow_at(19), 4, table_id=table.pk)
        assert not report.has_conflicts

    def test_other_shop_not_found(self, retail_shop, reservation):
        with pytest.raises(NotFoundError):
            ReservationService.cancel_reservation(reservation.pk, retail_shop.pk)

    def test_event(self, shop, reservation, subscription, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            ReservationService.cancel_reservation(reservation.pk)
        assert [e.type for e in drain(subscription)] == ['RESERVATION_UPDATED']


@pytest.mark.django_db
class TestListReservations:

    def test_filters(self, shop, tables, reservation):
        other_day = create(shop, tomorrow_at(13) + timedelta(days=1))
        ReservationService.cancel_reservation(other_day.pk, shop.pk)

        assert [r.pk for r in ReservationService.list_reservations(shop.pk)] == [reservation.pk, other_day.pk]
        day = timezone.localdate() + timedelta(days=1)
        assert [r.pk for r in ReservationService.list_reservations(shop.pk, date=day)] == [reservation.pk]
        assert [r.pk for r in ReservationService.list_reservations(shop.pk, status='cancelled')] == [other_day.pk]
