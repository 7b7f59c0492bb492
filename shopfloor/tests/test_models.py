"""
Unit tests for Shopfloor models.
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from shopfloor.models import (
    Shop,
    ShopSettings,
    Table,
    Reservation,
    Order,
    OrderItem,
    KitchenTicket,
)
from shopfloor.tests.helpers import tomorrow_at


# ==============================================================================
# SHOP TESTS
# ==============================================================================

@pytest.mark.django_db
class TestShop:
    """Tests for Shop model."""

    def test_str(self, shop):
        assert str(shop) == 'Test Bistro'

    def test_is_restaurant(self, shop, retail_shop):
        assert shop.is_restaurant is True
        assert retail_shop.is_restaurant is False

    def test_default_mode_is_shop(self, db):
        shop = Shop.objects.create(name='Corner')
        assert shop.business_mode == Shop.MODE_SHOP

    def test_has_data_empty(self, retail_shop):
        """A shop with only settings holds no data."""
        ShopSettings.get_settings(retail_shop)
        assert retail_shop.has_data() is False

    def test_has_data_with_tables(self, shop, table):
        assert shop.has_data() is True

    def test_has_data_with_products(self, shop, beer):
        assert shop.has_data() is True

    def test_total_seating(self, shop, tables):
        assert shop.total_seating() == 20

    def test_total_seating_without_tables(self, retail_shop):
        assert retail_shop.total_seating() == 0

    def test_next_ticket_number_increments(self, shop):
        assert shop.next_ticket_number() == 1
        assert shop.next_ticket_number() == 2
        shop.refresh_from_db()
        assert shop.ticket_sequence == 2

    def test_ticket_numbers_are_per_shop(self, shop, retail_shop):
        shop.next_ticket_number()
        shop.next_ticket_number()
        assert retail_shop.next_ticket_number() == 1


@pytest.mark.django_db
class TestShopSettings:
    """Tests for ShopSettings model."""

    def test_defaults(self, shop_settings):
        assert shop_settings.stock_policy == ShopSettings.STOCK_ON_ORDER
        assert shop_settings.release_table_to == 'cleaning'
        assert shop_settings.currency == 'usd'

    def test_get_settings_singleton(self, shop):
        first = ShopSettings.get_settings(shop)
        second = ShopSettings.get_settings(shop)
        assert first.pk == second.pk
        assert ShopSettings.objects.filter(shop=shop).count() == 1

    def test_currency_from_settings(self, settings, retail_shop):
        settings.SHOPFLOOR = {'DEFAULT_CURRENCY': 'eur'}
        assert ShopSettings.get_settings(retail_shop).currency == 'eur'


# ==============================================================================
# TABLE TESTS
# ==============================================================================

@pytest.mark.django_db
class TestTable:
    """Tests for Table model."""

    def test_str(self, table):
        assert str(table) == 'Table 3'

    def test_default_status(self, table):
        assert table.status == Table.STATUS_AVAILABLE
        assert table.is_seatable is True

    @pytest.mark.parametrize('status, seatable', [
        (Table.STATUS_AVAILABLE, True),
        (Table.STATUS_RESERVED, True),
        (Table.STATUS_OCCUPIED, False),
        (Table.STATUS_CLEANING, False),
    ])
    def test_is_seatable(self, table, status, seatable):
        table.status = status
        assert table.is_seatable is seatable

    def test_open_orders(self, shop, table):
        open_order = Order.objects.create(shop=shop, table=table)
        Order.objects.create(shop=shop, table=table, status=Order.STATUS_COMPLETED)
        assert list(table.open_orders()) == [open_order]

    def test_seated_reservations_scoped_to_occupancy(self, shop, table):
        """Parties seated before the current occupancy started do not count."""
        now = timezone.now()
        earlier = Reservation.objects.create(
            shop=shop, table=table, customer_name='Earlier', party_size=2,
            reservation_time=now, status=Reservation.STATUS_SEATED,
            seated_at=now - timedelta(hours=3),
        )
        current = Reservation.objects.create(
            shop=shop, table=table, customer_name='Current', party_size=2,
            reservation_time=now, status=Reservation.STATUS_SEATED, seated_at=now,
        )
        table.occupied_since = now - timedelta(minutes=5)
        assert list(table.seated_reservations()) == [current]

        table.occupied_since = None
        assert set(table.seated_reservations()) == {earlier, current}


# ==============================================================================
# RESERVATION TESTS
# ==============================================================================

@pytest.mark.django_db
class TestReservation:
    """Tests for Reservation model."""

    def test_defaults(self, reservation):
        assert reservation.status == Reservation.STATUS_CONFIRMED
        assert reservation.is_active is True
        assert reservation.seated_at is None

    def test_str(self, reservation):
        assert str(reservation).startswith('Ada Lovelace (4) @ ')

    @pytest.mark.parametrize('status, active', [
        (Reservation.STATUS_CONFIRMED, True),
        (Reservation.STATUS_SEATED, True),
        (Reservation.STATUS_CANCELLED, False),
        (Reservation.STATUS_NO_SHOW, False),
    ])
    def test_is_active(self, reservation, status, active):
        reservation.status = status
        assert reservation.is_active is active

    def test_ordering_by_time(self, shop):
        late = Reservation.objects.create(
            shop=shop, customer_name='Late', party_size=2, reservation_time=tomorrow_at(21),
        )
        early = Reservation.objects.create(
            shop=shop, customer_name='Early', party_size=2, reservation_time=tomorrow_at(12),
        )
        assert list(Reservation.objects.filter(shop=shop)) == [early, late]


# ==============================================================================
# ORDER TESTS
# ==============================================================================

@pytest.mark.django_db
class TestOrder:
    """Tests for Order and OrderItem models."""

    def test_defaults(self, shop):
        order = Order.objects.create(shop=shop)
        assert order.status == Order.STATUS_OPEN
        assert order.is_open is True
        assert order.total == Decimal('0.00')
        assert order.payment_method == ''

    def test_calculate_total_uses_snapshots(self, shop, burger, beer):
        """Totals use the line price, not the current product price."""
        order = Order.objects.create(shop=shop)
        OrderItem.objects.create(order=order, product=burger, product_name='Burger',
                                 price=Decimal('12.50'), quantity=2)
        OrderItem.objects.create(order=order, product=beer, product_name='Beer',
                                 price=Decimal('4.00'), quantity=1)
        burger.price = Decimal('99.00')
        burger.save()

        assert order.calculate_total() == Decimal('29.00')
        assert order.item_count == 2

    def test_calculate_total_empty(self, shop):
        order = Order.objects.create(shop=shop)
        assert order.calculate_total() == Decimal('0.00')

    def test_line_total(self, shop, fries):
        order = Order.objects.create(shop=shop)
        item = OrderItem.objects.create(order=order, product=fries, product_name='Fries',
                                        price=fries.price, quantity=3)
        assert item.line_total == Decimal('11.25')
        assert str(item) == '3x Fries'


# ==============================================================================
# KITCHEN TICKET TESTS
# ==============================================================================

@pytest.mark.django_db
class TestKitchenTicket:
    """Tests for KitchenTicket model."""

    @pytest.fixture
    def ticket(self, shop):
        order = Order.objects.create(shop=shop)
        return KitchenTicket.objects.create(shop=shop, order=order, ticket_number=1)

    def test_str(self, ticket):
        assert str(ticket) == 'Ticket #1'

    @pytest.mark.parametrize('current, target, allowed', [
        ('pending', 'preparing', True),
        ('pending', 'ready', True),
        ('pending', 'served', True),
        ('preparing', 'ready', True),
        ('ready', 'served', True),
        ('pending', 'pending', False),
        ('ready', 'preparing', False),
        ('served', 'ready', False),
        ('served', 'served', False),
        ('pending', 'cancelled', False),
    ])
    def test_can_advance_to(self, ticket, current, target, allowed):
        ticket.status = current
        assert ticket.can_advance_to(target) is allowed

    def test_elapsed_minutes_stops_when_ready(self, ticket):
        ticket.ready_at = ticket.created_at + timedelta(minutes=12)
        assert ticket.elapsed_minutes == 12
