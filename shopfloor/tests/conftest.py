"""
Pytest fixtures for Shopfloor module tests.
"""

import pytest
from decimal import Decimal

from django.apps import apps
from django.core.cache import caches

from shopfloor.models import (
    Shop,
    ShopSettings,
    Category,
    Product,
    Table,
    Reservation,
)
from shopfloor.tests.helpers import tomorrow_at


@pytest.fixture(autouse=True)
def clear_query_cache():
    """Query cache entries must not leak between tests."""
    caches['default'].clear()
    yield
    caches['default'].clear()


@pytest.fixture
def shop(db):
    """Restaurant-mode shop."""
    shop = Shop.objects.create(name='Test Bistro', business_mode=Shop.MODE_RESTAURANT, owner_id=1)
    ShopSettings.get_settings(shop)
    return shop


@pytest.fixture
def retail_shop(db):
    """Shop-mode shop with no tables."""
    return Shop.objects.create(name='Test Shop', business_mode=Shop.MODE_SHOP, owner_id=1)


@pytest.fixture
def shop_settings(shop):
    return ShopSettings.get_settings(shop)


@pytest.fixture
def category(shop):
    return Category.objects.create(shop=shop, name='Mains', color='#EF4444')


@pytest.fixture
def burger(shop, category):
    """Kitchen-prepared product."""
    return Product.objects.create(
        shop=shop, category=category, name='Burger',
        price=Decimal('12.50'), stock=20, requires_kitchen=True,
    )


@pytest.fixture
def beer(shop):
    """Product served without the kitchen."""
    return Product.objects.create(
        shop=shop, name='Beer', price=Decimal('4.00'), stock=50, requires_kitchen=False,
    )


@pytest.fixture
def fries(shop, category):
    return Product.objects.create(
        shop=shop, category=category, name='Fries',
        price=Decimal('3.75'), stock=30, requires_kitchen=True,
    )


@pytest.fixture
def tables(shop):
    """Tables 1-4 with capacities 2, 4, 6 and 8."""
    return {
        number: Table.objects.create(shop=shop, number=number, capacity=capacity, section='Main')
        for number, capacity in [(1, 2), (2, 4), (3, 6), (4, 8)]
    }


@pytest.fixture
def table(tables):
    """Table 3, capacity 6."""
    return tables[3]


@pytest.fixture
def reservation(shop, table):
    return Reservation.objects.create(
        shop=shop, table=table, customer_name='Ada Lovelace',
        customer_phone='555-0100', party_size=4, reservation_time=tomorrow_at(19),
    )


@pytest.fixture
def broadcaster():
    return apps.get_app_config('shopfloor').broadcaster


@pytest.fixture
def subscription(shop, broadcaster):
    """Subscription to the test shop on the app broadcaster."""
    sub = broadcaster.subscribe(shop.pk, user_id=1)
    yield sub
    sub.close()


@pytest.fixture
def auth_client(client, shop):
    """Client whose session may access the test shop."""
    session = client.session
    session['local_user_id'] = '7'
    session['is_admin'] = False
    session['shop_ids'] = [shop.pk]
    session.save()
    return client


@pytest.fixture
def staff_client(client, db):
    """Client with an admin session (access to every shop)."""
    session = client.session
    session['local_user_id'] = '1'
    session['is_admin'] = True
    session['shop_ids'] = []
    session.save()
    return client
