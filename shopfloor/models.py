"""
Shopfloor Models

Catalog, floor and order records for shops and restaurants.
Features:
- Shops in retail or restaurant mode with per-shop settings
- Catalog (categories, products with stock and kitchen routing flag)
- Tables with a single status field driving the floor plan
- Reservations with confirm/seat/cancel/no-show lifecycle
- Orders with price-snapshot line items and one kitchen ticket per order
"""

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F, Sum
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .conf import get_setting


def minutes_between(start, end=None):
    """Whole minutes from ``start`` to ``end`` (default: now)."""
    end = end or timezone.now()
    return int((end - start).total_seconds() / 60)


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# =============================================================================
# Shops
# =============================================================================

class Shop(TimeStampedModel):
    """Tenant owning catalog, floor and orders."""

    MODE_SHOP = 'shop'
    MODE_RESTAURANT = 'restaurant'
    MODE_CHOICES = [
        (MODE_SHOP, _('Shop')),
        (MODE_RESTAURANT, _('Restaurant')),
    ]

    name = models.CharField(max_length=255, verbose_name=_('Name'))
    business_mode = models.CharField(
        max_length=20, choices=MODE_CHOICES,
        default=MODE_SHOP, verbose_name=_('Business Mode'),
    )
    owner_id = models.PositiveIntegerField(null=True, blank=True, verbose_name=_('Owner'))
    ticket_sequence = models.PositiveIntegerField(default=0, verbose_name=_('Last Ticket Number'))

    class Meta:
        db_table = 'shopfloor_shop'
        verbose_name = _('Shop')
        verbose_name_plural = _('Shops')
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def is_restaurant(self):
        return self.business_mode == self.MODE_RESTAURANT

    def has_data(self):
        return (
            self.orders.exists()
            or self.categories.exists()
            or self.products.exists()
            or self.tables.exists()
            or self.reservations.exists()
        )

    def total_seating(self):
        return self.tables.aggregate(total=Sum('capacity'))['total'] or 0

    def next_ticket_number(self):
        """Reserve the next kitchen ticket number for this shop."""
        Shop.objects.filter(pk=self.pk).update(ticket_sequence=F('ticket_sequence') + 1)
        self.refresh_from_db(fields=['ticket_sequence'])
        return self.ticket_sequence


class ShopSettings(TimeStampedModel):
    """Per-shop behaviour switches."""

    STOCK_ON_ORDER = 'on_order'
    STOCK_ON_TICKET_READY = 'on_ticket_ready'
    STOCK_POLICY_CHOICES = [
        (STOCK_ON_ORDER, _('Decrement when ordered')),
        (STOCK_ON_TICKET_READY, _('Decrement kitchen items when ticket is ready')),
    ]

    RELEASE_CHOICES = [
        ('cleaning', _('Cleaning')),
        ('available', _('Available')),
    ]

    shop = models.OneToOneField(
        Shop, on_delete=models.CASCADE,
        related_name='shop_settings', verbose_name=_('Shop'),
    )
    stock_policy = models.CharField(
        max_length=20, choices=STOCK_POLICY_CHOICES,
        default=STOCK_ON_ORDER, verbose_name=_('Stock Policy'),
    )
    release_table_to = models.CharField(
        max_length=20, choices=RELEASE_CHOICES,
        default='cleaning', verbose_name=_('Table Status After Payment'),
    )
    currency = models.CharField(max_length=3, default='usd', verbose_name=_('Currency'))

    class Meta:
        db_table = 'shopfloor_shop_settings'
        verbose_name = _('Shop Settings')
        verbose_name_plural = _('Shop Settings')

    def __str__(self):
        return f"Settings ({self.shop})"

    @classmethod
    def get_settings(cls, shop):
        settings, _ = cls.objects.get_or_create(
            shop=shop, defaults={'currency': get_setting('DEFAULT_CURRENCY')},
        )
        return settings


# =============================================================================
# Catalog
# =============================================================================

class Category(TimeStampedModel):
    shop = models.ForeignKey(
        Shop, on_delete=models.CASCADE,
        related_name='categories', verbose_name=_('Shop'),
    )
    name = models.CharField(max_length=100, verbose_name=_('Name'))
    color = models.CharField(max_length=7, default='#94A3B8', verbose_name=_('Color'))

    class Meta:
        db_table = 'shopfloor_category'
        verbose_name = _('Category')
        verbose_name_plural = _('Categories')
        ordering = ['name']

    def __str__(self):
        return self.name


class Product(TimeStampedModel):
    shop = models.ForeignKey(
        Shop, on_delete=models.CASCADE,
        related_name='products', verbose_name=_('Shop'),
    )
    category = models.ForeignKey(
        Category, on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='products', verbose_name=_('Category'),
    )
    name = models.CharField(max_length=255, verbose_name=_('Name'))
    price = models.DecimalField(
        max_digits=10, decimal_places=2,
        default=Decimal('0.00'), verbose_name=_('Price'),
    )
    stock = models.PositiveIntegerField(default=0, verbose_name=_('Stock'))
    requires_kitchen = models.BooleanField(default=False, verbose_name=_('Requires Kitchen'))

    class Meta:
        db_table = 'shopfloor_product'
        verbose_name = _('Product')
        verbose_name_plural = _('Products')
        ordering = ['name']

    def __str__(self):
        return self.name


# =============================================================================
# Floor
# =============================================================================

class Table(TimeStampedModel):
    """Dining table. ``status`` is the single source of truth for the floor plan."""

    STATUS_AVAILABLE = 'available'
    STATUS_RESERVED = 'reserved'
    STATUS_OCCUPIED = 'occupied'
    STATUS_CLEANING = 'cleaning'
    STATUS_CHOICES = [
        (STATUS_AVAILABLE, _('Available')),
        (STATUS_RESERVED, _('Reserved')),
        (STATUS_OCCUPIED, _('Occupied')),
        (STATUS_CLEANING, _('Cleaning')),
    ]

    # Statuses a party can be seated at
    SEATABLE_STATUSES = [STATUS_AVAILABLE, STATUS_RESERVED]

    shop = models.ForeignKey(
        Shop, on_delete=models.CASCADE,
        related_name='tables', verbose_name=_('Shop'),
    )
    number = models.PositiveIntegerField(verbose_name=_('Number'))
    capacity = models.PositiveIntegerField(
        default=4, validators=[MinValueValidator(1)],
        verbose_name=_('Capacity'),
    )
    section = models.CharField(max_length=50, blank=True, default='', verbose_name=_('Section'))
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES,
        default=STATUS_AVAILABLE, verbose_name=_('Status'),
    )
    occupied_since = models.DateTimeField(null=True, blank=True, verbose_name=_('Occupied Since'))

    class Meta:
        db_table = 'shopfloor_table'
        verbose_name = _('Table')
        verbose_name_plural = _('Tables')
        ordering = ['number']
        unique_together = [('shop', 'number')]

    def __str__(self):
        return f"Table {self.number}"

    @property
    def is_seatable(self):
        return self.status in self.SEATABLE_STATUSES

    def open_orders(self):
        return self.orders.filter(status=Order.STATUS_OPEN)

    def seated_reservations(self):
        """Seated reservations that belong to the current occupancy."""
        qs = self.reservations.filter(status=Reservation.STATUS_SEATED)
        if self.occupied_since:
            qs = qs.filter(seated_at__gte=self.occupied_since)
        return qs


class Reservation(TimeStampedModel):

    STATUS_CONFIRMED = 'confirmed'
    STATUS_SEATED = 'seated'
    STATUS_CANCELLED = 'cancelled'
    STATUS_NO_SHOW = 'no_show'
    STATUS_CHOICES = [
        (STATUS_CONFIRMED, _('Confirmed')),
        (STATUS_SEATED, _('Seated')),
        (STATUS_CANCELLED, _('Cancelled')),
        (STATUS_NO_SHOW, _('No Show')),
    ]

    ACTIVE_STATUSES = [STATUS_CONFIRMED, STATUS_SEATED]

    MAX_PARTY_SIZE = 100

    shop = models.ForeignKey(
        Shop, on_delete=models.CASCADE,
        related_name='reservations', verbose_name=_('Shop'),
    )
    table = models.ForeignKey(
        Table, on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='reservations', verbose_name=_('Table'),
    )
    customer_name = models.CharField(max_length=255, verbose_name=_('Customer Name'))
    customer_phone = models.CharField(max_length=50, blank=True, default='', verbose_name=_('Phone'))
    party_size = models.PositiveIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(MAX_PARTY_SIZE)],
        verbose_name=_('Party Size'),
    )
    reservation_time = models.DateTimeField(verbose_name=_('Reservation Time'))
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES,
        default=STATUS_CONFIRMED, verbose_name=_('Status'),
    )
    notes = models.TextField(blank=True, default='')
    seated_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Seated At'))

    class Meta:
        db_table = 'shopfloor_reservation'
        verbose_name = _('Reservation')
        verbose_name_plural = _('Reservations')
        ordering = ['reservation_time']
        indexes = [
            models.Index(fields=['shop', 'status'], name='sf_reservation_shop_status'),
            models.Index(fields=['shop', 'reservation_time'], name='sf_reservation_shop_time'),
        ]

    def __str__(self):
        return f"{self.customer_name} ({self.party_size}) @ {self.reservation_time:%Y-%m-%d %H:%M}"

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES


# =============================================================================
# Orders
# =============================================================================

class Order(TimeStampedModel):
    """Counter or table order. ``total`` is the sum of item price snapshots."""

    STATUS_OPEN = 'open'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_OPEN, _('Open')),
        (STATUS_COMPLETED, _('Completed')),
        (STATUS_CANCELLED, _('Cancelled')),
    ]

    PAYMENT_CASH = 'cash'
    PAYMENT_CARD = 'card'
    PAYMENT_METHOD_CHOICES = [
        (PAYMENT_CASH, _('Cash')),
        (PAYMENT_CARD, _('Card')),
    ]

    shop = models.ForeignKey(
        Shop, on_delete=models.CASCADE,
        related_name='orders', verbose_name=_('Shop'),
    )
    table = models.ForeignKey(
        Table, on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='orders', verbose_name=_('Table'),
    )
    user_id = models.PositiveIntegerField(null=True, blank=True, verbose_name=_('Server'))
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES,
        default=STATUS_OPEN, verbose_name=_('Status'),
    )
    total = models.DecimalField(
        max_digits=10, decimal_places=2,
        default=Decimal('0.00'), verbose_name=_('Total'),
    )
    payment_method = models.CharField(
        max_length=10, choices=PAYMENT_METHOD_CHOICES,
        blank=True, default='', verbose_name=_('Payment Method'),
    )
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Completed At'))
    guest_count = models.PositiveIntegerField(default=1, verbose_name=_('Guests'))
    notes = models.TextField(blank=True, default='')

    class Meta:
        db_table = 'shopfloor_order'
        verbose_name = _('Order')
        verbose_name_plural = _('Orders')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['shop', 'status'], name='sf_order_shop_status'),
            models.Index(fields=['shop', 'created_at'], name='sf_order_shop_created'),
        ]

    def __str__(self):
        return f"Order #{self.pk}"

    @property
    def is_open(self):
        return self.status == self.STATUS_OPEN

    @property
    def item_count(self):
        return self.items.count()

    def calculate_total(self):
        return sum(
            (item.line_total for item in self.items.all()),
            Decimal('0.00'),
        )


class OrderItem(TimeStampedModel):
    order = models.ForeignKey(
        Order, on_delete=models.CASCADE,
        related_name='items', verbose_name=_('Order'),
    )
    product = models.ForeignKey(
        Product, on_delete=models.RESTRICT,
        related_name='order_items', verbose_name=_('Product'),
    )
    kitchen_ticket = models.ForeignKey(
        'KitchenTicket', on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='items', verbose_name=_('Kitchen Ticket'),
    )

    # Snapshot
    product_name = models.CharField(max_length=255, verbose_name=_('Product Name'))
    price = models.DecimalField(
        max_digits=10, decimal_places=2,
        default=Decimal('0.00'), verbose_name=_('Unit Price'),
    )

    quantity = models.PositiveIntegerField(
        default=1, validators=[MinValueValidator(1)],
        verbose_name=_('Quantity'),
    )
    stock_deducted = models.BooleanField(default=False, verbose_name=_('Stock Deducted'))

    class Meta:
        db_table = 'shopfloor_order_item'
        verbose_name = _('Order Item')
        verbose_name_plural = _('Order Items')
        ordering = ['created_at', 'pk']

    def __str__(self):
        return f"{self.quantity}x {self.product_name}"

    @property
    def line_total(self):
        return self.price * self.quantity


# =============================================================================
# Kitchen
# =============================================================================

class KitchenTicket(TimeStampedModel):
    """Routed kitchen work for the kitchen-prepared lines of one order."""

    STATUS_PENDING = 'pending'
    STATUS_PREPARING = 'preparing'
    STATUS_READY = 'ready'
    STATUS_SERVED = 'served'
    STATUS_CHOICES = [
        (STATUS_PENDING, _('Pending')),
        (STATUS_PREPARING, _('Preparing')),
        (STATUS_READY, _('Ready')),
        (STATUS_SERVED, _('Served')),
    ]

    # Forward-only progression
    STATUS_FLOW = [STATUS_PENDING, STATUS_PREPARING, STATUS_READY, STATUS_SERVED]

    shop = models.ForeignKey(
        Shop, on_delete=models.CASCADE,
        related_name='kitchen_tickets', verbose_name=_('Shop'),
    )
    order = models.OneToOneField(
        Order, on_delete=models.CASCADE,
        related_name='kitchen_ticket', verbose_name=_('Order'),
    )
    ticket_number = models.PositiveIntegerField(verbose_name=_('Ticket Number'))
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES,
        default=STATUS_PENDING, verbose_name=_('Status'),
    )
    started_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Started At'))
    ready_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Ready At'))
    served_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Served At'))

    class Meta:
        db_table = 'shopfloor_kitchen_ticket'
        verbose_name = _('Kitchen Ticket')
        verbose_name_plural = _('Kitchen Tickets')
        ordering = ['ticket_number']
        unique_together = [('shop', 'ticket_number')]

    def __str__(self):
        return f"Ticket #{self.ticket_number}"

    @property
    def elapsed_minutes(self):
        return minutes_between(self.created_at, self.ready_at)

    def can_advance_to(self, next_status):
        if next_status not in self.STATUS_FLOW:
            return False
        return self.STATUS_FLOW.index(next_status) > self.STATUS_FLOW.index(self.status)
