"""
Shopfloor API Views

JSON endpoints for shops, tables, reservations, orders, kitchen tickets and
analytics. Reads go through the query cache; writes go through the services
and invalidate it once they commit.
"""

import json

from django.apps import apps
from django.db import transaction
from django.forms.models import model_to_dict
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .auth import api_view, grant_shop_access, login_required, revoke_shop_access
from .exceptions import StateError, ValidationError
from .forms import (
    CancelOrderForm, CompletePaymentForm, DateForm, KitchenTicketStatusForm, OrderFilterForm,
    OrderForm, ReservationCheckForm, ReservationFilterForm, ReservationForm, ReservationUpdateForm,
    ShopDeleteForm, ShopForm, ShopSettingsForm, ShopUpdateForm, TableForm, TableStatusForm,
    clean_items, clean_or_raise,
)
from .models import Order, Product, Reservation, Shop, ShopSettings, minutes_between
from .payments import get_gateway
from .query_cache import (
    ANALYTICS, KITCHEN_TICKETS, ORDERS, PRODUCTS, RESERVATIONS, SHOP, TABLES, CacheKey,
)
from .services import (
    AnalyticsService, KitchenService, OrderService, ReservationService, ShopService, TableService,
)
from .services.shop_service import get_shop


def _json_body(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        raise ValidationError('Invalid JSON')
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object')
    return data


def _cached(resource_type, shop_id, fetch, **params):
    cache = apps.get_app_config('shopfloor').query_cache
    return cache.get_or_fetch(CacheKey.build(resource_type, shop_id, **params), fetch)


def _iso(value):
    return value.isoformat() if value else None


# =============================================================================
# Serialization
# =============================================================================

def _shop_dict(shop):
    return {
        'id': shop.pk,
        'name': shop.name,
        'business_mode': shop.business_mode,
        'owner_id': shop.owner_id,
    }


def _settings_dict(config):
    return {
        'stock_policy': config.stock_policy,
        'release_table_to': config.release_table_to,
        'currency': config.currency,
    }


def _product_dict(product):
    return {
        'id': product.pk,
        'name': product.name,
        'price': str(product.price),
        'stock': product.stock,
        'category_id': product.category_id,
        'requires_kitchen': product.requires_kitchen,
    }


def _table_dict(table):
    return {
        'id': table.pk,
        'number': table.number,
        'capacity': table.capacity,
        'section': table.section,
        'status': table.status,
        'occupied_since': _iso(table.occupied_since),
    }


def _reservation_dict(reservation):
    return {
        'id': reservation.pk,
        'table_id': reservation.table_id,
        'customer_name': reservation.customer_name,
        'customer_phone': reservation.customer_phone,
        'party_size': reservation.party_size,
        'reservation_time': _iso(reservation.reservation_time),
        'status': reservation.status,
        'notes': reservation.notes,
        'seated_at': _iso(reservation.seated_at),
    }


def _item_dict(item):
    return {
        'id': item.pk,
        'product_id': item.product_id,
        'product_name': item.product_name,
        'quantity': item.quantity,
        'price': str(item.price),
        'line_total': str(item.line_total),
        'kitchen_ticket_id': item.kitchen_ticket_id,
    }


def _order_dict(order, with_items=True):
    data = {
        'id': order.pk,
        'table_id': order.table_id,
        'user_id': order.user_id,
        'status': order.status,
        'total': str(order.total),
        'payment_method': order.payment_method or None,
        'guest_count': order.guest_count,
        'notes': order.notes,
        'created_at': _iso(order.created_at),
        'completed_at': _iso(order.completed_at),
    }
    if with_items:
        data['items'] = [_item_dict(item) for item in order.items.all()]
    return data


def _ticket_dict(ticket):
    return {
        'id': ticket.pk,
        'ticket_number': ticket.ticket_number,
        'order_id': ticket.order_id,
        'table_number': ticket.order.table.number if ticket.order.table_id else None,
        'status': ticket.status,
        'created_at': _iso(ticket.created_at),
        'started_at': _iso(ticket.started_at),
        'ready_at': _iso(ticket.ready_at),
        'served_at': _iso(ticket.served_at),
        'items': [
            {'id': item.pk, 'product_name': item.product_name, 'quantity': item.quantity}
            for item in ticket.items.all()
        ],
    }


def _with_elapsed(ticket):
    """Copy of a ticket dict with ``elapsed_minutes`` as of this request."""
    ready_at = ticket['ready_at']
    return {
        **ticket,
        'elapsed_minutes': minutes_between(
            parse_datetime(ticket['created_at']),
            parse_datetime(ready_at) if ready_at else None,
        ),
    }


# =============================================================================
# Shops
# =============================================================================

@login_required
@require_http_methods(['GET', 'POST'])
@api_view
def shops(request):
    identity = request.identity
    if request.method == 'POST':
        data = clean_or_raise(ShopForm(_json_body(request)))
        shop = ShopService.create_shop(
            data['name'], business_mode=data['business_mode'], owner_id=identity.user_id,
        )
        grant_shop_access(request.session, shop.pk)
        return JsonResponse({'success': True, 'shop': _shop_dict(shop)}, status=201)

    qs = Shop.objects.all()
    if not identity.is_admin:
        qs = qs.filter(pk__in=identity.shop_ids)
    return JsonResponse({'success': True, 'shops': [_shop_dict(s) for s in qs]})


@login_required
@require_http_methods(['GET', 'PATCH', 'DELETE'])
@api_view
def shop_detail(request, shop_id):
    if request.method == 'DELETE':
        data = clean_or_raise(ShopDeleteForm(_json_body(request)))
        result = ShopService.delete_shop(shop_id, confirmation_name=data['confirmation_name'] or None)
        revoke_shop_access(request.session, shop_id)
        return JsonResponse({'success': True, **result})

    if request.method == 'PATCH':
        payload = _json_body(request)
        data = clean_or_raise(ShopUpdateForm(payload))
        shop = ShopService.update_shop(
            shop_id,
            name=data['name'] if 'name' in payload else None,
            business_mode=data['business_mode'] or None,
        )
        return JsonResponse({'success': True, 'shop': _shop_dict(shop)})

    shop = _cached(SHOP, shop_id, lambda: _shop_dict(get_shop(shop_id)))
    return JsonResponse({'success': True, 'shop': shop})


@login_required
@require_http_methods(['GET', 'PATCH'])
@api_view
def shop_settings(request, shop_id):
    shop = get_shop(shop_id)
    config = ShopSettings.get_settings(shop)
    if request.method == 'PATCH':
        payload = _json_body(request)
        fields = ShopSettingsForm.Meta.fields
        form = ShopSettingsForm({**model_to_dict(config, fields=fields), **payload}, instance=config)
        data = clean_or_raise(form)
        config = ShopService.update_settings(
            shop_id, **{name: data[name] for name in fields if name in payload}
        )
    return JsonResponse({'success': True, 'settings': _settings_dict(config)})


@login_required
@require_GET
@api_view
def products(request, shop_id):
    get_shop(shop_id)
    data = _cached(PRODUCTS, shop_id, lambda: [
        _product_dict(p) for p in Product.objects.filter(shop_id=shop_id).order_by('name')
    ])
    return JsonResponse({'success': True, 'products': data})


# =============================================================================
# Tables
# =============================================================================

@login_required
@require_http_methods(['GET', 'POST'])
@api_view
def tables(request, shop_id):
    if request.method == 'POST':
        data = clean_or_raise(TableForm(_json_body(request)))
        table = TableService.create_table(
            shop_id, data['number'], capacity=data['capacity'], section=data['section'],
        )
        return JsonResponse({'success': True, 'table': _table_dict(table)}, status=201)

    get_shop(shop_id)
    data = _cached(TABLES, shop_id, lambda: [
        _table_dict(t) for t in TableService.list_tables(shop_id)
    ])
    return JsonResponse({'success': True, 'tables': data})


@login_required
@require_http_methods(['PATCH'])
@api_view
def table_status(request, shop_id, table_id):
    data = clean_or_raise(TableStatusForm(_json_body(request)))
    table = TableService.set_status(table_id, data['status'], shop_id=shop_id)
    return JsonResponse({'success': True, 'table': _table_dict(table)})


# =============================================================================
# Reservations
# =============================================================================

@login_required
@require_http_methods(['GET', 'POST'])
@api_view
def reservations(request, shop_id):
    if request.method == 'POST':
        data = clean_or_raise(ReservationForm(_json_body(request)))
        reservation, report = ReservationService.create_reservation(
            shop_id,
            customer_name=data['customer_name'],
            party_size=data['party_size'],
            reservation_time=data['reservation_time'],
            table_id=data['table_id'],
            customer_phone=data['customer_phone'],
            notes=data['notes'],
        )
        return JsonResponse({
            'success': True,
            'reservation': _reservation_dict(reservation),
            'warnings': [c.as_dict() for c in report.conflicts],
        }, status=201)

    get_shop(shop_id)
    filters = clean_or_raise(ReservationFilterForm(request.GET))
    data = _cached(
        RESERVATIONS, shop_id,
        lambda: [
            _reservation_dict(r) for r in ReservationService.list_reservations(
                shop_id, date=filters['date'], status=filters['status'] or None,
            )
        ],
        date=filters['date'], status=filters['status'],
    )
    return JsonResponse({'success': True, 'reservations': data})


@login_required
@require_POST
@api_view
def reservation_check(request, shop_id):
    data = clean_or_raise(ReservationCheckForm(_json_body(request)))
    report = ReservationService.check_reservation(
        shop_id,
        data['reservation_time'],
        data['party_size'],
        table_id=data['table_id'],
        exclude_reservation_id=data['exclude_reservation_id'],
    )
    return JsonResponse({'success': True, **report.as_dict()})


@login_required
@require_http_methods(['PATCH'])
@api_view
def reservation_detail(request, shop_id, reservation_id):
    form = ReservationUpdateForm(_json_body(request))
    data = clean_or_raise(form)
    changes = form.changes()
    status = data['status']

    if not changes and not status:
        raise ValidationError('Nothing to update')

    warnings = []
    # Edits and the status move commit together or not at all
    with transaction.atomic():
        if changes:
            reservation, report = ReservationService.update_reservation(
                reservation_id, shop_id=shop_id, **changes
            )
            warnings = [c.as_dict() for c in report.conflicts]
        if status == Reservation.STATUS_SEATED:
            reservation = ReservationService.seat_reservation(
                reservation_id, shop_id=shop_id, table_id=data['table_id'],
            )
        elif status == Reservation.STATUS_CANCELLED:
            reservation = ReservationService.cancel_reservation(reservation_id, shop_id=shop_id)
        elif status == Reservation.STATUS_NO_SHOW:
            reservation = ReservationService.mark_no_show(reservation_id, shop_id=shop_id)

    return JsonResponse({
        'success': True,
        'reservation': _reservation_dict(reservation),
        'warnings': warnings,
    })


# =============================================================================
# Orders
# =============================================================================

@login_required
@require_http_methods(['GET', 'POST'])
@api_view
def orders(request, shop_id):
    if request.method == 'POST':
        payload = _json_body(request)
        data = clean_or_raise(OrderForm(payload))
        order = OrderService.create_order(
            shop_id,
            clean_items(payload.get('items')),
            table_id=data['table_id'],
            user_id=request.identity.user_id,
            guest_count=data['guest_count'] or 1,
            notes=data['notes'],
        )
        return JsonResponse({'success': True, 'order': _order_dict(order)}, status=201)

    get_shop(shop_id)
    filters = clean_or_raise(OrderFilterForm(request.GET))
    data = _cached(
        ORDERS, shop_id,
        lambda: [
            _order_dict(o, with_items=False)
            for o in OrderService.list_orders(shop_id, status=filters['status'] or None)
        ],
        status=filters['status'],
    )
    return JsonResponse({'success': True, 'orders': data})


@login_required
@require_GET
@api_view
def order_detail(request, shop_id, order_id):
    data = _cached(
        ORDERS, shop_id,
        lambda: _order_dict(OrderService.get_order(order_id, shop_id)),
        order_id=order_id,
    )
    return JsonResponse({'success': True, 'order': data})


@login_required
@require_http_methods(['PATCH'])
@api_view
def order_items(request, shop_id, order_id):
    items = clean_items(_json_body(request).get('items'))
    order = OrderService.add_items_to_order(order_id, items, shop_id=shop_id)
    return JsonResponse({'success': True, 'order': _order_dict(order)})


@login_required
@require_http_methods(['PATCH'])
@api_view
def complete_payment(request, shop_id, order_id):
    data = clean_or_raise(CompletePaymentForm(_json_body(request)))
    order = OrderService.complete_payment(order_id, shop_id, data['payment_method'])
    return JsonResponse({'success': True, 'order': _order_dict(order)})


@login_required
@require_POST
@api_view
def cancel_order(request, shop_id, order_id):
    data = clean_or_raise(CancelOrderForm(_json_body(request)))
    order = OrderService.cancel_order(order_id, shop_id=shop_id, reason=data['reason'])
    return JsonResponse({'success': True, 'order': _order_dict(order)})


@login_required
@require_POST
@api_view
def payment_intent(request, shop_id, order_id):
    order = OrderService.get_order(order_id, shop_id)
    if order.status != Order.STATUS_OPEN:
        raise StateError(f"Cannot pay a {order.status} order")
    config = ShopSettings.get_settings(order.shop)
    client_secret = get_gateway().create_payment_intent(
        order.total, config.currency,
        metadata={'order_id': str(order.pk), 'shop_id': str(shop_id)},
    )
    return JsonResponse({
        'success': True,
        'client_secret': client_secret,
        'amount': str(order.total),
        'currency': config.currency,
    })


# =============================================================================
# Kitchen
# =============================================================================

@login_required
@require_GET
@api_view
def kitchen_tickets(request, shop_id):
    get_shop(shop_id)
    data = _cached(KITCHEN_TICKETS, shop_id, lambda: [
        _ticket_dict(t) for t in KitchenService.list_tickets(shop_id)
    ])
    return JsonResponse({'success': True, 'tickets': [_with_elapsed(t) for t in data]})


@login_required
@require_http_methods(['PATCH'])
@api_view
def kitchen_ticket_detail(request, shop_id, ticket_id):
    data = clean_or_raise(KitchenTicketStatusForm(_json_body(request)))
    ticket = KitchenService.advance_kitchen_ticket(ticket_id, data['status'], shop_id=shop_id)
    return JsonResponse({'success': True, 'ticket': _with_elapsed(_ticket_dict(ticket))})


# =============================================================================
# Analytics
# =============================================================================

@login_required
@require_GET
@api_view
def analytics_summary(request, shop_id):
    get_shop(shop_id)
    date = clean_or_raise(DateForm(request.GET))['date'] or timezone.localdate()
    data = _cached(
        ANALYTICS, shop_id,
        lambda: AnalyticsService.sales_summary(shop_id, date=date),
        view='summary', date=date,
    )
    return JsonResponse({'success': True, **data})


@login_required
@require_GET
@api_view
def analytics_predictions(request, shop_id):
    get_shop(shop_id)
    hour = timezone.localtime().strftime('%Y-%m-%dT%H')
    data = _cached(
        ANALYTICS, shop_id,
        lambda: AnalyticsService.predictions(shop_id),
        view='predictions', hour=hour,
    )
    return JsonResponse({'success': True, **data})
