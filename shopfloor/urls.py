"""Shopfloor Module URL Configuration"""

from django.urls import path
from . import views

app_name = 'shopfloor'

urlpatterns = [
    # Shops
    path('api/shops/', views.shops, name='shops'),
    path('api/shops/<int:shop_id>/', views.shop_detail, name='shop_detail'),
    path('api/shops/<int:shop_id>/settings/', views.shop_settings, name='shop_settings'),
    path('api/shops/<int:shop_id>/products/', views.products, name='products'),

    # Tables
    path('api/shops/<int:shop_id>/tables/', views.tables, name='tables'),
    path('api/shops/<int:shop_id>/tables/<int:table_id>/status/', views.table_status, name='table_status'),

    # Reservations
    path('api/shops/<int:shop_id>/reservations/', views.reservations, name='reservations'),
    path('api/shops/<int:shop_id>/reservations/check/', views.reservation_check, name='reservation_check'),
    path('api/shops/<int:shop_id>/reservations/<int:reservation_id>/', views.reservation_detail, name='reservation_detail'),

    # Orders
    path('api/shops/<int:shop_id>/orders/', views.orders, name='orders'),
    path('api/shops/<int:shop_id>/orders/<int:order_id>/', views.order_detail, name='order_detail'),
    path('api/shops/<int:shop_id>/orders/<int:order_id>/items/', views.order_items, name='order_items'),
    path('api/shops/<int:shop_id>/orders/<int:order_id>/complete-payment/', views.complete_payment, name='complete_payment'),
    path('api/shops/<int:shop_id>/orders/<int:order_id>/cancel/', views.cancel_order, name='cancel_order'),
    path('api/shops/<int:shop_id>/orders/<int:order_id>/payment-intent/', views.payment_intent, name='payment_intent'),

    # Kitchen
    path('api/shops/<int:shop_id>/kitchen/tickets/', views.kitchen_tickets, name='kitchen_tickets'),
    path('api/shops/<int:shop_id>/kitchen/tickets/<int:ticket_id>/', views.kitchen_ticket_detail, name='kitchen_ticket_detail'),

    # Analytics
    path('api/shops/<int:shop_id>/analytics/summary/', views.analytics_summary, name='analytics_summary'),
    path('api/shops/<int:shop_id>/analytics/predictions/', views.analytics_predictions, name='analytics_predictions'),
]
