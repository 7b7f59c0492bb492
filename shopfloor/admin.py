from django.contrib import admin
from .models import (
    Shop,
    ShopSettings,
    Category,
    Product,
    Table,
    Reservation,
    Order,
    OrderItem,
    KitchenTicket,
)


class ShopSettingsInline(admin.StackedInline):
    model = ShopSettings
    can_delete = False


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    list_display = ['name', 'business_mode', 'owner_id', 'created_at']
    list_filter = ['business_mode']
    search_fields = ['name']
    readonly_fields = ['ticket_sequence']
    inlines = [ShopSettingsInline]


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'shop', 'color']
    list_filter = ['shop']
    search_fields = ['name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'shop', 'category', 'price', 'stock', 'requires_kitchen']
    list_filter = ['shop', 'requires_kitchen']
    search_fields = ['name']


@admin.register(Table)
class TableAdmin(admin.ModelAdmin):
    list_display = ['number', 'shop', 'capacity', 'section', 'status']
    list_filter = ['shop', 'status', 'section']


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ['customer_name', 'shop', 'party_size', 'reservation_time', 'table', 'status']
    list_filter = ['status', 'shop']
    search_fields = ['customer_name', 'customer_phone']


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product_name', 'price', 'stock_deducted', 'kitchen_ticket', 'created_at']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['pk', 'shop', 'table', 'status', 'total', 'payment_method', 'created_at']
    list_filter = ['status', 'payment_method', 'created_at']
    inlines = [OrderItemInline]


@admin.register(KitchenTicket)
class KitchenTicketAdmin(admin.ModelAdmin):
    list_display = ['ticket_number', 'shop', 'order', 'status', 'created_at', 'ready_at']
    list_filter = ['status', 'shop']
