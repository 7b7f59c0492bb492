"""
Initial migration for Shopfloor module.
"""

from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion
import django.core.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Shop',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=255, verbose_name='Name')),
                ('business_mode', models.CharField(choices=[('shop', 'Shop'), ('restaurant', 'Restaurant')], default='shop', max_length=20, verbose_name='Business Mode')),
                ('owner_id', models.PositiveIntegerField(blank=True, null=True, verbose_name='Owner')),
                ('ticket_sequence', models.PositiveIntegerField(default=0, verbose_name='Last Ticket Number')),
            ],
            options={
                'verbose_name': 'Shop',
                'verbose_name_plural': 'Shops',
                'db_table': 'shopfloor_shop',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='ShopSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('stock_policy', models.CharField(choices=[('on_order', 'Decrement when ordered'), ('on_ticket_ready', 'Decrement kitchen items when ticket is ready')], default='on_order', max_length=20, verbose_name='Stock Policy')),
                ('release_table_to', models.CharField(choices=[('cleaning', 'Cleaning'), ('available', 'Available')], default='cleaning', max_length=20, verbose_name='Table Status After Payment')),
                ('currency', models.CharField(default='usd', max_length=3, verbose_name='Currency')),
                ('shop', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='shop_settings', to='shopfloor.shop', verbose_name='Shop')),
            ],
            options={
                'verbose_name': 'Shop Settings',
                'verbose_name_plural': 'Shop Settings',
                'db_table': 'shopfloor_shop_settings',
            },
        ),
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=100, verbose_name='Name')),
                ('color', models.CharField(default='#94A3B8', max_length=7, verbose_name='Color')),
                ('shop', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='categories', to='shopfloor.shop', verbose_name='Shop')),
            ],
            options={
                'verbose_name': 'Category',
                'verbose_name_plural': 'Categories',
                'db_table': 'shopfloor_category',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=255, verbose_name='Name')),
                ('price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10, verbose_name='Price')),
                ('stock', models.PositiveIntegerField(default=0, verbose_name='Stock')),
                ('requires_kitchen', models.BooleanField(default=False, verbose_name='Requires Kitchen')),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='products', to='shopfloor.category', verbose_name='Category')),
                ('shop', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='products', to='shopfloor.shop', verbose_name='Shop')),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'db_table': 'shopfloor_product',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Table',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('number', models.PositiveIntegerField(verbose_name='Number')),
                ('capacity', models.PositiveIntegerField(default=4, validators=[django.core.validators.MinValueValidator(1)], verbose_name='Capacity')),
                ('section', models.CharField(blank=True, default='', max_length=50, verbose_name='Section')),
                ('status', models.CharField(choices=[('available', 'Available'), ('reserved', 'Reserved'), ('occupied', 'Occupied'), ('cleaning', 'Cleaning')], default='available', max_length=20, verbose_name='Status')),
                ('occupied_since', models.DateTimeField(blank=True, null=True, verbose_name='Occupied Since')),
                ('shop', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tables', to='shopfloor.shop', verbose_name='Shop')),
            ],
            options={
                'verbose_name': 'Table',
                'verbose_name_plural': 'Tables',
                'db_table': 'shopfloor_table',
                'ordering': ['number'],
                'unique_together': {('shop', 'number')},
            },
        ),
        migrations.CreateModel(
            name='Reservation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer_name', models.CharField(max_length=255, verbose_name='Customer Name')),
                ('customer_phone', models.CharField(blank=True, default='', max_length=50, verbose_name='Phone')),
                ('party_size', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(100)], verbose_name='Party Size')),
                ('reservation_time', models.DateTimeField(verbose_name='Reservation Time')),
                ('status', models.CharField(choices=[('confirmed', 'Confirmed'), ('seated', 'Seated'), ('cancelled', 'Cancelled'), ('no_show', 'No Show')], default='confirmed', max_length=20, verbose_name='Status')),
                ('notes', models.TextField(blank=True, default='')),
                ('seated_at', models.DateTimeField(blank=True, null=True, verbose_name='Seated At')),
                ('shop', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reservations', to='shopfloor.shop', verbose_name='Shop')),
                ('table', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reservations', to='shopfloor.table', verbose_name='Table')),
            ],
            options={
                'verbose_name': 'Reservation',
                'verbose_name_plural': 'Reservations',
                'db_table': 'shopfloor_reservation',
                'ordering': ['reservation_time'],
                'indexes': [
                    models.Index(fields=['shop', 'status'], name='sf_reservation_shop_status'),
                    models.Index(fields=['shop', 'reservation_time'], name='sf_reservation_shop_time'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user_id', models.PositiveIntegerField(blank=True, null=True, verbose_name='Server')),
                ('status', models.CharField(choices=[('open', 'Open'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='open', max_length=20, verbose_name='Status')),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10, verbose_name='Total')),
                ('payment_method', models.CharField(blank=True, choices=[('cash', 'Cash'), ('card', 'Card')], default='', max_length=10, verbose_name='Payment Method')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='Completed At')),
                ('guest_count', models.PositiveIntegerField(default=1, verbose_name='Guests')),
                ('notes', models.TextField(blank=True, default='')),
                ('shop', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='orders', to='shopfloor.shop', verbose_name='Shop')),
                ('table', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to='shopfloor.table', verbose_name='Table')),
            ],
            options={
                'verbose_name': 'Order',
                'verbose_name_plural': 'Orders',
                'db_table': 'shopfloor_order',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['shop', 'status'], name='sf_order_shop_status'),
                    models.Index(fields=['shop', 'created_at'], name='sf_order_shop_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='KitchenTicket',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('ticket_number', models.PositiveIntegerField(verbose_name='Ticket Number')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('preparing', 'Preparing'), ('ready', 'Ready'), ('served', 'Served')], default='pending', max_length=20, verbose_name='Status')),
                ('started_at', models.DateTimeField(blank=True, null=True, verbose_name='Started At')),
                ('ready_at', models.DateTimeField(blank=True, null=True, verbose_name='Ready At')),
                ('served_at', models.DateTimeField(blank=True, null=True, verbose_name='Served At')),
                ('order', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='kitchen_ticket', to='shopfloor.order', verbose_name='Order')),
                ('shop', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='kitchen_tickets', to='shopfloor.shop', verbose_name='Shop')),
            ],
            options={
                'verbose_name': 'Kitchen Ticket',
                'verbose_name_plural': 'Kitchen Tickets',
                'db_table': 'shopfloor_kitchen_ticket',
                'ordering': ['ticket_number'],
                'unique_together': {('shop', 'ticket_number')},
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product_name', models.CharField(max_length=255, verbose_name='Product Name')),
                ('price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10, verbose_name='Unit Price')),
                ('quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)], verbose_name='Quantity')),
                ('stock_deducted', models.BooleanField(default=False, verbose_name='Stock Deducted')),
                ('kitchen_ticket', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='items', to='shopfloor.kitchenticket', verbose_name='Kitchen Ticket')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='shopfloor.order', verbose_name='Order')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.RESTRICT, related_name='order_items', to='shopfloor.product', verbose_name='Product')),
            ],
            options={
                'verbose_name': 'Order Item',
                'verbose_name_plural': 'Order Items',
                'db_table': 'shopfloor_order_item',
                'ordering': ['created_at', 'pk'],
            },
        ),
    ]
