# Generated manually for made-to-measure orders

import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='MeasurementOrder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_number', models.CharField(max_length=30, unique=True)),
                ('is_guest', models.BooleanField(default=False)),
                ('guest_email', models.EmailField(blank=True, max_length=254, null=True)),
                ('customer_name', models.CharField(max_length=200)),
                ('customer_email', models.EmailField(max_length=254)),
                ('customer_phone', models.CharField(max_length=20)),
                ('street_address', models.CharField(max_length=500)),
                ('city', models.CharField(max_length=100)),
                ('state', models.CharField(max_length=100)),
                ('zip_code', models.CharField(max_length=20)),
                ('country', models.CharField(default='Nigeria', max_length=100)),
                ('shipping_location', models.CharField(max_length=100)),
                ('category', models.CharField(blank=True, max_length=100, null=True)),
                ('templates', models.JSONField(default=list, help_text='Measured templates with quantities and sample images')),
                ('notes', models.TextField(blank=True, null=True)),
                ('price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('delivery_fee', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('tax', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('status', models.CharField(choices=[('order_received', 'Order Received'), ('design_review', 'Design Review'), ('fabric_selection', 'Fabric Selection'), ('pattern_making', 'Pattern Making'), ('cutting', 'Cutting'), ('sewing', 'Sewing'), ('quality_check', 'Quality Check'), ('packed', 'Packed'), ('shipped', 'Shipped'), ('in_transit', 'In Transit'), ('out_for_delivery', 'Out for Delivery'), ('delivered', 'Delivered'), ('cancelled', 'Cancelled')], default='order_received', max_length=30)),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('failed', 'Failed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('monnify_transaction_reference', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('monnify_payment_reference', models.CharField(blank=True, max_length=100, null=True)),
                ('price_set_at', models.DateTimeField(blank=True, null=True)),
                ('is_replaced', models.BooleanField(default=False)),
                ('shipped_at', models.DateTimeField(blank=True, null=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancellation_reason', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('original_order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='replacements', to='measurements.measurementorder')),
                ('price_set_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('replaced_by_order', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='replaces', to='measurements.measurementorder')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='measurement_orders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'measurement_orders',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['-created_at'], name='mso_created_idx'),
                    models.Index(fields=['status'], name='mso_status_idx'),
                    models.Index(fields=['payment_status'], name='mso_payment_status_idx'),
                    models.Index(fields=['monnify_payment_reference'], name='mso_payment_ref_idx'),
                ],
            },
        ),
    ]
