"""
Initial migration for Stockledger models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create reference data, stock, movements, conversions and fractionations."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(max_length=64, unique=True, verbose_name='SKU')),
                ('name', models.CharField(max_length=200, verbose_name='Name')),
                ('unit', models.CharField(default='un', help_text='Unit of measure (un, kg, lt, ...)', max_length=16, verbose_name='Unit')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'ordering': ['sku'],
            },
        ),
        migrations.CreateModel(
            name='Warehouse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.SlugField(unique=True, verbose_name='Code')),
                ('name', models.CharField(max_length=100, verbose_name='Name')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Warehouse',
                'verbose_name_plural': 'Warehouses',
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='Location',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.SlugField(verbose_name='Code')),
                ('name', models.CharField(max_length=100, verbose_name='Name')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='locations', to='stockledger.warehouse', verbose_name='Warehouse')),
            ],
            options={
                'verbose_name': 'Location',
                'verbose_name_plural': 'Locations',
                'ordering': ['warehouse', 'code'],
                'constraints': [
                    models.UniqueConstraint(fields=('warehouse', 'code'), name='unique_location_code_per_warehouse'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ProductConversion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('conversion_factor', models.DecimalField(decimal_places=6, max_digits=18, verbose_name='Conversion factor')),
                ('waste_percentage', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=7, verbose_name='Waste %')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Active')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Notes')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('destination_product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='conversions_to', to='stockledger.product', verbose_name='Destination product')),
                ('source_product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='conversions_from', to='stockledger.product', verbose_name='Source product')),
            ],
            options={
                'verbose_name': 'Product conversion',
                'verbose_name_plural': 'Product conversions',
                'ordering': ['source_product', 'destination_product'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_active', True)), fields=('source_product', 'destination_product'), name='unique_active_conversion_pair'),
                    models.CheckConstraint(condition=models.Q(('conversion_factor__gt', 0)), name='conversion_factor_positive'),
                    models.CheckConstraint(condition=models.Q(('waste_percentage__gte', 0), ('waste_percentage__lte', 100)), name='conversion_waste_in_range'),
                    models.CheckConstraint(condition=models.Q(('source_product', models.F('destination_product')), _negated=True), name='conversion_distinct_products'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Stock',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=18, verbose_name='Quantity')),
                ('reserved_quantity', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=18, verbose_name='Reserved')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('location', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='stock_lines', to='stockledger.location', verbose_name='Location')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_lines', to='stockledger.product', verbose_name='Product')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_lines', to='stockledger.warehouse', verbose_name='Warehouse')),
            ],
            options={
                'verbose_name': 'Stock',
                'verbose_name_plural': 'Stock',
                'indexes': [
                    models.Index(fields=['product', 'warehouse'], name='stock_product_warehouse_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('product', 'warehouse', 'location'), name='unique_stock_line'),
                    models.UniqueConstraint(condition=models.Q(('location__isnull', True)), fields=('product', 'warehouse'), name='unique_unlocated_stock_line'),
                    models.CheckConstraint(condition=models.Q(('quantity__gte', 0)), name='stock_quantity_non_negative'),
                    models.CheckConstraint(condition=models.Q(('reserved_quantity__gte', 0)), name='stock_reserved_non_negative'),
                    models.CheckConstraint(condition=models.Q(('quantity__gte', models.F('reserved_quantity'))), name='stock_available_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InventoryMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('movement_type', models.CharField(choices=[('entry', 'Entry'), ('exit', 'Exit'), ('transfer', 'Transfer'), ('adjustment', 'Adjustment')], db_index=True, max_length=20, verbose_name='Type')),
                ('direction', models.CharField(choices=[('increase', 'Increase'), ('decrease', 'Decrease')], help_text='Effect on the source stock line', max_length=10, verbose_name='Direction')),
                ('quantity', models.DecimalField(decimal_places=4, max_digits=18, verbose_name='Quantity')),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=4, max_digits=18, null=True, verbose_name='Unit cost')),
                ('reference_type', models.CharField(choices=[('purchase', 'Purchase'), ('sale', 'Sale'), ('adjustment', 'Adjustment'), ('transfer', 'Transfer'), ('return', 'Return'), ('fractionation', 'Fractionation'), ('initial', 'Initial stock')], max_length=30, verbose_name='Reference type')),
                ('reference_id', models.PositiveBigIntegerField(blank=True, null=True, verbose_name='Reference ID')),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('pending', 'Pending'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='completed', max_length=20, verbose_name='Status')),
                ('movement_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Date')),
                ('batch_info', models.JSONField(blank=True, null=True, verbose_name='Batch info')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadata')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Notes')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('destination_location', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='incoming_movements', to='stockledger.location', verbose_name='Destination location')),
                ('destination_warehouse', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='incoming_movements', to='stockledger.warehouse', verbose_name='Destination warehouse')),
                ('location', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='stockledger.location', verbose_name='Location')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='stockledger.product', verbose_name='Product')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='User')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='stockledger.warehouse', verbose_name='Warehouse')),
            ],
            options={
                'verbose_name': 'Movement',
                'verbose_name_plural': 'Movements',
                'ordering': ['movement_date', 'id'],
                'indexes': [
                    models.Index(fields=['product', 'warehouse', 'movement_date'], name='movement_product_date_idx'),
                    models.Index(fields=['reference_type', 'reference_id'], name='movement_reference_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quantity__gt', 0)), name='movement_quantity_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='MovementLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('delta', models.DecimalField(decimal_places=4, help_text='Positive = in, negative = out', max_digits=18, verbose_name='Delta')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('movement', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='lines', to='stockledger.inventorymovement', verbose_name='Movement')),
                ('stock', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movement_lines', to='stockledger.stock', verbose_name='Stock')),
            ],
            options={
                'verbose_name': 'Movement line',
                'verbose_name_plural': 'Movement lines',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['stock', 'created_at'], name='movement_line_stock_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FolioSequence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=50, unique=True, verbose_name='Name')),
                ('last_value', models.PositiveBigIntegerField(default=0, verbose_name='Last value')),
            ],
            options={
                'verbose_name': 'Folio sequence',
                'verbose_name_plural': 'Folio sequences',
            },
        ),
        migrations.CreateModel(
            name='Fractionation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('folio_number', models.CharField(max_length=32, unique=True, verbose_name='Folio')),
                ('folio_sequence', models.PositiveBigIntegerField(unique=True, verbose_name='Folio sequence')),
                ('source_quantity', models.DecimalField(decimal_places=4, max_digits=18, verbose_name='Source quantity')),
                ('produced_quantity', models.DecimalField(decimal_places=4, max_digits=18, verbose_name='Produced quantity')),
                ('waste_quantity', models.DecimalField(decimal_places=4, max_digits=18, verbose_name='Waste quantity')),
                ('waste_percentage', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=7, verbose_name='Waste %')),
                ('conversion_factor_used', models.DecimalField(decimal_places=6, max_digits=18, verbose_name='Conversion factor used')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20, verbose_name='Status')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Notes')),
                ('idempotency_key', models.CharField(blank=True, max_length=100, null=True, unique=True, verbose_name='Idempotency key')),
                ('executed_at', models.DateTimeField(blank=True, null=True, verbose_name='Executed at')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('destination_product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fractionations_to', to='stockledger.product', verbose_name='Destination product')),
                ('entry_movement', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='stockledger.inventorymovement', verbose_name='Entry movement')),
                ('exit_movement', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='stockledger.inventorymovement', verbose_name='Exit movement')),
                ('product_conversion', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fractionations', to='stockledger.productconversion', verbose_name='Conversion')),
                ('source_product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fractionations_from', to='stockledger.product', verbose_name='Source product')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='User')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fractionations', to='stockledger.warehouse', verbose_name='Warehouse')),
            ],
            options={
                'verbose_name': 'Fractionation',
                'verbose_name_plural': 'Fractionations',
                'ordering': ['-folio_sequence'],
            },
        ),
    ]
