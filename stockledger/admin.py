"""
Stockledger Admin.

Provides views for production debugging:
- Product, Warehouse, Location: list + edit
- ProductConversion: list + edit (changes never touch past fractionations)
- Stock: read-only (quantity, reserved, available)
- InventoryMovement: read-only audit trail
- Fractionation: read-only
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from stockledger.models import (
    Fractionation,
    InventoryMovement,
    Location,
    MovementLine,
    Product,
    ProductConversion,
    Stock,
    StockLevel,
    Warehouse,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    """Ledger tables only change through the services."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =========================================================================
# REFERENCE DATA
# =========================================================================

@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['sku', 'name', 'unit', 'is_active']
    list_filter = ['is_active', 'unit']
    search_fields = ['sku', 'name']
    readonly_fields = ['created_at', 'updated_at']


class LocationInline(admin.TabularInline):
    model = Location
    extra = 0
    fields = ['code', 'name', 'is_active']


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'is_active']
    list_filter = ['is_active']
    search_fields = ['code', 'name']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [LocationInline]


@admin.register(ProductConversion)
class ProductConversionAdmin(admin.ModelAdmin):
    list_display = ['source_product', 'destination_product', 'conversion_factor',
                    'waste_percentage', 'is_active']
    list_filter = ['is_active']
    search_fields = ['source_product__sku', 'destination_product__sku']
    raw_id_fields = ['source_product', 'destination_product']
    readonly_fields = ['created_at', 'updated_at']


# =========================================================================
# STOCK (read-only)
# =========================================================================

@admin.register(Stock)
class StockAdmin(ReadOnlyAdmin):
    """Stock only changes via the movement ledger."""

    list_display = ['product', 'warehouse', 'location', 'quantity',
                    'reserved_quantity', 'available_display', 'unit_cost',
                    'level_display', 'updated_at']
    list_filter = ['warehouse']
    search_fields = ['product__sku', 'product__name']
    list_select_related = ['product', 'warehouse', 'location']

    @admin.display(description=_('Available'))
    def available_display(self, obj):
        return obj.available_quantity

    @admin.display(description=_('Level'))
    def level_display(self, obj):
        return StockLevel(obj.stock_level).label


# =========================================================================
# MOVEMENTS (read-only audit trail)
# =========================================================================

class MovementLineInline(admin.TabularInline):
    model = MovementLine
    extra = 0
    fields = ['stock', 'delta', 'created_at']
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(InventoryMovement)
class InventoryMovementAdmin(ReadOnlyAdmin):
    list_display = ['id', 'movement_date', 'movement_type', 'direction', 'product',
                    'warehouse', 'quantity', 'status', 'reference_type', 'reference_id']
    list_filter = ['movement_type', 'status', 'reference_type', 'warehouse']
    search_fields = ['product__sku', 'notes']
    date_hierarchy = 'movement_date'
    list_select_related = ['product', 'warehouse']
    inlines = [MovementLineInline]


# =========================================================================
# FRACTIONATIONS (read-only)
# =========================================================================

@admin.register(Fractionation)
class FractionationAdmin(ReadOnlyAdmin):
    list_display = ['folio_number', 'source_product', 'destination_product', 'warehouse',
                    'source_quantity', 'produced_quantity', 'waste_quantity',
                    'status', 'executed_at']
    list_filter = ['status', 'warehouse']
    search_fields = ['folio_number', 'source_product__sku', 'destination_product__sku']
    date_hierarchy = 'created_at'
    list_select_related = ['source_product', 'destination_product', 'warehouse']
