"""
Request/response serializers for the HTTP interface.

Requests are validated here, before any service call or lock.
Decimals are rendered as strings; keys are camelCase.
"""

from decimal import Decimal

from rest_framework import serializers

from stockledger.models import (
    Fractionation,
    InventoryMovement,
    MovementDirection,
    MovementStatus,
    MovementType,
    ProductConversion,
    ReferenceType,
    Stock,
)
from stockledger.services.fractionation import FractionationRequest
from stockledger.services.ledger import MovementDraft

MIN_QUANTITY = Decimal('0.0001')


def _quantity_field(**kwargs):
    return serializers.DecimalField(
        max_digits=18, decimal_places=4, coerce_to_string=True, **kwargs
    )


# ══════════════════════════════════════════════════════════════
# FRACTIONATION
# ══════════════════════════════════════════════════════════════

class FractionationInputSerializer(serializers.Serializer):
    sourceProductId = serializers.IntegerField(min_value=1)
    destinationProductId = serializers.IntegerField(min_value=1)
    sourceQuantity = _quantity_field(min_value=MIN_QUANTITY)
    warehouseId = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default='', max_length=2000)

    def validate(self, attrs):
        if attrs['sourceProductId'] == attrs['destinationProductId']:
            raise serializers.ValidationError(
                {'destinationProductId': 'Must differ from sourceProductId.'}
            )
        return attrs

    def to_request(self) -> FractionationRequest:
        data = self.validated_data
        return FractionationRequest(
            source_product_id=data['sourceProductId'],
            destination_product_id=data['destinationProductId'],
            source_quantity=data['sourceQuantity'],
            warehouse_id=data['warehouseId'],
            notes=data.get('notes', ''),
        )


def preview_to_representation(preview) -> dict:
    return {
        'producedQuantity': str(preview.produced_quantity),
        'wasteQuantity': str(preview.waste_quantity),
        'conversionFactor': str(preview.conversion_factor),
        'wastePercentage': str(preview.waste_percentage),
        'availableStock': str(preview.available_stock),
        'hasEnoughStock': preview.has_enough_stock,
    }


class ProductRefSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    sku = serializers.CharField()
    name = serializers.CharField()
    unit = serializers.CharField()


class WarehouseRefSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    code = serializers.CharField()
    name = serializers.CharField()


class FractionationSerializer(serializers.ModelSerializer):
    folioNumber = serializers.CharField(source='folio_number')
    sourceProductId = serializers.IntegerField(source='source_product_id')
    destinationProductId = serializers.IntegerField(source='destination_product_id')
    productConversionId = serializers.IntegerField(source='product_conversion_id')
    warehouseId = serializers.IntegerField(source='warehouse_id')
    userId = serializers.IntegerField(source='user_id', allow_null=True)
    sourceQuantity = _quantity_field(source='source_quantity')
    producedQuantity = _quantity_field(source='produced_quantity')
    wasteQuantity = _quantity_field(source='waste_quantity')
    wastePercentage = serializers.DecimalField(source='waste_percentage', max_digits=7, decimal_places=4)
    conversionFactorUsed = serializers.DecimalField(
        source='conversion_factor_used', max_digits=18, decimal_places=6,
    )
    exitMovementId = serializers.IntegerField(source='exit_movement_id', allow_null=True)
    entryMovementId = serializers.IntegerField(source='entry_movement_id', allow_null=True)
    executedAt = serializers.DateTimeField(source='executed_at', allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at')

    INCLUDES = ('sourceProduct', 'destinationProduct', 'warehouse', 'movements')

    class Meta:
        model = Fractionation
        fields = [
            'id', 'folioNumber', 'sourceProductId', 'destinationProductId',
            'productConversionId', 'warehouseId', 'userId', 'sourceQuantity',
            'producedQuantity', 'wasteQuantity', 'wastePercentage',
            'conversionFactorUsed', 'exitMovementId', 'entryMovementId',
            'status', 'notes', 'executedAt', 'createdAt',
        ]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        include = self.context.get('include', ())
        if 'sourceProduct' in include:
            data['sourceProduct'] = ProductRefSerializer(instance.source_product).data
        if 'destinationProduct' in include:
            data['destinationProduct'] = ProductRefSerializer(instance.destination_product).data
        if 'warehouse' in include:
            data['warehouse'] = WarehouseRefSerializer(instance.warehouse).data
        if 'movements' in include:
            movements = [m for m in (instance.exit_movement, instance.entry_movement) if m is not None]
            data['movements'] = MovementSerializer(movements, many=True).data
        return data


# ══════════════════════════════════════════════════════════════
# CONVERSIONS
# ══════════════════════════════════════════════════════════════

class ConversionSerializer(serializers.ModelSerializer):
    sourceProductId = serializers.IntegerField(source='source_product_id')
    destinationProductId = serializers.IntegerField(source='destination_product_id')
    destinationProduct = ProductRefSerializer(source='destination_product')
    conversionFactor = serializers.DecimalField(source='conversion_factor', max_digits=18, decimal_places=6)
    wastePercentage = serializers.DecimalField(source='waste_percentage', max_digits=7, decimal_places=4)
    isActive = serializers.BooleanField(source='is_active')

    class Meta:
        model = ProductConversion
        fields = [
            'id', 'sourceProductId', 'destinationProductId', 'destinationProduct',
            'conversionFactor', 'wastePercentage', 'isActive', 'notes',
        ]


# ══════════════════════════════════════════════════════════════
# MOVEMENTS
# ══════════════════════════════════════════════════════════════

class MovementInputSerializer(serializers.Serializer):
    movementType = serializers.ChoiceField(choices=MovementType.choices)
    direction = serializers.ChoiceField(choices=MovementDirection.choices, required=False, allow_null=True)
    productId = serializers.IntegerField(min_value=1)
    warehouseId = serializers.IntegerField(min_value=1)
    locationId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    destinationWarehouseId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    destinationLocationId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    quantity = _quantity_field(min_value=MIN_QUANTITY)
    unitCost = _quantity_field(min_value=Decimal('0'), required=False, allow_null=True)
    referenceType = serializers.ChoiceField(choices=ReferenceType.choices)
    referenceId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    status = serializers.ChoiceField(
        choices=[MovementStatus.DRAFT, MovementStatus.PENDING, MovementStatus.COMPLETED],
        default=MovementStatus.COMPLETED,
    )
    movementDate = serializers.DateTimeField(required=False, allow_null=True)
    batchInfo = serializers.JSONField(required=False, allow_null=True)
    metadata = serializers.DictField(required=False, default=dict)
    notes = serializers.CharField(required=False, allow_blank=True, default='', max_length=2000)

    def validate(self, attrs):
        movement_type = attrs['movementType']
        if movement_type == MovementType.ADJUSTMENT and not attrs.get('direction'):
            raise serializers.ValidationError({'direction': 'Required for adjustments.'})
        if movement_type == MovementType.TRANSFER and not attrs.get('destinationWarehouseId'):
            raise serializers.ValidationError({'destinationWarehouseId': 'Required for transfers.'})
        if movement_type != MovementType.TRANSFER and (
            attrs.get('destinationWarehouseId') or attrs.get('destinationLocationId')
        ):
            raise serializers.ValidationError({'destinationWarehouseId': 'Only allowed for transfers.'})
        return attrs

    def to_draft(self) -> MovementDraft:
        data = self.validated_data
        return MovementDraft(
            movement_type=data['movementType'],
            direction=data.get('direction'),
            product_id=data['productId'],
            warehouse_id=data['warehouseId'],
            location_id=data.get('locationId'),
            destination_warehouse_id=data.get('destinationWarehouseId'),
            destination_location_id=data.get('destinationLocationId'),
            quantity=data['quantity'],
            unit_cost=data.get('unitCost'),
            reference_type=data['referenceType'],
            reference_id=data.get('referenceId'),
            status=data['status'],
            movement_date=data.get('movementDate'),
            batch_info=data.get('batchInfo'),
            metadata=data.get('metadata') or {},
            notes=data.get('notes', ''),
        )


class MovementSerializer(serializers.ModelSerializer):
    movementType = serializers.CharField(source='movement_type')
    productId = serializers.IntegerField(source='product_id')
    warehouseId = serializers.IntegerField(source='warehouse_id')
    locationId = serializers.IntegerField(source='location_id', allow_null=True)
    destinationWarehouseId = serializers.IntegerField(source='destination_warehouse_id', allow_null=True)
    destinationLocationId = serializers.IntegerField(source='destination_location_id', allow_null=True)
    quantity = _quantity_field()
    unitCost = _quantity_field(source='unit_cost', allow_null=True)
    referenceType = serializers.CharField(source='reference_type')
    referenceId = serializers.IntegerField(source='reference_id', allow_null=True)
    movementDate = serializers.DateTimeField(source='movement_date')
    userId = serializers.IntegerField(source='user_id', allow_null=True)
    batchInfo = serializers.JSONField(source='batch_info', allow_null=True)
    lines = serializers.SerializerMethodField()

    class Meta:
        model = InventoryMovement
        fields = [
            'id', 'movementType', 'direction', 'productId', 'warehouseId', 'locationId',
            'destinationWarehouseId', 'destinationLocationId', 'quantity', 'unitCost',
            'referenceType', 'referenceId', 'status', 'movementDate', 'userId',
            'batchInfo', 'metadata', 'notes', 'lines',
        ]

    def get_lines(self, obj):
        return [
            {'stockId': line.stock_id, 'delta': str(line.delta)}
            for line in obj.lines.all()
        ]


# ══════════════════════════════════════════════════════════════
# STOCK
# ══════════════════════════════════════════════════════════════

class StockSerializer(serializers.ModelSerializer):
    productId = serializers.IntegerField(source='product_id')
    warehouseId = serializers.IntegerField(source='warehouse_id')
    locationId = serializers.IntegerField(source='location_id', allow_null=True)
    quantity = _quantity_field()
    reservedQuantity = _quantity_field(source='reserved_quantity')
    availableQuantity = _quantity_field(source='available_quantity')
    unitCost = _quantity_field(source='unit_cost', allow_null=True)
    totalValue = serializers.DecimalField(
        source='total_value', max_digits=None, decimal_places=4, coerce_to_string=True, allow_null=True,
    )
    minimumStock = _quantity_field(source='minimum_stock', allow_null=True)
    maximumStock = _quantity_field(source='maximum_stock', allow_null=True)
    reorderPoint = _quantity_field(source='reorder_point', allow_null=True)
    stockLevel = serializers.CharField(source='stock_level')
    needsReorder = serializers.BooleanField(source='needs_reorder')
    updatedAt = serializers.DateTimeField(source='updated_at')

    class Meta:
        model = Stock
        fields = [
            'id', 'productId', 'warehouseId', 'locationId', 'quantity',
            'reservedQuantity', 'availableQuantity', 'unitCost', 'totalValue',
            'minimumStock', 'maximumStock', 'reorderPoint', 'stockLevel',
            'needsReorder', 'updatedAt',
        ]


class ThresholdInputSerializer(serializers.Serializer):
    minimumStock = _quantity_field(min_value=Decimal('0'), required=False, allow_null=True, default=None)
    maximumStock = _quantity_field(min_value=Decimal('0'), required=False, allow_null=True, default=None)
    reorderPoint = _quantity_field(min_value=Decimal('0'), required=False, allow_null=True, default=None)


def summary_to_representation(summary) -> dict:
    return {
        'productCount': summary.product_count,
        'totalQuantity': str(summary.total_quantity),
        'reservedQuantity': str(summary.reserved_quantity),
        'availableQuantity': str(summary.available_quantity),
        'totalValue': str(summary.total_value),
        'lowStockLines': summary.low_stock_lines,
        'outOfStockLines': summary.out_of_stock_lines,
        'reorderLines': summary.reorder_lines,
    }
