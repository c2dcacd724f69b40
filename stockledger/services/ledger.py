"""
Movement ledger — the only writer of Stock.quantity.

All state-changing methods run under transaction.atomic() and lock the
touched Stock rows (primary key order) before re-checking availability.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from stockledger.exceptions import InsufficientStock, StockError, ValidationFault
from stockledger.models.catalog import Location, Product, Warehouse
from stockledger.models.enums import (
    MovementDirection,
    MovementStatus,
    MovementType,
    ReferenceType,
)
from stockledger.models.movement import InventoryMovement, MovementLine
from stockledger.models.stock import Stock
from stockledger.quantities import QUANTITY_LIMIT, check_limit, to_quantity
from stockledger.services.locking import set_lock_timeout, translate_lock_errors
from stockledger.services.projection import StockProjection

logger = logging.getLogger('stockledger')

# Direction implied by the movement type (adjustments must say)
IMPLIED_DIRECTION = {
    MovementType.ENTRY: MovementDirection.INCREASE,
    MovementType.EXIT: MovementDirection.DECREASE,
    MovementType.TRANSFER: MovementDirection.DECREASE,
}

UNAPPLIED = (MovementStatus.DRAFT, MovementStatus.PENDING)

# Stock.unit_cost column scale
COST_EXPONENT = Decimal('0.0001')


@dataclass(frozen=True)
class MovementDraft:
    """Validated-at-the-boundary request to record a movement."""

    movement_type: str
    product_id: int
    warehouse_id: int
    quantity: Decimal
    location_id: int | None = None
    direction: str | None = None
    destination_warehouse_id: int | None = None
    destination_location_id: int | None = None
    unit_cost: Decimal | None = None
    reference_type: str = ReferenceType.ADJUSTMENT
    reference_id: int | None = None
    status: str = MovementStatus.COMPLETED
    movement_date: datetime | None = None
    batch_info: dict | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    notes: str = ''


def _resolve(model, pk, role: str):
    obj = model.objects.filter(pk=pk).first() if pk is not None else None
    if obj is None or not obj.is_active:
        raise ValidationFault('invalid_reference', field=role, id=pk)
    return obj


class MovementLedger:
    """Append-only movement store."""

    # ══════════════════════════════════════════════════════════════
    # RECORD
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def record(cls, draft: MovementDraft, user=None) -> InventoryMovement:
        """
        Record a movement.

        COMPLETED drafts are inserted and applied to stock atomically.
        DRAFT/PENDING drafts are stored without stock effect.

        Raises:
            ValidationFault: Bad quantity, type, direction or references
            InsufficientStock: A decrease would leave available < 0
            LockTimeout: A stock row stayed locked past the timeout

        Concurrency:
            - Validation happens before any lock
            - Runs under transaction.atomic()
            - Uses select_for_update() on every touched Stock row
            - Verifies availability after lock
        """
        values = cls._validate(draft)

        with transaction.atomic(), translate_lock_errors(
            product_id=draft.product_id, warehouse_id=draft.warehouse_id,
        ):
            set_lock_timeout()
            movement = InventoryMovement(user=user, **values)
            movement.save()

            if movement.status == MovementStatus.COMPLETED:
                cls._apply(movement)

        logger.info(
            "stock.record",
            extra={
                "movement_id": movement.pk,
                "type": movement.movement_type,
                "direction": movement.direction,
                "product_id": movement.product_id,
                "warehouse_id": movement.warehouse_id,
                "qty": str(movement.quantity),
                "status": movement.status,
                "reference": f"{movement.reference_type}:{movement.reference_id}",
            },
        )
        return movement

    @classmethod
    def post(cls, movement_id, user=None) -> InventoryMovement:
        """
        Apply a DRAFT/PENDING movement and mark it COMPLETED.

        Raises:
            StockError('immutable_movement'): If already completed/cancelled
            InsufficientStock: Same rule as record()
        """
        with transaction.atomic(), translate_lock_errors(movement_id=movement_id):
            set_lock_timeout()
            movement = cls._get_for_update(movement_id)
            if movement.status not in UNAPPLIED:
                raise StockError('immutable_movement', movement_id=movement.pk, status=movement.status)

            movement.status = MovementStatus.COMPLETED
            if user is not None:
                movement.user = user
            movement.save(update_fields=['status', 'user'])
            cls._apply(movement)

        logger.info("stock.post", extra={"movement_id": movement.pk})
        return movement

    @classmethod
    def cancel(cls, movement_id) -> InventoryMovement:
        """DRAFT/PENDING → CANCELLED. Completed movements need a compensating movement."""
        with transaction.atomic():
            movement = cls._get_for_update(movement_id)
            if movement.status not in UNAPPLIED:
                raise StockError('immutable_movement', movement_id=movement.pk, status=movement.status)
            movement.status = MovementStatus.CANCELLED
            movement.save(update_fields=['status'])

        logger.info("stock.cancel", extra={"movement_id": movement.pk})
        return movement

    @classmethod
    def discard(cls, movement_id) -> None:
        """Delete a DRAFT movement. Anything else is immutable."""
        with transaction.atomic():
            movement = cls._get_for_update(movement_id)
            movement.delete()

        logger.info("stock.discard", extra={"movement_id": movement_id})

    # ══════════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def get(cls, movement_id) -> InventoryMovement:
        movement = InventoryMovement.objects.filter(pk=movement_id).first()
        if movement is None:
            raise ValidationFault('movement_not_found', movement_id=movement_id)
        return movement

    @classmethod
    def history(cls, product_id=None, warehouse_id=None, location_id=None,
                movement_type=None, reference_type=None, reference_id=None,
                status=None, date_from=None, date_to=None):
        """Filtered movements, most recent first."""
        qs = InventoryMovement.objects.select_related('product', 'warehouse', 'location')

        filters = {
            'product_id': product_id,
            'warehouse_id': warehouse_id,
            'location_id': location_id,
            'movement_type': movement_type,
            'reference_type': reference_type,
            'reference_id': reference_id,
            'status': status,
            'movement_date__gte': date_from,
            'movement_date__lte': date_to,
        }
        qs = qs.filter(**{k: v for k, v in filters.items() if v is not None})
        return qs.order_by('-movement_date', '-id')

    @classmethod
    def rebuild(cls, stock: Stock, fix: bool = True) -> Decimal:
        """Recompute a stock row from its movement lines under lock."""
        return cls.audit(stock, fix=fix)[1]

    @classmethod
    def audit(cls, stock: Stock, fix: bool = False) -> tuple[Decimal, Decimal]:
        """
        Compare a stock row with its movement lines under lock.

        Returns:
            (cached quantity as locked, ledger total)

        Raises:
            StockError('reserved_exceeds_ledger'): fix=True and the ledger
                total cannot cover the line's reservations
        """
        with transaction.atomic(), translate_lock_errors(stock_id=stock.pk):
            set_lock_timeout()
            locked = StockProjection.lock([stock.pk])[stock.pk]
            cached = locked.quantity
            return cached, locked.recalculate(fix=fix)

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _validate(cls, draft: MovementDraft) -> dict[str, Any]:
        """Check shape and references. Runs before any lock."""
        if draft.movement_type not in MovementType.values:
            raise ValidationFault('invalid_movement', field='movement_type', value=draft.movement_type)
        if draft.status not in MovementStatus.values or draft.status == MovementStatus.CANCELLED:
            raise ValidationFault('invalid_movement', field='status', value=draft.status)
        if draft.reference_type not in ReferenceType.values:
            raise ValidationFault('invalid_movement', field='reference_type', value=draft.reference_type)

        quantity = check_limit(to_quantity(draft.quantity))
        if quantity <= 0:
            raise ValidationFault('invalid_quantity', requested=quantity)

        direction = IMPLIED_DIRECTION.get(draft.movement_type)
        if direction is None:
            if draft.direction not in MovementDirection.values:
                raise ValidationFault('invalid_movement', field='direction', value=draft.direction)
            direction = draft.direction
        elif draft.direction not in (None, direction):
            raise ValidationFault('invalid_movement', field='direction', value=draft.direction)

        product = _resolve(Product, draft.product_id, 'product')
        warehouse = _resolve(Warehouse, draft.warehouse_id, 'warehouse')
        location = None
        if draft.location_id is not None:
            location = _resolve(Location, draft.location_id, 'location')
            if location.warehouse_id != warehouse.pk:
                raise ValidationFault('invalid_reference', field='location', id=draft.location_id)

        destination_warehouse = destination_location = None
        if draft.movement_type == MovementType.TRANSFER:
            destination_warehouse = _resolve(
                Warehouse, draft.destination_warehouse_id, 'destination_warehouse'
            )
            if draft.destination_location_id is not None:
                destination_location = _resolve(
                    Location, draft.destination_location_id, 'destination_location'
                )
                if destination_location.warehouse_id != destination_warehouse.pk:
                    raise ValidationFault(
                        'invalid_reference', field='destination_location',
                        id=draft.destination_location_id,
                    )
            if (destination_warehouse.pk, draft.destination_location_id) == (warehouse.pk, draft.location_id):
                raise ValidationFault('invalid_movement', field='destination', value='same as source')
        elif draft.destination_warehouse_id is not None or draft.destination_location_id is not None:
            raise ValidationFault('invalid_movement', field='destination', value='transfer only')

        unit_cost = None
        if draft.unit_cost is not None:
            unit_cost = check_limit(to_quantity(draft.unit_cost), field='unit_cost')
            if unit_cost < 0:
                raise ValidationFault('invalid_movement', field='unit_cost', value=unit_cost)

        return {
            'movement_type': draft.movement_type,
            'direction': direction,
            'product': product,
            'warehouse': warehouse,
            'location': location,
            'destination_warehouse': destination_warehouse,
            'destination_location': destination_location,
            'quantity': quantity,
            'unit_cost': unit_cost,
            'reference_type': draft.reference_type,
            'reference_id': draft.reference_id,
            'status': draft.status,
            'movement_date': draft.movement_date or timezone.now(),
            'batch_info': draft.batch_info,
            'metadata': dict(draft.metadata),
            'notes': draft.notes,
        }

    @classmethod
    def _get_for_update(cls, movement_id) -> InventoryMovement:
        movement = InventoryMovement.objects.select_for_update().filter(pk=movement_id).first()
        if movement is None:
            raise ValidationFault('movement_not_found', movement_id=movement_id)
        return movement

    @classmethod
    def _apply(cls, movement: InventoryMovement) -> list[MovementLine]:
        """
        Apply a movement's deltas to stock. Caller holds the transaction.

        Locks (primary key order): every line of the source product in the
        source warehouse, plus the explicit source/destination rows.
        """
        qty = movement.quantity
        explicit_ids = []

        source = None
        if movement.location_id is not None or movement.direction == MovementDirection.INCREASE:
            source = StockProjection.get(movement.product_id, movement.warehouse_id, movement.location_id)
            explicit_ids.append(source.pk)

        destination = None
        if movement.movement_type == MovementType.TRANSFER:
            destination = StockProjection.get(
                movement.product_id, movement.destination_warehouse_id, movement.destination_location_id,
            )
            explicit_ids.append(destination.pk)

        if movement.direction == MovementDirection.DECREASE:
            locked = StockProjection.lock_lines(movement.product_id, movement.warehouse_id, explicit_ids)
        else:
            locked = list(StockProjection.lock(explicit_ids).values())
        by_pk = {stock.pk: stock for stock in locked}

        deltas: list[tuple[Stock, Decimal]] = []
        if movement.direction == MovementDirection.INCREASE:
            deltas.append((by_pk[source.pk], qty))
        elif source is not None:
            line = by_pk[source.pk]
            if line.available_quantity < qty:
                raise InsufficientStock(
                    available=line.available_quantity,
                    required=qty,
                    product_id=movement.product_id,
                    warehouse_id=movement.warehouse_id,
                    location_id=movement.location_id,
                )
            deltas.append((line, -qty))
        else:
            exclude = {destination.pk} if destination is not None else set()
            deltas.extend(cls._allocate(movement, locked, qty, exclude))

        if destination is not None:
            deltas.append((by_pk[destination.pk], qty))

        incoming_cost = movement.unit_cost
        if incoming_cost is None and destination is not None:
            incoming_cost = cls._outgoing_cost(deltas)

        updates = []
        for stock, delta in deltas:
            changes = {'quantity': F('quantity') + delta}
            if delta > 0:
                if stock.quantity + delta >= QUANTITY_LIMIT:
                    raise ValidationFault(
                        'invalid_quantity',
                        requested=delta,
                        stock_id=stock.pk,
                        limit=QUANTITY_LIMIT,
                    )
                if incoming_cost is not None:
                    changes['unit_cost'] = cls._average_cost(stock, delta, incoming_cost)
            updates.append((stock, delta, changes))

        now = timezone.now()
        lines = []
        for stock, delta, changes in updates:
            Stock.objects.filter(pk=stock.pk).update(updated_at=now, **changes)
            lines.append(MovementLine(movement=movement, stock=stock, delta=delta, created_at=now))
        MovementLine.objects.bulk_create(lines)
        return lines

    @staticmethod
    def _average_cost(stock: Stock, delta: Decimal, incoming_cost: Decimal) -> Decimal:
        """Weighted average of the line's current cost and the incoming cost."""
        if stock.unit_cost is None or stock.quantity <= 0:
            return incoming_cost
        total = stock.quantity * stock.unit_cost + delta * incoming_cost
        return (total / (stock.quantity + delta)).quantize(COST_EXPONENT)

    @staticmethod
    def _outgoing_cost(deltas) -> Decimal | None:
        """Average cost of the quantity a transfer takes from its source lines."""
        priced = [(-delta, stock.unit_cost) for stock, delta in deltas
                  if delta < 0 and stock.unit_cost is not None]
        moved = sum((qty for qty, _ in priced), Decimal('0'))
        if not moved:
            return None
        return (sum(qty * cost for qty, cost in priced) / moved).quantize(COST_EXPONENT)

    @classmethod
    def _allocate(cls, movement, locked: list[Stock], qty: Decimal,
                  exclude=frozenset()) -> list[tuple[Stock, Decimal]]:
        """Spread a warehouse-level decrease over the warehouse's lines."""
        candidates = [
            s for s in locked
            if s.product_id == movement.product_id and s.warehouse_id == movement.warehouse_id
            and s.pk not in exclude
        ]
        available = sum((s.available_quantity for s in candidates), Decimal('0'))
        if available < qty:
            raise InsufficientStock(
                available=available,
                required=qty,
                product_id=movement.product_id,
                warehouse_id=movement.warehouse_id,
            )

        remaining = qty
        deltas = []
        for stock in StockProjection.allocation_order(candidates):
            if remaining <= 0:
                break
            take = min(stock.available_quantity, remaining)
            if take > 0:
                deltas.append((stock, -take))
                remaining -= take
        return deltas
