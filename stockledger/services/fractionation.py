"""
Fractionation — turn a quantity of a source product into a destination product.

calculate() is a read-only preview. execute() recomputes everything
server-side and commits the exit movement, the entry movement and the
Fractionation row in one transaction.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from stockledger.conf import stockledger_settings
from stockledger.exceptions import (
    InfrastructureFault,
    InsufficientStock,
    StockError,
    ValidationFault,
)
from stockledger.models.catalog import Product, Warehouse
from stockledger.models.enums import (
    FractionationStatus,
    MovementStatus,
    MovementType,
    ReferenceType,
)
from stockledger.models.fractionation import Fractionation
from stockledger.models.sequence import FolioSequence
from stockledger.quantities import split, to_quantity
from stockledger.services.conversions import ConversionCatalog
from stockledger.services.ledger import COST_EXPONENT, MovementDraft, MovementLedger
from stockledger.services.locking import set_lock_timeout, translate_lock_errors
from stockledger.services.projection import StockProjection

logger = logging.getLogger('stockledger')

FOLIO_SEQUENCE = 'fractionation'


@dataclass(frozen=True)
class FractionationRequest:
    source_product_id: int
    destination_product_id: int
    source_quantity: Decimal
    warehouse_id: int
    notes: str = ''


@dataclass(frozen=True)
class FractionationPreview:
    conversion_id: int
    produced_quantity: Decimal
    waste_quantity: Decimal
    conversion_factor: Decimal
    waste_percentage: Decimal
    available_stock: Decimal
    source_quantity: Decimal

    @property
    def has_enough_stock(self) -> bool:
        return self.available_stock >= self.source_quantity


def format_folio(value: int) -> str:
    padding = stockledger_settings.FOLIO_PADDING
    return f"{stockledger_settings.FOLIO_PREFIX}{value:0{padding}d}"


class FractionationService:
    """Calculate and execute fractionations."""

    # ══════════════════════════════════════════════════════════════
    # CALCULATE
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def calculate(cls, request: FractionationRequest) -> FractionationPreview:
        """
        Preview a fractionation. No writes, no locks.

        Raises:
            ValidationFault: Bad quantity or unknown products/warehouse
            ConversionNotConfigured: No active conversion for the pair
        """
        source_quantity = cls._validate(request)
        conversion = ConversionCatalog.lookup(request.source_product_id, request.destination_product_id)
        result = split(source_quantity, conversion.conversion_factor, conversion.waste_percentage)
        available = StockProjection.available(request.source_product_id, request.warehouse_id)

        return FractionationPreview(
            conversion_id=conversion.pk,
            produced_quantity=result.produced,
            waste_quantity=result.waste,
            conversion_factor=conversion.conversion_factor,
            waste_percentage=conversion.waste_percentage,
            available_stock=to_quantity(available),
            source_quantity=source_quantity,
        )

    # ══════════════════════════════════════════════════════════════
    # EXECUTE
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def execute(cls, request: FractionationRequest, user=None,
                idempotency_key: str | None = None) -> Fractionation:
        """
        Execute a fractionation.

        Steps (one transaction):
        1. Return the existing row if idempotency_key was already used
           for the same request
        2. Recompute preview (never trust the client's)
        3. Lock source lines and the destination line (one statement,
           primary key order), re-check sufficiency
        4. Allocate folio (last lock taken), create Fractionation (pending)
        5. Record exit (source) and entry (destination) movements
        6. Link movements, mark completed

        Raises:
            ValidationFault, ConversionNotConfigured: Nothing written
            ValidationFault('idempotency_key_reused'): Key already used for
                a different request
            InsufficientStock: available < source_quantity, nothing written
            LockTimeout: Stock line stayed locked past the timeout (retryable)
            InfrastructureFault: Storage failure, nothing written (retryable
                with the same idempotency_key)
        """
        if idempotency_key:
            existing = Fractionation.objects.filter(idempotency_key=idempotency_key).first()
            if existing is not None:
                return cls._replay(existing, request)

        try:
            with transaction.atomic(), translate_lock_errors(
                product_id=request.source_product_id, warehouse_id=request.warehouse_id,
            ):
                set_lock_timeout()
                fractionation = cls._execute(request, user, idempotency_key)
        except StockError as exc:
            logger.info(
                "fractionation.rejected",
                extra={"code": exc.code, "kind": exc.kind, "data": exc.as_dict()['data']},
            )
            raise
        except IntegrityError as exc:
            # A concurrent request with the same key won the race
            if idempotency_key:
                existing = Fractionation.objects.filter(idempotency_key=idempotency_key).first()
                if existing is not None:
                    return cls._replay(existing, request)
            logger.exception("fractionation.failed", extra={"request": repr(request)})
            raise InfrastructureFault(reason=str(exc)) from exc
        except DatabaseError as exc:
            logger.exception("fractionation.failed", extra={"request": repr(request)})
            raise InfrastructureFault(reason=str(exc)) from exc

        logger.info(
            "fractionation.execute",
            extra={
                "fractionation_id": fractionation.pk,
                "folio": fractionation.folio_number,
                "source_qty": str(fractionation.source_quantity),
                "produced_qty": str(fractionation.produced_quantity),
                "waste_qty": str(fractionation.waste_quantity),
            },
        )
        return fractionation

    @classmethod
    def _execute(cls, request: FractionationRequest, user, idempotency_key) -> Fractionation:
        preview = cls.calculate(request)
        if preview.produced_quantity <= 0:
            raise ValidationFault('invalid_quantity', field='produced', requested=preview.produced_quantity)

        # All stock rows first (one statement, primary key order), folio row last
        destination = StockProjection.get(request.destination_product_id, request.warehouse_id)
        locked = StockProjection.lock_lines(
            request.source_product_id, request.warehouse_id, extra_ids=[destination.pk],
        )
        source_lines = [s for s in locked if s.product_id == request.source_product_id]
        available = sum((s.available_quantity for s in source_lines), Decimal('0'))
        if available < preview.source_quantity:
            raise InsufficientStock(available=available, required=preview.source_quantity)

        source_cost = cls._source_cost(source_lines)
        entry_cost = None
        if source_cost is not None:
            entry_cost = (source_cost * preview.source_quantity / preview.produced_quantity).quantize(COST_EXPONENT)

        sequence = FolioSequence.next_value(FOLIO_SEQUENCE)
        fractionation = Fractionation.objects.create(
            folio_number=format_folio(sequence),
            folio_sequence=sequence,
            source_product_id=request.source_product_id,
            destination_product_id=request.destination_product_id,
            product_conversion_id=preview.conversion_id,
            warehouse_id=request.warehouse_id,
            user=user,
            source_quantity=preview.source_quantity,
            produced_quantity=preview.produced_quantity,
            waste_quantity=preview.waste_quantity,
            waste_percentage=preview.waste_percentage,
            conversion_factor_used=preview.conversion_factor,
            status=FractionationStatus.PENDING,
            notes=request.notes,
            idempotency_key=idempotency_key or None,
        )

        exit_movement = MovementLedger.record(
            MovementDraft(
                movement_type=MovementType.EXIT,
                product_id=request.source_product_id,
                warehouse_id=request.warehouse_id,
                quantity=preview.source_quantity,
                unit_cost=source_cost,
                reference_type=ReferenceType.FRACTIONATION,
                reference_id=fractionation.pk,
                status=MovementStatus.COMPLETED,
                notes=fractionation.folio_number,
            ),
            user=user,
        )
        entry_movement = MovementLedger.record(
            MovementDraft(
                movement_type=MovementType.ENTRY,
                product_id=request.destination_product_id,
                warehouse_id=request.warehouse_id,
                quantity=preview.produced_quantity,
                unit_cost=entry_cost,
                reference_type=ReferenceType.FRACTIONATION,
                reference_id=fractionation.pk,
                status=MovementStatus.COMPLETED,
                notes=fractionation.folio_number,
                metadata={'waste_quantity': str(preview.waste_quantity)},
            ),
            user=user,
        )

        fractionation.exit_movement = exit_movement
        fractionation.entry_movement = entry_movement
        fractionation.status = FractionationStatus.COMPLETED
        fractionation.executed_at = timezone.now()
        fractionation.save(update_fields=['exit_movement', 'entry_movement', 'status', 'executed_at'])
        return fractionation

    # ══════════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def history(cls, status=None, warehouse_id=None, product_id=None):
        """Fractionations, newest folio first."""
        qs = Fractionation.objects.all()
        if status:
            qs = qs.filter(status=status)
        if warehouse_id is not None:
            qs = qs.filter(warehouse_id=warehouse_id)
        if product_id is not None:
            qs = qs.filter(Q(source_product_id=product_id) | Q(destination_product_id=product_id))
        return qs.order_by('-folio_sequence')

    @classmethod
    def _validate(cls, request: FractionationRequest) -> Decimal:
        source_quantity = to_quantity(request.source_quantity)
        if source_quantity <= 0:
            raise ValidationFault('invalid_quantity', requested=source_quantity)
        if request.source_product_id == request.destination_product_id:
            raise ValidationFault(
                'invalid_reference', field='destination_product', id=request.destination_product_id,
            )
        if not Warehouse.objects.filter(pk=request.warehouse_id, is_active=True).exists():
            raise ValidationFault('invalid_reference', field='warehouse', id=request.warehouse_id)
        found = set(
            Product.objects.filter(
                pk__in=[request.source_product_id, request.destination_product_id],
                is_active=True,
            ).values_list('pk', flat=True)
        )
        for role, pk in (('source_product', request.source_product_id),
                         ('destination_product', request.destination_product_id)):
            if pk not in found:
                raise ValidationFault('invalid_reference', field=role, id=pk)
        return source_quantity

    @classmethod
    def _replay(cls, existing: Fractionation, request: FractionationRequest) -> Fractionation:
        """Return the stored fractionation if the request matches it."""
        stored = (
            existing.source_product_id,
            existing.destination_product_id,
            existing.warehouse_id,
            existing.source_quantity,
        )
        requested = (
            request.source_product_id,
            request.destination_product_id,
            request.warehouse_id,
            to_quantity(request.source_quantity),
        )
        if stored != requested:
            raise ValidationFault(
                'idempotency_key_reused',
                fractionation_id=existing.pk,
                folio=existing.folio_number,
            )
        return existing

    @staticmethod
    def _source_cost(lines) -> Decimal | None:
        """Weighted average unit cost of the priced source lines."""
        priced = [s for s in lines if s.unit_cost is not None and s.quantity > 0]
        quantity = sum((s.quantity for s in priced), Decimal('0'))
        if not quantity:
            return None
        total = sum(s.quantity * s.unit_cost for s in priced)
        return (total / quantity).quantize(COST_EXPONENT)
