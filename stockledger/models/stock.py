"""
Stock model — Quantity cache per (product, warehouse, location).
"""

import logging
from decimal import Decimal

from django.db import models
from django.db.models import Q, Sum
from django.db.models.functions import Coalesce
from django.utils.translation import gettext_lazy as _

from stockledger.exceptions import StockError
from stockledger.models.enums import StockLevel

logger = logging.getLogger('stockledger')


class StockQuerySet(models.QuerySet):
    """QuerySet with helper methods for Stock queries."""

    def for_product(self, product_id):
        return self.filter(product_id=product_id)

    def in_warehouse(self, warehouse_id):
        return self.filter(warehouse_id=warehouse_id)

    def at_location(self, location_id):
        """Filter by location (None = unlocated line)."""
        if location_id is None:
            return self.filter(location__isnull=True)
        return self.filter(location_id=location_id)

    def non_empty(self):
        return self.filter(Q(quantity__gt=0) | Q(reserved_quantity__gt=0))

    def low_stock(self):
        """Lines whose available quantity is at or below minimum_stock."""
        return self.filter(
            minimum_stock__isnull=False,
            quantity__lte=models.F('minimum_stock') + models.F('reserved_quantity'),
        )

    def total_available(self) -> Decimal:
        """Sum of (quantity - reserved_quantity) over the queryset."""
        totals = self.aggregate(
            q=Coalesce(Sum('quantity'), Decimal('0')),
            r=Coalesce(Sum('reserved_quantity'), Decimal('0')),
        )
        return totals['q'] - totals['r']


class Stock(models.Model):
    """
    Quantity of a product at a (warehouse, location) coordinate.

    Coordinates:
    - warehouse: WHERE (required)
    - location: WHERE inside the warehouse, null means unlocated

    Rules:
    - quantity is a cache updated only by the movement ledger
    - reserved_quantity is updated only by reserve/release
    - unit_cost is a weighted average kept by the movement ledger
    - rows are never deleted (zero rows stay for audit)
    - read is O(1); use recalculate() for audit/correction
    """

    product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='stock_lines',
        verbose_name=_('Product'),
    )
    warehouse = models.ForeignKey(
        'stockledger.Warehouse',
        on_delete=models.PROTECT,
        related_name='stock_lines',
        verbose_name=_('Warehouse'),
    )
    location = models.ForeignKey(
        'stockledger.Location',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='stock_lines',
        verbose_name=_('Location'),
    )

    quantity = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Quantity'),
    )
    reserved_quantity = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Reserved'),
    )

    # Weighted average cost, updated by priced increases
    unit_cost = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Unit cost'),
    )

    # Replenishment thresholds (compared with available quantity)
    minimum_stock = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Minimum stock'),
    )
    maximum_stock = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Maximum stock'),
    )
    reorder_point = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Reorder point'),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StockQuerySet.as_manager()

    class Meta:
        verbose_name = _('Stock')
        verbose_name_plural = _('Stock')
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'warehouse', 'location'],
                name='unique_stock_line',
            ),
            models.UniqueConstraint(
                fields=['product', 'warehouse'],
                condition=Q(location__isnull=True),
                name='unique_unlocated_stock_line',
            ),
            models.CheckConstraint(
                condition=Q(quantity__gte=0),
                name='stock_quantity_non_negative',
            ),
            models.CheckConstraint(
                condition=Q(reserved_quantity__gte=0),
                name='stock_reserved_non_negative',
            ),
            models.CheckConstraint(
                condition=Q(quantity__gte=models.F('reserved_quantity')),
                name='stock_available_non_negative',
            ),
            models.CheckConstraint(
                condition=Q(unit_cost__isnull=True) | Q(unit_cost__gte=0),
                name='stock_unit_cost_non_negative',
            ),
            models.CheckConstraint(
                condition=(
                    Q(minimum_stock__isnull=True)
                    | Q(maximum_stock__isnull=True)
                    | Q(minimum_stock__lte=models.F('maximum_stock'))
                ),
                name='stock_minimum_below_maximum',
            ),
        ]
        indexes = [
            models.Index(fields=['product', 'warehouse'], name='stock_product_warehouse_idx'),
        ]

    # ══════════════════════════════════════════════════════════════
    # PROPERTIES
    # ══════════════════════════════════════════════════════════════

    @property
    def available_quantity(self) -> Decimal:
        """Available for new exits and reservations."""
        return self.quantity - self.reserved_quantity

    @property
    def total_value(self) -> Decimal | None:
        """quantity × unit_cost, None while the line has no cost."""
        if self.unit_cost is None:
            return None
        return (self.quantity * self.unit_cost).quantize(Decimal('0.0001'))

    @property
    def stock_level(self) -> str:
        """
        out: nothing available
        low: available at or below minimum_stock
        normal: anything else
        """
        available = self.available_quantity
        if available <= 0:
            return StockLevel.OUT
        if self.minimum_stock is not None and available <= self.minimum_stock:
            return StockLevel.LOW
        return StockLevel.NORMAL

    @property
    def needs_reorder(self) -> bool:
        return self.reorder_point is not None and self.available_quantity <= self.reorder_point

    # ══════════════════════════════════════════════════════════════
    # METHODS
    # ══════════════════════════════════════════════════════════════

    def recalculate(self, fix: bool = True) -> Decimal:
        """
        Recalculate quantity from movement lines.

        Use for:
        - Integrity audit
        - Correction after detected inconsistency

        Returns:
            Quantity according to the ledger

        Raises:
            StockError('reserved_exceeds_ledger'): fix=True but the ledger
                total is below reserved_quantity (needs a manual release)
        """
        total = self.movement_lines.aggregate(
            t=Coalesce(Sum('delta'), Decimal('0'))
        )['t']

        if total != self.quantity:
            logger.warning(
                "stock.drift",
                extra={
                    "stock_id": self.pk,
                    "cached": str(self.quantity),
                    "ledger": str(total),
                    "fixed": fix,
                },
            )
            if fix and total < self.reserved_quantity:
                raise StockError(
                    'reserved_exceeds_ledger',
                    stock_id=self.pk,
                    reserved=self.reserved_quantity,
                    ledger=total,
                )
            if fix:
                self.quantity = total
                self.save(update_fields=['quantity', 'updated_at'])

        return total

    def __str__(self) -> str:
        loc = self.location.code if self.location_id else '-'
        return f"{self.product} [{self.warehouse.code}/{loc}]: {self.quantity}"
