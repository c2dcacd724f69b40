"""
Movement models — Immutable ledger of quantity changes.

InventoryMovement is the business record (what happened and why).
MovementLine is its signed effect on one Stock row; a movement has one
line per stock row it touched (two for a transfer, several for a
warehouse-level exit spread over locations).
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.exceptions import StockError
from stockledger.models.enums import (
    MovementDirection,
    MovementStatus,
    MovementType,
    ReferenceType,
)


class MovementQuerySet(models.QuerySet):

    def completed(self):
        return self.filter(status=MovementStatus.COMPLETED)

    def for_reference(self, reference_type, reference_id):
        return self.filter(reference_type=reference_type, reference_id=reference_id)


class InventoryMovement(models.Model):
    """
    Immutable record of a stock-affecting event.

    Rules:
    - Created only through MovementLedger.record()
    - Once COMPLETED: NEVER update() or delete()
    - Corrections are new movements in the opposite direction
    - DRAFT rows may be discarded, DRAFT/PENDING rows may be cancelled
    """

    movement_type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        db_index=True,
        verbose_name=_('Type'),
    )
    direction = models.CharField(
        max_length=10,
        choices=MovementDirection.choices,
        verbose_name=_('Direction'),
        help_text=_('Effect on the source stock line'),
    )

    product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Product'),
    )
    warehouse = models.ForeignKey(
        'stockledger.Warehouse',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Warehouse'),
    )
    location = models.ForeignKey(
        'stockledger.Location',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='movements',
        verbose_name=_('Location'),
    )
    destination_warehouse = models.ForeignKey(
        'stockledger.Warehouse',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='incoming_movements',
        verbose_name=_('Destination warehouse'),
    )
    destination_location = models.ForeignKey(
        'stockledger.Location',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='incoming_movements',
        verbose_name=_('Destination location'),
    )

    quantity = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        verbose_name=_('Quantity'),
    )
    unit_cost = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Unit cost'),
    )

    reference_type = models.CharField(
        max_length=30,
        choices=ReferenceType.choices,
        verbose_name=_('Reference type'),
    )
    reference_id = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        verbose_name=_('Reference ID'),
    )

    status = models.CharField(
        max_length=20,
        choices=MovementStatus.choices,
        default=MovementStatus.COMPLETED,
        db_index=True,
        verbose_name=_('Status'),
    )
    movement_date = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Date'))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('User'),
    )
    batch_info = models.JSONField(null=True, blank=True, verbose_name=_('Batch info'))
    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadata'))
    notes = models.TextField(blank=True, default='', verbose_name=_('Notes'))

    created_at = models.DateTimeField(auto_now_add=True)

    objects = MovementQuerySet.as_manager()

    class Meta:
        verbose_name = _('Movement')
        verbose_name_plural = _('Movements')
        ordering = ['movement_date', 'id']
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name='movement_quantity_positive',
            ),
        ]
        indexes = [
            models.Index(fields=['product', 'warehouse', 'movement_date'], name='movement_product_date_idx'),
            models.Index(fields=['reference_type', 'reference_id'], name='movement_reference_idx'),
        ]

    @property
    def is_applied(self) -> bool:
        return self.status == MovementStatus.COMPLETED

    def save(self, *args, **kwargs):
        """Reject any rewrite of a completed movement."""
        if self.pk:
            stored = type(self).objects.filter(pk=self.pk).values_list('status', flat=True).first()
            if stored in (MovementStatus.COMPLETED, MovementStatus.CANCELLED):
                raise StockError('immutable_movement', movement_id=self.pk, status=stored)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Only drafts can be deleted; applied movements need a compensating one."""
        if self.status != MovementStatus.DRAFT:
            raise StockError('immutable_movement', movement_id=self.pk, status=self.status)
        return super().delete(*args, **kwargs)

    def __str__(self) -> str:
        sign = '+' if self.direction == MovementDirection.INCREASE else '-'
        return f"#{self.pk} {self.movement_type} {sign}{self.quantity} ({self.reference_type})"


class MovementLine(models.Model):
    """
    Signed effect of a completed movement on one Stock row.

    Immutable. Sum of deltas per stock row == Stock.quantity.
    """

    movement = models.ForeignKey(
        InventoryMovement,
        on_delete=models.PROTECT,
        related_name='lines',
        verbose_name=_('Movement'),
    )
    stock = models.ForeignKey(
        'stockledger.Stock',
        on_delete=models.PROTECT,
        related_name='movement_lines',
        verbose_name=_('Stock'),
    )
    delta = models.DecimalField(
        max_digits=18,
        decimal_places=4,
        verbose_name=_('Delta'),
        help_text=_('Positive = in, negative = out'),
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name = _('Movement line')
        verbose_name_plural = _('Movement lines')
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['stock', 'created_at'], name='movement_line_stock_idx'),
        ]

    def save(self, *args, **kwargs):
        if self.pk:
            raise StockError('immutable_movement', movement_id=self.movement_id)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise StockError('immutable_movement', movement_id=self.movement_id)

    def __str__(self) -> str:
        sign = '+' if self.delta > 0 else ''
        return f"{sign}{self.delta} @ stock {self.stock_id}"
