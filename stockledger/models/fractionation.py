"""
Fractionation model — record of a committed source → destination conversion.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.exceptions import StockError
from stockledger.models.enums import FractionationStatus


class Fractionation(models.Model):
    """
    One executed fractionation.

    LIFECYCLE:

        PENDING ──(both movements recorded, same transaction)──► COMPLETED
           │
           └──(before any movement is linked)──► CANCELLED

    Owns exactly one exit movement (source product) and one entry
    movement (destination product), both referencing this row with
    reference_type='fractionation'.

    conversion_factor_used and waste_percentage are snapshots: later
    catalog edits do not change past fractionations.
    """

    folio_number = models.CharField(
        unique=True,
        max_length=32,
        verbose_name=_('Folio'),
    )
    folio_sequence = models.PositiveBigIntegerField(
        unique=True,
        verbose_name=_('Folio sequence'),
    )

    source_product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='fractionations_from',
        verbose_name=_('Source product'),
    )
    destination_product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='fractionations_to',
        verbose_name=_('Destination product'),
    )
    product_conversion = models.ForeignKey(
        'stockledger.ProductConversion',
        on_delete=models.PROTECT,
        related_name='fractionations',
        verbose_name=_('Conversion'),
    )
    warehouse = models.ForeignKey(
        'stockledger.Warehouse',
        on_delete=models.PROTECT,
        related_name='fractionations',
        verbose_name=_('Warehouse'),
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('User'),
    )

    source_quantity = models.DecimalField(max_digits=18, decimal_places=4, verbose_name=_('Source quantity'))
    produced_quantity = models.DecimalField(max_digits=18, decimal_places=4, verbose_name=_('Produced quantity'))
    waste_quantity = models.DecimalField(max_digits=18, decimal_places=4, verbose_name=_('Waste quantity'))
    waste_percentage = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Waste %'),
    )
    conversion_factor_used = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        verbose_name=_('Conversion factor used'),
    )

    exit_movement = models.OneToOneField(
        'stockledger.InventoryMovement',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Exit movement'),
    )
    entry_movement = models.OneToOneField(
        'stockledger.InventoryMovement',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Entry movement'),
    )

    status = models.CharField(
        max_length=20,
        choices=FractionationStatus.choices,
        default=FractionationStatus.PENDING,
        db_index=True,
        verbose_name=_('Status'),
    )
    notes = models.TextField(blank=True, default='', verbose_name=_('Notes'))
    idempotency_key = models.CharField(
        max_length=100,
        unique=True,
        null=True,
        blank=True,
        verbose_name=_('Idempotency key'),
    )

    executed_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Executed at'))
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name = _('Fractionation')
        verbose_name_plural = _('Fractionations')
        ordering = ['-folio_sequence']

    @property
    def has_movements(self) -> bool:
        return self.exit_movement_id is not None or self.entry_movement_id is not None

    def save(self, *args, **kwargs):
        """Completed and cancelled fractionations are immutable."""
        if self.pk:
            stored = type(self).objects.filter(pk=self.pk).values_list('status', flat=True).first()
            if stored in (FractionationStatus.COMPLETED, FractionationStatus.CANCELLED):
                raise StockError('immutable_fractionation', fractionation_id=self.pk, status=stored)
        super().save(*args, **kwargs)

    def cancel(self):
        """PENDING → CANCELLED, only while no movement is linked."""
        if self.status != FractionationStatus.PENDING or self.has_movements:
            raise StockError('immutable_fractionation', fractionation_id=self.pk, status=self.status)
        self.status = FractionationStatus.CANCELLED
        self.save(update_fields=['status'])

    def delete(self, *args, **kwargs):
        raise StockError('immutable_fractionation', fractionation_id=self.pk, status=self.status)

    def __str__(self) -> str:
        return f"{self.folio_number} ({self.status})"
