"""
ProductConversion model — allowed source → destination conversions.
"""

from decimal import Decimal

from django.db import models
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _


class ProductConversionQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)


class ProductConversion(models.Model):
    """
    How much destination product one unit of source product yields.

    gross = source_quantity × conversion_factor
    produced = gross − waste_percentage% of gross

    Several conversions may share a source (different presentations).
    At most one active conversion per ordered pair.
    """

    source_product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='conversions_from',
        verbose_name=_('Source product'),
    )
    destination_product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='conversions_to',
        verbose_name=_('Destination product'),
    )
    conversion_factor = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        verbose_name=_('Conversion factor'),
    )
    waste_percentage = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Waste %'),
    )
    is_active = models.BooleanField(default=True, db_index=True, verbose_name=_('Active'))
    notes = models.TextField(blank=True, default='', verbose_name=_('Notes'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductConversionQuerySet.as_manager()

    class Meta:
        verbose_name = _('Product conversion')
        verbose_name_plural = _('Product conversions')
        ordering = ['source_product', 'destination_product']
        constraints = [
            models.UniqueConstraint(
                fields=['source_product', 'destination_product'],
                condition=Q(is_active=True),
                name='unique_active_conversion_pair',
            ),
            models.CheckConstraint(
                condition=Q(conversion_factor__gt=0),
                name='conversion_factor_positive',
            ),
            models.CheckConstraint(
                condition=Q(waste_percentage__gte=0) & Q(waste_percentage__lte=100),
                name='conversion_waste_in_range',
            ),
            models.CheckConstraint(
                condition=~Q(source_product=F('destination_product')),
                name='conversion_distinct_products',
            ),
        ]

    def __str__(self) -> str:
        return (
            f"{self.source_product_id} → {self.destination_product_id} "
            f"(×{self.conversion_factor}, waste {self.waste_percentage}%)"
        )
