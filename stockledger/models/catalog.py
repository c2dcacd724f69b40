"""
Reference data — products, warehouses and locations the ledger resolves.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Product(models.Model):
    """
    Stockable product.

    Only the fields the ledger needs; catalog details live elsewhere.
    """

    sku = models.CharField(
        unique=True,
        max_length=64,
        verbose_name=_('SKU'),
    )
    name = models.CharField(max_length=200, verbose_name=_('Name'))
    unit = models.CharField(
        max_length=16,
        default='un',
        verbose_name=_('Unit'),
        help_text=_('Unit of measure (un, kg, lt, ...)'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Product')
        verbose_name_plural = _('Products')
        ordering = ['sku']

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"


class Warehouse(models.Model):
    """Physical warehouse holding stock."""

    code = models.SlugField(
        unique=True,
        max_length=50,
        verbose_name=_('Code'),
    )
    name = models.CharField(max_length=100, verbose_name=_('Name'))
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Warehouse')
        verbose_name_plural = _('Warehouses')
        ordering = ['code']

    def __str__(self) -> str:
        return self.name


class Location(models.Model):
    """
    Location inside a warehouse (aisle, rack, bin).

    Flat structure: a location belongs to exactly one warehouse.
    """

    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name='locations',
        verbose_name=_('Warehouse'),
    )
    code = models.SlugField(max_length=50, verbose_name=_('Code'))
    name = models.CharField(max_length=100, verbose_name=_('Name'))
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Location')
        verbose_name_plural = _('Locations')
        ordering = ['warehouse', 'code']
        constraints = [
            models.UniqueConstraint(
                fields=['warehouse', 'code'],
                name='unique_location_code_per_warehouse',
            )
        ]

    def __str__(self) -> str:
        return f"{self.warehouse.code}/{self.code}"
