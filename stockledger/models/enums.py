"""
Enums for Stockledger models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class MovementType(models.TextChoices):
    """
    What kind of quantity change a movement represents.

    ENTRY:      Stock arrives (purchase receiving, production output)
    EXIT:       Stock leaves (sales shipping, consumption)
    TRANSFER:   Stock moves between warehouses/locations
    ADJUSTMENT: Manual correction, direction given explicitly
    """
    ENTRY = 'entry', _('Entry')
    EXIT = 'exit', _('Exit')
    TRANSFER = 'transfer', _('Transfer')
    ADJUSTMENT = 'adjustment', _('Adjustment')


class MovementDirection(models.TextChoices):
    """Sign of the movement on its (source) stock line."""
    INCREASE = 'increase', _('Increase')
    DECREASE = 'decrease', _('Decrease')


class MovementStatus(models.TextChoices):
    """Movement lifecycle status."""
    DRAFT = 'draft', _('Draft')              # Stored, not applied, can be discarded
    PENDING = 'pending', _('Pending')        # Stored, not applied, awaiting posting
    COMPLETED = 'completed', _('Completed')  # Applied to stock, immutable
    CANCELLED = 'cancelled', _('Cancelled')  # Never applied


class ReferenceType(models.TextChoices):
    """What caused a movement."""
    PURCHASE = 'purchase', _('Purchase')
    SALE = 'sale', _('Sale')
    ADJUSTMENT = 'adjustment', _('Adjustment')
    TRANSFER = 'transfer', _('Transfer')
    RETURN = 'return', _('Return')
    FRACTIONATION = 'fractionation', _('Fractionation')
    INITIAL = 'initial', _('Initial stock')


class FractionationStatus(models.TextChoices):
    """Fractionation lifecycle status."""
    PENDING = 'pending', _('Pending')
    COMPLETED = 'completed', _('Completed')
    CANCELLED = 'cancelled', _('Cancelled')


class StockLevel(models.TextChoices):
    """Stock line level against its thresholds."""
    OUT = 'out', _('Out of stock')
    LOW = 'low', _('Low')
    NORMAL = 'normal', _('Normal')
