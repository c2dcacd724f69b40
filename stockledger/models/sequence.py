"""
FolioSequence model — transactional counters for human-facing folios.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class FolioSequence(models.Model):
    """
    Named counter allocated inside the caller's transaction.

    next_value() locks the row until commit, so concurrent callers get
    distinct values that increase in commit order. A rolled-back caller
    rolls its increment back too, so the next caller reuses the value.
    """

    name = models.CharField(unique=True, max_length=50, verbose_name=_('Name'))
    last_value = models.PositiveBigIntegerField(default=0, verbose_name=_('Last value'))

    class Meta:
        verbose_name = _('Folio sequence')
        verbose_name_plural = _('Folio sequences')

    @classmethod
    def next_value(cls, name: str) -> int:
        """Allocate the next value. Must run inside transaction.atomic()."""
        cls.objects.get_or_create(name=name)
        seq = cls.objects.select_for_update().get(name=name)
        seq.last_value += 1
        seq.save(update_fields=['last_value'])
        return seq.last_value

    def __str__(self) -> str:
        return f"{self.name}: {self.last_value}"
