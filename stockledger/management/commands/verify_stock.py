"""
Management command to verify Stock quantities against the movement ledger.

Usage:
    python manage.py verify_stock
    python manage.py verify_stock --fix
    python manage.py verify_stock --warehouse main --product SKU-1
"""

from django.core.management.base import BaseCommand, CommandError

from stockledger.exceptions import StockError
from stockledger.models import Stock
from stockledger.services import MovementLedger


def _label(stock) -> str:
    loc = stock.location.code if stock.location_id else '-'
    return f"{stock.product} [{stock.warehouse.code}/{loc}]"


class Command(BaseCommand):
    """Verify (and optionally fix) stock drift command."""

    help = 'Compares each stock line with the sum of its movement lines'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Overwrite drifted quantities with the ledger value'
        )
        parser.add_argument(
            '--warehouse',
            help='Only lines of this warehouse code'
        )
        parser.add_argument(
            '--product',
            help='Only lines of this product SKU'
        )

    def handle(self, *args, **options):
        fix = options['fix']
        lines = Stock.objects.select_related('product', 'warehouse', 'location').order_by('pk')
        if options['warehouse']:
            lines = lines.filter(warehouse__code=options['warehouse'])
        if options['product']:
            lines = lines.filter(product__sku=options['product'])

        checked = drifted = unfixable = 0
        for stock in lines.iterator():
            checked += 1
            try:
                cached, total = MovementLedger.audit(stock, fix=fix)
            except StockError as exc:
                if exc.code != 'reserved_exceeds_ledger':
                    raise
                drifted += 1
                unfixable += 1
                self.stdout.write(
                    f"unfixable: {_label(stock)} ({exc.message}, "
                    f"reserved {exc.data['reserved']}, ledger {exc.data['ledger']})"
                )
                continue
            if total == cached:
                continue
            drifted += 1
            action = 'fixed' if fix else 'drift'
            self.stdout.write(f'{action}: {_label(stock)} (cached {cached}, ledger {total})')

        if unfixable:
            raise CommandError(
                f'{unfixable} of {checked} stock line(s) could not be fixed; release their reservations first'
            )
        if drifted and not fix:
            raise CommandError(f'{drifted} of {checked} stock line(s) drifted; rerun with --fix')

        self.stdout.write(
            self.style.SUCCESS(f'{checked} stock line(s) checked, {drifted} drifted')
        )
