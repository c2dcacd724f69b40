"""
Stock projection — current quantities and reservations.

Reads use no locking. reserve(), release() and set_thresholds() lock the
stock row.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.db.models import Q

from stockledger.exceptions import InsufficientStock, ValidationFault
from stockledger.models.catalog import Location
from stockledger.models.enums import StockLevel
from stockledger.models.stock import Stock
from stockledger.quantities import check_limit, to_quantity
from stockledger.services.locking import set_lock_timeout, translate_lock_errors

logger = logging.getLogger('stockledger')


@dataclass(frozen=True)
class StockSummary:
    product_count: int
    total_quantity: Decimal
    reserved_quantity: Decimal
    available_quantity: Decimal
    total_value: Decimal
    low_stock_lines: int
    out_of_stock_lines: int
    reorder_lines: int


class StockProjection:
    """Stock read model and reservation methods."""

    # ══════════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def get(cls, product_id, warehouse_id, location_id=None) -> Stock:
        """
        Stock row for a coordinate.

        Creates a zero-quantity row on first read.
        """
        stock, _ = Stock.objects.get_or_create(
            product_id=product_id,
            warehouse_id=warehouse_id,
            location_id=location_id,
        )
        return stock

    @classmethod
    def available(cls, product_id, warehouse_id) -> Decimal:
        """
        Available quantity across every location of the warehouse.

        available = sum(quantity) - sum(reserved_quantity)
        """
        return Stock.objects.for_product(product_id).in_warehouse(warehouse_id).total_available()

    @classmethod
    def lines(cls, product_id=None, warehouse_id=None, include_empty: bool = False,
              location_id=None, low_stock: bool = False):
        """List stock rows with filters."""
        qs = Stock.objects.select_related('product', 'warehouse', 'location')

        if product_id is not None:
            qs = qs.for_product(product_id)

        if warehouse_id is not None:
            qs = qs.in_warehouse(warehouse_id)

        if location_id is not None:
            qs = qs.at_location(location_id)

        if low_stock:
            # Includes empty lines with a minimum set
            qs = qs.low_stock()
        elif not include_empty:
            qs = qs.non_empty()

        return qs.order_by('product_id', 'warehouse_id', 'location_id')

    @classmethod
    def warehouse_summary(cls, warehouse_id) -> StockSummary:
        """Totals over every stock line of a warehouse."""
        return cls._summarize(Stock.objects.in_warehouse(warehouse_id))

    @classmethod
    def location_summary(cls, location_id) -> StockSummary:
        """Totals over the stock lines of one location."""
        return cls._summarize(Stock.objects.at_location(location_id))

    @staticmethod
    def _summarize(qs) -> StockSummary:
        zero = Decimal('0')
        products = set()
        quantity = reserved = value = zero
        levels = {level: 0 for level in StockLevel.values}
        reorder = 0

        for stock in qs:
            if stock.quantity > 0:
                products.add(stock.product_id)
            quantity += stock.quantity
            reserved += stock.reserved_quantity
            value += stock.total_value or zero
            levels[stock.stock_level] += 1
            reorder += stock.needs_reorder

        return StockSummary(
            product_count=len(products),
            total_quantity=quantity,
            reserved_quantity=reserved,
            available_quantity=quantity - reserved,
            total_value=value,
            low_stock_lines=levels[StockLevel.LOW],
            out_of_stock_lines=levels[StockLevel.OUT],
            reorder_lines=reorder,
        )

    # ══════════════════════════════════════════════════════════════
    # THRESHOLDS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def set_thresholds(cls, stock_id, minimum_stock=None, maximum_stock=None,
                       reorder_point=None) -> Stock:
        """
        Replace a line's replenishment thresholds (None clears one).

        Raises:
            ValidationFault('stock_not_found'): Unknown stock line
            ValidationFault('invalid_threshold'): Negative value, or
                minimum/reorder point above maximum
        """
        values = {
            'minimum_stock': minimum_stock,
            'maximum_stock': maximum_stock,
            'reorder_point': reorder_point,
        }
        for name, value in values.items():
            if value is None:
                continue
            values[name] = check_limit(to_quantity(value), field=name)
            if values[name] < 0:
                raise ValidationFault('invalid_threshold', field=name, value=values[name])

        maximum = values['maximum_stock']
        if maximum is not None:
            for name in ('minimum_stock', 'reorder_point'):
                if values[name] is not None and values[name] > maximum:
                    raise ValidationFault('invalid_threshold', field=name, value=values[name])

        with transaction.atomic(), translate_lock_errors(stock_id=stock_id):
            set_lock_timeout()
            stock = cls.lock([stock_id]).get(stock_id)
            if stock is None:
                raise ValidationFault('stock_not_found', stock_id=stock_id)
            for name, value in values.items():
                setattr(stock, name, value)
            stock.save(update_fields=[*values, 'updated_at'])

        logger.info(
            "stock.thresholds",
            extra={"stock_id": stock_id, **{k: str(v) for k, v in values.items()}},
        )
        return stock

    # ══════════════════════════════════════════════════════════════
    # LOCKING
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def lock_lines(cls, product_id, warehouse_id, extra_ids=()) -> list[Stock]:
        """
        Lock every line of product in warehouse, plus extra stock rows.

        Rows are locked in primary key order. Must run inside
        transaction.atomic().
        """
        condition = Q(product_id=product_id, warehouse_id=warehouse_id)
        if extra_ids:
            condition |= Q(pk__in=list(extra_ids))
        return list(Stock.objects.select_for_update().filter(condition).order_by('pk'))

    @classmethod
    def lock(cls, stock_ids) -> dict[int, Stock]:
        """Lock specific stock rows in primary key order."""
        locked = Stock.objects.select_for_update().filter(pk__in=list(stock_ids)).order_by('pk')
        return {stock.pk: stock for stock in locked}

    @classmethod
    def allocation_order(cls, lines: list[Stock]) -> list[Stock]:
        """Unlocated line first, then by location code."""
        codes = dict(
            Location.objects.filter(
                pk__in=[line.location_id for line in lines if line.location_id]
            ).values_list('pk', 'code')
        )
        return sorted(
            lines,
            key=lambda line: (line.location_id is not None, codes.get(line.location_id, ''), line.pk),
        )

    # ══════════════════════════════════════════════════════════════
    # RESERVATIONS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def reserve(cls, product_id, warehouse_id, quantity, location_id=None) -> Stock:
        """
        Reserve quantity on a stock line.

        Raises:
            InsufficientStock: If quantity > line available
            ValidationFault('invalid_quantity'): If quantity <= 0
        """
        qty = cls._positive(quantity)

        with transaction.atomic(), translate_lock_errors(product_id=product_id, warehouse_id=warehouse_id):
            set_lock_timeout()
            stock = cls.get(product_id, warehouse_id, location_id)
            stock = cls.lock([stock.pk])[stock.pk]

            if stock.available_quantity < qty:
                raise InsufficientStock(
                    available=stock.available_quantity,
                    required=qty,
                    stock_id=stock.pk,
                )

            stock.reserved_quantity += qty
            stock.save(update_fields=['reserved_quantity', 'updated_at'])
            logger.info(
                "stock.reserve",
                extra={"stock_id": stock.pk, "qty": str(qty)},
            )
            return stock

    @classmethod
    def release(cls, product_id, warehouse_id, quantity, location_id=None) -> Stock:
        """
        Release a previous reservation.

        Raises:
            ValidationFault('invalid_release'): If quantity > reserved
        """
        qty = cls._positive(quantity)

        with transaction.atomic(), translate_lock_errors(product_id=product_id, warehouse_id=warehouse_id):
            set_lock_timeout()
            stock = cls.get(product_id, warehouse_id, location_id)
            stock = cls.lock([stock.pk])[stock.pk]

            if stock.reserved_quantity < qty:
                raise ValidationFault(
                    'invalid_release',
                    reserved=stock.reserved_quantity,
                    requested=qty,
                )

            stock.reserved_quantity -= qty
            stock.save(update_fields=['reserved_quantity', 'updated_at'])
            logger.info(
                "stock.release",
                extra={"stock_id": stock.pk, "qty": str(qty)},
            )
            return stock

    @staticmethod
    def _positive(quantity) -> Decimal:
        qty = to_quantity(quantity)
        if qty <= 0:
            raise ValidationFault('invalid_quantity', requested=qty)
        return qty
