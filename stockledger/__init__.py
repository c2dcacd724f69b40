"""
Stockledger — inventory stock ledger and fractionation engine.

Usage:
    from stockledger import ledger, fractionation, StockError

    ledger.record(MovementDraft('entry', product.pk, warehouse.pk, Decimal('100')))
    fractionation.calculate(FractionationRequest(bulk.pk, pack.pk, Decimal('10'), warehouse.pk))
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'ledger':
        from stockledger.services.ledger import MovementLedger
        return MovementLedger
    elif name == 'projection':
        from stockledger.services.projection import StockProjection
        return StockProjection
    elif name == 'conversions':
        from stockledger.services.conversions import ConversionCatalog
        return ConversionCatalog
    elif name == 'fractionation':
        from stockledger.services.fractionation import FractionationService
        return FractionationService
    elif name == 'MovementDraft':
        from stockledger.services.ledger import MovementDraft
        return MovementDraft
    elif name == 'FractionationRequest':
        from stockledger.services.fractionation import FractionationRequest
        return FractionationRequest
    elif name == 'StockError':
        from stockledger.exceptions import StockError
        return StockError
    elif name == 'Stock':
        from stockledger.models.stock import Stock
        return Stock
    elif name == 'InventoryMovement':
        from stockledger.models.movement import InventoryMovement
        return InventoryMovement
    elif name == 'Fractionation':
        from stockledger.models.fractionation import Fractionation
        return Fractionation
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'ledger',
    'projection',
    'conversions',
    'fractionation',
    'MovementDraft',
    'FractionationRequest',
    'StockError',
    'Stock',
    'InventoryMovement',
    'Fractionation',
]

__version__ = '0.1.0'
