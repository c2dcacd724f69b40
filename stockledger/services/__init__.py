"""
Ledger services — one class of classmethods per concern.

    from stockledger.services import (
        StockProjection, MovementLedger, ConversionCatalog, FractionationService,
    )
"""

from stockledger.services.conversions import ConversionCatalog
from stockledger.services.fractionation import (
    FractionationPreview,
    FractionationRequest,
    FractionationService,
)
from stockledger.services.ledger import MovementDraft, MovementLedger
from stockledger.services.projection import StockProjection, StockSummary

__all__ = [
    'StockProjection',
    'StockSummary',
    'MovementLedger',
    'MovementDraft',
    'ConversionCatalog',
    'FractionationService',
    'FractionationRequest',
    'FractionationPreview',
]
