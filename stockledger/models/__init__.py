"""
Stockledger Models.

Core models for stock management:
- Product, Warehouse, Location: reference data the ledger resolves
- Stock: Quantity cache per (product, warehouse, location)
- InventoryMovement: Immutable ledger of changes
- MovementLine: Signed effect of a movement on one stock row
- ProductConversion: Allowed source → destination conversions
- Fractionation: Executed conversions
- FolioSequence: Transactional folio counters
"""

from stockledger.models.catalog import Location, Product, Warehouse
from stockledger.models.conversion import ProductConversion
from stockledger.models.enums import (
    FractionationStatus,
    MovementDirection,
    MovementStatus,
    MovementType,
    ReferenceType,
    StockLevel,
)
from stockledger.models.fractionation import Fractionation
from stockledger.models.movement import InventoryMovement, MovementLine
from stockledger.models.sequence import FolioSequence
from stockledger.models.stock import Stock

__all__ = [
    'MovementType',
    'MovementDirection',
    'MovementStatus',
    'ReferenceType',
    'FractionationStatus',
    'StockLevel',
    'Product',
    'Warehouse',
    'Location',
    'Stock',
    'InventoryMovement',
    'MovementLine',
    'ProductConversion',
    'Fractionation',
    'FolioSequence',
]
