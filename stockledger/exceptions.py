"""
Exceptions for Stockledger.

All errors are StockError subclasses with a structured code for
programmatic handling. The ``kind`` attribute groups them:

- validation: bad input shape/range, raised before any lock is taken
- business: expected outcomes (missing conversion, insufficient stock)
- concurrency: lock wait exceeded, safe to retry with backoff
- infrastructure: connection loss, commit failure
"""

from decimal import Decimal
from typing import Any


class BaseError(Exception):
    """
    Exception with a code, a human-readable message and context data.

    Usage:
        raise StockError('invalid_quantity', requested=Decimal('0'))
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data: Any):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, data={self.data!r})"


class StockError(BaseError):
    """
    Structured exception for stock operations.

    Usage:
        try:
            ledger.record(draft)
        except StockError as e:
            if e.code == 'insufficient_stock':
                print(f"Only {e.available} available")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
        kind: validation | business | concurrency | infrastructure
        retryable: Whether the caller may retry the same request
    """

    kind = 'validation'
    retryable = False

    _default_messages = {
        'invalid_quantity': 'Quantity must be positive',
        'invalid_factor': 'Conversion factor must be positive',
        'invalid_waste_percentage': 'Waste percentage must be between 0 and 100',
        'invalid_movement': 'Movement is not valid',
        'invalid_release': 'Cannot release more than reserved',
        'invalid_reference': 'Referenced record does not exist or is inactive',
        'duplicate_conversion': 'An active conversion already exists for this pair',
        'immutable_movement': 'Movement can no longer be changed',
        'immutable_fractionation': 'Fractionation can no longer be changed',
        'movement_not_found': 'Movement not found',
        'conversion_not_configured': 'No active conversion for this product pair',
        'insufficient_stock': 'Insufficient stock',
        'lock_timeout': 'Timed out waiting for a stock lock',
        'infrastructure_error': 'Storage failure, the operation was not applied',
        'idempotency_key_reused': 'Idempotency key was already used for a different request',
        'reserved_exceeds_ledger': 'Ledger total is below the reserved quantity',
        'stock_not_found': 'Stock line not found',
        'invalid_threshold': 'Stock thresholds are not valid',
    }

    @property
    def available(self) -> Decimal:
        """Shortcut for data['available']."""
        return self.data.get('available', Decimal('0'))

    @property
    def required(self) -> Decimal:
        """Shortcut for data['required']."""
        return self.data.get('required', Decimal('0'))

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'error': self.code,
            'message': self.message,
            'kind': self.kind,
            'retryable': self.retryable,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            },
        }


class ValidationFault(StockError):
    """Bad input shape or range."""

    kind = 'validation'


class ConversionNotConfigured(StockError):
    """No active ProductConversion for the requested pair."""

    kind = 'business'

    def __init__(self, source_product_id, destination_product_id):
        super().__init__(
            'conversion_not_configured',
            source_product_id=source_product_id,
            destination_product_id=destination_product_id,
        )


class InsufficientStock(StockError):
    """Applying the change would leave available quantity below zero."""

    kind = 'business'

    def __init__(self, available: Decimal, required: Decimal, **data: Any):
        super().__init__('insufficient_stock', available=available, required=required, **data)


class LockTimeout(StockError):
    """A row lock could not be acquired within the configured timeout."""

    kind = 'concurrency'
    retryable = True

    def __init__(self, **data: Any):
        super().__init__('lock_timeout', **data)


class InfrastructureFault(StockError):
    """Database or commit failure. Nothing was applied."""

    kind = 'infrastructure'
    retryable = True

    def __init__(self, **data: Any):
        super().__init__('infrastructure_error', **data)
