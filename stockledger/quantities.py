"""
Quantity arithmetic — pure Decimal rules, no database access.

Rounding policy (applied everywhere):
    gross    = source × factor              ROUND_HALF_UP to scale
    waste    = gross × waste% / 100         ROUND_DOWN to scale
    produced = gross − waste                (absorbs the remainder)

so ``produced + waste == gross`` holds exactly after rounding.

Every stored quantity must stay below QUANTITY_LIMIT, the first value a
DecimalField(max_digits=18, decimal_places=4) column cannot hold.

Examples:
    >>> split(Decimal('100'), Decimal('0.9'), Decimal('10'))
    ConversionResult(gross=Decimal('90.0000'), produced=Decimal('81.0000'), waste=Decimal('9.0000'))
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple

from stockledger.conf import stockledger_settings
from stockledger.exceptions import ValidationFault

HUNDRED = Decimal('100')
ZERO = Decimal('0')
QUANTITY_LIMIT = Decimal(10) ** 14


class ConversionResult(NamedTuple):
    gross: Decimal
    produced: Decimal
    waste: Decimal


def _exponent() -> Decimal:
    return Decimal(1).scaleb(-stockledger_settings.QUANTITY_SCALE)


def _to_decimal(value, code: str) -> Decimal:
    if isinstance(value, Decimal):
        number = value
    else:
        # Floats go through str() so 0.1 stays 0.1
        if isinstance(value, float):
            value = str(value)
        try:
            number = Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationFault(code, value=value)
    if not number.is_finite():
        raise ValidationFault(code, value=str(number))
    return number


def to_quantity(value, rounding=ROUND_HALF_UP) -> Decimal:
    """Coerce value to a Decimal at the configured scale."""
    number = _to_decimal(value, 'invalid_quantity')
    try:
        return number.quantize(_exponent(), rounding=rounding)
    except InvalidOperation:
        # More digits than the decimal context can carry
        raise ValidationFault('invalid_quantity', value=str(number))


def check_limit(quantity: Decimal, **data) -> Decimal:
    """Reject quantities a stock column cannot store."""
    if abs(quantity) >= QUANTITY_LIMIT:
        raise ValidationFault('invalid_quantity', requested=quantity, limit=QUANTITY_LIMIT, **data)
    return quantity


def validate_conversion_inputs(source_quantity, conversion_factor, waste_percentage):
    """Return the three inputs as Decimals, rejecting out-of-range values."""
    source = check_limit(to_quantity(source_quantity))
    factor = _to_decimal(conversion_factor, 'invalid_factor')
    waste_pct = _to_decimal(waste_percentage, 'invalid_waste_percentage')

    if source <= ZERO:
        raise ValidationFault('invalid_quantity', requested=source)
    if factor <= ZERO:
        raise ValidationFault('invalid_factor', conversion_factor=factor)
    if waste_pct < ZERO or waste_pct > HUNDRED:
        raise ValidationFault('invalid_waste_percentage', waste_percentage=waste_pct)
    return source, factor, waste_pct


def gross_quantity(source_quantity, conversion_factor) -> Decimal:
    """source × factor, before waste."""
    source, factor, _ = validate_conversion_inputs(source_quantity, conversion_factor, ZERO)
    return check_limit(to_quantity(source * factor), field='gross')


def split(source_quantity, conversion_factor, waste_percentage) -> ConversionResult:
    """
    Split source × factor into produced and waste quantities.

    Raises:
        ValidationFault('invalid_quantity'): If gross reaches QUANTITY_LIMIT
    """
    source, factor, waste_pct = validate_conversion_inputs(
        source_quantity, conversion_factor, waste_percentage
    )
    gross = check_limit(to_quantity(source * factor), field='gross')
    waste = to_quantity(gross * waste_pct / HUNDRED, rounding=ROUND_DOWN)
    return ConversionResult(gross=gross, produced=gross - waste, waste=waste)


def produced_quantity(source_quantity, conversion_factor, waste_percentage) -> Decimal:
    return split(source_quantity, conversion_factor, waste_percentage).produced


def waste_quantity(source_quantity, conversion_factor, waste_percentage) -> Decimal:
    return split(source_quantity, conversion_factor, waste_percentage).waste


def available_quantity(quantity: Decimal, reserved_quantity: Decimal) -> Decimal:
    """On-hand minus reserved."""
    return quantity - reserved_quantity
