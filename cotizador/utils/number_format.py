"""Number parsing utilities for line-item input (MXN format)."""
import re
from decimal import Decimal, InvalidOperation

MX_NUMBER_PATTERN = re.compile(r"^(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?$")

# Keep price * quantity * 1.16 inside the Numeric(14, 2) money columns
MAX_PRICE = Decimal('9999999.99')
MAX_QUANTITY = 9999


def parse_price(value) -> Decimal:
    """
    Parse a unit price typed by the user (e.g. 1234.5, 1,234.50, $1,234.50).

    Rules:
    - Thousands separator: comma (,)
    - Decimal separator: dot (.)
    - Optional leading $ sign
    - Result quantized to cents

    Never raises: unparseable, negative or out-of-range (> MAX_PRICE) input
    is clamped to 0.
    """
    if value is None:
        return Decimal('0.00')

    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        try:
            decimal_value = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return Decimal('0.00')
    else:
        cleaned = str(value).strip().replace('$', '').replace(' ', '')
        if not cleaned:
            return Decimal('0.00')

        if MX_NUMBER_PATTERN.match(cleaned):
            cleaned = cleaned.replace(',', '')
        try:
            decimal_value = Decimal(cleaned)
        except (InvalidOperation, ValueError):
            return Decimal('0.00')

    if not decimal_value.is_finite() or decimal_value < 0 or decimal_value > MAX_PRICE:
        return Decimal('0.00')

    try:
        return decimal_value.quantize(Decimal('0.01'))
    except InvalidOperation:
        return Decimal('0.00')


def parse_quantity(value) -> int:
    """
    Parse an item quantity. Quantities are integers >= 1.

    Unparseable, fractional-only, non-positive or out-of-range (> MAX_QUANTITY)
    input falls back to 1.
    """
    if value is None or isinstance(value, bool):
        return 1
    try:
        qty = int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, TypeError, OverflowError):
        return 1
    return qty if 1 <= qty <= MAX_QUANTITY else 1
