"""Quote total calculator: subtotal, IVA and total derived from line items."""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

# Fixed IVA rate; not configurable in the current design.
IVA_RATE = Decimal('0.16')
CENTS = Decimal('0.01')


@dataclass(frozen=True)
class QuoteTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def rounded(self) -> 'QuoteTotals':
        """Values quantized to cents, as persisted and displayed."""
        return QuoteTotals(
            subtotal=self.subtotal.quantize(CENTS, rounding=ROUND_HALF_UP),
            tax=self.tax.quantize(CENTS, rounding=ROUND_HALF_UP),
            total=self.total.quantize(CENTS, rounding=ROUND_HALF_UP),
        )

    def to_dict(self):
        rounded = self.rounded()
        return {
            'subtotal': str(rounded.subtotal),
            'tax': str(rounded.tax),
            'total': str(rounded.total),
        }


def _field(item: Any, name: str):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def line_subtotal(item: Any) -> Decimal:
    """unit_price x quantity for a mapping or an object."""
    unit_price = Decimal(str(_field(item, 'unit_price') or 0))
    quantity = int(_field(item, 'quantity') or 0)
    return unit_price * quantity


def calculate_totals(items: Iterable[Any]) -> QuoteTotals:
    """
    Derive quote totals from line items.

    subtotal = sum(unit_price * quantity), tax = subtotal * IVA_RATE,
    total = subtotal + tax. No rounding happens here; an empty collection
    yields zeros.
    """
    subtotal = sum((line_subtotal(item) for item in items), Decimal('0'))
    tax = subtotal * IVA_RATE
    return QuoteTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)
