"""
Line-item (partida) editor model.

Keeps the ordered, mutable list of items while a quote is being composed or
edited. Positions are 1-based and dense; every structural change renumbers.
Product autofill is a pure function (``apply_product``) so it can be used
without any UI event.
"""
import logging
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from cotizador.exceptions import BusinessLogicError, NotFoundError, ValidationError
from cotizador.services.totals_service import QuoteTotals, calculate_totals
from cotizador.utils.number_format import parse_price, parse_quantity
from cotizador.utils.validators import parse_int

logger = logging.getLogger(__name__)

LOOKUP_LIMIT = 10

EDITABLE_FIELDS = ('concept', 'description', 'unit_price', 'quantity', 'product_id')


def new_item_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class LineItem:
    """One priced row of a quote while it is being edited."""
    id: str = field(default_factory=new_item_id)
    position: int = 1
    concept: str = ''
    description: str = ''
    unit_price: Decimal = Decimal('0.00')
    quantity: int = 1
    product_id: Optional[int] = None

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'position': self.position,
            'concept': self.concept,
            'description': self.description,
            'unit_price': str(self.unit_price),
            'quantity': self.quantity,
            'product_id': self.product_id,
            'subtotal': str(self.subtotal),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], position: int = 1) -> 'LineItem':
        if not isinstance(data, dict):
            raise ValidationError({'items': 'Partidas inválidas'})
        return cls(
            id=str(data.get('id') or new_item_id()),
            position=position,
            concept=str(data.get('concept') or '').strip(),
            description=str(data.get('description') or '').strip(),
            unit_price=parse_price(data.get('unit_price')),
            quantity=parse_quantity(data.get('quantity')),
            product_id=parse_int(data.get('product_id'), 'product_id', 'Producto inválido'),
        )

    @classmethod
    def from_model(cls, item) -> 'LineItem':
        """Build from a persisted QuoteItem; the database id becomes the editor id."""
        return cls(
            id=str(item.id),
            position=item.position,
            concept=item.concept or '',
            description=item.description or '',
            unit_price=Decimal(str(item.unit_price or 0)),
            quantity=int(item.quantity or 1),
            product_id=item.product_id,
        )


def apply_product(item: LineItem, product) -> LineItem:
    """
    Autofill an item from a catalog product.

    Overwrites concept, description and unit price with the product's values
    and leaves the quantity untouched. ``product=None`` (free text) returns the
    item unchanged.
    """
    if product is None:
        return item
    return replace(
        item,
        concept=product.name,
        description=product.description or '',
        unit_price=parse_price(product.price),
        product_id=product.id,
    )


class LineItemEditor:
    """
    Ordered collection of LineItem values.

    Usage:
        editor = LineItemEditor()
        item = editor.add()
        editor.update(item.id, 'unit_price', '1,000.00')
        editor.totals()
    """

    def __init__(self, items: Optional[Iterable[LineItem]] = None):
        self._items: List[LineItem] = []
        for item in items or []:
            self._items.append(item)
        self._renumber()

    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, Any]]) -> 'LineItemEditor':
        """Build from submitted rows (dicts), keeping their order."""
        return cls(LineItem.from_dict(row, position=index) for index, row in enumerate(rows, start=1))

    @classmethod
    def from_models(cls, items) -> 'LineItemEditor':
        return cls(LineItem.from_model(item) for item in sorted(items, key=lambda i: i.position))

    def __len__(self):
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    @property
    def items(self) -> List[LineItem]:
        return list(self._items)

    def _index(self, item_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.id == str(item_id):
                return index
        raise NotFoundError(f'Partida {item_id} no encontrada.')

    def _renumber(self):
        self._items = [
            item if item.position == index else replace(item, position=index)
            for index, item in enumerate(self._items, start=1)
        ]

    def get(self, item_id: str) -> LineItem:
        return self._items[self._index(item_id)]

    def add(self) -> LineItem:
        """Append an empty item: price 0, quantity 1, next position."""
        item = LineItem(position=len(self._items) + 1)
        self._items.append(item)
        return item

    def update(self, item_id: str, field_name: str, value) -> LineItem:
        """Replace one field on one item. Totals are not re-derived here."""
        if field_name not in EDITABLE_FIELDS:
            raise BusinessLogicError(f'Campo no editable: {field_name}')

        if field_name == 'unit_price':
            value = parse_price(value)
        elif field_name == 'quantity':
            value = parse_quantity(value)
        elif field_name == 'product_id':
            value = parse_int(value, 'product_id', 'Producto inválido')
        else:
            value = value or ''

        index = self._index(item_id)
        self._items[index] = replace(self._items[index], **{field_name: value})
        return self._items[index]

    def remove(self, item_id: str) -> None:
        """Delete an item and renumber the rest densely from 1."""
        del self._items[self._index(item_id)]
        self._renumber()

    def move(self, item_id: str, new_position: int) -> LineItem:
        """Move an item to a 1-based position (clamped) and renumber."""
        item = self._items.pop(self._index(item_id))
        position = parse_int(new_position, 'position', 'Posición inválida') or 1
        target = min(max(position, 1), len(self._items) + 1)
        self._items.insert(target - 1, item)
        self._renumber()
        return self._items[target - 1]

    def select_product(self, item_id: str, product) -> LineItem:
        """Catalog pick (autofill) or free text (``product=None``, no change)."""
        index = self._index(item_id)
        self._items[index] = apply_product(self._items[index], product)
        return self._items[index]

    def totals(self) -> QuoteTotals:
        return calculate_totals(self._items)

    def to_list(self) -> List[Dict[str, Any]]:
        return [item.to_dict() for item in self._items]


def _match_rank(product, term: str) -> Optional[int]:
    name = (product.name or '').lower()
    code = (product.code or '').lower()
    description = (product.description or '').lower()

    if term == code or term == name:
        return 0
    if name.startswith(term):
        return 1
    if term in name:
        return 2
    if term in code:
        return 3
    if term in description:
        return 4
    return None


def search_products(products: Iterable[Any], term: Optional[str], limit: int = LOOKUP_LIMIT) -> list:
    """
    Filter active products by case-insensitive substring on name, code and
    description; best matches first, at most ``limit`` results.
    """
    active = [p for p in products if p.active]
    term = (term or '').strip().lower()

    if not term:
        return sorted(active, key=lambda p: (p.name or '').lower())[:limit]

    ranked = []
    for product in active:
        rank = _match_rank(product, term)
        if rank is not None:
            ranked.append((rank, (product.name or '').lower(), product))

    ranked.sort(key=lambda entry: (entry[0], entry[1]))
    return [product for _, _, product in ranked[:limit]]


def product_lookup(products: Iterable[Any], term: Optional[str]) -> Dict[str, Any]:
    """Lookup payload: catalog matches plus the typed text to keep as a free-form concept."""
    results = search_products(products, term)
    logger.debug(f"[LINE_ITEMS] Lookup '{term}' -> {len(results)} results")
    return {
        'results': [p.to_dict() for p in results],
        'free_text': (term or '').strip(),
    }
