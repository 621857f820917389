"""Quote service: numbering, persistence, status changes and PDF export of cotizaciones."""
import logging
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from cotizador.exceptions import (
    BusinessLogicError, ConflictError, NotFoundError, ValidationError,
    UNIQUE_VIOLATION, map_integrity_error
)
from cotizador.models import AppConfig, Client, Product, Quote, QuoteItem, CONVENTIONAL_TRANSITIONS
from cotizador.services.line_item_service import LineItem
from cotizador.services.totals_service import calculate_totals
from cotizador.utils.validators import parse_date, parse_int, validate_quote_header

logger = logging.getLogger(__name__)

# Quote list range filter: option -> days back from today (None = no filter)
RANGE_OPTIONS = {
    '30': 30,
    '90': 90,
    'year': 365,
    'all': None,
}
DEFAULT_RANGE = '30'

NARRATIVE_FIELDS = ('scope', 'exclusions', 'observations', 'payment_terms', 'training')

SAVE_STRATEGIES = ('replace', 'atomic')


def range_days(option: Optional[str]) -> Optional[int]:
    """Map a range filter option to a number of days; unknown options use the default range."""
    if option in RANGE_OPTIONS:
        return RANGE_OPTIONS[option]
    return RANGE_OPTIONS[DEFAULT_RANGE]


def next_quote_number(session: Session) -> int:
    """Next sequential quote number: max(number) + 1, starting at 1."""
    current = session.query(func.max(Quote.number)).scalar()
    return (current or 0) + 1


def get_quote(session: Session, quote_id: int) -> Quote:
    quote = (
        session.query(Quote)
        .options(joinedload(Quote.client), joinedload(Quote.items))
        .filter(Quote.id == quote_id)
        .first()
    )
    if not quote:
        raise NotFoundError(f'Cotización {quote_id} no encontrada.')
    return quote


def list_quotes(session: Session, days: Optional[int] = None, search: str = '') -> List[Quote]:
    """
    List quotes newest first.

    The issue-date range is applied in the query; the text search is a
    case-insensitive substring match over title, client name and number,
    applied to the fetched rows.
    """
    query = session.query(Quote).options(joinedload(Quote.client))
    if days is not None:
        query = query.filter(Quote.issue_date >= date.today() - timedelta(days=days))
    quotes = query.order_by(Quote.number.desc()).all()

    term = (search or '').strip().lower()
    if not term:
        return quotes

    return [
        q for q in quotes
        if term in (q.title or '').lower()
        or term in ((q.client.name if q.client else '') or '').lower()
        or term in str(q.number)
    ]


def _normalize_items(items: Iterable[Any]) -> List[LineItem]:
    """Coerce submitted rows into LineItems with positions 1..N in submitted order."""
    normalized = []
    for position, item in enumerate(items or [], start=1):
        if isinstance(item, LineItem):
            normalized.append(LineItem(
                id=item.id, position=position, concept=item.concept,
                description=item.description, unit_price=item.unit_price,
                quantity=item.quantity, product_id=item.product_id,
            ))
        else:
            normalized.append(LineItem.from_dict(item, position=position))
    return normalized


def _valid_product_id(session: Session, product_id: Optional[int]) -> Optional[int]:
    """Keep a product reference only while the product still exists."""
    if product_id is None:
        return None
    return product_id if session.get(Product, product_id) is not None else None


def _validate_header(session: Session, header: Dict[str, Any], issue_date: Optional[date] = None):
    errors = validate_quote_header(header, issue_date=issue_date)
    if errors:
        raise ValidationError(errors)
    if session.get(Client, int(header['client_id'])) is None:
        raise NotFoundError('Cliente no encontrado.')


def _apply_header(quote: Quote, header: Dict[str, Any]):
    """Copy editable header fields onto the quote. issue_date is never touched."""
    quote.title = header['title'].strip()
    quote.client_id = int(header['client_id'])
    quote.prepared_by = (header.get('prepared_by') or '').strip() or None
    quote.expiry_date = parse_date(header.get('expiry_date'))
    for field in NARRATIVE_FIELDS:
        setattr(quote, field, (header.get(field) or '').strip() or None)


def _item_row(session: Session, quote_id: int, item: LineItem) -> QuoteItem:
    return QuoteItem(
        quote_id=quote_id,
        position=item.position,
        concept=item.concept or None,
        description=item.description or None,
        unit_price=item.unit_price,
        quantity=item.quantity,
        product_id=_valid_product_id(session, item.product_id),
    )


def _insert_items(session: Session, quote_id: int, items: List[LineItem]):
    """Bulk insert of the submitted items."""
    session.add_all([_item_row(session, quote_id, item) for item in items])
    session.flush()


def _refresh_totals(session: Session, quote: Quote):
    """Recompute the stored snapshot from the items currently persisted for the quote."""
    saved = session.query(QuoteItem).filter(QuoteItem.quote_id == quote.id).all()
    totals = calculate_totals(saved).rounded()
    quote.subtotal = totals.subtotal
    quote.tax = totals.tax
    quote.total = totals.total


def _check_version(quote: Quote, expected_version: Optional[int]):
    expected_version = parse_int(expected_version, 'version', 'Versión inválida')
    if expected_version is not None and expected_version != quote.version:
        logger.warning(
            f"[QUOTES] Version conflict on quote #{quote.number}: "
            f"expected {expected_version}, stored {quote.version}"
        )
        raise ConflictError()


def create_quote(session: Session, header: Dict[str, Any], items: Iterable[Any], created_by: Optional[int] = None) -> Quote:
    """
    Create a quote with its items.

    Assigns the next number and today's issue date; the totals snapshot is
    computed from the persisted items.
    """
    issue_date = date.today()
    _validate_header(session, header, issue_date=issue_date)
    line_items = _normalize_items(items)

    try:
        quote = Quote(
            number=next_quote_number(session),
            issue_date=issue_date,
            created_by=created_by,
            status='DRAFT',
            version=1,
        )
        _apply_header(quote, header)
        session.add(quote)
        session.flush()

        _insert_items(session, quote.id, line_items)
        _refresh_totals(session, quote)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise map_integrity_error(e, {UNIQUE_VIOLATION: 'El número de cotización ya existe, intenta de nuevo'})
    except Exception:
        session.rollback()
        raise

    logger.info(f"[QUOTES] Created quote #{quote.number} with {len(line_items)} items (total {quote.total})")
    return quote


def update_quote(session: Session, quote_id: int, header: Dict[str, Any], items: Iterable[Any],
                 expected_version: Optional[int] = None) -> Quote:
    """
    Save a quote by full replacement.

    Three separate commits: (1) header, (2) delete every item, (3) insert
    the submitted items with positions 1..N together with the totals
    snapshot. Nothing is compensated: a failure after step 2 leaves the
    header saved with zero items.
    """
    quote = get_quote(session, quote_id)
    _check_version(quote, expected_version)
    _validate_header(session, header, issue_date=quote.issue_date)
    line_items = _normalize_items(items)

    # 1. Header
    try:
        _apply_header(quote, header)
        quote.version = (quote.version or 0) + 1
        session.commit()
    except Exception:
        session.rollback()
        raise

    # 2. Delete items
    try:
        session.query(QuoteItem).filter(QuoteItem.quote_id == quote.id).delete(synchronize_session='fetch')
        session.commit()
        session.expire(quote, ['items'])
    except Exception:
        session.rollback()
        raise

    # 3. Insert items
    try:
        _insert_items(session, quote.id, line_items)
        _refresh_totals(session, quote)
        session.commit()
    except Exception:
        session.rollback()
        logger.error(f"[QUOTES] Items of quote #{quote.number} could not be saved; header kept with no items")
        raise

    session.expire(quote, ['items'])
    logger.info(f"[QUOTES] Saved quote #{quote.number} v{quote.version} ({len(line_items)} items)")
    return quote


def update_quote_atomic(session: Session, quote_id: int, header: Dict[str, Any], items: Iterable[Any],
                        expected_version: Optional[int] = None) -> Quote:
    """
    Save a quote in a single transaction.

    Items are diffed against the stored ones by id: matching ids are
    updated, unknown ids are inserted and stored items missing from the
    submission are deleted.
    """
    quote = get_quote(session, quote_id)
    _check_version(quote, expected_version)
    _validate_header(session, header, issue_date=quote.issue_date)
    line_items = _normalize_items(items)

    try:
        _apply_header(quote, header)

        existing = {str(row.id): row for row in quote.items}
        saved = []
        for item in line_items:
            row = existing.get(item.id)
            if row is None:
                row = _item_row(session, quote.id, item)
            else:
                row.position = item.position
                row.concept = item.concept or None
                row.description = item.description or None
                row.unit_price = item.unit_price
                row.quantity = item.quantity
                row.product_id = _valid_product_id(session, item.product_id)
            saved.append(row)

        # delete-orphan removes rows left out of the list
        quote.items = saved
        quote.version = (quote.version or 0) + 1
        session.flush()

        totals = calculate_totals(saved).rounded()
        quote.subtotal = totals.subtotal
        quote.tax = totals.tax
        quote.total = totals.total
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[QUOTES] Saved quote #{quote.number} v{quote.version} atomically ({len(line_items)} items)")
    return quote


def save_quote(session: Session, quote_id: int, header: Dict[str, Any], items: Iterable[Any],
               expected_version: Optional[int] = None, strategy: str = 'replace') -> Quote:
    """Dispatch to the configured save strategy ('replace' or 'atomic')."""
    if strategy not in SAVE_STRATEGIES:
        raise BusinessLogicError(f'Estrategia de guardado desconocida: {strategy}')
    if strategy == 'atomic':
        return update_quote_atomic(session, quote_id, header, items, expected_version)
    return update_quote(session, quote_id, header, items, expected_version)


def delete_quote(session: Session, quote_id: int) -> None:
    quote = get_quote(session, quote_id)
    number = quote.number
    try:
        session.delete(quote)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[QUOTES] Deleted quote #{number}")


def set_status(quote: Quote, status: str, enforce: bool = False) -> Quote:
    """
    Set the quote status.

    Any known status is accepted. Moves outside the conventional lifecycle
    are logged, and rejected only when ``enforce`` is true.
    """
    new_status = (status or '').strip().upper()
    if new_status not in CONVENTIONAL_TRANSITIONS:
        raise ValidationError({'status': 'Estado inválido'})

    current = quote.status or 'DRAFT'
    if new_status != current and new_status not in CONVENTIONAL_TRANSITIONS.get(current, set()):
        if enforce:
            raise BusinessLogicError(f'No se puede cambiar el estado de {current} a {new_status}.')
        logger.warning(f"[QUOTES] Unconventional status change on quote #{quote.number}: {current} -> {new_status}")

    quote.status = new_status
    return quote


def change_status(session: Session, quote_id: int, status: str, enforce: bool = False) -> Quote:
    quote = get_quote(session, quote_id)
    try:
        set_status(quote, status, enforce=enforce)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[QUOTES] Quote #{quote.number} status -> {quote.status}")
    return quote


def build_business_info(session: Session) -> Dict[str, Any]:
    """Company data for documents: app_config rows override the configured defaults."""
    stored = {row.key: row.value for row in session.query(AppConfig).all()}
    return {
        'name': stored.get('company_name') or current_app.config['COMPANY_NAME'],
        'tagline': stored.get('company_tagline') or current_app.config['COMPANY_TAGLINE'],
        'footer': current_app.config['PDF_FOOTER_TEXT'],
        'logo_url': stored.get('logo_url'),
        'logo_key': stored.get('logo_key'),
    }


def pdf_filename(quote: Quote) -> str:
    return f"Cotizacion-{quote.number}.pdf"


def generate_quote_pdf_from_db(session: Session, quote_id: int, business_info: Dict[str, Any],
                               logo_bytes: Optional[bytes] = None, compress: bool = True) -> bytes:
    """Generate the PDF of a persisted quote."""
    from cotizador.services.pdf_service import build_quote_document, render_quote_pdf

    quote = get_quote(session, quote_id)
    items = sorted(quote.items, key=lambda item: item.position)
    document = build_quote_document(quote, items, quote.client, business_info)
    return render_quote_pdf(document, logo_bytes=logo_bytes, compress=compress)
