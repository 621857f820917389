"""Product catalog service."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cotizador.exceptions import NotFoundError, ValidationError, UNIQUE_VIOLATION, map_integrity_error
from cotizador.models import Product, QuoteItem
from cotizador.utils.number_format import parse_price
from cotizador.utils.validators import validate_product_form

logger = logging.getLogger(__name__)

CONSTRAINT_MESSAGES = {
    UNIQUE_VIOLATION: 'Este código ya existe',
}


def _apply(product: Product, data: Dict[str, Any]):
    product.code = (data.get('code') or '').strip().upper() or None
    product.name = data['name'].strip()
    product.description = (data.get('description') or '').strip() or None
    product.price = parse_price(data.get('price'))
    product.category = (data.get('category') or '').strip() or None
    if 'active' in data:
        product.active = bool(data['active'])


def get_product(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if not product:
        raise NotFoundError(f'Producto {product_id} no encontrado.')
    return product


def list_products(session: Session, search: str = '', category: Optional[str] = None) -> List[Product]:
    """Catalog ordered by category then name."""
    query = session.query(Product)
    term = (search or '').strip()
    if term:
        like = f"%{term}%"
        query = query.filter(or_(
            Product.name.ilike(like),
            Product.code.ilike(like),
            Product.description.ilike(like),
        ))
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.category, Product.name).all()


def active_products(session: Session) -> List[Product]:
    """Active products ordered by name; source of the line-item lookup."""
    return session.query(Product).filter(Product.active.is_(True)).order_by(Product.name).all()


def _save(session: Session, product: Product, action: str) -> Product:
    try:
        session.add(product)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise map_integrity_error(e, CONSTRAINT_MESSAGES)
    except Exception:
        session.rollback()
        raise
    logger.info(f"[PRODUCTS] {action} product {product.id} '{product.name}'")
    return product


def create_product(session: Session, data: Dict[str, Any]) -> Product:
    errors = validate_product_form(data)
    if errors:
        raise ValidationError(errors)
    product = Product(active=True)
    _apply(product, data)
    return _save(session, product, 'Created')


def update_product(session: Session, product_id: int, data: Dict[str, Any]) -> Product:
    errors = validate_product_form(data)
    if errors:
        raise ValidationError(errors)
    product = get_product(session, product_id)
    _apply(product, data)
    return _save(session, product, 'Updated')


def toggle_active(session: Session, product_id: int) -> Product:
    product = get_product(session, product_id)
    product.active = not product.active
    return _save(session, product, 'Activated' if product.active else 'Deactivated')


def delete_product(session: Session, product_id: int) -> None:
    """Delete a product; quote items that referenced it keep their text and lose the link."""
    product = get_product(session, product_id)
    try:
        session.query(QuoteItem).filter(QuoteItem.product_id == product.id).update(
            {QuoteItem.product_id: None}, synchronize_session='fetch'
        )
        session.delete(product)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[PRODUCTS] Deleted product {product_id}")
