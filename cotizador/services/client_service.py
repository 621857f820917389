"""Client service: CRUD over clientes with RFC normalization and constraint mapping."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cotizador.exceptions import (
    ConstraintViolationError, NotFoundError, ValidationError,
    FOREIGN_KEY_VIOLATION, UNIQUE_VIOLATION, map_integrity_error
)
from cotizador.models import Client, Quote
from cotizador.utils.formatters import format_rfc
from cotizador.utils.validators import validate_client_form

logger = logging.getLogger(__name__)

CLIENT_FIELDS = ('name', 'legal_name', 'rfc', 'fiscal_address', 'email', 'phone', 'tax_regime')

CONSTRAINT_MESSAGES = {
    UNIQUE_VIOLATION: 'RFC duplicado',
    FOREIGN_KEY_VIOLATION: 'Tiene cotizaciones asociadas',
}


def _clean(data: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """Strip values, normalize the RFC and store empty strings as NULL."""
    cleaned = {}
    for field in CLIENT_FIELDS:
        value = (data.get(field) or '').strip()
        if field == 'rfc':
            value = format_rfc(value)
        elif field == 'email':
            value = value.lower()
        cleaned[field] = value or None
    return cleaned


def get_client(session: Session, client_id: int) -> Client:
    client = session.get(Client, client_id)
    if not client:
        raise NotFoundError(f'Cliente {client_id} no encontrado.')
    return client


def list_clients(session: Session, search: str = '') -> List[Client]:
    """Clients ordered by name; optional case-insensitive search on name, legal name, RFC and email."""
    query = session.query(Client)
    term = (search or '').strip()
    if term:
        like = f"%{term}%"
        query = query.filter(or_(
            Client.name.ilike(like),
            Client.legal_name.ilike(like),
            Client.rfc.ilike(like),
            Client.email.ilike(like),
        ))
    return query.order_by(Client.name).all()


def create_client(session: Session, data: Dict[str, Any], created_by: Optional[int] = None) -> Client:
    errors = validate_client_form(data)
    if errors:
        raise ValidationError(errors)

    client = Client(created_by=created_by, **_clean(data))
    try:
        session.add(client)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise map_integrity_error(e, CONSTRAINT_MESSAGES)
    except Exception:
        session.rollback()
        raise

    logger.info(f"[CLIENTS] Created client {client.id} '{client.name}'")
    return client


def update_client(session: Session, client_id: int, data: Dict[str, Any]) -> Client:
    errors = validate_client_form(data)
    if errors:
        raise ValidationError(errors)

    client = get_client(session, client_id)
    try:
        for field, value in _clean(data).items():
            setattr(client, field, value)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise map_integrity_error(e, CONSTRAINT_MESSAGES)
    except Exception:
        session.rollback()
        raise

    logger.info(f"[CLIENTS] Updated client {client.id}")
    return client


def delete_client(session: Session, client_id: int) -> None:
    """
    Delete a client.

    Clients referenced by quotes are kept; the FK (RESTRICT) backs up the
    explicit check.
    """
    client = get_client(session, client_id)

    if session.query(Quote.id).filter(Quote.client_id == client.id).first() is not None:
        raise ConstraintViolationError(CONSTRAINT_MESSAGES[FOREIGN_KEY_VIOLATION], code=FOREIGN_KEY_VIOLATION)

    try:
        session.delete(client)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise map_integrity_error(e, CONSTRAINT_MESSAGES)
    except Exception:
        session.rollback()
        raise

    logger.info(f"[CLIENTS] Deleted client {client_id}")
