"""Form validation helpers. Each validator returns a dict of field -> message."""
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Tuple

from cotizador.exceptions import ValidationError
from cotizador.utils.formatters import format_rfc
from cotizador.utils.number_format import MAX_PRICE

RFC_PATTERN = re.compile(r'^[A-ZÑ&]{3,4}[0-9]{6}[A-Z0-9]{3}$')
EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
# Fits a signed 64-bit column
INTEGER_PATTERN = re.compile(r'^-?[0-9]{1,18}$')

MIN_PASSWORD_LENGTH = 6


def validate_rfc(rfc: Optional[str]) -> Tuple[bool, Optional[str]]:
    """RFC is optional; when present it must match the SAT pattern after normalization."""
    if not rfc:
        return True, None
    normalized = ''.join(rfc.split()).upper()
    if not RFC_PATTERN.match(normalized):
        return False, 'RFC inválido'
    return True, None


def is_valid_email(email: Optional[str]) -> bool:
    """Validate email format."""
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def validate_client_form(data: dict) -> Dict[str, str]:
    """Validate client fields: name required, RFC pattern, email format, tax regime code."""
    from cotizador.models.client import TAX_REGIMES

    errors = {}
    if not (data.get('name') or '').strip():
        errors['name'] = 'Nombre es requerido'

    rfc = data.get('rfc')
    if rfc:
        valid, message = validate_rfc(format_rfc(rfc))
        if not valid:
            errors['rfc'] = message

    email = (data.get('email') or '').strip()
    if email and not is_valid_email(email):
        errors['email'] = 'Email inválido'

    regime = (data.get('tax_regime') or '').strip()
    if regime and regime not in dict(TAX_REGIMES):
        errors['tax_regime'] = 'Régimen fiscal inválido'

    return errors


def validate_product_form(data: dict) -> Dict[str, str]:
    errors = {}
    if not (data.get('name') or '').strip():
        errors['name'] = 'El nombre es requerido'

    price = data.get('price')
    if price is None or price == '':
        return errors
    try:
        amount = Decimal(str(price).replace(',', '').replace('$', ''))
        if amount < 0:
            errors['price'] = 'El precio no puede ser negativo'
        elif amount > MAX_PRICE:
            errors['price'] = 'Precio fuera de rango'
    except (InvalidOperation, ValueError):
        errors['price'] = 'Precio inválido'
    return errors


def parse_date(value) -> Optional[date]:
    """Parse YYYY-MM-DD (or a date) into a date; empty -> None. Raises ValueError on bad input."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()


def _whole_number(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    text = str(value).strip()
    return int(text) if INTEGER_PATTERN.match(text) else None


def parse_int(value, field_name: str, message: str) -> Optional[int]:
    """Empty -> None; anything but a whole number raises ValidationError."""
    if value is None or value == '':
        return None
    number = _whole_number(value)
    if number is None:
        raise ValidationError({field_name: message})
    return number


def validate_quote_header(data: dict, issue_date: Optional[date] = None) -> Dict[str, str]:
    """Title and client are required; expiry date must parse and not precede the issue date."""
    errors = {}
    client_id = data.get('client_id')
    if not (data.get('title') or '').strip() or not client_id:
        errors['title'] = 'Título y cliente requeridos'
    elif _whole_number(client_id) is None:
        errors['client_id'] = 'Cliente inválido'

    try:
        expiry = parse_date(data.get('expiry_date'))
    except ValueError:
        errors['expiry_date'] = 'Fecha de vigencia inválida'
    else:
        if expiry and expiry < (issue_date or date.today()):
            errors['expiry_date'] = 'La vigencia no puede ser anterior a la fecha de emisión'
    return errors


def validate_password(password: Optional[str], confirm: Optional[str] = None) -> Optional[str]:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return f'La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres'
    if confirm is not None and password != confirm:
        return 'Las contraseñas no coinciden'
    return None
