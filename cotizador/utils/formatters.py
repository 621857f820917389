"""
Utilidades de formateo para templates y para el PDF.
Incluye formatos de moneda, fechas y etiquetas de estado en estilo mexicano (es-MX, MXN).
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Union, Optional

MONTHS_ES = [
    'enero', 'febrero', 'marzo', 'abril', 'mayo', 'junio',
    'julio', 'agosto', 'septiembre', 'octubre', 'noviembre', 'diciembre',
]

STATUS_LABELS = {
    'DRAFT': 'Borrador',
    'SENT': 'Enviada',
    'APPROVED': 'Aprobada',
    'REJECTED': 'Rechazada',
    'EXPIRED': 'Vencida',
}

STATUS_COLORS = {
    'DRAFT': 'bg-gray-100 text-gray-800',
    'SENT': 'bg-blue-100 text-blue-800',
    'APPROVED': 'bg-green-100 text-green-800',
    'REJECTED': 'bg-red-100 text-red-800',
    'EXPIRED': 'bg-yellow-100 text-yellow-800',
}


def _group_thousands(integer_part: str, separator: str = ',') -> str:
    # Revertir, agrupar de 3, revertir de nuevo
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    return separator.join(groups)[::-1]


def money_mx(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Formatea un monto en pesos mexicanos con exactamente 2 decimales.

    - Símbolo: $
    - Separador de miles: coma (,)
    - Separador decimal: punto (.)

    Examples:
        money_mx(2250.5) -> "$2,250.50"
        money_mx(Decimal('360.08')) -> "$360.08"
        money_mx(-15) -> "-$15.00"
        money_mx(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value).replace(',', '').replace('$', '').strip())
        num = num.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    integer_part, decimal_part = f"{abs(num):.2f}".split(".")

    return f"{sign}${_group_thousands(integer_part)}.{decimal_part}"


def _coerce_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()[:10]).date()
        except ValueError:
            return None
    return None


def date_mx(value: Union[date, datetime, str, None]) -> str:
    """
    Formatea una fecha corta: DD/MM/YYYY

    Examples:
        date_mx(date(2026, 1, 12)) -> "12/01/2026"
    """
    value = _coerce_date(value)
    if value is None:
        return "-"
    return value.strftime("%d/%m/%Y")


def date_long_mx(value: Union[date, datetime, str, None]) -> str:
    """
    Formatea una fecha larga: día a dos dígitos, mes completo y año.

    Examples:
        date_long_mx(date(2026, 3, 5)) -> "05 de marzo de 2026"
        date_long_mx('2026-10-19') -> "19 de octubre de 2026"
    """
    value = _coerce_date(value)
    if value is None:
        return "-"
    return f"{value.day:02d} de {MONTHS_ES[value.month - 1]} de {value.year}"


def status_label(status: Optional[str]) -> str:
    """Etiqueta en español del estado de una cotización."""
    if not status:
        return 'Desconocido'
    return STATUS_LABELS.get(str(status).upper(), 'Desconocido')


def status_color(status: Optional[str]) -> str:
    """Clases CSS del badge de estado (borrador por defecto)."""
    return STATUS_COLORS.get(str(status or '').upper(), STATUS_COLORS['DRAFT'])


def format_rfc(value: Optional[str]) -> str:
    """Normaliza un RFC: mayúsculas, sin espacios, máximo 13 caracteres."""
    if not value:
        return ''
    return ''.join(value.split()).upper()[:13]
