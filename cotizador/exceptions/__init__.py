"""Custom exceptions for the quoting application."""
import re

from sqlalchemy.exc import IntegrityError


class CotizadorError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="Ocurrió un error interno", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(CotizadorError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class ValidationError(BusinessLogicError):
    """Raised when form input fails validation; carries per-field messages."""
    def __init__(self, errors, message=None):
        self.errors = dict(errors)
        if message is None:
            message = '; '.join(self.errors.values()) or 'Datos inválidos'
        super().__init__(message, 400, {'errors': self.errors})


class NotFoundError(CotizadorError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Recurso no encontrado", payload=None):
        super().__init__(message, 404, payload)


class ConstraintViolationError(BusinessLogicError):
    """Raised when the database rejects a write because of a known constraint."""
    def __init__(self, message, code=None):
        self.code = code
        super().__init__(message, 409, {'code': code} if code else None)


class ConflictError(BusinessLogicError):
    """Raised when a quote was modified by someone else since it was loaded."""
    def __init__(self, message="La cotización fue modificada por otro usuario. Recarga la página."):
        super().__init__(message, 409)


class UnauthorizedError(CotizadorError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="No tienes permisos para realizar esta acción"):
        super().__init__(message, 403)


UNIQUE_VIOLATION = '23505'
FOREIGN_KEY_VIOLATION = '23503'

_SQLITE_CODES = (
    (re.compile(r'UNIQUE constraint failed', re.I), UNIQUE_VIOLATION),
    (re.compile(r'FOREIGN KEY constraint failed', re.I), FOREIGN_KEY_VIOLATION),
)


def integrity_error_code(exc: IntegrityError):
    """Return the SQLSTATE of an IntegrityError (PostgreSQL) or its SQLite equivalent."""
    orig = getattr(exc, 'orig', None)
    code = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    if code:
        return code
    text = str(orig or exc)
    for pattern, mapped in _SQLITE_CODES:
        if pattern.search(text):
            return mapped
    return None


def map_integrity_error(exc: IntegrityError, messages: dict, default: str = 'Error al guardar') -> ConstraintViolationError:
    """
    Translate a database IntegrityError into a user-facing ConstraintViolationError.

    Args:
        exc: the IntegrityError raised on flush/commit
        messages: constraint code -> message (e.g. {'23505': 'RFC duplicado'})
        default: message for codes not listed
    """
    code = integrity_error_code(exc)
    return ConstraintViolationError(messages.get(code, default), code=code)
