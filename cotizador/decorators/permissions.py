"""
Permission decorators for role-based access control.
Extend require_login with the admin role and the per-module permission matrix.
"""
from functools import wraps

from flask import flash, g, redirect, request, url_for

NO_PERMISSION_MESSAGE = 'No tienes permisos para ver esta página'


def _deny(message):
    if request.is_json:
        return {'status': 'error', 'message': message}, 403
    flash(message, 'danger')
    return redirect(url_for('quotes.list_quotes'))


def require_admin(f):
    """
    Decorator: admin-only view.

    Non-admins are sent back to the quotes list with a warning.

    Usage:
        @require_login
        @require_admin
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth = g.get('auth')
        if auth is None:
            flash('Debes iniciar sesión para acceder a esta página.', 'warning')
            return redirect(url_for('auth.login'))
        if not auth.is_admin:
            return _deny(NO_PERMISSION_MESSAGE)
        return f(*args, **kwargs)
    return decorated_function


def require_permission(module, action):
    """
    Decorator: check one cell of the permission matrix (admins always pass).

    Usage:
        @require_permission('clientes', 'borrar')
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth = g.get('auth')
            if auth is None:
                flash('Debes iniciar sesión para acceder a esta página.', 'warning')
                return redirect(url_for('auth.login'))
            if not auth.can(module, action):
                return _deny('No tienes permisos para realizar esta acción')
            return f(*args, **kwargs)
        return decorated_function
    return decorator
