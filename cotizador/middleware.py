"""Middleware for authentication: per-request authorization context and login guard."""
from dataclasses import dataclass, field
from functools import wraps
from typing import Dict, Optional

from flask import current_app, flash, g, redirect, request, session, url_for

from cotizador.database import get_session
from cotizador.models import AppUser, normalize_permissions


@dataclass(frozen=True)
class AuthContext:
    """Identity and permissions of the signed-in user, resolved once per request."""
    user_id: int
    email: str
    name: str
    is_admin: bool = False
    permissions: Dict[str, Dict[str, bool]] = field(default_factory=dict)

    def can(self, module: str, action: str) -> bool:
        if self.is_admin:
            return True
        return bool(self.permissions.get(module, {}).get(action, False))

    @classmethod
    def from_user(cls, user: AppUser) -> 'AuthContext':
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            is_admin=bool(user.is_admin),
            permissions=normalize_permissions(user.permissions),
        )


def load_auth_context():
    """
    Load the current user into g.

    Sets g.auth (AuthContext or None) and g.user (AppUser or None). Inactive
    or deleted users are signed out.
    """
    g.auth = None
    g.user = None

    user_id = session.get('user_id')
    if not user_id:
        return

    try:
        user = get_session().query(AppUser).filter_by(id=user_id, active=True).first()
    except Exception as e:
        current_app.logger.error(f"[AUTH] Error loading user {user_id}: {e}")
        return

    if user is None:
        session.pop('user_id', None)
        return

    g.user = user
    g.auth = AuthContext.from_user(user)


def current_auth() -> Optional[AuthContext]:
    return g.get('auth')


def require_login(f):
    """
    Decorator: Require user to be logged in.

    Redirects to the login page (keeping the original URL in ``next``);
    JSON requests get a 401 instead.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('auth') is None:
            if request.is_json:
                return {'status': 'error', 'message': 'Debes iniciar sesión'}, 401
            flash('Debes iniciar sesión para acceder a esta página.', 'warning')
            return redirect(url_for('auth.login', next=request.url))
        return f(*args, **kwargs)
    return decorated_function
