"""
User provisioning and authentication.

Creating users and resetting other users' passwords are privileged
operations: callers must pass the acting user, who has to be an admin.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cotizador.exceptions import (
    BusinessLogicError, NotFoundError, UnauthorizedError, ValidationError,
    UNIQUE_VIOLATION, map_integrity_error
)
from cotizador.models import AppUser, normalize_permissions
from cotizador.utils.validators import is_valid_email, validate_password

logger = logging.getLogger(__name__)


def _require_admin(actor):
    if actor is None or not actor.is_admin:
        raise UnauthorizedError()


def get_user(session: Session, user_id: int) -> AppUser:
    user = session.get(AppUser, user_id)
    if not user:
        raise NotFoundError(f'Usuario {user_id} no encontrado.')
    return user


def list_users(session: Session) -> List[AppUser]:
    return session.query(AppUser).order_by(AppUser.name).all()


def authenticate(session: Session, email: str, password: str) -> AppUser:
    """
    Check credentials.

    Raises:
        BusinessLogicError: unknown email, wrong password or inactive user
    """
    email = (email or '').strip().lower()
    user = session.query(AppUser).filter(AppUser.email == email).first()
    if not user or not user.check_password(password or ''):
        logger.info(f"[AUTH] Failed login for {email}")
        raise BusinessLogicError('Email o contraseña incorrectos', status_code=401)
    if not user.active:
        logger.info(f"[AUTH] Login refused for inactive user {email}")
        raise BusinessLogicError('Tu cuenta está desactivada. Contacta al administrador.', status_code=403)
    return user


def create_user(session: Session, actor, email: str, password: str, name: str,
                is_admin: bool = False, phone: Optional[str] = None,
                permissions: Optional[Dict[str, Any]] = None) -> AppUser:
    """Provision a user with a password (admin only)."""
    _require_admin(actor)

    email = (email or '').strip().lower()
    name = (name or '').strip()
    errors = {}
    if not email or not name or not password:
        errors['form'] = 'Email, contraseña y nombre son requeridos'
    elif not is_valid_email(email):
        errors['email'] = 'Email inválido'
    else:
        password_error = validate_password(password)
        if password_error:
            errors['password'] = password_error
    if errors:
        raise ValidationError(errors)

    user = AppUser(
        email=email,
        name=name,
        phone=(phone or '').strip() or None,
        is_admin=bool(is_admin),
        active=True,
        permissions=normalize_permissions(permissions),
    )
    user.set_password(password)
    try:
        session.add(user)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise map_integrity_error(e, {UNIQUE_VIOLATION: 'Ya existe un usuario con ese email'})
    except Exception:
        session.rollback()
        raise

    logger.info(f"[USERS] User {email} created by {actor.email} (admin={user.is_admin})")
    return user


def update_user(session: Session, actor, user_id: int, data: Dict[str, Any]) -> AppUser:
    """
    Admin edit of name, phone, role, active flag and permission matrix.

    The email cannot change; a different email in ``data`` is rejected.
    """
    _require_admin(actor)
    user = get_user(session, user_id)

    email = (data.get('email') or '').strip().lower()
    if email and email != user.email:
        raise ValidationError({'email': 'El email no se puede modificar'})

    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError({'name': 'El nombre es requerido'})
        user.name = name
    if 'phone' in data:
        user.phone = (data.get('phone') or '').strip() or None
    if 'is_admin' in data:
        if user.id == actor.id and not data['is_admin']:
            raise BusinessLogicError('No puedes quitarte el rol de administrador')
        user.is_admin = bool(data['is_admin'])
    if 'active' in data:
        if user.id == actor.id and not data['active']:
            raise BusinessLogicError('No puedes desactivar tu propia cuenta')
        user.active = bool(data['active'])
    if 'permissions' in data:
        user.permissions = normalize_permissions(data['permissions'])

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[USERS] User {user.email} updated by {actor.email}")
    return user


def toggle_active(session: Session, actor, user_id: int) -> AppUser:
    user = get_user(session, user_id)
    return update_user(session, actor, user_id, {'active': not user.active})


def reset_password(session: Session, actor, user_id: int, new_password: str) -> AppUser:
    """Set another user's password (admin only)."""
    _require_admin(actor)
    password_error = validate_password(new_password)
    if password_error:
        raise ValidationError({'password': password_error})

    user = get_user(session, user_id)
    user.set_password(new_password)
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[USERS] Password of {user.email} reset by {actor.email}")
    return user


def update_profile(session: Session, user_id: int, name: str, phone: Optional[str] = None) -> AppUser:
    """Own profile: name and phone only."""
    user = get_user(session, user_id)
    name = (name or '').strip()
    if not name:
        raise ValidationError({'name': 'El nombre es requerido'})
    user.name = name
    user.phone = (phone or '').strip() or None
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
    return user


def change_own_password(session: Session, user_id: int, current_password: str,
                        new_password: str, confirm: str) -> AppUser:
    user = get_user(session, user_id)
    if not user.check_password(current_password or ''):
        raise ValidationError({'current_password': 'La contraseña actual es incorrecta'})
    password_error = validate_password(new_password, confirm)
    if password_error:
        raise ValidationError({'password': password_error})

    user.set_password(new_password)
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[USERS] {user.email} changed their password")
    return user
