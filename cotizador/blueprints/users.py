"""Users blueprint: admin-only user provisioning and permissions."""
from typing import Any, Dict

from flask import Blueprint, flash, g, jsonify, redirect, render_template, request, url_for

from cotizador.database import db_session
from cotizador.decorators.permissions import require_admin
from cotizador.middleware import require_login
from cotizador.models import PERMISSION_ACTIONS, PERMISSION_MODULES
from cotizador.services import user_service

users_bp = Blueprint('users', __name__, url_prefix='/users')


def _form_permissions() -> Dict[str, Dict[str, bool]]:
    """Checkbox grid named perm_<module>_<action>."""
    return {
        module: {action: f'perm_{module}_{action}' in request.form for action in PERMISSION_ACTIONS}
        for module in PERMISSION_MODULES
    }


def _user_data() -> Dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return {
        'email': request.form.get('email', ''),
        'password': request.form.get('password', ''),
        'name': request.form.get('name', ''),
        'phone': request.form.get('phone', ''),
        'is_admin': request.form.get('is_admin') in ('on', 'true', '1'),
        'permissions': _form_permissions(),
    }


def _user_payload(user) -> Dict[str, Any]:
    return {
        'id': user.id,
        'email': user.email,
        'name': user.name,
        'phone': user.phone,
        'is_admin': user.is_admin,
        'active': user.active,
        'permissions': user.permissions,
    }


@users_bp.route('/')
@require_login
@require_admin
def list_users():
    return render_template('users/list.html', users=user_service.list_users(db_session))


@users_bp.route('/new', methods=['GET'])
@require_login
@require_admin
def new_user():
    return render_template('users/form.html', user=None,
                           modules=PERMISSION_MODULES, actions=PERMISSION_ACTIONS)


@users_bp.route('/new', methods=['POST'])
@require_login
@require_admin
def create_user():
    data = _user_data()
    user = user_service.create_user(
        db_session, g.user,
        email=data.get('email'),
        password=data.get('password'),
        name=data.get('name'),
        is_admin=data.get('is_admin', False),
        phone=data.get('phone'),
        permissions=data.get('permissions'),
    )

    if request.is_json:
        return jsonify({'status': 'ok', 'user': _user_payload(user)}), 201
    flash(f'Usuario {user.email} creado', 'success')
    return redirect(url_for('users.list_users'))


@users_bp.route('/<int:user_id>/edit', methods=['GET'])
@require_login
@require_admin
def edit_user(user_id):
    user = user_service.get_user(db_session, user_id)
    return render_template('users/form.html', user=user,
                           modules=PERMISSION_MODULES, actions=PERMISSION_ACTIONS)


@users_bp.route('/<int:user_id>/edit', methods=['POST'])
@require_login
@require_admin
def update_user(user_id):
    data = _user_data()
    data.pop('password', None)
    user = user_service.update_user(db_session, g.user, user_id, data)

    if request.is_json:
        return jsonify({'status': 'ok', 'user': _user_payload(user)})
    flash('Usuario actualizado', 'success')
    return redirect(url_for('users.list_users'))


@users_bp.route('/<int:user_id>/toggle', methods=['POST'])
@require_login
@require_admin
def toggle_user(user_id):
    user = user_service.toggle_active(db_session, g.user, user_id)

    if request.is_json:
        return jsonify({'status': 'ok', 'user': _user_payload(user)})
    flash(f'Usuario {"activado" if user.active else "desactivado"}', 'success')
    return redirect(url_for('users.list_users'))


@users_bp.route('/<int:user_id>/password', methods=['POST'])
@require_login
@require_admin
def reset_password(user_id):
    data = (request.get_json(silent=True) or {}) if request.is_json else request.form
    user = user_service.reset_password(db_session, g.user, user_id, data.get('password'))

    if request.is_json:
        return jsonify({'status': 'ok'})
    flash(f'Contraseña de {user.email} actualizada', 'success')
    return redirect(url_for('users.list_users'))
