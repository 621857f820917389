"""Profile blueprint: the signed-in user's own name, phone and password."""
from flask import Blueprint, flash, g, jsonify, redirect, render_template, request, url_for

from cotizador.database import db_session
from cotizador.middleware import require_login
from cotizador.services import user_service

profile_bp = Blueprint('profile', __name__, url_prefix='/profile')


def _data():
    return (request.get_json(silent=True) or {}) if request.is_json else request.form


@profile_bp.route('/', methods=['GET'])
@require_login
def index():
    return render_template('profile/index.html', user=g.user)


@profile_bp.route('/', methods=['POST'])
@require_login
def update():
    data = _data()
    user_service.update_profile(db_session, g.auth.user_id, data.get('name'), data.get('phone'))

    if request.is_json:
        return jsonify({'status': 'ok'})
    flash('Perfil actualizado', 'success')
    return redirect(url_for('profile.index'))


@profile_bp.route('/password', methods=['POST'])
@require_login
def change_password():
    data = _data()
    user_service.change_own_password(
        db_session, g.auth.user_id,
        data.get('current_password'), data.get('new_password'), data.get('confirm_password'),
    )

    if request.is_json:
        return jsonify({'status': 'ok'})
    flash('Contraseña actualizada', 'success')
    return redirect(url_for('profile.index'))
