"""Settings blueprint: company name and logo (admin only)."""
from botocore.exceptions import BotoCoreError, ClientError
from flask import Blueprint, current_app, flash, jsonify, redirect, render_template, request, url_for

from cotizador.blueprints.metrics import logo_uploads_total
from cotizador.database import db_session
from cotizador.decorators.permissions import require_admin
from cotizador.exceptions import BusinessLogicError, ValidationError
from cotizador.middleware import require_login
from cotizador.services import config_service
from cotizador.services.storage_service import get_storage_service

settings_bp = Blueprint('settings', __name__, url_prefix='/settings')

STORAGE_ERROR_MESSAGE = 'No se pudo guardar el logo, intenta de nuevo'


@settings_bp.route('/', methods=['GET'])
@require_login
@require_admin
def index():
    return render_template(
        'settings/index.html',
        company_name=config_service.get_config(db_session, config_service.COMPANY_NAME,
                                               current_app.config['COMPANY_NAME']),
        company_tagline=config_service.get_config(db_session, config_service.COMPANY_TAGLINE,
                                                  current_app.config['COMPANY_TAGLINE']),
        logo_url=config_service.get_config(db_session, config_service.LOGO_URL),
    )


@settings_bp.route('/company', methods=['POST'])
@require_login
@require_admin
def update_company():
    data = (request.get_json(silent=True) or {}) if request.is_json else request.form
    name = (data.get('company_name') or '').strip()
    if not name:
        raise ValidationError({'company_name': 'El nombre de la empresa es requerido'})

    config_service.set_config(db_session, config_service.COMPANY_NAME, name, commit=False)
    config_service.set_config(db_session, config_service.COMPANY_TAGLINE,
                              (data.get('company_tagline') or '').strip() or None)

    if request.is_json:
        return jsonify({'status': 'ok'})
    flash('Datos de la empresa actualizados', 'success')
    return redirect(url_for('settings.index'))


@settings_bp.route('/logo', methods=['POST'])
@require_login
@require_admin
def upload_logo():
    """Replace the company logo (image/*, 2MB max)."""
    try:
        url = config_service.replace_logo(db_session, get_storage_service(), request.files.get('logo'))
    except ValidationError:
        logo_uploads_total.labels(result='rejected').inc()
        raise
    except (BotoCoreError, ClientError) as e:
        logo_uploads_total.labels(result='error').inc()
        current_app.logger.error(f"[STORAGE] Logo upload failed: {e}")
        raise BusinessLogicError(STORAGE_ERROR_MESSAGE, status_code=502)
    logo_uploads_total.labels(result='ok').inc()

    if request.is_json:
        return jsonify({'status': 'ok', 'logo_url': url})
    flash('Logo actualizado', 'success')
    return redirect(url_for('settings.index'))


@settings_bp.route('/logo/delete', methods=['POST'])
@require_login
@require_admin
def delete_logo():
    try:
        config_service.remove_logo(db_session, get_storage_service())
    except (BotoCoreError, ClientError) as e:
        current_app.logger.error(f"[STORAGE] Logo removal failed: {e}")
        raise BusinessLogicError(STORAGE_ERROR_MESSAGE, status_code=502)

    if request.is_json:
        return jsonify({'status': 'ok'})
    flash('Logo eliminado', 'success')
    return redirect(url_for('settings.index'))
