"""Authentication blueprint: login and logout with email/password."""
import logging
from typing import Union
from urllib.parse import urlparse

from flask import Blueprint, Response, flash, g, redirect, render_template, request, session, url_for

from cotizador.database import db_session
from cotizador.exceptions import BusinessLogicError
from cotizador.services.user_service import authenticate

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def _safe_next(target: str) -> str:
    """Only redirect back to this host."""
    if target:
        parsed = urlparse(target)
        if parsed.scheme in ('', 'http', 'https') and parsed.netloc in ('', request.host):
            return target
    return url_for('quotes.list_quotes')


@auth_bp.route('/')
def index() -> Response:
    if g.get('auth'):
        return redirect(url_for('quotes.list_quotes'))
    return redirect(url_for('auth.login'))


@auth_bp.route('/login', methods=['GET', 'POST'])
def login() -> Union[str, Response]:
    if g.get('auth') and request.method == 'GET':
        return redirect(url_for('quotes.list_quotes'))

    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        password = request.form.get('password', '')

        try:
            user = authenticate(db_session, email, password)
        except BusinessLogicError as e:
            flash(e.message, 'danger')
            return render_template('auth/login.html', email=email), e.status_code

        session.clear()
        session['user_id'] = user.id
        session.permanent = True
        logger.info(f"[AUTH] {user.email} signed in")
        return redirect(_safe_next(request.args.get('next', '')))

    return render_template('auth/login.html')


@auth_bp.route('/logout', methods=['GET', 'POST'])
def logout() -> Response:
    session.clear()
    flash('Sesión cerrada correctamente.', 'success')
    return redirect(url_for('auth.login'))
