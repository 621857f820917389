"""Flask application factory."""
import os
import traceback

from flask import Flask, flash, g, jsonify, redirect, render_template, request, url_for
from flask_wtf.csrf import CSRFError, CSRFProtect
from werkzeug.exceptions import HTTPException

from cotizador.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # CSRF protection for every form post
    CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        if request.is_json:
            return jsonify({'status': 'error', 'message': 'La sesión ha expirado. Recarga la página.'}), 400
        flash('Tu sesión ha expirado o el formulario es inválido. Por favor intenta de nuevo.', 'warning')
        return redirect(request.referrer or '/')

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Prometheus metrics instrumentation
    from cotizador.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    # Jinja filters (es-MX formatting)
    from cotizador.utils.formatters import money_mx, date_mx, date_long_mx, status_label, status_color
    app.jinja_env.filters['money_mx'] = money_mx
    app.jinja_env.filters['date_mx'] = date_mx
    app.jinja_env.filters['date_long_mx'] = date_long_mx
    app.jinja_env.filters['status_label'] = status_label
    app.jinja_env.filters['status_color'] = status_color

    from cotizador.middleware import load_auth_context

    @app.before_request
    def before_request_handler():
        """Resolve the signed-in user once per request."""
        load_auth_context()

    @app.context_processor
    def inject_auth():
        return {'auth': g.get('auth'), 'company_name': app.config['COMPANY_NAME']}

    # Error Handlers
    from cotizador.exceptions import CotizadorError

    @app.errorhandler(CotizadorError)
    def handle_cotizador_error(error):
        """Handle application exceptions: JSON for API calls, flash + redirect otherwise."""
        app.logger.warning(f"CotizadorError [{error.status_code}]: {error.message}")

        if request.is_json:
            return jsonify(error.to_dict()), error.status_code

        flash(error.message, 'danger')
        return redirect(request.referrer or url_for('quotes.list_quotes'))

    @app.errorhandler(404)
    def not_found_error(error):
        if request.is_json:
            return jsonify({'status': 'error', 'message': 'No encontrado'}), 404
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException):
            return error
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")

        if request.is_json:
            return jsonify({'status': 'error', 'message': 'Error inesperado, intenta de nuevo'}), 500
        return render_template('errors/500.html'), 500

    # Register blueprints
    from cotizador.blueprints.auth import auth_bp
    from cotizador.blueprints.quotes import quotes_bp
    from cotizador.blueprints.clients import clients_bp
    from cotizador.blueprints.products import products_bp
    from cotizador.blueprints.users import users_bp
    from cotizador.blueprints.settings import settings_bp
    from cotizador.blueprints.profile import profile_bp
    from cotizador.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(metrics_bp)

    from cotizador.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
