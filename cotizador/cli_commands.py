"""
Flask CLI commands.

Commands:
- flask init-db: Create tables and seed configuration rows
- flask create-admin: Create the first admin user
"""
import click
from flask import current_app

from cotizador.database import create_all, db_session
from cotizador.models import AppUser
from cotizador.services.config_service import seed_defaults
from cotizador.utils.validators import is_valid_email, validate_password


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables and the default app_config rows."""
        create_all()
        seed_defaults(db_session, current_app.config['COMPANY_NAME'], current_app.config['COMPANY_TAGLINE'])
        click.echo(click.style('Base de datos inicializada.', fg='green'))

    @app.cli.command('create-admin')
    @click.option('--email', prompt=True, help='Admin email address')
    @click.option('--name', prompt=True, help='Full name')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
    def create_admin(email, name, password):
        """Create an admin user."""
        email = email.strip().lower()
        if not is_valid_email(email):
            click.echo(click.style('Email inválido. Use formato: user@example.com', fg='red'))
            return

        password_error = validate_password(password)
        if password_error:
            click.echo(click.style(password_error, fg='red'))
            return

        if db_session.query(AppUser).filter_by(email=email).first():
            click.echo(click.style(f'Ya existe un usuario con el email: {email}', fg='red'))
            return

        try:
            admin = AppUser(email=email, name=name.strip() or email, is_admin=True, active=True)
            admin.set_password(password)
            db_session.add(admin)
            db_session.commit()
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'Error al crear administrador: {e}', fg='red'))
            raise click.Abort()

        click.echo(click.style('Administrador creado exitosamente.', fg='green', bold=True))
        click.echo(f'   Email: {email}')
        click.echo(f'   ID: {admin.id}')
