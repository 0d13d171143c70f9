"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask create-user: Create a staff account
- flask check-stock: Raise missing low-stock alerts
- flask check-expiry: Raise alerts for medicines expiring soon
"""

import click
from flask import current_app

from pharmacy.database import Base, db_session, get_engine
from pharmacy.exceptions import PharmacyError
from pharmacy.models import UserRole
from pharmacy.services import alert_service, auth_service
from pharmacy.stores import SqlAlchemyStores


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table that does not exist yet."""
        import pharmacy.models  # noqa: F401
        Base.metadata.create_all(bind=get_engine())
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='Staff email address')
    @click.option('--name', prompt=True, help='Full name')
    @click.option('--role', type=click.Choice([r.value for r in UserRole], case_sensitive=False),
                  default=UserRole.CASHIER.value, show_default=True, help='Staff role')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
    def create_user(email, name, role, password):
        """Create a staff account."""
        try:
            user = auth_service.create_user(db_session, email, name, password, role=role)
        except PharmacyError as e:
            click.echo(click.style(f'Error: {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('User created.', fg='green', bold=True))
        click.echo(f'   Email: {user.email}')
        click.echo(f'   Role: {user.role.value}')
        click.echo(f'   ID: {user.id}')

    @app.cli.command('check-stock')
    def check_stock():
        """Raise a STOCK alert for every medicine at or below its minimum level."""
        alerts = alert_service.check_stock(SqlAlchemyStores(db_session))
        click.echo(f'{len(alerts)} stock alerts created.')
        for alert in alerts:
            click.echo(f'   [{alert.severity.value}] {alert.message}')

    @app.cli.command('check-expiry')
    @click.option('--days', type=int, default=None, help='Warning window in days (default EXPIRY_WARNING_DAYS)')
    def check_expiry(days):
        """Raise an EXPIRY alert for every medicine expiring within the window."""
        if days is None:
            days = current_app.config.get('EXPIRY_WARNING_DAYS', 30)
        alerts = alert_service.check_expiry(SqlAlchemyStores(db_session), warning_days=days)
        click.echo(f'{len(alerts)} expiry alerts created (window {days} days).')
        for alert in alerts:
            click.echo(f'   [{alert.severity.value}] {alert.message}')
