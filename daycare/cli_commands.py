"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask create-super-admin: Create a platform administrator (no tenant)
"""

import click

from daycare.database import create_all, db_session
from daycare.models import User, UserRole
from daycare.services.auth_service import find_user_by_email
from daycare.services.credential_service import hash_password
from daycare.utils.validators import is_valid_email, password_errors


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-super-admin')
    @click.option('--email', prompt=True, help='Admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
    @click.option('--first-name', default='Platform', show_default=True)
    @click.option('--last-name', default='Admin', show_default=True)
    def create_super_admin(email, password, first_name, last_name):
        """Create a verified SUPER_ADMIN user."""
        email = email.strip().lower()

        if not is_valid_email(email):
            click.echo(click.style('Invalid email. Use the format user@example.com', fg='red'))
            raise SystemExit(1)

        errors = password_errors(password, app.config['PASSWORD_MIN_LENGTH'])
        if errors:
            click.echo(click.style(errors[0], fg='red'))
            raise SystemExit(1)

        if find_user_by_email(db_session, email):
            click.echo(click.style(f'A user with the email {email} already exists', fg='red'))
            raise SystemExit(1)

        try:
            admin = User(
                email=email,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
                role=UserRole.SUPER_ADMIN.value,
                tenant_id=None,
                email_verified=True,
                is_active=True,
            )
            db_session.add(admin)
            db_session.commit()
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'Error creating super admin: {e}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('\nSuper admin created.', fg='green', bold=True))
        click.echo(f'   Email: {email}')
        click.echo(f'   ID: {admin.id}')
