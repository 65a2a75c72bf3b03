# hospital_app_pkg/cli.py
import click
from flask.cli import AppGroup, with_appcontext
from . import db
from .permissions import ROLES

queue_cli = AppGroup('queue', help="Patient queue maintenance.")


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all database tables."""
    db.create_all()
    click.echo('Database initialized.')


@click.command('create-user')
@click.option('--email', required=True)
@click.option('--password', required=True, prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--first-name', required=True)
@click.option('--last-name', required=True)
@click.option('--role', 'roles', multiple=True, type=click.Choice(ROLES),
              help="Repeatable. Defaults to admin for the first account, receptionist otherwise.")
@with_appcontext
def create_user_command(email, password, first_name, last_name, roles):
    """Create a staff account."""
    from .auth.routes import create_user, MIN_PASSWORD_LENGTH
    from .models import User

    if len(password) < MIN_PASSWORD_LENGTH:
        raise click.BadParameter(f"must be at least {MIN_PASSWORD_LENGTH} characters long.", param_hint='--password')
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        raise click.ClickException(f"User {email} already exists.")

    user = create_user(email, password, first_name, last_name, roles=list(roles) or None)
    click.echo(f"Created user {user.email} with roles: {', '.join(user.role_names)}")


@queue_cli.command('repair-duplicates')
def repair_duplicates_command():
    """Delete older duplicate active queue entries, keeping each patient's latest."""
    from .queue.services import remove_duplicate_active_entries

    removed = remove_duplicate_active_entries()
    click.echo(f"Removed {removed} duplicate active queue entr{'y' if removed == 1 else 'ies'}.")


def register_cli(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_user_command)
    app.cli.add_command(queue_cli)
