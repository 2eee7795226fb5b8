# make_admin.py
# Usage: flask --app wsgi make-admin <username>
import click
from flask import current_app
from flask.cli import with_appcontext

from extensions import db
from models import User


@click.command("make-admin")
@click.argument("username")
@click.option("--revoke", is_flag=True, help="Remove the admin flag instead of granting it.")
@with_appcontext
def make_admin(username, revoke):
    """Grant (or revoke) admin rights for an existing user."""
    user = User.query.filter(db.func.lower(User.username) == username.strip().lower()).first()
    if not user:
        raise click.ClickException(f"No user named {username!r}")

    user.is_admin = not revoke
    db.session.commit()

    state = "no longer admin" if revoke else "now admin"
    current_app.logger.info(f"User {user.id} ({user.username}) is {state}")
    click.echo(f"User (id={user.id}, username={user.username}) is {state}.")


def register_commands(app):
    app.cli.add_command(make_admin)
