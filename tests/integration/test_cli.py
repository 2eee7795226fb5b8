"""Tests for the make-admin command."""

from models import User


def test_make_admin(app, make_user, reload):
    user = make_user(username="Zainab")
    result = app.test_cli_runner().invoke(args=["make-admin", "zainab"])
    assert result.exit_code == 0, result.output
    assert "now admin" in result.output
    assert reload(User, user.id).is_admin is True


def test_revoke_admin(app, make_user, reload):
    user = make_user(username="zainab", is_admin=True)
    result = app.test_cli_runner().invoke(args=["make-admin", "zainab", "--revoke"])
    assert result.exit_code == 0, result.output
    assert reload(User, user.id).is_admin is False


def test_unknown_user(app):
    result = app.test_cli_runner().invoke(args=["make-admin", "ghost"])
    assert result.exit_code != 0
    assert "ghost" in result.output
