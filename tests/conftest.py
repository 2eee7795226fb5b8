"""Pytest configuration and shared fixtures for all tests."""

import itertools
import os
import sys
import tempfile
from decimal import Decimal
from pathlib import Path

# Minimal environment for config.py and logger.py, set before they are imported
os.environ.setdefault("SECRET_KEY", "test_secret_key_for_testing_only")
os.environ.setdefault("FLASK_ENV", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="cloudfire-test-logs-"))

# Add the project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from app import create_app
from config import Config
from extensions import db
from ledger import services
from ledger.credentials import Principal, hash_password, issue_token
from models import User


@pytest.fixture
def app(tmp_path):
    """Application bound to a throwaway SQLite file (shared by worker threads)."""

    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'ledger.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {"check_same_thread": False, "timeout": 30},
        }
        LOG_DIR = str(tmp_path / "logs")

    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ledger(app):
    return services()


@pytest.fixture
def make_user(app):
    """Insert a user directly; ``referrer`` hangs it under another user."""
    counter = itertools.count(1)

    def _make(username=None, referrer=None, balance="0", is_admin=False,
              password="secret123", phone_number=None, password_hash=None):
        n = next(counter)
        user = User(
            username=username or f"user{n}",
            phone_number=phone_number,
            password_hash=password_hash or hash_password(password),
            referral_code=f"TEST{n:04d}",
            referred_by=referrer.id if referrer else None,
            referral_code_used=referrer.referral_code if referrer else None,
            balance=Decimal(balance),
            is_admin=is_admin,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def principal_for():
    def _principal(user):
        return Principal(user.id, user.username, bool(user.is_admin))
    return _principal


@pytest.fixture
def auth_headers(principal_for):
    def _headers(user):
        return {"Authorization": f"Bearer {issue_token(principal_for(user))}"}
    return _headers


@pytest.fixture
def reload():
    """Fetch a fresh copy of a row, bypassing the identity map."""
    def _reload(model, pk):
        db.session.expire_all()
        return db.session.get(model, pk)
    return _reload
