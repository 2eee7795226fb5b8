"""
Credential and bearer token service.

Passwords are hashed with werkzeug (salted, one-way). Tokens are signed with
itsdangerous, the same machinery Flask uses for its session cookie, and carry
``{userId, username, isAdmin}`` with a 24 hour lifetime.
"""
import hmac
from dataclasses import dataclass
from functools import wraps
from typing import NamedTuple, Optional

from flask import current_app, g, request
from itsdangerous import BadData, BadPayload, BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db
from ledger.errors import Forbidden, Unauthorized
from models import User

TOKEN_SALT = "cloudfire-auth-token"
DEFAULT_TOKEN_MAX_AGE = 24 * 60 * 60
_HASH_METHODS = ("scrypt", "pbkdf2")


@dataclass(frozen=True)
class Principal:
    user_id: int
    username: str
    is_admin: bool = False

    def to_claims(self):
        return {"userId": self.user_id, "username": self.username, "isAdmin": self.is_admin}


class TokenResult(NamedTuple):
    ok: bool
    principal: Optional[Principal] = None
    reason: Optional[str] = None


# ----------------------------------------------------------------------------------
# Passwords
# ----------------------------------------------------------------------------------
def hash_password(password: str) -> str:
    return generate_password_hash(password)


def is_password_hashed(stored: str) -> bool:
    """True when ``stored`` is a werkzeug ``method$salt$hash`` string."""
    if not stored or stored.count("$") != 2:
        return False
    method = stored.split("$", 1)[0].split(":", 1)[0]
    return method in _HASH_METHODS


def verify_password(password: str, stored: str) -> bool:
    if not password or not stored:
        return False
    if not is_password_hashed(stored):
        # legacy rows stored the raw password
        return hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))
    return check_password_hash(stored, password)


# ----------------------------------------------------------------------------------
# Tokens
# ----------------------------------------------------------------------------------
def _serializer(secret=None):
    return URLSafeTimedSerializer(secret or current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def issue_token(principal: Principal, secret=None) -> str:
    return _serializer(secret).dumps(principal.to_claims())


def verify_token(token, secret=None, max_age=None) -> TokenResult:
    """Never raises; the reason tells why a token was refused."""
    if not token:
        return TokenResult(False, reason="missing")
    if max_age is None:
        max_age = current_app.config.get("TOKEN_MAX_AGE", DEFAULT_TOKEN_MAX_AGE)
    try:
        claims = _serializer(secret).loads(token, max_age=max_age)
    except SignatureExpired:
        return TokenResult(False, reason="expired")
    except BadPayload:
        return TokenResult(False, reason="malformed")
    except BadSignature:
        return TokenResult(False, reason="bad_signature")
    except BadData:
        return TokenResult(False, reason="malformed")

    if not isinstance(claims, dict):
        return TokenResult(False, reason="malformed")
    user_id = claims.get("userId")
    username = claims.get("username")
    is_admin = claims.get("isAdmin", False)
    if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(username, str) \
            or not isinstance(is_admin, bool):
        return TokenResult(False, reason="malformed")

    return TokenResult(True, principal=Principal(user_id, username, is_admin))


def bearer_token_from_request():
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def authenticate_request() -> Principal:
    """
    Resolve the bearer token to a principal. The user row is consulted on
    every request, so disabled or deleted accounts and revoked admin rights
    take effect before the token expires.
    """
    token = bearer_token_from_request()
    if not token:
        raise Unauthorized("Authentication required")
    result = verify_token(token)
    if not result.ok:
        current_app.logger.info(f"Rejected bearer token ({result.reason}) for {request.path}")
        raise Unauthorized("Invalid or expired token")

    user = db.session.get(User, result.principal.user_id)
    if user is None:
        current_app.logger.info(f"Bearer token for missing user {result.principal.user_id} on {request.path}")
        raise Unauthorized("Account no longer exists")
    if not user.is_active:
        current_app.logger.info(f"Bearer token for disabled user {user.id} on {request.path}")
        raise Forbidden("Account is disabled")

    g.principal = Principal(user.id, user.username, bool(user.is_admin))
    return g.principal


# ----------------------------------------------------------------------------------
# Guards
# ----------------------------------------------------------------------------------
def require_authenticated(f):
    """Reject with 401 unless a valid bearer token is present."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        authenticate_request()
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Decorator to restrict access to admin-only routes.
    - 401 when the bearer token is missing or invalid.
    - 403 when the principal lacks the admin flag.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        principal = authenticate_request()
        if not principal.is_admin:
            raise Forbidden("Admin access required")
        return f(*args, **kwargs)

    return decorated_function


def require_self_or_admin(user_id: int):
    """Called inside a guarded view: owners and admins only."""
    principal = g.principal
    if principal.user_id != user_id and not principal.is_admin:
        raise Forbidden("You can only access your own records")
    return principal
