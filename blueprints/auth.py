from flask import Blueprint, jsonify, current_app
from flask_login import current_user
from sqlalchemy.exc import IntegrityError
import logging

from blueprints.request_helpers import json_payload
from extensions import db
from ledger.credentials import (
    Principal, hash_password, is_password_hashed, issue_token, require_authenticated, verify_password,
)
from ledger.errors import CodeGenerationError, Conflict, Forbidden, Unauthorized, ValidationError
from ledger.referral_tree import ReferralTreeHelper, normalize_code
from models import User
from utils import validate_phone, validate_username


logger = logging.getLogger(__name__)
#==================================================================================================================

bp = Blueprint("auth", __name__, url_prefix="/api/auth")

MIN_PASSWORD_LENGTH = 6
SIGNUP_COMMIT_ATTEMPTS = 3


def _session_response(user, status=200):
    principal = Principal(user.id, user.username, bool(user.is_admin))
    return jsonify({
        "token": issue_token(principal),
        "user": user.to_dict(),
    }), status


def _username_taken(username):
    return User.query.filter(db.func.lower(User.username) == username.lower()).first() is not None


#===========================================================================
#      SIGN UP ROUTE.
#==============================================================================
@bp.route("/signup", methods=["POST"])
def signup():
    """
    Create a new user and hang them under the owner of the referral code, if any.
    Expected JSON:
    {
        "username": "", "password": "", "phoneNumber": "", "referralCode": ""
    }
    """
    data = json_payload()

    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    phone_number = (data.get("phoneNumber") or "").strip() or None
    referral_code = normalize_code(data.get("referralCode"))

    # -----------------------------------------
    #  BASIC VALIDATION
    # -----------------------------------------
    if not username or not password:
        raise ValidationError("Username and password are required")
    if not validate_username(username):
        raise ValidationError("Username must be 3-40 letters, digits, dots, dashes or underscores")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if phone_number and not validate_phone(phone_number):
        raise ValidationError("Invalid phone number")

    if _username_taken(username):
        raise Conflict("Username already taken")

    # -----------------------------------------
    #  HANDLE REFERRAL CODE
    # -----------------------------------------
    referrer = ReferralTreeHelper.resolve_signup_upline(referral_code, username, phone_number)
    referrer_id = referrer.id if referrer else None
    referrer_code = referrer.referral_code if referrer else None
    password_hash = hash_password(password)

    # A concurrent signup can take the username or the freshly drawn code
    # between the checks above and the commit; only the latter is retried.
    for attempt in range(1, SIGNUP_COMMIT_ATTEMPTS + 1):
        new_user = User(
            username=username,
            phone_number=phone_number,
            password_hash=password_hash,
            referral_code=ReferralTreeHelper.generate_unique_code(),
            referred_by=referrer_id,
            referral_code_used=referrer_code,
        )
        db.session.add(new_user)
        try:
            db.session.commit()
            break
        except IntegrityError:
            db.session.rollback()
            if _username_taken(username):
                raise Conflict("Username already taken")
            logger.warning(f"Referral code clash on signup of {username!r}, attempt {attempt}")
    else:
        logger.error(f"Signup of {username!r} gave up after {SIGNUP_COMMIT_ATTEMPTS} referral code clashes")
        raise CodeGenerationError()

    current_app.logger.info(
        f"New user {new_user.id} ({new_user.username}) signed up"
        + (f" under {referrer_id}" if referrer_id else " without upline")
    )
    return _session_response(new_user, 201)


 # --------------------------------------------------
 #      Login Route
 # --------------------------------------------------
@bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate a user and hand back a bearer token.
    Expected JSON:
    {
        "username": "",
        "password": ""
    }
    """
    data = json_payload()
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""

    if not username or not password:
        raise ValidationError("Username and password are required")

    user = User.query.filter(db.func.lower(User.username) == username.lower()).first()
    if not user or not verify_password(password, user.password_hash):
        logger.info(f"Failed login for {username!r}")
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Forbidden("Account is disabled")

    if not is_password_hashed(user.password_hash):
        user.password_hash = hash_password(password)
        db.session.commit()
        current_app.logger.info(f"Upgraded legacy plaintext credential for user {user.id}")

    return _session_response(user)


# --------------------------------------------------
# Current principal (for frontend auto-login)
# --------------------------------------------------
@bp.route("/me", methods=["GET"])
@require_authenticated
def me():
    """Returns the user behind the bearer token"""
    if not current_user.is_authenticated:
        raise Unauthorized("Account no longer exists")
    return jsonify(current_user.to_dict()), 200
