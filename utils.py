import re
import time
import logging
from functools import wraps

from sqlalchemy.exc import OperationalError

from extensions import db

logger = logging.getLogger(__name__)


def validate_phone(phone):
    return re.match(r'^\+?\d{9,15}$', phone) is not None


def validate_username(username):
    return re.match(r'^[A-Za-z0-9_.-]{3,40}$', username) is not None


def retry_read(total=3, backoff_factor=0.1):
    """
    Retry an idempotent read on transient storage errors (lock timeouts,
    dropped connections) with exponential backoff. Never wrap writes with this:
    a retried write could apply twice.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except OperationalError:
                    attempt += 1
                    if attempt >= total:
                        raise
                    delay = backoff_factor * (2 ** (attempt - 1))
                    logger.warning(f"{func.__name__} failed (attempt {attempt}/{total}), retrying in {delay:.2f}s")
                    db.session.rollback()
                    time.sleep(delay)
        return wrapper
    return decorator
