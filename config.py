# ==========================================================================================================
# -------------- Configuration file for CloudFire Flask application ----------------------------------------
# ==========================================================================================================
import os
from dotenv import load_dotenv


if os.environ.get("FLASK_ENV") != "production":
    load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _database_uri():
    _database_url = os.getenv("DATABASE_URL")
    if not _database_url:
        _database_url = f"sqlite:///{os.path.join(basedir, 'instance', 'cloudfire.db')}"

    if _database_url.startswith("postgres://"):
        _database_url = _database_url.replace("postgres://", "postgresql+pg8000://", 1)
    return _database_url


class Config:

    SECRET_KEY = os.getenv("SECRET_KEY")
    if not SECRET_KEY:
        raise ValueError("SECRET_KEY must be set")

    FLASK_ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = os.getenv("DEBUG", "False").lower() in ("true", "1", "t")

    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    if not SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS.update({"pool_size": 10, "max_overflow": 20})

    # Ledger
    DEPOSIT_RATE = os.getenv("DEPOSIT_RATE", "280")
    LEVEL_ONE_RATE = os.getenv("LEVEL_ONE_RATE", "0.10")
    LEVEL_TWO_RATE = os.getenv("LEVEL_TWO_RATE", "0.04")
    MIN_DEPOSIT = os.getenv("MIN_DEPOSIT", "5")
    MIN_WITHDRAWAL = os.getenv("MIN_WITHDRAWAL", "0")

    # Mining: one claim per interval, capped per machine
    MINING_CLAIM_INTERVAL = os.getenv("MINING_CLAIM_INTERVAL", str(24 * 60 * 60))
    MAX_CLAIM_PER_MACHINE = os.getenv("MAX_CLAIM_PER_MACHINE", "50")

    # Bearer tokens
    TOKEN_MAX_AGE = int(os.getenv("TOKEN_MAX_AGE", 24 * 60 * 60))

    LOG_DIR = os.getenv("LOG_DIR", "logs")
