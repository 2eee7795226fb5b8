# logger.py - file loggers that live outside the Flask app logger
#
# The Flask app logger (see app.setup_logging) is request scoped and is
# configured per app. The ledger audit trail must be writable from the service
# layer, CLI commands and worker threads alike, so it is a module level logger
# with its own rotating file.
import os
import logging
from logging.handlers import RotatingFileHandler

LOG_DIR = os.environ.get("LOG_DIR", "logs")
LOG_MAX_BYTES = int(os.environ.get("LOG_MAX_BYTES", 1024 * 1024))
LOG_BACKUP_COUNT = int(os.environ.get("LOG_BACKUP_COUNT", 10))

# one line per balance mutation, commission or state transition
AUDIT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
CONSOLE_FORMAT = "%(name)s - %(levelname)s - %(message)s"


def _file_handler(path, level, fmt):
    handler = RotatingFileHandler(
        path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _console_handler():
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def setup_logger(name, log_file=None, level=logging.INFO, fmt=AUDIT_FORMAT, log_dir=None):
    """
    Return the named logger writing to ``<log_dir>/<name>.log``.

    Safe to call repeatedly: handlers are attached only the first time a
    given logger is configured. The console mirror is skipped in production
    where gunicorn already captures stderr.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    directory = log_dir or LOG_DIR
    os.makedirs(directory, exist_ok=True)
    path = log_file or os.path.join(directory, f"{name}.log")

    logger.setLevel(level)
    logger.addHandler(_file_handler(path, level, fmt))
    if os.environ.get("FLASK_ENV") not in ("production", "testing"):
        logger.addHandler(_console_handler())
    return logger


ledger_logger = setup_logger("ledger")
