# logger.py
import os
import logging
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "billing"
# settlement outcomes (committed invoices, failed settlements)
AUDIT_LOGGER_NAME = "billing.settlement"

DEFAULT_CONFIG = {
    "level": "INFO",
    "file": "logs/billing.log",
    "audit_file": None,
    "max_size": 1048576,  # 1MB
    "backup_count": 3
}

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL
}

FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
AUDIT_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def _rotating_handler(path, log_config, fmt):
    log_dir = os.path.dirname(path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(
        path,
        maxBytes=log_config["max_size"],
        backupCount=log_config["backup_count"],
        encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _clear_handlers(logger):
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()


def setup_logger(config=None):
    """
    Attach handlers to the `billing` logger; modules log through children
    such as `billing.catalog` and `billing.settlement`.

    Settlement records also go to `audit_file` when it is configured, so
    the sales trail survives rotation of the main log.
    """
    if config is None:
        config = {}

    log_config = {**DEFAULT_CONFIG, **config.get("logging", {})}

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(LOG_LEVELS.get(str(log_config["level"]).upper(), logging.INFO))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(FORMAT))
    logger.addHandler(console_handler)

    if log_config["file"]:
        try:
            logger.addHandler(_rotating_handler(log_config["file"], log_config, FORMAT))
        except OSError as e:
            logger.error(f"Failed to set up file logging: {e}")

    if log_config["audit_file"]:
        audit = logging.getLogger(AUDIT_LOGGER_NAME)
        try:
            audit_handler = _rotating_handler(log_config["audit_file"], log_config, AUDIT_FORMAT)
        except OSError as e:
            logger.error(f"Failed to set up sales audit log: {e}")
        else:
            audit_handler.setLevel(logging.INFO)
            audit.addHandler(audit_handler)

    return logger


def configure_logger(config):
    """Drop existing billing handlers and set up again from config."""
    _clear_handlers(logging.getLogger(LOGGER_NAME))
    _clear_handlers(logging.getLogger(AUDIT_LOGGER_NAME))
    return setup_logger(config)
