import logging
from logging.handlers import RotatingFileHandler

import pytest

from logger import AUDIT_LOGGER_NAME, LOGGER_NAME, configure_logger


@pytest.fixture(autouse=True)
def reset_billing_loggers():
    yield
    for name in (LOGGER_NAME, AUDIT_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()


def flush(logger):
    for handler in logger.handlers:
        handler.flush()


def test_configure_logger_writes_rotating_file(tmp_path):
    log_file = tmp_path / "logs" / "billing.log"
    logger = configure_logger({"logging": {"level": "debug", "file": str(log_file)}})
    assert logger.level == logging.DEBUG
    assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
    assert logging.getLogger(AUDIT_LOGGER_NAME).handlers == []
    logging.getLogger("billing.catalog").info("stock adjusted")
    flush(logger)
    assert "billing.catalog - INFO - stock adjusted" in log_file.read_text()


def test_reconfigure_replaces_handlers(tmp_path):
    config = {"logging": {"file": str(tmp_path / "a.log"),
                          "audit_file": str(tmp_path / "sales.log")}}
    configure_logger(config)
    logger = configure_logger(config)
    assert len(logger.handlers) == 2
    assert len(logging.getLogger(AUDIT_LOGGER_NAME).handlers) == 1


def test_settlements_go_to_audit_file(tmp_path, system, soap):
    log_file = tmp_path / "billing.log"
    audit_file = tmp_path / "audit" / "sales.log"
    logger = configure_logger({"logging": {"file": str(log_file), "audit_file": str(audit_file)}})

    system.scan_and_add(soap.id, 2)
    invoice = system.settle("UPI")
    system.scan_and_add(soap.id, 1)
    with pytest.raises(ValueError):
        system.settle("Bitcoin")

    flush(logger)
    flush(logging.getLogger(AUDIT_LOGGER_NAME))
    audit = audit_file.read_text()
    assert f"INFO - Invoice {invoice.invoice_number} committed: total 70" in audit
    assert "WARNING - Settlement failed" in audit
    assert "Bath Soap" not in audit
    assert "billing.catalog" not in audit
    assert "billing.settlement" in log_file.read_text()
