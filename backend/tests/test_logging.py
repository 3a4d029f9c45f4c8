import logging
from logging.handlers import RotatingFileHandler

from summit_registration.core import logging as app_logging
from summit_registration.core.config import settings


def test_setup_logging_writes_rotating_file(tmp_path, monkeypatch):
    log_file = tmp_path / "summit.log"
    monkeypatch.setattr(settings, "LOG_FILE", str(log_file))
    monkeypatch.setattr(settings, "LOG_LEVEL", "debug")

    app_logging.setup_logging()
    try:
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert any(isinstance(h, RotatingFileHandler) for h in root.handlers)
        assert logging.getLogger("sqlalchemy").level == logging.WARNING

        logging.getLogger("summit_registration.test").info("ticket issued")
        for handler in root.handlers:
            handler.flush()
        assert "ticket issued" in log_file.read_text()
    finally:
        for handler in logging.getLogger().handlers:
            handler.close()
        logging.getLogger().handlers.clear()


def test_setup_logging_without_file(monkeypatch):
    monkeypatch.setattr(settings, "LOG_FILE", "")

    app_logging.setup_logging()

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert not isinstance(handlers[0], RotatingFileHandler)
    logging.getLogger().handlers.clear()
