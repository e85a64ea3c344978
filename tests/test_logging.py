"""Tests for privacy-safe logging functionality."""

import logging
import pytest

import colorlog

from assemblinator.logging import (
    anonymize_voter,
    anonymize_email,
    PrivacyFilter,
    setup_logging,
    get_logger,
)


def make_record(msg):
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestAnonymize:
    """Tests for identifier anonymization."""

    def test_anonymize_voter(self):
        voter_id = "a1b2c3d4-e5f6-7890-abcd-ef1234567890"
        assert anonymize_voter(voter_id) == "a1b2..."

    def test_anonymize_voter_empty(self):
        assert anonymize_voter("") == "none"
        assert anonymize_voter(None) == "none"

    def test_anonymize_email(self):
        assert anonymize_email("sindico@condominio.com.br") == "***@condominio.com.br"

    def test_anonymize_email_invalid(self):
        assert anonymize_email("not-an-email") == "***"
        assert anonymize_email(None) == "***"


class TestPrivacyFilter:
    """Tests for the PrivacyFilter logging filter."""

    def test_redacts_uuid(self):
        """UUIDs are cut to their first four characters."""
        record = make_record("Presence registered for a1b2c3d4-e5f6-7890-abcd-ef1234567890")
        PrivacyFilter(sensitive_logging=False).filter(record)
        assert "a1b2c3d4-e5f6-7890-abcd-ef1234567890" not in record.msg
        assert "a1b2..." in record.msg

    def test_redacts_email(self):
        record = make_record("Actor morador@example.com checked in")
        PrivacyFilter(sensitive_logging=False).filter(record)
        assert "morador@" not in record.msg
        assert "***@example.com" in record.msg

    def test_sensitive_keeps_everything(self):
        uuid = "a1b2c3d4-e5f6-7890-abcd-ef1234567890"
        record = make_record(f"Voter {uuid}")
        PrivacyFilter(sensitive_logging=True).filter(record)
        assert uuid in record.msg

    def test_non_string_message(self):
        """Non-string messages pass through."""
        assert PrivacyFilter(sensitive_logging=False).filter(make_record(12345)) is True


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_installs_colorlog_handler(self, restore_root_logger, monkeypatch):
        """A single colorlog handler with the privacy filter is installed."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging()
        root = restore_root_logger
        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert isinstance(handler, colorlog.StreamHandler)
        assert any(isinstance(f, PrivacyFilter) for f in handler.filters)
        assert root.level == logging.INFO

    def test_level_from_env(self, restore_root_logger, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        setup_logging()
        assert restore_root_logger.level == logging.DEBUG

    def test_sensitive_from_env(self, restore_root_logger, monkeypatch):
        monkeypatch.setenv("LOG_SENSITIVE", "true")
        setup_logging()
        privacy = restore_root_logger.handlers[0].filters[0]
        assert privacy.sensitive_logging is True

    def test_quiets_noisy_libraries(self, restore_root_logger):
        setup_logging(level="DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_get_logger(self):
        assert get_logger("assemblinator.test").name == "assemblinator.test"
