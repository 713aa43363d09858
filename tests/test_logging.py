"""
Tests for logging setup and sensitive data masking

Tests cover:
- Masking of passwords, tokens, secrets and addresses
- The log record filter
- JSON formatting
- Logger naming and LogManager levels
"""
import json
import logging

import pytest
from rich.logging import RichHandler

from rutt.utils.logging import (
    JSONFormatter,
    LogManager,
    SensitiveDataFilter,
    SensitiveDataMasker,
    get_logger,
    log_call,
)


def make_record(msg, args=(), **attrs):
    record = logging.LogRecord("rutt.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_rutt_logger():
    """Put the rutt logger back the way it was"""
    logger = logging.getLogger("rutt")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestSensitiveDataMasker:
    """Tests for string and dict masking"""

    def test_password_masked(self):
        masker = SensitiveDataMasker()
        assert masker.mask_string("password=hunter22") == "password=[REDACTED]"

    def test_token_and_secret_masked(self):
        masker = SensitiveDataMasker()
        masked = masker.mask_string("token: abc123 secret=xyz")
        assert "abc123" not in masked
        assert "xyz" not in masked

    def test_email_masked(self):
        masker = SensitiveDataMasker()
        assert masker.mask_string("login for bob@example.com") == "login for b***@e***"

    def test_plain_text_untouched(self):
        masker = SensitiveDataMasker()
        assert masker.mask_string("Fetched 200 messages") == "Fetched 200 messages"

    def test_mask_dict(self):
        masker = SensitiveDataMasker()
        masked = masker.mask_dict(
            {"app_password": "hunter22", "nested": {"token": "t0k"}, "count": 3}
        )
        assert masked == {
            "app_password": "[REDACTED]",
            "nested": {"token": "[REDACTED]"},
            "count": 3,
        }

    def test_partial_strategy(self):
        masker = SensitiveDataMasker(strategy="partial")
        assert masker.mask_func("abcdefghij") == "abc****hij"
        assert masker.mask_func("short") == "[REDACTED]"


class TestSensitiveDataFilter:
    """Tests for the logging filter"""

    def test_message_masked(self):
        record = make_record("password=hunter22")
        assert SensitiveDataFilter().filter(record)
        assert record.getMessage() == "password=[REDACTED]"

    def test_args_masked(self):
        record = make_record("Logging in with %s", ("password=hunter22",))
        SensitiveDataFilter().filter(record)
        assert "hunter22" not in record.getMessage()

    def test_extra_fields_masked(self):
        record = make_record("login", app_password="hunter22")
        SensitiveDataFilter().filter(record)
        assert record.app_password == "[REDACTED]"


class TestJSONFormatter:
    """Tests for the file log format"""

    def test_json_entry(self):
        entry = json.loads(JSONFormatter().format(make_record("hello %s", ("world",))))
        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "rutt.test"


class TestLoggers:
    """Tests for logger naming and setup"""

    def test_names_prefixed(self):
        assert get_logger("core.mail").name == "rutt.core.mail"
        assert get_logger("rutt.cli").name == "rutt.cli"
        assert get_logger().name == "rutt"

    def test_context_adapter(self):
        adapter = get_logger("tui", view="list")
        assert adapter.extra == {"view": "list"}

    def test_console_only_manager(self, restore_rutt_logger):
        """Test the console handler never drops below WARNING"""
        manager = LogManager("DEBUG", log_to_file=False)

        handlers = restore_rutt_logger.handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RichHandler)
        assert handlers[0].level == logging.WARNING

        manager.set_level("ERROR")
        assert handlers[0].level == logging.ERROR

    def test_partial_mask_strategy(self, restore_rutt_logger):
        """Test the configured strategy reaches the handler filters"""
        LogManager("INFO", log_to_file=False, mask_strategy="partial")

        (handler,) = restore_rutt_logger.handlers
        (log_filter,) = [f for f in handler.filters if isinstance(f, SensitiveDataFilter)]
        record = make_record("token=abcdefghij")
        log_filter.filter(record)
        assert record.getMessage() == "token=abc****hij"

    def test_invalid_level(self, restore_rutt_logger):
        manager = LogManager("INFO", log_to_file=False)
        with pytest.raises(ValueError):
            manager.set_level("LOUD")

    def test_log_call_passes_through(self):
        @log_call
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        assert add.__name__ == "add"
