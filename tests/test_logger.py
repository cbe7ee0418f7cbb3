"""JSON log formatting and redaction of structured context."""

import json

from primariga.logger import REDACTED, StructuredLogger, redact


def _last_entry(log_stream) -> dict:
    return json.loads(log_stream.getvalue().strip().splitlines()[-1])


class TestRedact:

    def test_secret_keys_are_replaced(self):
        assert redact("password", "hunter2") == REDACTED
        assert redact("new_password", "hunter2") == REDACTED
        assert redact("client_secret", "s3cr3t") == REDACTED

    def test_token_keys_keep_last_four(self):
        assert redact("refresh_token", "abcdefgh1234") == "********1234"

    def test_email_key_is_masked(self):
        assert redact("email", "mario@example.com") == "m****@example.com"

    def test_embedded_email_is_masked(self):
        assert redact("note", "sent to mario@example.com today") == (
            "sent to m****@example.com today"
        )

    def test_nested_structures_are_walked(self):
        value = {"fields": {"password": ["Too short."]}, "ids": ("a", "b"), "count": 3}
        assert redact("metadata", value) == {
            "fields": {"password": REDACTED},
            "ids": ["a", "b"],
            "count": 3,
        }

    def test_plain_values_pass_through(self):
        assert redact("event", "SIGNED_IN") == "SIGNED_IN"
        assert redact("retry_after", None) is None


class TestStructuredLogger:

    def test_entry_shape(self, logger, log_stream):
        logger.info("hello %s", "world", extra={"event": "TEST"})
        entry = _last_entry(log_stream)
        assert entry["level"] == "INFO"
        assert entry["message"] == "hello world"
        assert entry["extra"] == {"event": "TEST"}
        assert entry["timestamp"].endswith("+00:00")

    def test_credentials_never_reach_the_stream(self, logger, log_stream):
        logger.warning(
            "Sign-in failed",
            extra={
                "email": "mario@example.com",
                "password": "Str0ng!Pass",
                "access_token": "eyJhbGciOiJIUzI1NiJ9.payload.sig1",
                "context": {"detail": "user mario@example.com"},
            },
        )
        output = log_stream.getvalue()
        assert "Str0ng!Pass" not in output
        assert "eyJhbGciOiJIUzI1NiJ9" not in output
        assert "mario@example.com" not in output
        extra = _last_entry(log_stream)["extra"]
        assert extra["password"] == REDACTED
        assert extra["access_token"].endswith("sig1")
        assert extra["context"] == {"detail": "user m****@example.com"}

    def test_exception_text_is_included(self, logger, log_stream):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.error("failed", exc_info=True)
        assert "RuntimeError: boom" in _last_entry(log_stream)["exception"]

    def test_same_name_shares_handlers(self, logger, log_stream, tmp_path):
        again = StructuredLogger(name=logger.logger.name, log_file=str(tmp_path / "other.log"))
        again.info("through the second instance")
        assert "through the second instance" in log_stream.getvalue()
        assert len(again.logger.handlers) == 2

    def test_writes_rotating_file(self, logger, tmp_path):
        logger.info("persisted line")
        for handler in logger.logger.handlers:
            handler.flush()
        assert "persisted line" in (tmp_path / "test.log").read_text(encoding="utf-8")
