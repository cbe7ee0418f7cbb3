"""Error taxonomy, normaliser and reporter."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from primariga.core.error_handler import (
    UNKNOWN_ERROR_MESSAGE,
    ErrorReporter,
    format_error_response,
    get_user_message,
    normalize_error,
    should_report,
)
from primariga.core.errors import (
    AuthenticationError,
    AuthorizationError,
    BusinessLogicError,
    ConfigurationError,
    DatabaseError,
    ErrorKind,
    ExternalServiceError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    create_error,
    is_app_error,
    is_not_found_error,
    is_validation_error,
)
from primariga.models.auth_models import SignUpParams
from primariga.services.monitoring import LoggingErrorMonitor


class TestAppError:

    def test_metadata_drops_none_values(self):
        error = RateLimitError()
        assert "retry_after" not in error.metadata

    def test_metadata_is_read_only(self):
        error = NetworkError("down", url="https://example.com")
        with pytest.raises(TypeError):
            error.metadata["url"] = "other"  # type: ignore[index]

    def test_codes_and_status_classes(self):
        cases = [
            (ValidationError("x"), "VALIDATION_ERROR", 400),
            (NotFoundError("Book"), "NOT_FOUND", 404),
            (AuthenticationError(), "AUTHENTICATION_ERROR", 401),
            (AuthorizationError(), "AUTHORIZATION_ERROR", 403),
            (DatabaseError(), "DATABASE_ERROR", 500),
            (NetworkError(), "NETWORK_ERROR", 503),
            (RateLimitError(), "RATE_LIMIT_ERROR", 429),
            (ConfigurationError("x"), "CONFIGURATION_ERROR", 500),
            (ExternalServiceError("Supabase Auth"), "EXTERNAL_SERVICE_ERROR", 502),
            (BusinessLogicError("x"), "BUSINESS_LOGIC_ERROR", 422),
        ]
        for error, code, status in cases:
            assert error.code == code
            assert error.status_class == status

    def test_not_found_message(self):
        assert NotFoundError("Book", "42").message == "Book with ID 42 not found"
        assert NotFoundError("Book").message == "Book not found"

    def test_to_dict(self):
        data = ValidationError("bad", fields={"email": ["Required."]}).to_dict()
        assert data["name"] == "ValidationError"
        assert data["code"] == "VALIDATION_ERROR"
        assert data["metadata"] == {"fields": {"email": ["Required."]}}

    def test_type_guards(self):
        assert is_app_error(NotFoundError("x"))
        assert not is_app_error(ValueError("x"))
        assert is_validation_error(ValidationError())
        assert is_not_found_error(NotFoundError("x"))

    def test_create_error_factory(self):
        error = create_error(ErrorKind.RATE_LIMIT, "slow down", {"retry_after": 30})
        assert isinstance(error, RateLimitError)
        assert error.retry_after == 30
        assert isinstance(create_error(ErrorKind.AUTHORIZATION, "no"), AuthorizationError)


class TestNormalizeError:

    def test_idempotent_for_app_errors(self):
        error = NetworkError("down")
        assert normalize_error(error) is error
        assert normalize_error(normalize_error(error)) is error

    @pytest.mark.parametrize(
        "raw",
        [
            ValueError("bad input"),
            KeyError("missing"),
            Exception(),
            42,
            None,
            "just a string",
        ],
    )
    def test_idempotent_for_any_input(self, raw):
        once = normalize_error(raw)
        assert normalize_error(once) == normalize_error(raw)
        assert normalize_error(once) is once

    def test_idempotent_for_schema_failures(self):
        with pytest.raises(PydanticValidationError) as exc_info:
            SignUpParams.model_validate({"email": 3})
        once = normalize_error(exc_info.value)
        assert normalize_error(once) == normalize_error(exc_info.value)
        assert normalize_error(once).to_dict() == once.to_dict()

    def test_pydantic_validation_error_maps_fields(self):
        with pytest.raises(PydanticValidationError) as exc_info:
            SignUpParams.model_validate({})
        error = normalize_error(exc_info.value)
        assert isinstance(error, ValidationError)
        assert set(error.fields) == {"email", "password"}

    def test_plain_exception_keeps_message(self):
        error = normalize_error(KeyError("missing"))
        assert isinstance(error, BusinessLogicError)
        assert "missing" in error.message

    def test_non_exception_gets_generic_message(self):
        error = normalize_error(42)
        assert isinstance(error, BusinessLogicError)
        assert error.message == UNKNOWN_ERROR_MESSAGE


class TestReportingPolicy:

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (ValidationError(), False),
            (NotFoundError("x"), False),
            (RateLimitError(), False),
            (AuthenticationError(), True),
            (AuthorizationError(), True),
            (DatabaseError(), True),
            (ExternalServiceError("svc"), True),
            (NetworkError(), True),
        ],
    )
    def test_should_report(self, error, expected):
        assert should_report(error) is expected

    def test_user_message_hides_raw_text(self):
        error = DatabaseError("relation profiles does not exist")
        assert "profiles" not in get_user_message(error)

    def test_user_message_passes_not_found_through(self):
        assert get_user_message(NotFoundError("Book", "7")) == "Book with ID 7 not found"

    def test_format_error_response(self):
        body = format_error_response(RateLimitError(retry_after=10))["error"]
        assert body["code"] == "RATE_LIMIT_ERROR"
        assert body["status_class"] == 429
        assert body["details"] == {"retry_after": 10}
        assert "details" not in format_error_response(AuthorizationError())["error"]


class TestErrorReporter:

    def test_forwards_reportable_errors(self, logger, monitor):
        reporter = ErrorReporter(logger, monitor, report_enabled=True)
        reporter.log_error(DatabaseError("boom"), {"operation": "x"})
        reporter.log_error(ValidationError("meh"))
        assert len(monitor.captured) == 1
        error, context = monitor.captured[0]
        assert isinstance(error, DatabaseError)
        assert context["operation"] == "x"

    def test_disabled_reporting_only_logs(self, logger, monitor, log_stream):
        reporter = ErrorReporter(logger, monitor, report_enabled=False)
        reporter.log_error(DatabaseError("boom"))
        assert monitor.captured == []
        assert "DATABASE_ERROR" in log_stream.getvalue()

    def test_monitor_failure_is_swallowed(self, logger, log_stream):
        class BrokenMonitor:
            def capture_exception(self, error, context):
                raise RuntimeError("monitor down")

        ErrorReporter(logger, BrokenMonitor()).log_error(DatabaseError("boom"))
        assert "monitor down" in log_stream.getvalue()

    def test_handle_returns_value_or_error(self, logger):
        reporter = ErrorReporter(logger)
        assert reporter.handle(lambda: 3) == (3, None)

        def boom() -> int:
            raise ValueError("bad input")

        value, error = reporter.handle(boom)
        assert value is None
        assert isinstance(error, BusinessLogicError)


class TestLoggingErrorMonitor:

    def test_records_captured_error_at_critical(self, logger, log_stream):
        monitor = LoggingErrorMonitor(logger)
        ErrorReporter(logger, monitor).log_error(ExternalServiceError("auth", "down"))
        assert monitor.captured_count == 1
        assert '"level": "CRITICAL"' in log_stream.getvalue()
