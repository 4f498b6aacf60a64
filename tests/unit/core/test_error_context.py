"""Unit tests for sensitive data redaction."""

import pytest

from src.core.constants import REDACTED
from src.core.error_context import (
    MAX_DEPTH,
    is_sensitive_field,
    is_sensitive_header,
    sanitize_dict,
    sanitize_error_context,
    sanitize_headers,
    sanitize_sql_params,
    sanitize_value,
)
from src.core.exceptions import CastError, UnauthorizedError


@pytest.mark.unit
class TestSensitiveNames:
    """Test field and header name detection."""

    @pytest.mark.parametrize(
        "field_name",
        ["password", "user_password", "API_KEY", "refreshToken", "session_id", "cvv"],
    )
    def test_sensitive_fields(self, field_name: str) -> None:
        """Credential-like names are sensitive."""
        assert is_sensitive_field(field_name)

    @pytest.mark.parametrize("field_name", ["name", "email", "collection", "limit"])
    def test_plain_fields(self, field_name: str) -> None:
        """Ordinary names are not."""
        assert not is_sensitive_field(field_name)

    def test_configured_fields(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Names listed in the log configuration are sensitive too."""
        monkeypatch.setenv("LOG_CONFIG__SENSITIVE_FIELDS", '["tax_number"]')

        assert is_sensitive_field("tax_number")

    def test_given_fields_replace_configured_ones(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Fields passed in are matched instead of the configured ones."""
        monkeypatch.setenv("LOG_CONFIG__SENSITIVE_FIELDS", '["tax_number"]')

        assert is_sensitive_field("tax_number_2", ["TAX_NUMBER"])
        assert not is_sensitive_field("tax_number", [])

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Authorization", True),
            ("cookie", True),
            ("X-API-Key", True),
            ("content-type", False),
            ("x-request-id", False),
        ],
    )
    def test_sensitive_headers(self, header: str, expected: bool) -> None:
        """Header names are matched case-insensitively."""
        assert is_sensitive_header(header) is expected


@pytest.mark.unit
class TestSanitize:
    """Test redaction of values, dicts and headers."""

    def test_nested_values(self) -> None:
        """Nested structures are walked."""
        data = {
            "name": "Ada",
            "credentials": {"password": "hunter2", "username": "ada"},
            "tokens": [{"access_token": "abc"}],
        }

        result = sanitize_dict(data)

        assert result["name"] == "Ada"
        assert result["credentials"] == REDACTED
        assert result["tokens"] == REDACTED

    def test_nested_plain_values_survive(self) -> None:
        """Only sensitive leaves are replaced."""
        result = sanitize_dict({"person": {"name": "Ada", "password": "x"}})

        assert result == {"person": {"name": "Ada", "password": REDACTED}}

    def test_depth_limit(self) -> None:
        """Structures deeper than the limit are cut off."""
        value: dict = {}
        cursor = value
        for _ in range(MAX_DEPTH + 2):
            cursor["child"] = {}
            cursor = cursor["child"]

        result = sanitize_value(value)
        for _ in range(MAX_DEPTH):
            result = result["child"]

        assert result == {"child": REDACTED}

    def test_headers(self) -> None:
        """Credentials are redacted and repeated headers joined."""
        headers = [
            ("Authorization", "Bearer abc"),
            ("Accept", "text/plain"),
            ("accept", "application/json"),
            ("X-Request-ID", "req-1"),
        ]

        assert sanitize_headers(headers) == {
            "authorization": REDACTED,
            "accept": "text/plain, application/json",
            "x-request-id": "req-1",
        }

    @pytest.mark.parametrize(
        ("params", "expected"),
        [
            (None, None),
            ({"name": "Ada", "password": "x"}, {"name": "Ada", "password": REDACTED}),
            (("Ada", "x"), ("Ada", "x")),
            ("raw", REDACTED),
        ],
    )
    def test_sql_params(self, params: object, expected: object) -> None:
        """Named parameters are redacted by name; positional ones are kept."""
        assert sanitize_sql_params(params) == expected


@pytest.mark.unit
class TestSanitizeErrorContext:
    """Test the error attributes attached to error logs."""

    def test_error_attributes(self) -> None:
        """Public attributes are included, stack traces are not."""
        error = CastError("abc", "limit", "Number")

        context = sanitize_error_context(error)

        assert context["error_type"] == "CastError"
        attributes = context["error_attributes"]
        assert attributes["path"] == "limit"
        assert attributes["error_code"] == "CAST_ERROR"
        assert "stack_trace" not in attributes
        assert "cause" not in attributes

    def test_extra_context_is_sanitized(self) -> None:
        """Caller-supplied context is redacted."""
        context = sanitize_error_context(
            UnauthorizedError("jwt expired"), {"token": "abc", "path": "/user"}
        )

        assert context["token"] == REDACTED
        assert context["path"] == "/user"

    def test_plain_exception(self) -> None:
        """Exceptions without attributes only report their type."""
        assert sanitize_error_context(RuntimeError("x")) == {
            "error_type": "RuntimeError"
        }
