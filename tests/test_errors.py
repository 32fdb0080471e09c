"""
Tests for failure classification and the validation envelopes.
"""

import json

import pytest
from google.api_core import exceptions as core_exceptions
from google.auth.exceptions import RefreshError

from ga4_mcp.errors import (
    CATEGORY_AUTHENTICATION,
    CATEGORY_GENERIC,
    CATEGORY_PERMISSION,
    CATEGORY_VALIDATION,
    classify,
    invalid_choice_error,
    missing_property_error,
)


class CodedError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


class TestClassify:
    def test_permission_message(self):
        diagnostic = classify(Exception("permission denied for property 12345"), "12345")

        assert diagnostic.category == CATEGORY_PERMISSION
        assert diagnostic.property_id == "12345"
        assert diagnostic.original_error == "permission denied for property 12345"
        assert len(diagnostic.steps) == 3

    def test_token_message(self):
        diagnostic = classify(Exception("invalid_grant: token expired"), "999")

        assert diagnostic.category == CATEGORY_AUTHENTICATION
        assert diagnostic.property_id == "999"
        assert "re-authorize" in diagnostic.solution
        assert diagnostic.steps == []

    def test_network_error_is_generic(self):
        diagnostic = classify(ConnectionResetError("ECONNRESET"), "999")

        assert diagnostic.category == CATEGORY_GENERIC
        assert diagnostic.message == "ECONNRESET"
        assert diagnostic.original_error == "ECONNRESET"
        assert diagnostic.steps == []
        assert diagnostic.solution is None

    def test_grpc_permission_code(self):
        diagnostic = classify(CodedError("Request rejected", 7), "42")
        assert diagnostic.category == CATEGORY_PERMISSION

    def test_api_core_permission_denied(self):
        diagnostic = classify(core_exceptions.PermissionDenied("Access blocked"), "42")

        assert diagnostic.category == CATEGORY_PERMISSION
        assert "Access blocked" in diagnostic.original_error

    def test_api_core_unauthenticated(self):
        error = core_exceptions.Unauthenticated("Request had invalid credentials")
        assert classify(error, "42").category == CATEGORY_AUTHENTICATION

    def test_refresh_error(self):
        error = RefreshError("invalid_grant: Bad Request")
        assert classify(error, "42").category == CATEGORY_AUTHENTICATION

    def test_permission_checked_before_authentication(self):
        error = Exception("Permission denied: the OAuth token lacks the analytics scope")
        assert classify(error, "42").category == CATEGORY_PERMISSION

    def test_other_api_errors_are_generic(self):
        error = core_exceptions.InvalidArgument("Field bogusMetric is not a valid metric")
        assert classify(error, "42").category == CATEGORY_GENERIC

    def test_empty_message_uses_type_name(self):
        diagnostic = classify(TimeoutError(), "42")

        assert diagnostic.category == CATEGORY_GENERIC
        assert diagnostic.message == "TimeoutError"

    @pytest.mark.parametrize(
        "error",
        [
            Exception("permission denied"),
            Exception("token expired"),
            Exception("boom"),
        ],
    )
    def test_envelope_shape(self, error):
        payload = classify(error, "777").to_dict()

        assert payload["error"]
        assert payload["propertyId"] == "777"
        assert payload["originalError"] == str(error)
        json.dumps(payload)


def test_missing_property_error():
    payload = missing_property_error()

    assert payload["category"] == CATEGORY_VALIDATION
    assert "Property ID is required" in payload["error"]


def test_invalid_choice_error():
    payload = invalid_choice_error("type", "events", ("dimensions", "metrics", "both"), "999")

    assert payload["category"] == CATEGORY_VALIDATION
    assert payload["choices"] == ["dimensions", "metrics", "both"]
    assert "events" in payload["error"]
