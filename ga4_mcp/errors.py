"""Turn failures into structured diagnostics callers can act on.

Every tool returns JSON text. A failure is the same kind of payload with an
``"error"`` field, so clients only need to parse one response shape.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import google.auth.exceptions
from google.api_core import exceptions as core_exceptions

CATEGORY_VALIDATION = "validation"
CATEGORY_PERMISSION = "permission"
CATEGORY_AUTHENTICATION = "authentication"
CATEGORY_GENERIC = "generic"

# gRPC PERMISSION_DENIED / HTTP 403
PERMISSION_DENIED_CODES = frozenset({7, 403})
# gRPC UNAUTHENTICATED / HTTP 401
UNAUTHENTICATED_CODES = frozenset({16, 401})

PERMISSION_STEPS = (
    "1. Ensure the authorized account has access to this GA4 property",
    "2. Check if the property ID is correct",
    "3. Re-authorize if needed to get fresh tokens",
)


@dataclass
class Diagnostic:
    category: str
    error: str
    property_id: Optional[str]
    message: str
    original_error: str
    solution: Optional[str] = None
    steps: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.error,
            "category": self.category,
            "message": self.message,
            "propertyId": self.property_id,
        }
        if self.solution:
            payload["solution"] = self.solution
        if self.steps:
            payload["steps"] = list(self.steps)
        payload["originalError"] = self.original_error
        return payload


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _status_codes(error: BaseException) -> set:
    """Collect numeric status codes from api_core, gRPC or plain errors."""
    codes = set()
    code = getattr(error, "code", None)
    # grpc.RpcError exposes code() as a method; api_core uses an int/HTTPStatus
    if isinstance(code, int):
        codes.add(int(code))
    grpc_status = getattr(error, "grpc_status_code", None)
    value = getattr(grpc_status, "value", None)
    if isinstance(value, tuple) and value:
        codes.add(value[0])
    return codes


def _is_permission_error(error: BaseException, text: str) -> bool:
    if isinstance(error, core_exceptions.PermissionDenied):
        return True
    if _status_codes(error) & PERMISSION_DENIED_CODES:
        return True
    return "permission" in text.lower()


def _is_authentication_error(error: BaseException, text: str) -> bool:
    if isinstance(error, (google.auth.exceptions.GoogleAuthError, core_exceptions.Unauthenticated)):
        return True
    if _status_codes(error) & UNAUTHENTICATED_CODES:
        return True
    lowered = text.lower()
    return "token" in lowered or "auth" in lowered


def classify(error: BaseException, property_id: Optional[str]) -> Diagnostic:
    """Map ``error`` to a permission, authentication or generic diagnostic.

    The permission check is a heuristic: a status code or the word
    "permission" anywhere in the message both count. First match wins.
    """
    text = _error_text(error)

    if _is_permission_error(error, text):
        return Diagnostic(
            category=CATEGORY_PERMISSION,
            error="Permission denied for this Google Analytics property",
            property_id=property_id,
            message=text,
            original_error=text,
            solution="The authenticated account does not have access to this property",
            steps=list(PERMISSION_STEPS),
        )

    if _is_authentication_error(error, text):
        return Diagnostic(
            category=CATEGORY_AUTHENTICATION,
            error="Authentication error",
            property_id=property_id,
            message=text,
            original_error=text,
            solution="Token may be expired or invalid. Please re-authorize to get fresh tokens.",
        )

    return Diagnostic(
        category=CATEGORY_GENERIC,
        error="Failed to fetch analytics data",
        property_id=property_id,
        message=text,
        original_error=text,
    )


def missing_property_error() -> Dict[str, Any]:
    return {
        "error": "Property ID is required. Please specify a propertyId parameter.",
        "category": CATEGORY_VALIDATION,
        "example": 'propertyId: "123456789"',
        "instruction": "Please provide the Google Analytics 4 property ID you want to query.",
    }


def invalid_choice_error(parameter: str, value: Any, choices, property_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "error": f"Invalid {parameter} '{value}'. Expected one of: {', '.join(choices)}",
        "category": CATEGORY_VALIDATION,
        "propertyId": property_id,
        "choices": list(choices),
    }
