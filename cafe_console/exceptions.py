"""
Exception hierarchy for the café console.

Every error raised by the workflow code inherits from ConsoleError and carries
a category that decides how it is surfaced to the operator:

- validation: bad input, rejected before any network call
- business: a rule the API (or the console) refuses, e.g. an invalid transition
- transport: network failure, timeout or 5xx; always retryable
- auth: the operator has to be sent somewhere else (login, not-authorized, landing)
"""

from typing import Optional


class ConsoleError(Exception):
    """Base exception for all console errors."""

    category = "internal"
    status_code = 500
    retryable = False

    def __init__(
        self,
        message: str,
        error_code: str = "CONSOLE_ERROR",
        details: Optional[dict] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ===========================================
# Validation
# ===========================================


class ValidationFailed(ConsoleError):
    """Input rejected before any request is made."""

    category = "validation"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        self.field = field
        kwargs.setdefault("error_code", "VALIDATION_FAILED")
        super().__init__(message, **kwargs)
        if field:
            self.details.setdefault("field", field)


class InvalidMobile(ValidationFailed):
    def __init__(self, raw: str):
        super().__init__(
            "Enter a valid mobile number",
            field="user_mobile",
            error_code="INVALID_MOBILE",
            details={"value": raw},
        )


class MissingField(ValidationFailed):
    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(
            message or f"{field} is required",
            field=field,
            error_code="MISSING_FIELD",
        )


class InvalidValue(ValidationFailed):
    def __init__(self, field: str, message: str):
        super().__init__(message, field=field, error_code="INVALID_VALUE")


# ===========================================
# Business rules
# ===========================================


class BusinessRuleViolation(ConsoleError):
    """A rule refused the command; local state is unchanged."""

    category = "business"
    status_code = 409


class InvalidTransition(BusinessRuleViolation):
    def __init__(self, booking_id: str, current: str, target: str, message: Optional[str] = None):
        self.booking_id = booking_id
        self.current = current
        self.target = target
        super().__init__(
            message or f"Booking {booking_id} is {current} and cannot be {target}",
            error_code="INVALID_TRANSITION",
            details={"booking_id": booking_id, "current": current, "target": target},
        )


class AlreadyNotified(BusinessRuleViolation):
    def __init__(self, booking_id: str, message: Optional[str] = None):
        self.booking_id = booking_id
        super().__init__(
            message or "A notification was already sent for this booking",
            error_code="ALREADY_NOTIFIED",
            details={"booking_id": booking_id},
        )


class CodeMismatch(BusinessRuleViolation):
    def __init__(self, redeem_id: str, message: Optional[str] = None):
        self.redeem_id = redeem_id
        super().__init__(
            message or "Redeem confirmation failed. Please check the code.",
            error_code="CODE_MISMATCH",
            details={"redeem_id": redeem_id},
        )


class AlreadyConfirmed(BusinessRuleViolation):
    def __init__(self, redeem_id: str, message: Optional[str] = None):
        self.redeem_id = redeem_id
        super().__init__(
            message or "This redeem has already been confirmed",
            error_code="ALREADY_CONFIRMED",
            details={"redeem_id": redeem_id},
        )


class DuplicateUpiId(BusinessRuleViolation):
    def __init__(self, upi_id: str, message: Optional[str] = None):
        self.upi_id = upi_id
        super().__init__(
            message or "This UPI ID is already used by another café",
            error_code="DUPLICATE_UPI_ID",
            details={"field": "cafe_upi_id"},
        )


class NotFound(BusinessRuleViolation):
    status_code = 404

    def __init__(self, what: str, identifier: str):
        super().__init__(
            f"{what} {identifier} not found",
            error_code="NOT_FOUND",
            details={"what": what, "id": identifier},
        )


class ApiRejected(BusinessRuleViolation):
    """A 4xx answer from the café API that no controller mapped to something narrower."""

    def __init__(self, status: int, message: str, error_code: Optional[str] = None, details: Optional[dict] = None):
        self.status = status
        self.api_error_code = error_code
        super().__init__(
            message,
            error_code="API_REJECTED",
            details={"status": status, **(details or {})},
        )


# ===========================================
# Transport
# ===========================================


class TransportFailure(ConsoleError):
    """Network failure or server error. Never forces a logout."""

    category = "transport"
    status_code = 502
    retryable = True

    def __init__(self, message: str = "The café service is unreachable. Please retry.", status: Optional[int] = None):
        self.status = status
        super().__init__(
            message,
            error_code="TRANSPORT_FAILURE",
            details={"status": status} if status else None,
        )


# ===========================================
# Authentication / authorization
# ===========================================


class NavigationRequired(ConsoleError):
    """The operator must be redirected; optionally the stored credential is dropped."""

    category = "auth"
    status_code = 303

    def __init__(self, message: str, location: str, clear_credential: bool, error_code: str):
        self.location = location
        self.clear_credential = clear_credential
        super().__init__(message, error_code=error_code, details={"location": location})


class AuthenticationRequired(NavigationRequired):
    def __init__(self, location: str, clear_credential: bool = True, message: str = "Session expired. Please login again."):
        super().__init__(message, location, clear_credential, "AUTHENTICATION_REQUIRED")


class AccessDenied(NavigationRequired):
    def __init__(self, location: str, clear_credential: bool = False, message: str = "Access denied"):
        super().__init__(message, location, clear_credential, "ACCESS_DENIED")


# ===========================================
# Queries
# ===========================================


class QuerySuperseded(ConsoleError):
    """A newer read with different parameters replaced this one."""

    category = "superseded"
    status_code = 204

    def __init__(self, key: str):
        super().__init__(f"Query {key} superseded", error_code="QUERY_SUPERSEDED")
