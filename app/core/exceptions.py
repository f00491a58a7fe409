"""
Custom Exception Hierarchy

Provides structured exceptions for consistent error handling across the application.
Every failure a core operation can produce is one of these types, so callers
branch on the class (or on ``error_code``) instead of parsing messages.
"""
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"
    ALREADY_EXISTS = "ERR_1003"
    UNAUTHORIZED = "ERR_1004"
    FORBIDDEN = "ERR_1005"
    RATE_LIMITED = "ERR_1006"

    # Auth errors (2xxx)
    MISSING_CREDENTIAL = "ERR_2001"
    INVALID_CREDENTIAL = "ERR_2002"

    # Account errors (3xxx)
    PROFILE_NOT_FOUND = "ERR_3001"

    # Wallet errors (4xxx)
    INSUFFICIENT_FUNDS = "ERR_4002"
    INVALID_AMOUNT = "ERR_4003"
    LEDGER_CONFLICT = "ERR_4004"

    # External service errors (5xxx)
    IDENTITY_PROVIDER_ERROR = "ERR_5001"
    EXTERNAL_SERVICE_UNAVAILABLE = "ERR_5003"
    EXTERNAL_SERVICE_TIMEOUT = "ERR_5004"
    SETTLEMENT_TIMEOUT = "ERR_5005"

    # Storage errors (6xxx)
    STORAGE_UNAVAILABLE = "ERR_6001"


class AppException(Exception):
    """Base exception for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "details": self.details
            }
        }


class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class ProfileNotFoundError(NotFoundException):
    """Raised when a user has no stored profile"""

    def __init__(self, user_id: str):
        super().__init__("Profile", user_id, error_code=ErrorCode.PROFILE_NOT_FOUND)
        self.message = "Profile not found"


class AuthException(AppException):
    """Base exception for authentication failures (always 401, never retried)"""

    def __init__(self, message: str, error_code: ErrorCode):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=401,
        )


class MissingCredentialError(AuthException):
    """Raised when the request carries no bearer token"""

    def __init__(self):
        super().__init__("No access token provided", ErrorCode.MISSING_CREDENTIAL)


class InvalidCredentialError(AuthException):
    """Raised when the bearer token is malformed, forged or expired"""

    def __init__(self, reason: str | None = None):
        super().__init__("Invalid or expired token", ErrorCode.INVALID_CREDENTIAL)
        if reason:
            self.details["reason"] = reason


class WalletException(AppException):
    """Base exception for wallet-related errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        user_id: str | None = None,
        status_code: int = 400,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )
        if user_id:
            self.details["user_id"] = user_id


class InvalidAmountError(WalletException):
    """Raised when a balance or amount is not a non-negative number"""

    def __init__(self, message: str = "Invalid balance amount", value: Any = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_AMOUNT,
            details={"value": str(value)} if value is not None else None
        )


class InsufficientFundsError(WalletException):
    """Raised when the wallet balance does not cover a payment"""

    def __init__(self, user_id: str, current_balance: float, required_amount: float):
        super().__init__(
            message="Insufficient wallet balance. Please add money to your wallet.",
            error_code=ErrorCode.INSUFFICIENT_FUNDS,
            user_id=user_id,
            status_code=402,
            details={
                "current_balance": current_balance,
                "required_amount": required_amount,
                "shortfall": required_amount - current_balance,
            }
        )


class LedgerConflictError(WalletException):
    """Raised when concurrent writers keep invalidating an atomic wallet update"""

    def __init__(self, user_id: str, attempts: int):
        super().__init__(
            message="Wallet is busy, please retry",
            error_code=ErrorCode.LEDGER_CONFLICT,
            user_id=user_id,
            status_code=409,
            details={"attempts": attempts}
        )


class StorageError(AppException):
    """Raised when the key-value store is unavailable or returns garbage"""

    def __init__(self, operation: str, key: str | None = None, reason: str | None = None):
        super().__init__(
            message=f"Storage unavailable during {operation}",
            error_code=ErrorCode.STORAGE_UNAVAILABLE,
            status_code=500,
            details={"operation": operation}
        )
        if key:
            self.details["key"] = key
        if reason:
            self.details["reason"] = reason


class ExternalServiceException(AppException):
    """Base exception for external service errors"""

    def __init__(
        self,
        service_name: str,
        message: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
        status_code: int = 503,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )
        self.details["service"] = service_name


class IdentityProviderError(ExternalServiceException):
    """Raised when the identity provider rejects a request (e.g. email already registered)"""

    def __init__(self, message: str, status_code: int = 400, details: dict[str, Any] | None = None):
        super().__init__(
            service_name="identity_provider",
            message=message,
            error_code=ErrorCode.IDENTITY_PROVIDER_ERROR,
            status_code=status_code,
            details=details
        )

    @classmethod
    def from_response(
        cls,
        operation: str,
        response: Any,
        *,
        max_response_chars: int = 500
    ) -> "IdentityProviderError":
        """
        Build an error from a provider HTTP response.

        The provider reports failures as ``{"msg": ...}`` or
        ``{"error_description": ...}``; the first one present becomes the
        user-visible message.
        """
        status_code = getattr(response, "status_code", None)
        response_text = getattr(response, "text", "") or ""
        message = None
        try:
            body = response.json()
            if isinstance(body, dict):
                message = body.get("msg") or body.get("error_description") or body.get("message")
        except ValueError:
            pass
        return cls(
            message=message or f"{operation} returned status {status_code}",
            details={
                "operation": operation,
                "status_code": status_code,
                "response_text": response_text[:max_response_chars],
            },
        )


class ServiceTimeoutError(ExternalServiceException):
    """Raised when external service times out"""

    def __init__(self, service_name: str, timeout_seconds: float):
        super().__init__(
            service_name=service_name,
            message=f"{service_name} request timed out after {timeout_seconds}s",
            error_code=ErrorCode.EXTERNAL_SERVICE_TIMEOUT,
            details={"timeout_seconds": timeout_seconds}
        )


class SettlementTimeoutError(ExternalServiceException):
    """Raised when simulated settlement does not finish in time; nothing was charged"""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            service_name="settlement",
            message=f"Payment settlement timed out after {timeout_seconds}s; you were not charged",
            error_code=ErrorCode.SETTLEMENT_TIMEOUT,
            status_code=504,
            details={"timeout_seconds": timeout_seconds}
        )


class CircuitBreakerOpenError(ExternalServiceException):
    """Raised when circuit breaker is open"""

    def __init__(self, service_name: str, retry_after_seconds: float):
        super().__init__(
            service_name=service_name,
            message=f"{service_name} is temporarily unavailable (circuit breaker open)",
            error_code=ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
            details={"retry_after_seconds": retry_after_seconds}
        )
