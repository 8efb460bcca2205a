"""Error taxonomy and translation into the result envelope."""

import logging
import uuid
from typing import Any, Dict, List, Optional

from app_logging import log_error, log_warning

logger = logging.getLogger(__name__)

AI_UNAVAILABLE_MESSAGE = "AI service temporarily unavailable. Please try again."
AI_RATE_LIMITED_MESSAGE = "Rate limit exceeded: Please try again in a few moments."
AI_BAD_RESPONSE_MESSAGE = "AI service returned an unexpected response. Please try again."
AI_NOT_CONFIGURED_MESSAGE = "AI service is unavailable."


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}


class AuthError(AppError):
    status_code = 401
    code = "AUTH_ERROR"
    default_message = "Unauthorized: Please log in"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN_ERROR"
    default_message = "Forbidden"

    def __init__(self, message: Optional[str] = None, kind: str = "Resource") -> None:
        super().__init__(message)
        self.kind = kind


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND_ERROR"
    default_message = "Not found"

    def __init__(self, message: Optional[str] = None, kind: str = "Resource") -> None:
        super().__init__(message)
        self.kind = kind


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT_ERROR"
    default_message = "Conflict"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT_ERROR"
    default_message = "Too many requests"


class ConfigurationError(AppError):
    status_code = 503
    code = "CONFIGURATION_ERROR"
    default_message = "AI_API_KEY environment variable not set"


class UnsupportedProviderError(ConfigurationError):
    default_message = "Unsupported AI provider"


class VendorError(AppError):
    status_code = 502
    code = "VENDOR_ERROR"
    default_message = "AI vendor request failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.vendor_status = status_code

    @property
    def is_rate_limited(self) -> bool:
        return self.vendor_status == 429


class ParseError(AppError):
    status_code = 502
    code = "PARSE_ERROR"
    default_message = "Failed to parse AI response"


STATUS_BY_CODE = {
    cls.code: cls.status_code
    for cls in (
        AppError,
        ValidationError,
        AuthError,
        ForbiddenError,
        NotFoundError,
        ConflictError,
        RateLimitError,
        ConfigurationError,
        VendorError,
        ParseError,
    )
}


def failure(message: str, code: str, details: Optional[Dict[str, List[str]]] = None) -> Dict[str, Any]:
    envelope: Dict[str, Any] = {"success": False, "error": message, "code": code}
    if details:
        envelope["details"] = details
    return envelope


def handle_error(exc: BaseException, **context: Any) -> Dict[str, Any]:
    """Translate any exception into a failure envelope, logging as needed.

    Ownership failures are rendered exactly like missing resources so that
    callers cannot probe for ids they do not own.
    """
    if isinstance(exc, ValidationError):
        return failure(exc.message, exc.code, exc.details)

    if isinstance(exc, (ForbiddenError, NotFoundError)):
        if isinstance(exc, ForbiddenError):
            log_warning(logger, "Ownership check failed", kind=exc.kind, **context)
        return failure(f"{exc.kind} not found or unauthorized", NotFoundError.code)

    if isinstance(exc, ConfigurationError):
        log_error(logger, "AI provider misconfigured", exc, **context)
        return failure(AI_NOT_CONFIGURED_MESSAGE, exc.code)

    if isinstance(exc, (VendorError, ParseError)):
        correlation_id = uuid.uuid4().hex
        log_error(logger, "AI request failed", exc, correlation_id=correlation_id, **context)
        if isinstance(exc, ParseError):
            return failure(AI_BAD_RESPONSE_MESSAGE, exc.code)
        if exc.is_rate_limited:
            return failure(AI_RATE_LIMITED_MESSAGE, exc.code)
        return failure(AI_UNAVAILABLE_MESSAGE, exc.code)

    if isinstance(exc, AppError):
        return failure(exc.message, exc.code)

    log_error(logger, "Unhandled error", exc, **context)
    return failure(AppError.default_message, AppError.code)
