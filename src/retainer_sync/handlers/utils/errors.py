"""
Error taxonomy and error-to-response mapping for the retainer handlers.

Validation problems are answered with HTTP 400, webhook signature failures with
HTTP 401 and remote-platform business errors with HTTP 200 and ``ok: false`` so
the calling storefront script can branch on the JSON payload instead of the
platform retrying the request.
"""

import functools
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from aws_lambda_powertools.metrics import MetricUnit

from retainer_sync.handlers.utils.http import MalformedBodyError, envelope_response
from retainer_sync.handlers.utils.observability import logger, metrics, tracer
from retainer_sync.logic.plain_errors import to_plain_error


class ErrorSeverity(str, Enum):
    """Error severity levels for classification."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ErrorCategory(str, Enum):
    """Error categories for classification."""
    VALIDATION = "VALIDATION"
    BUSINESS_LOGIC = "BUSINESS_LOGIC"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"
    CONFIGURATION = "CONFIGURATION"
    SECURITY = "SECURITY"


class BaseServiceError(Exception):
    """Base exception class for service errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.BUSINESS_LOGIC,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.operation = operation
        self.error_id = str(uuid.uuid4())

    @property
    def user_message(self) -> str:
        return to_plain_error(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "error_id": self.error_id,
            "error_code": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "category": self.category.value,
            "operation": self.operation,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class ValidationError(BaseServiceError):
    """Raised when request input fails validation."""

    def __init__(self, message: str, field: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.VALIDATION,
            operation=operation,
        )
        self.field = field


class RemoteBusinessError(BaseServiceError):
    """Raised when the remote platform rejects an operation (userErrors, missing entities)."""

    def __init__(self, message: str, error_code: str = "REMOTE_BUSINESS_ERROR", operation: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.BUSINESS_LOGIC,
            operation=operation,
        )


class ExternalServiceError(BaseServiceError):
    """Raised when a remote call fails at the transport or protocol level."""

    def __init__(
        self,
        message: str,
        service_name: str,
        status_code: Optional[int] = None,
        error_code: str = "EXTERNAL_SERVICE_ERROR",
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.EXTERNAL_SERVICE,
        )
        self.service_name = service_name
        self.status_code = status_code


class ConfigurationError(BaseServiceError):
    """Raised when a required integration is not configured."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
        )


class SignatureVerificationError(BaseServiceError):
    """Raised when a webhook signature is missing or does not match."""

    def __init__(self, message: str = "invalid hmac"):
        super().__init__(
            message=message,
            error_code="SIGNATURE_MISMATCH",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.SECURITY,
        )


def get_http_status_code(error: BaseServiceError) -> int:
    """Get the HTTP status code for an error."""

    status_mapping = {
        "VALIDATION_ERROR": 400,
        "SIGNATURE_MISMATCH": 401,
        "REMOTE_BUSINESS_ERROR": 200,
        "CUSTOMER_NOT_FOUND": 200,
        "EXTERNAL_SERVICE_ERROR": 200,
        "CONFIGURATION_ERROR": 500,
    }

    return status_mapping.get(error.error_code, 200)


@tracer.capture_method
def log_error_metrics(error: BaseServiceError) -> None:
    """Log error metrics for monitoring and alerting."""

    metrics.add_metric(name="ServiceError", unit=MetricUnit.Count, value=1)
    metrics.add_metric(name=f"Error{error.category.value}Count", unit=MetricUnit.Count, value=1)

    tracer.put_annotation("error_code", error.error_code)
    tracer.put_annotation("error_category", error.category.value)

    logger.error(
        "Service error occurred",
        extra={
            "error_id": error.error_id,
            "error_code": error.error_code,
            "error_severity": error.severity.value,
            "error_category": error.category.value,
            "error_message": error.message,
            "operation": error.operation,
        }
    )


def handle_service_errors(unexpected_status: int = 200) -> Callable:
    """
    Decorator factory converting exceptions raised by a route into ``{ok, error}`` envelopes.

    Args:
        unexpected_status: HTTP status used for exceptions outside the service taxonomy
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                try:
                    return func(*args, **kwargs)
                except MalformedBodyError as e:
                    raise ValidationError(str(e)) from e
            except BaseServiceError as e:
                log_error_metrics(e)
                return envelope_response(
                    status_code=get_http_status_code(e),
                    ok=False,
                    error=e.user_message,
                )
            except Exception as e:
                logger.exception("Unexpected error in handler", extra={
                    "error": str(e),
                    "function_name": func.__name__,
                })
                metrics.add_metric(name="UnexpectedError", unit=MetricUnit.Count, value=1)
                return envelope_response(
                    status_code=unexpected_status,
                    ok=False,
                    error=to_plain_error(e),
                )

        return wrapper

    return decorator
