# commentflow/domain/exceptions.py
"""
Exception Hierarchy
Error taxonomy shared by services, clients and background tasks
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for every pipeline error"""

    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# ============================================================================
# Not Found (terminal, never retried)
# ============================================================================


class ResourceNotFoundError(ServiceError):
    """Requested entity does not exist"""


class UserNotFoundError(ResourceNotFoundError):
    """Username could not be resolved at the content source"""


class JobNotFoundError(ResourceNotFoundError):
    """No job tracker with the given id"""


class CommentNotFoundError(ResourceNotFoundError):
    """No comment with the given id"""


# ============================================================================
# External Services (transient, retried with backoff)
# ============================================================================


class ExternalServiceError(ServiceError):
    """An external collaborator failed"""

    retryable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class APIError(ExternalServiceError):
    """Content source failed after inline retries were exhausted"""


class TranslationAPIError(ExternalServiceError):
    """Translation service returned an error or malformed body"""


class RateLimitError(ExternalServiceError):
    """External service rejected the call with HTTP 429"""


class ServiceUnavailableError(ExternalServiceError):
    """Dependency is known to be down; callers should not retry immediately"""

    retryable = False


class CircuitOpenError(ServiceUnavailableError):
    """Call rejected because the circuit breaker is open"""

    def __init__(self, service_name: str, retry_after: Optional[float] = None):
        super().__init__(
            f"Circuit breaker is open for {service_name}",
            status_code=503,
            details={"service": service_name, "retry_after": retry_after},
        )
        self.service_name = service_name
        self.retry_after = retry_after


# ============================================================================
# Classification / Lifecycle / Payload
# ============================================================================


class ClassificationError(ServiceError):
    """Comment could not be classified"""


class InvalidTransition(ServiceError):
    """Comment lifecycle event is not allowed from the current state"""

    def __init__(self, event: str, from_state: str, reason: str = "not allowed"):
        super().__init__(
            f"Cannot {event} from '{from_state}': {reason}",
            details={"event": event, "from_state": from_state, "reason": reason},
        )
        self.event = event
        self.from_state = from_state
        self.reason = reason


class PayloadError(ServiceError):
    """Task payload could not be deserialized; retrying cannot fix it"""


# ============================================================================
# Helpers
# ============================================================================


def is_retryable_error(error: BaseException) -> bool:
    """Whether an error should be retried by the task queue"""
    if isinstance(error, ServiceError):
        return error.retryable
    return isinstance(error, (TimeoutError, ConnectionError))


def get_retry_delay(attempt: int, base: float = 60.0, maximum: float = 600.0) -> float:
    """
    Exponential backoff delay for a retry attempt

    Args:
        attempt: Zero-based retry count
        base: Delay of the first retry in seconds
        maximum: Upper bound

    Returns:
        Delay in seconds
    """
    return min(base * (2**attempt), maximum)


def error_to_http_status(error: BaseException) -> int:
    """Map an error onto the HTTP status the API layer should return"""
    if isinstance(error, ResourceNotFoundError):
        return 404
    if isinstance(error, InvalidTransition):
        return 409
    if isinstance(error, (ClassificationError, PayloadError)):
        return 422
    if isinstance(error, RateLimitError):
        return 429
    if isinstance(error, ServiceUnavailableError):
        return 503
    if isinstance(error, ExternalServiceError):
        return 502
    return 500
