"""Error Hierarchy: typed, categorized exceptions for all SubRecap failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Upstream "not subscribed" is NOT an error (see core/lookup_results.py)
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with SubRecapError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CACHE = "cache"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    broadcaster_id: str | None = None
    stage: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class SubRecapError(Exception):
    """Base exception for all SubRecap errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "user_id": self.context.user_id,
                    "broadcaster_id": self.context.broadcaster_id,
                    "stage": self.context.stage,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ResourceNotFoundError(SubRecapError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class MissingCredentialError(SubRecapError):
    """A required caller credential was not supplied."""
    def __init__(self, credential: str, context: ErrorContext | None = None):
        super().__init__(
            f"Missing credential: {credential}",
            "MISSING_CREDENTIAL", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 401,
        )
        self.credential = credential


# ─── Infrastructure Errors (500-level) ──────────────────────────

class UpstreamTransportError(SubRecapError):
    """Upstream call failed below the application layer.

    Raised for connection failures, timeouts and responses that cannot be
    decoded into the expected structure.
    """
    def __init__(
        self, message: str, endpoint: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Upstream transport failure ({endpoint}): {message}",
            "UPSTREAM_TRANSPORT_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 502,
        )
        self.endpoint = endpoint


class UpstreamStatusError(SubRecapError):
    """Upstream answered with an unexpected HTTP status."""
    def __init__(
        self,
        status_code: int,
        endpoint: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Upstream {endpoint} returned HTTP {status_code}",
            "UPSTREAM_STATUS_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 502,
        )
        self.status_code = status_code
        self.endpoint = endpoint

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code in (401, 403)


class CacheStoreError(SubRecapError):
    """Cache store operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cache {operation} failed: {message}",
            "CACHE_STORE_ERROR", ErrorCategory.CACHE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
