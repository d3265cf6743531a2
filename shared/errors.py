"""
Shared error handling for the caching proxy.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ProxyException(Exception):
    """Base exception for proxy services."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(ProxyException):
    """Request validation errors (missing or malformed target URL)."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ForbiddenTargetError(ProxyException):
    """Target resolves to an address the proxy must not reach."""

    status_code = 403

    def __init__(self, message: str = "Access to private IP addresses not allowed", details: Optional[Dict[str, Any]] = None):
        super().__init__("FORBIDDEN_TARGET", message, details)


class UpstreamTimeout(ProxyException):
    """All fetch attempts exhausted on timeout."""

    status_code = 504

    def __init__(self, message: str = "Upstream request timed out", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_TIMEOUT", message, details)


class UpstreamError(ProxyException):
    """Upstream answered with a non-retryable or retry-exhausted error status."""

    status_code = 502

    def __init__(self, status: Optional[int], message: str = "Upstream error", details: Optional[Dict[str, Any]] = None):
        self.upstream_status = status
        details = dict(details or {})
        details.setdefault("upstream_status", status)
        super().__init__("UPSTREAM_ERROR", message, details)


class TransportError(ProxyException):
    """Network-level failure with no meaningful upstream status."""

    status_code = 502

    def __init__(self, message: str = "Upstream transport error", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_ERROR", message, details)


class CacheTierDegraded(ProxyException):
    """Shared cache tier unreachable. Reported to observability only."""

    status_code = 503

    def __init__(self, operation: str, message: str = "Shared cache tier unavailable", details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        details = dict(details or {})
        details.setdefault("operation", operation)
        super().__init__("CACHE_TIER_DEGRADED", message, details)
