"""Domain errors raised by the marketplace services.

Each error carries a stable ``code`` and a human-readable ``message``; the
exception handlers in ``marketplace.middleware.exceptions`` translate them to
HTTP responses using ``status_code``.
"""
from typing import Any, Dict, Optional


class MarketplaceError(Exception):
    status_code: int = 400
    default_code: str = "BAD_REQUEST"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details


class NotFoundError(MarketplaceError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(MarketplaceError):
    status_code = 409
    default_code = "CONFLICT"


class PreconditionFailedError(MarketplaceError):
    status_code = 400
    default_code = "PRECONDITION_FAILED"


class PermissionDeniedError(MarketplaceError):
    status_code = 403
    default_code = "FORBIDDEN"


class ExternalServiceError(MarketplaceError):
    status_code = 502
    default_code = "EXTERNAL_SERVICE_FAILURE"


class ProcessorTimeoutError(MarketplaceError):
    """The processor did not answer in time; the real outcome is unknown."""
    status_code = 504
    default_code = "PROCESSOR_TIMEOUT"


class PartialUpdateError(MarketplaceError):
    """A write succeeded but a dependent summary could not be refreshed."""
    status_code = 500
    default_code = "PARTIAL_UPDATE"
