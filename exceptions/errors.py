"""
Custom exception classes for the application.

Every error that can end a sync pass derives from AppError so the
HTTP boundary can report it verbatim with a stable code.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "WB_REMOTE_ERROR")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": self.message,
            "code": self.code,
            "detail": self.details or None,
            "timestamp": self.timestamp
        }


class ConfigError(AppError):
    """Missing or unusable configuration (credential, store URL)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="CONFIG_ERROR",
            message=message,
            status_code=500,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# MARKETPLACE ERRORS
# ===================

class MarketplaceError(AppError):
    """Base for failures talking to the marketplace API."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=500,
            details={"service": "wildberries", **(details or {})}
        )


class TransientRemoteError(MarketplaceError):
    """429, 5xx or a network failure. Retried by the client."""

    def __init__(self, path: str, status: Optional[int], body: str = ""):
        self.status = status
        self.body = body
        super().__init__(
            code="WB_TRANSIENT_ERROR",
            message=f"[{path}] transient failure: {status if status is not None else 'network'}",
            details={"path": path, "status": status, "body": body[:500]}
        )


class ExhaustedRetriesError(MarketplaceError):
    """Every attempt in the retry budget failed transiently."""

    def __init__(self, path: str, attempts: int, last_status: Optional[int] = None):
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            code="WB_RETRIES_EXHAUSTED",
            message=f"[{path}] retries exhausted after {attempts} attempts",
            details={"path": path, "attempts": attempts, "last_status": last_status}
        )


class RemoteError(MarketplaceError):
    """Non-transient non-2xx response. Never retried."""

    def __init__(self, path: str, status: int, body: str = ""):
        self.status = status
        self.body = body[:500]
        super().__init__(
            code="WB_REMOTE_ERROR",
            message=f"[{path}] WB {status}: {self.body}",
            details={"path": path, "status": status}
        )


# ===================
# STORE ERRORS
# ===================

class StoreWriteError(AppError):
    """A patch write failed; earlier writes in the pass were kept."""

    def __init__(self, record_id: str, applied_count: int, message: str):
        self.record_id = record_id
        self.applied_count = applied_count
        super().__init__(
            code="STORE_WRITE_ERROR",
            message=f"Update of item {record_id} failed: {message}",
            status_code=500,
            details={"record_id": record_id, "applied_count": applied_count}
        )
