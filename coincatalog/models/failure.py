"""
Failure classification for the catalog, collection and sync layers.

Every failure the system knows how to explain is a KnownError subclass
carrying a FailureKind and an HTTP status code. The API renders these
through a single exception handler; the local stores raise them directly
to their callers.

Taxonomy:
- NotFoundError: record id absent or soft-deleted (not retried)
- ValidationError: bad input, raised before any network call
- AuthError: missing/expired/invalid bearer credential
- SyncFailure: network or server failure during sync (recovered locally)
- SchemaMigrationError: local store migration failed (rolled back)
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    # Credential failures
    UNAUTHORIZED = "unauthorized"

    # Service failures
    SYNC_FAILED = "sync_failed"

    # Local store failures
    MIGRATION_FAILED = "migration_failed"

    # Unknown
    UNKNOWN = "unknown"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    KNOWN_FAILURE = "known_failure"
    UNKNOWN_FAILURE = "unknown_failure"


T = TypeVar("T")


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class ApiResponse(BaseModel, Generic[T]):
    """
    Response envelope used for failures rendered by the API.

    `error` mirrors the failure message so that simple clients can read
    a single string.
    """

    outcome: OutcomeType
    data: T | None = None
    failure: FailureDetail | None = None
    error: str | None = None

    @classmethod
    def success(cls, data: T) -> "ApiResponse[T]":
        """Create a success response."""
        return cls(outcome=OutcomeType.SUCCESS, data=data)

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> "ApiResponse[Any]":
        """Create a known failure response."""
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
            ),
            error=message,
        )

    @classmethod
    def unknown_failure(cls, detail: str | None = None) -> "ApiResponse[Any]":
        """Create an unknown failure response for unexpected exceptions."""
        message = "The server failed unexpectedly. Please retry."
        return cls(
            outcome=OutcomeType.UNKNOWN_FAILURE,
            failure=FailureDetail(
                kind=FailureKind.UNKNOWN,
                message=message,
                detail=detail,
                suggestion="If this persists, please report the issue.",
            ),
            error=message,
        )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class NotFoundError(KnownError):
    """A record id does not exist or refers to a soft-deleted record."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"{entity} not found",
            detail=f"{entity} '{entity_id}' does not exist",
            status_code=404,
        )


class ValidationError(KnownError):
    """Input is missing or malformed. Raised before any network call."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message=message,
            detail=detail,
            status_code=400,
        )


class ConflictError(KnownError):
    """The request collides with existing state (e.g. duplicate email)."""

    def __init__(self, message: str):
        super().__init__(kind=FailureKind.CONFLICT, message=message, status_code=400)


class AuthError(KnownError):
    """The bearer credential is missing, expired or invalid."""

    def __init__(self, message: str = "Authentication required", detail: str | None = None):
        super().__init__(
            kind=FailureKind.UNAUTHORIZED,
            message=message,
            detail=detail,
            suggestion="Log in again to continue syncing.",
            status_code=401,
        )


class SyncFailure(KnownError):
    """
    A sync round trip failed on the network or the server.

    Never surfaced by the collection store: the record stays dirty and the
    failure is logged.
    """

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.SYNC_FAILED,
            message=message,
            detail=detail,
            status_code=502,
        )


class SchemaMigrationError(KnownError):
    """
    Local store migration failed.

    fatal=True means the rollback failed too and the store must be rebuilt.
    """

    def __init__(self, from_version: int, to_version: int, detail: str, fatal: bool = False):
        self.from_version = from_version
        self.to_version = to_version
        self.fatal = fatal
        super().__init__(
            kind=FailureKind.MIGRATION_FAILED,
            message=f"Migration from v{from_version} to v{to_version} failed",
            detail=detail,
            status_code=500,
        )
