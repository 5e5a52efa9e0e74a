"""Exceptions raised by the tracking services and repositories.

Handlers map each type onto an HTTP response; services never build
responses themselves.
"""


class TrackingError(Exception):
    """Base exception for all tracking errors."""

    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(TrackingError):
    """A visitor or session read by id does not exist."""

    error_code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ValidationError(TrackingError):
    """Tracking input was rejected.

    Attributes:
        errors: One dict per offending field, with "field" and "message"
            keys (plus the pydantic error "type" when converted).
    """

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__(message, details={"errors": self.errors})

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        """Reject a single field."""
        return cls(message, [{"field": field, "message": message}])

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ValidationError":
        """Create ValidationError from Pydantic ValidationError."""
        errors = [
            {
                "field": ".".join(str(loc) for loc in error.get("loc", ())),
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "unknown"),
            }
            for error in exc.errors()
        ]
        return cls(errors=errors)


class ConflictError(TrackingError):
    """A conditional write lost to a concurrent writer.

    Only raised between repositories and services; the stitcher retries on
    it and it never reaches a client unless retries run out.
    """

    error_code = "CONFLICT"

    def __init__(self, message: str = "Resource conflict", conflict_type: str | None = None):
        self.conflict_type = conflict_type
        super().__init__(
            message,
            details={"conflict_type": conflict_type} if conflict_type else None,
        )


class PersistenceError(TrackingError):
    """The table rejected or failed a request that was not a condition check."""

    error_code = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, original_error: str | None = None):
        self.operation = operation
        super().__init__(
            f"Storage operation '{operation}' failed",
            details={"operation": operation, "original_error": original_error},
        )
