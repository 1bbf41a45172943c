"""
Shared error handling for the guild permissions service.
"""

from typing import Dict, Any, List, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class PermissionsException(Exception):
    """Base exception for the permissions service."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class InsufficientPermission(PermissionsException):
    """Operator does not hold the level required for the action."""

    def __init__(self, message: str = "Insufficient permission", details: Optional[Dict[str, Any]] = None):
        super().__init__("INSUFFICIENT_PERMISSION", message, details)


class MissingArgument(PermissionsException):
    """A required command argument was omitted."""

    def __init__(self, message: str = "Missing argument", details: Optional[Dict[str, Any]] = None):
        super().__init__("MISSING_ARGUMENT", message, details)


class NoMatch(PermissionsException):
    """A search term resolved to no candidate."""

    def __init__(self, term: str, details: Optional[Dict[str, Any]] = None):
        self.term = term
        super().__init__("NO_MATCH", f"No matches for `{term}`.", details)


class AmbiguousMatch(PermissionsException):
    """A search term resolved to more than one candidate."""

    def __init__(self, term: str, candidates: List[Any], details: Optional[Dict[str, Any]] = None):
        self.term = term
        self.candidates = list(candidates)
        super().__init__(
            "AMBIGUOUS_MATCH",
            f"Found {len(self.candidates)} matches for `{term}`, please be more specific.",
            details
        )


class LevelNotEditable(PermissionsException):
    """The permission level cannot be granted through the grant editor."""

    def __init__(self, message: str = "Permission level is not editable", details: Optional[Dict[str, Any]] = None):
        super().__init__("LEVEL_NOT_EDITABLE", message, details)


class ValidationError(PermissionsException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class PersistenceFailure(PermissionsException):
    """Grant storage was unreachable or rejected a read or write."""

    def __init__(self, message: str = "Persistence failure", details: Optional[Dict[str, Any]] = None):
        super().__init__("PERSISTENCE_FAILURE", message, details)


class ExternalServiceError(PermissionsException):
    """External service errors."""

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)
