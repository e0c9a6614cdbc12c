"""
Marketplace Exceptions

Every failure the publication pipeline can report maps to one of the
exception types below. Routes never build HTTP errors for these cases
themselves; the error handling middleware renders them with a stable
status code and error type.
"""

from typing import Optional


class MarketplaceError(Exception):
    """
    Base exception for all marketplace errors.

    Attributes:
        message: Human readable message, safe to return to the caller
        status_code: HTTP status the error maps to
        error_type: Stable machine-readable error type
    """

    status_code = 500
    error_type = "internal_error"
    default_message = "Internal server error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthenticatedError(MarketplaceError):
    """Raised when a credential is missing, invalid or expired.

    Wrong and expired API keys raise this with the same message so that
    callers cannot probe which keys exist.
    """

    status_code = 401
    error_type = "authentication_error"
    default_message = "Invalid or expired credentials"


class ForbiddenError(MarketplaceError):
    """Raised when an authenticated caller may not perform an operation."""

    status_code = 403
    error_type = "authorization_error"
    default_message = "Insufficient permissions"


class NotFoundError(MarketplaceError):
    """Raised when a referenced entity is absent or not owned by the caller."""

    status_code = 404
    error_type = "not_found_error"
    default_message = "Requested resource not found"


class ConflictError(MarketplaceError):
    """Raised on uniqueness violations (slug, public key, version, profile).

    Example:
        if slug_taken:
            raise ConflictError("Extension slug is already taken")
    """

    status_code = 409
    error_type = "conflict_error"
    default_message = "Request conflicts with existing data"


class InvalidInputError(MarketplaceError):
    """Raised for malformed versions, non-increasing versions and schema violations."""

    status_code = 400
    error_type = "validation_error"
    default_message = "Invalid request data provided"


class InvalidStateError(MarketplaceError):
    """Raised when an operation is not legal for the entity's lifecycle state.

    Example:
        if version.status != VersionStatus.DRAFT:
            raise InvalidStateError("Version is not in draft status")
    """

    status_code = 412
    error_type = "invalid_state_error"
    default_message = "Operation not allowed in the current state"


class InternalError(MarketplaceError):
    """Raised when a storage or provider collaborator fails.

    The message is always generic. Collaborator details belong in the logs,
    never in the response.
    """

    status_code = 500
    error_type = "internal_error"
    default_message = "Internal server error occurred"
