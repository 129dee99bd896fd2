"""Errors raised by the allocation engine.

The engine validates before it mutates, so any of these leaves the
database untouched. The API layer maps them to HTTP status codes.
"""


class AllocationError(Exception):
    """Base class for allocation engine errors."""
    status_code = 500


class ValidationError(AllocationError, ValueError):
    """Malformed input: missing field, out-of-range percentage, bad budget."""
    status_code = 400


class NotFoundError(AllocationError):
    """Referenced session, category or period does not exist."""
    status_code = 404


class ConflictError(AllocationError):
    """A period (or other keyed record) with that name already exists."""
    status_code = 409


class AuthorizationError(AllocationError):
    """Caller lacks the capability required for the operation."""
    status_code = 403
