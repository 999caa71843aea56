"""
Synergy Backend: Custom Exception Hierarchy
============================================

What:  Application-specific exceptions for every rejection the API can return.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services, the role workflow and dependencies.

Exception Hierarchy:
    SynergyError (base)
    ├── ValidationError                 → 400 Bad Request
    ├── AuthenticationError             → 401 Unauthorized
    ├── ForbiddenError                  → 403 Forbidden
    ├── NotFoundError                   → 404 Not Found
    ├── WorkflowConflictError           → 409 Conflict
    │   ├── DuplicateApplicationError
    │   ├── AlreadyEngagedError
    │   ├── RoleUnavailableError
    │   ├── TeamFullError
    │   ├── InvalidStateError
    │   ├── CapacityConflictError
    │   └── ConcurrentModificationError
    ├── RateLimitExceededError          → 429 Too Many Requests
    └── DatabaseError                   → 500 Internal Server Error

Every workflow rejection is deterministic: it is derived from the current
state of the project and user, and repeating the call without a state
change yields the same error. Only ConcurrentModificationError invites the
client to retry.
"""

from typing import Any, Dict, Optional


class SynergyError(Exception):
    """
    Base exception for all Synergy application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; returned only for 4xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SynergyError):
    """
    Raised when client input fails a business rule.

    HTTP: 400 Bad Request. Schema-level problems are rejected earlier by
    FastAPI with 422; this covers rules Pydantic cannot see (duplicate role
    titles, reserved titles, duplicate usernames).
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(SynergyError):
    """Raised when the acting user cannot be identified. HTTP: 401."""

    def __init__(
        self,
        message: str = "Not authenticated. Please log in.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(SynergyError):
    """
    Raised when a capability or ownership check fails.

    When: a non-jobseeker applies, a non-founder processes applications or
          removes members, a founder tries to leave or remove themselves.
    HTTP: 403 Forbidden
    """

    def __init__(
        self,
        message: str = "You are not allowed to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(SynergyError):
    """
    Raised when a requested resource does not exist.

    Covers projects, users, applications, roles, team members and
    notifications. SQLAlchemy returns None for missing rows; services
    convert that into this exception.
    HTTP: 404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource


class WorkflowConflictError(SynergyError):
    """
    Base for rejections caused by the current project/application state.

    HTTP: 409 Conflict. `error_code` is the machine-readable code returned
    to clients; subclasses override it.
    """

    error_code = "workflow_conflict"

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the project",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DuplicateApplicationError(WorkflowConflictError):
    """The user already has a pending application for this role."""

    error_code = "duplicate_application"

    def __init__(
        self,
        message: str = "You have already applied for this role",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AlreadyEngagedError(WorkflowConflictError):
    """
    The user is already committed elsewhere.

    When: applying while engaged with a different project, applying to a
          project whose team the user is already on, or accepting an
          applicant who is already a team member.
    """

    error_code = "already_engaged"

    def __init__(
        self,
        message: str = "You are already part of another startup",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RoleUnavailableError(WorkflowConflictError):
    """The role no longer exists or has reached its capacity."""

    error_code = "role_unavailable"

    def __init__(
        self,
        message: str = "This role has already been filled",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TeamFullError(WorkflowConflictError):
    """The project's team has reached its team size."""

    error_code = "team_full"

    def __init__(
        self,
        message: str = "Team size limit reached",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidStateError(WorkflowConflictError):
    """The application has already been decided (not pending)."""

    error_code = "invalid_state"

    def __init__(
        self,
        message: str = "This application has already been processed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CapacityConflictError(WorkflowConflictError):
    """
    A project edit would leave the team or a role over its new capacity.

    When: shrinking team_size below the current team, dropping a role that
          still has members, or lowering a capacity below filled_count.
    """

    error_code = "capacity_conflict"

    def __init__(
        self,
        message: str = "The change does not fit the current team",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConcurrentModificationError(WorkflowConflictError):
    """
    Raised when the project or user row changed between load and commit.

    What:    The optimistic version check failed (or a concurrent writer
             claimed the same unique slot first). The transaction was rolled
             back and nothing was applied.
    Recovery: The client may retry the request; it will be evaluated against
             the new state.
    """

    error_code = "concurrent_modification"

    def __init__(
        self,
        message: str = "The project was modified by another request. Please retry.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(SynergyError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; SQL and
    constraint names are logged server-side only.
    HTTP: 500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(SynergyError):
    """
    Raised when a caller exceeds the write rate limit.

    HTTP: 429 Too Many Requests, with a Retry-After header.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
