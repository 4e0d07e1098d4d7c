"""Exception types for the authorization engine."""

from __future__ import annotations


class AuthzError(Exception):
    """Base class for authorization engine errors."""


class AuthzStoreError(AuthzError):
    """
    The authorization store could not answer a read (verify / list) request.

    Never crosses the evaluator boundary: the evaluator maps it to a denial.
    """


class AssignmentError(AuthzError):
    """
    An administrative assign/unassign operation failed.

    This is the one error the engine propagates to its caller, since the
    administrator expects explicit success/failure feedback.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NavigationConfigError(ValueError):
    """Raised when the navigation YAML configuration is invalid."""
