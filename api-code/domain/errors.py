from __future__ import annotations


class FederalistError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidRequestError(FederalistError, ValueError):
    status_code = 400
    default_message = "Bad Request"


class AuthenticationError(FederalistError):
    status_code = 403
    default_message = "You are not permitted to perform this action. Are you sure you are logged in?"


class AuthorizationError(FederalistError, PermissionError):
    status_code = 403
    default_message = "You are not authorized to perform that action"


class NotFoundError(FederalistError, LookupError):
    status_code = 404
    default_message = "Not found"


class GitHubError(RuntimeError):
    """Raised when a GitHub API call fails."""

    def __init__(self, status: int, message: str, *, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"GitHub API error {status}: {message}")
        self.message = message

    @property
    def is_transient(self) -> bool:
        """Network failures (status 0) and GitHub 5xx responses."""
        return self.status == 0 or self.status >= 500
