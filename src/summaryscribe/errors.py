"""Error taxonomy shared by services and the HTTP layer.

Every error carries the HTTP status it maps to, so routers can let them
propagate and the exception handlers in ``main`` render a uniform
``{"success": false, "error": ...}`` body.
"""

from typing import Any


class ScribeError(Exception):
    """Base exception for Summary Scribe."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a response body."""
        body: dict[str, Any] = {"success": False, "error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ScribeError):
    """Bad or missing input."""

    status_code = 400


class AuthError(ScribeError):
    """Missing or invalid session."""

    status_code = 401


class PlanLimitError(ScribeError):
    """The caller's plan does not allow the operation."""

    status_code = 403


class NotFoundOrForbidden(ScribeError):
    """Row is absent or owned by someone else. The two are not distinguished."""

    status_code = 404


class UpstreamError(ScribeError):
    """A third-party API answered with a non-2xx status or could not be reached."""

    status_code = 500

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.upstream_status = upstream_status


class ConfigError(ScribeError):
    """Required environment or configuration is absent."""

    status_code = 503
