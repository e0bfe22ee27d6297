"""Error types raised by the motionkit core.

Every error carries a machine-readable ``code`` and a ``context`` dict with
enough detail (requested id/name, available alternatives, upstream status) for
a caller to build a corrective user-facing message.
"""

from typing import Any, Dict, Optional


class ErrorCode:
    """Error codes for different types of failures."""
    # Workspace related errors
    WORKSPACE_NOT_FOUND = "WORKSPACE_NOT_FOUND"
    NO_DEFAULT_WORKSPACE = "NO_DEFAULT_WORKSPACE"

    # Validation errors
    INVALID_PARAMETERS = "INVALID_PARAMETERS"

    # API related errors
    MOTION_API_ERROR = "MOTION_API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"

    # Control flow
    CANCELLED = "CANCELLED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class MotionError(Exception):
    """Base class for all motionkit errors."""

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context: Dict[str, Any] = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        """Structured form for logs and outward envelopes."""
        return {"error": type(self).__name__, "code": self.code, "message": self.message, "context": self.context}


class UpstreamHTTPError(MotionError):
    """A non-2xx response from the upstream API.

    Args:
        status: HTTP status code, or None when no response was received.
        message: Upstream message (or transport error text).
        retry_after: Server retry hint in seconds, if one was supplied.
    """

    default_code = ErrorCode.MOTION_API_ERROR

    def __init__(
        self,
        status: Optional[int],
        message: str,
        retry_after: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        code = ErrorCode.MOTION_API_ERROR if status is not None else ErrorCode.NETWORK_ERROR
        ctx = {"status": status, **(context or {})}
        if retry_after is not None:
            ctx["retryAfter"] = retry_after
        super().__init__(message, code=code, context=ctx)
        self.status = status
        self.retry_after = retry_after

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.message}" if self.status is not None else self.message


class WorkspaceError(MotionError):
    """Workspace could not be resolved."""
    default_code = ErrorCode.WORKSPACE_NOT_FOUND


class WorkspaceNotFoundError(WorkspaceError):
    """A workspace id or name did not match any accessible workspace."""
    default_code = ErrorCode.WORKSPACE_NOT_FOUND


class NoDefaultWorkspaceError(WorkspaceError):
    """No reference was given and no default workspace could be selected."""
    default_code = ErrorCode.NO_DEFAULT_WORKSPACE


class OperationCancelledError(MotionError):
    """The caller cancelled the operation at a suspension point."""
    default_code = ErrorCode.CANCELLED


class InvalidParametersError(MotionError):
    """A caller-supplied argument is missing or malformed."""
    default_code = ErrorCode.INVALID_PARAMETERS
