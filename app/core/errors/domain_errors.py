"""
Domain exceptions.

Authentication, validation, lookup, policy and execution failures.
"""

from typing import Any, Dict, Optional

from .base import DomainError


class AuthError(DomainError):
    """Raised when a request carries no authenticated user."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message=message, error_code="UNAUTHORIZED")


class ValidationError(DomainError):
    """Raised when a request body or parameter is malformed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details, error_code="VALIDATION_ERROR")


class InvalidDelegateIdError(ValidationError):
    """
    Raised when a connecting delegate presents an unusable delegate id.

    Example:
        >>> raise InvalidDelegateIdError("Missing delegateId")
    """

    def __init__(self, reason: str):
        super().__init__(message=reason, details={"reason": reason})
        self.error_code = "INVALID_DELEGATE_ID"


class NotFoundError(DomainError):
    """Base class for lookups that found nothing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, error_code: str = "NOT_FOUND"):
        super().__init__(message=message, details=details, error_code=error_code)


class ToolNotFoundError(NotFoundError):
    """
    Raised when a tool name resolves to neither a local handler nor a delegate.

    Example:
        >>> raise ToolNotFoundError("frobnicate")
    """

    def __init__(self, tool_name: str):
        super().__init__(
            message=f"Unknown tool: {tool_name}",
            details={"tool_name": tool_name},
            error_code="UNKNOWN_TOOL",
        )


class ApiKeyNotFoundError(NotFoundError):
    """Raised when a delegate API key does not exist for the requesting user."""

    def __init__(self, key_id: str):
        super().__init__(
            message="API key not found",
            details={"key_id": key_id},
            error_code="API_KEY_NOT_FOUND",
        )


class DelegateNotFoundError(NotFoundError):
    """Raised when a delegate is not (or no longer) connected."""

    def __init__(self, delegate_id: str):
        super().__init__(
            message=f'Delegate "{delegate_id}" is not connected',
            details={"delegate_id": delegate_id},
            error_code="DELEGATE_NOT_FOUND",
        )


class ToolAlreadyRegisteredError(DomainError):
    """
    Raised when a tool name is registered twice.

    Registration happens at startup, so this is a programming error and is
    never folded into a tool result.
    """

    def __init__(self, tool_name: str):
        super().__init__(
            message=f'Tool "{tool_name}" is already registered',
            details={"tool_name": tool_name},
            error_code="TOOL_ALREADY_REGISTERED",
        )


class PolicyError(DomainError):
    """Base class for execution policy rejections."""
    pass


class ToolsDisabledError(PolicyError):
    """Tools are switched off for the calling context."""

    def __init__(self):
        super().__init__(
            message="Tools are disabled for this context",
            error_code="TOOLS_DISABLED",
        )


class ToolNotEnabledError(PolicyError):
    """
    The tool is missing from the context's allow-list.

    hint replaces the default message when the name matches delegate tools
    that are all disabled.
    """

    def __init__(self, tool_name: str, hint: Optional[str] = None):
        super().__init__(
            message=hint or f'Tool "{tool_name}" is not enabled for this context',
            details={"tool_name": tool_name},
            error_code="TOOL_NOT_ENABLED",
        )


class ExecutionError(DomainError):
    """
    Raised when a handler or delegate fails to produce a result.

    Example:
        >>> raise ExecutionError("Handler crashed", tool_name="echo")
    """

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "EXECUTION_ERROR",
    ):
        super().__init__(
            message=message,
            details={"tool_name": tool_name, **(details or {})},
            error_code=error_code,
        )


class ToolTimeoutError(ExecutionError):
    """The timer won the race against the handler."""

    def __init__(self, tool_name: str, timeout: float):
        timeout_ms = int(timeout * 1000)
        super().__init__(
            message=f'Tool "{tool_name}" timed out waiting for result after {timeout_ms}ms',
            tool_name=tool_name,
            details={"timeout_ms": timeout_ms},
            error_code="TOOL_TIMEOUT",
        )


class DelegateDisconnectedError(ExecutionError):
    """The delegate went away while a call was in flight."""

    def __init__(self, delegate_id: str, tool_name: Optional[str] = None):
        super().__init__(
            message=(
                f'Delegate "{delegate_id}" disconnected during tool execution '
                f"(tool: {tool_name})"
            ),
            tool_name=tool_name,
            details={"delegate_id": delegate_id},
            error_code="DELEGATE_DISCONNECTED",
        )


class MalformedToolOutputError(ExecutionError):
    """A handler returned something that cannot be turned into tool content."""

    def __init__(self, tool_name: str, output_type: str):
        super().__init__(
            message=f'Tool "{tool_name}" returned malformed output ({output_type})',
            tool_name=tool_name,
            details={"output_type": output_type},
            error_code="MALFORMED_OUTPUT",
        )
