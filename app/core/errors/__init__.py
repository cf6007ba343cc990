"""
Custom exceptions for the Tool Gateway.
"""

from .base import (
    ToolGatewayError,
    DomainError,
    InfrastructureError,
)

from .domain_errors import (
    AuthError,
    ValidationError,
    InvalidDelegateIdError,
    NotFoundError,
    ToolNotFoundError,
    ApiKeyNotFoundError,
    DelegateNotFoundError,
    ToolAlreadyRegisteredError,
    PolicyError,
    ToolsDisabledError,
    ToolNotEnabledError,
    ExecutionError,
    ToolTimeoutError,
    DelegateDisconnectedError,
    MalformedToolOutputError,
)

from .infrastructure_errors import (
    StoreUnavailableError,
    TransportError,
)

__all__ = [
    # Base
    "ToolGatewayError",
    "DomainError",
    "InfrastructureError",

    # Domain
    "AuthError",
    "ValidationError",
    "InvalidDelegateIdError",
    "NotFoundError",
    "ToolNotFoundError",
    "ApiKeyNotFoundError",
    "DelegateNotFoundError",
    "ToolAlreadyRegisteredError",
    "PolicyError",
    "ToolsDisabledError",
    "ToolNotEnabledError",
    "ExecutionError",
    "ToolTimeoutError",
    "DelegateDisconnectedError",
    "MalformedToolOutputError",

    # Infrastructure
    "StoreUnavailableError",
    "TransportError",
]
