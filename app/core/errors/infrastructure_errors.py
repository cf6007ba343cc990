"""
Infrastructure exceptions.

Failures of the persistence layer and the delegate transport.
"""

from typing import Any, Dict, Optional

from .base import InfrastructureError


class StoreUnavailableError(InfrastructureError):
    """
    Raised when the API key store cannot be reached.

    Fatal to the current request only.

    Example:
        >>> raise StoreUnavailableError(operation="list", reason="database is locked")
    """

    def __init__(
        self,
        operation: str,
        reason: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"Store unavailable during '{operation}': {reason}",
            details={"operation": operation, "reason": reason, **(details or {})},
            error_code="STORE_UNAVAILABLE",
        )


class TransportError(InfrastructureError):
    """Raised when a message cannot be delivered over a delegate channel."""

    def __init__(self, delegate_id: str, reason: str):
        super().__init__(
            message=f'Failed to send tool call to delegate "{delegate_id}": {reason}',
            details={"delegate_id": delegate_id, "reason": reason},
            error_code="TRANSPORT_ERROR",
        )
