"""WebSocket components for delegate connections."""

from .delegate_handler import DelegateConnectionHandler, validate_delegate_id
from .message_parser import DelegateMessageParser

__all__ = [
    "DelegateConnectionHandler",
    "DelegateMessageParser",
    "validate_delegate_id",
]
