"""
Delegate WebSocket message parser.

Validates incoming delegate messages into typed protocol models.
"""

import json
import logging
from typing import Any, Dict, Type, Union

from pydantic import ValidationError

from app.schemas.protocol import (
    DelegateAuthMessage,
    DelegateMessage,
    PingMessage,
    ToolCallResponseMessage,
    ToolManifestMessage,
)

logger = logging.getLogger("tool-gateway.websocket.parser")

MESSAGE_TYPES: Dict[str, Type[DelegateMessage]] = {
    "tool_manifest": ToolManifestMessage,
    "tool_call_response": ToolCallResponseMessage,
    "ping": PingMessage,
    "delegate_auth": DelegateAuthMessage,
}


class DelegateMessageParser:
    """Parser for messages sent by delegates."""

    def parse(self, raw_message: Union[str, bytes, Dict[str, Any]]) -> DelegateMessage:
        """
        Parse and validate one delegate message.

        Args:
            raw_message: Raw JSON text or an already decoded object

        Returns:
            Validated message of the matching type

        Raises:
            ValueError: If the message is not JSON, has no type, has an
                unknown type or fails validation
        """
        if isinstance(raw_message, dict):
            data = raw_message
        else:
            try:
                data = json.loads(raw_message)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON: {e}")

        if not isinstance(data, dict):
            raise ValueError("Message must be a JSON object")

        msg_type = data.get("type")
        if not msg_type:
            raise ValueError("Message type is required")

        model = MESSAGE_TYPES.get(msg_type)
        if model is None:
            raise ValueError(f"Unknown message type: {msg_type}")

        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Validation error: {e}")
