"""
Delegate WebSocket protocol messages.

All messages are JSON objects with a discriminating ``type`` field.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from app.schemas.common import CamelModel
from app.schemas.tools import ToolContent, ToolDefinition


# ==================== Delegate -> Gateway ====================


class ToolManifestMessage(CamelModel):
    """Delegate announces (or replaces) the tools it can execute"""

    type: Literal["tool_manifest"]
    delegate_id: Optional[str] = None
    tools: List[ToolDefinition] = Field(default_factory=list)
    capabilities: Optional[Union[List[str], Dict[str, Any]]] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": "tool_manifest",
                "tools": [
                    {
                        "name": "build",
                        "description": "Run the project build",
                        "inputSchema": {"type": "object", "properties": {}},
                    }
                ],
                "capabilities": ["canShellAccess"],
            }
        }
    }


class ToolCallOutcome(CamelModel):
    content: ToolContent
    is_error: bool = False


class ToolCallResponseMessage(CamelModel):
    """Delegate answers a forwarded tool call"""

    type: Literal["tool_call_response"]
    request_id: str
    tool_use_id: str = ""
    result: ToolCallOutcome


class PingMessage(CamelModel):
    type: Literal["ping"]
    timestamp: float


class DelegateAuthMessage(CamelModel):
    """Re-authentication attempt; already authenticated at connect time"""

    type: Literal["delegate_auth"]
    version: str = "1.0"
    token: Optional[str] = None
    delegate_id: Optional[str] = None
    capabilities: List[str] = Field(default_factory=list)


# ==================== Gateway -> Delegate ====================


class DelegateAuthResultMessage(CamelModel):
    type: Literal["delegate_auth_result"] = "delegate_auth_result"
    success: bool
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    error: Optional[str] = None


class ToolManifestAckMessage(CamelModel):
    type: Literal["tool_manifest_ack"] = "tool_manifest_ack"
    tool_count: int
    tools: List[str]


class ToolCallPayload(CamelModel):
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolCallRequestMessage(CamelModel):
    """Forwarded call; timeout is in milliseconds"""

    type: Literal["tool_call_request"] = "tool_call_request"
    request_id: str
    tool: ToolCallPayload
    timeout: int = 30000


class PongMessage(CamelModel):
    type: Literal["pong"] = "pong"
    timestamp: float


DelegateMessage = Union[
    ToolManifestMessage,
    ToolCallResponseMessage,
    PingMessage,
    DelegateAuthMessage,
]
