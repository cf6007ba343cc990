"""Tool schemas"""

import json
import uuid
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field

from app.schemas.common import CamelModel

ToolContent = Union[str, List[Dict[str, Any]], Dict[str, Any]]


class ToolSource(str, Enum):
    """Where a tool executes"""

    LOCAL = "local"
    DELEGATE = "delegate"


class ToolInputSchema(CamelModel):
    """Structural description of the parameters a tool accepts"""

    # Keys not modelled here (additionalProperties, $schema, ...) pass through
    model_config = ConfigDict(extra="allow")

    type: Literal["object"] = "object"
    properties: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)


class ToolDefinition(CamelModel):
    """Tool metadata shown to callers"""

    name: str = Field(..., min_length=1, max_length=128)
    description: str = ""
    input_schema: ToolInputSchema = Field(default_factory=ToolInputSchema)


class ToolDefinitionWithSource(ToolDefinition):
    """Tool metadata annotated with its execution source"""

    # Qualified delegate names ("<delegateId>__<tool>") may exceed the declared limit
    name: str = Field(..., min_length=1)
    source: ToolSource
    delegate_id: Optional[str] = None


class ToolListResponse(CamelModel):
    """Response for GET /tools"""

    tools: List[ToolDefinitionWithSource]


class ToolCall(CamelModel):
    """A single tool invocation"""

    id: str = Field(default_factory=lambda: f"call_{uuid.uuid4().hex}")
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ExecutionPolicy(CamelModel):
    """
    Per-call execution configuration.

    enabled_tools semantics:
    - None: every registered tool is allowed
    - []: selective mode with nothing selected, no tool is allowed
    - ["a", "b"]: only the listed tools are allowed
    """

    tools_enabled: bool = True
    enabled_tools: Optional[List[str]] = None
    tool_timeout: float = Field(default=30.0, gt=0, description="Timeout in seconds")

    def allows(self, tool_name: str) -> bool:
        """Check whether tool_name may run under this policy"""
        if not self.tools_enabled:
            return False
        if self.enabled_tools is None:
            return True
        return tool_name in self.enabled_tools


class ToolResult(CamelModel):
    """
    Normalized outcome of a tool call.

    Exactly one result is produced per call, failures included.

    Example:
        >>> ToolResult.success("call_1", "Echo: hi").is_error
        False
        >>> ToolResult.failure("call_1", "Unknown tool: x", error="UNKNOWN_TOOL").is_error
        True
    """

    call_id: str
    content: ToolContent
    is_error: bool = False
    error: Optional[str] = Field(default=None, description="Error code when is_error is set")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(
        cls,
        call_id: str,
        content: ToolContent,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ToolResult":
        return cls(call_id=call_id, content=content, is_error=False, metadata=metadata or {})

    @classmethod
    def failure(
        cls,
        call_id: str,
        message: str,
        error: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ToolResult":
        return cls(
            call_id=call_id,
            content=message,
            is_error=True,
            error=error,
            metadata=metadata or {},
        )

    def content_as_text(self) -> str:
        """Content as a string; structured content is JSON encoded"""
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, default=str)


class ToolTestRequest(CamelModel):
    """Request for POST /tools/test"""

    tool_name: str = Field(..., min_length=1)


class ToolTestResponse(CamelModel):
    """Response for POST /tools/test"""

    success: bool
    content: str
