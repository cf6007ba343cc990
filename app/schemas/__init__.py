"""Pydantic schemas"""

from app.schemas.api_keys import (
    ApiKeyCreate,
    ApiKeyCreatedResponse,
    ApiKeyListResponse,
    ApiKeyResponse,
    ApiKeyRevokeResponse,
)
from app.schemas.delegates import DelegateCapabilities, DelegateInfo, DelegateListResponse
from app.schemas.tools import (
    ExecutionPolicy,
    ToolCall,
    ToolDefinition,
    ToolDefinitionWithSource,
    ToolInputSchema,
    ToolListResponse,
    ToolResult,
    ToolSource,
    ToolTestRequest,
    ToolTestResponse,
)

__all__ = [
    # API keys
    "ApiKeyCreate",
    "ApiKeyCreatedResponse",
    "ApiKeyListResponse",
    "ApiKeyResponse",
    "ApiKeyRevokeResponse",
    # Delegates
    "DelegateCapabilities",
    "DelegateInfo",
    "DelegateListResponse",
    # Tools
    "ExecutionPolicy",
    "ToolCall",
    "ToolDefinition",
    "ToolDefinitionWithSource",
    "ToolInputSchema",
    "ToolListResponse",
    "ToolResult",
    "ToolSource",
    "ToolTestRequest",
    "ToolTestResponse",
]
