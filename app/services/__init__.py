"""Service modules"""

from app.services.api_key_service import api_key_service
from app.services.delegate_manager import DelegateManager
from app.services.dispatcher import ToolDispatcher
from app.services.tool_registry import ToolRegistry
from app.services.tool_result_manager import ToolResultManager

__all__ = [
    "api_key_service",
    "DelegateManager",
    "ToolDispatcher",
    "ToolRegistry",
    "ToolResultManager",
]
