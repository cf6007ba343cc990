"""
Tool Registry

Holds locally registered tools and merges them with the tools declared by
a user's connected delegates. Registration happens once at startup; after
that the local table is read-only and needs no locking.
"""

import logging
from typing import Any, Dict, List, Optional

from app.core.errors import ToolAlreadyRegisteredError
from app.schemas.tools import (
    ExecutionPolicy,
    ToolDefinition,
    ToolDefinitionWithSource,
    ToolSource,
)
from app.services.delegate_manager import DelegateManager, split_qualified_name
from app.services.executors import RegisteredTool, ToolHandler

logger = logging.getLogger("tool-gateway.registry")


class ToolRegistry:
    """Local tool table plus a read-only view onto delegate-declared tools"""

    def __init__(self, delegate_manager: DelegateManager):
        self._tools: Dict[str, RegisteredTool] = {}
        self.delegate_manager = delegate_manager

    def register(self, name: str, definition: ToolDefinition, handler: ToolHandler) -> RegisteredTool:
        """
        Register a local tool.

        Args:
            name: Unique tool name
            definition: Description and input schema
            handler: Sync or async callable taking the input mapping

        Raises:
            ToolAlreadyRegisteredError: If name is taken
        """
        if name in self._tools:
            raise ToolAlreadyRegisteredError(name)

        if definition.name != name:
            definition = definition.model_copy(update={"name": name})

        tool = RegisteredTool(definition=definition, handler=handler)
        self._tools[name] = tool
        logger.debug(f"Registered local tool: {name}")
        return tool

    def lookup(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def local_tools(self) -> List[RegisteredTool]:
        return list(self._tools.values())

    def list_for_user(self, user_id: str) -> List[ToolDefinitionWithSource]:
        """
        Local tools followed by the user's delegate tools.

        Delegate tools are listed under their qualified name
        ("<delegateId>__<tool>"), so every declared tool of every connected
        delegate stays addressable, even when two delegates declare the same
        name or a delegate declares the name of a local tool.
        """
        tools: List[ToolDefinitionWithSource] = [
            ToolDefinitionWithSource(**t.definition.model_dump(), source=ToolSource.LOCAL)
            for t in self._tools.values()
        ]

        for delegate in self.delegate_manager.list_for_user(user_id):
            for definition in delegate.tools:
                tools.append(
                    ToolDefinitionWithSource(
                        **definition.model_dump(exclude={"name"}),
                        name=delegate.qualify(definition.name),
                        source=ToolSource.DELEGATE,
                        delegate_id=delegate.delegate_id,
                    )
                )

        return tools

    def is_tool_allowed(self, tool_name: str, policy: ExecutionPolicy) -> bool:
        """
        Check tool_name against policy.

        A qualified delegate tool is also allowed when the allow-list holds
        its plain name.
        """
        if policy.allows(tool_name):
            return True
        qualified = split_qualified_name(tool_name)
        return qualified is not None and policy.allows(qualified[1])

    def tools_for_policy(self, user_id: str, policy: ExecutionPolicy) -> List[ToolDefinitionWithSource]:
        """Tools visible to user_id that policy would let run"""
        return [t for t in self.list_for_user(user_id) if self.is_tool_allowed(t.name, policy)]

    def resolution_hint(self, user_id: str, tool_name: str, policy: ExecutionPolicy) -> Optional[str]:
        """
        Explain how a plain delegate tool name matched for user_id.

        Returns:
            An "ambiguous" hint when several delegates may run the tool, a
            "disabled" hint when delegates declare it but policy allows none
            of them, None otherwise
        """
        if split_qualified_name(tool_name) or tool_name in self._tools:
            return None

        candidates = [
            d.qualify(tool_name) for d in self.delegate_manager.candidates_for(user_id, tool_name)
        ]
        allowed = [name for name in candidates if self.is_tool_allowed(name, policy)]

        if len(allowed) > 1:
            return f'Ambiguous tool "{tool_name}". Use full name: {" or ".join(allowed)}'
        if candidates and not allowed:
            return f'Tool "{tool_name}" exists but is disabled. Enable one of: {", ".join(sorted(candidates))}'
        return None

    def get_stats(self) -> Dict[str, Any]:
        return {
            "local_tools": sorted(self._tools),
            "local_tool_count": len(self._tools),
        }
