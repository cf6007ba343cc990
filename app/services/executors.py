"""
Tool executors.

A resolved tool call runs through exactly one executor: a local handler
in this process, or a connected delegate.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from starlette.concurrency import run_in_threadpool

from app.core.errors import MalformedToolOutputError
from app.schemas.tools import ToolCall, ToolDefinition, ToolResult, ToolSource

logger = logging.getLogger("tool-gateway.executors")

ToolHandler = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


@dataclass
class RegisteredTool:
    """A local tool: its definition plus the handler that runs it"""

    definition: ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name


class ToolExecutor(ABC):
    """
    Port for running one resolved tool call.

    Examples:
        >>> executor = LocalToolExecutor(registered)
        >>> result = await executor.execute(ToolCall(name="echo", input={"message": "hi"}))
        >>> result.content
        'Echo: hi'
    """

    source: ToolSource

    @abstractmethod
    async def execute(self, call: ToolCall, timeout_hint: Optional[float] = None) -> ToolResult:
        """
        Run the call and return its normalized result.

        Args:
            call: Tool call to run
            timeout_hint: Policy timeout in seconds, forwarded to remote executors

        Raises:
            ExecutionError: If the tool cannot produce a result
        """
        pass

    @property
    def metadata(self) -> Dict[str, Any]:
        return {"source": self.source.value}


class LocalToolExecutor(ToolExecutor):
    """Runs an in-process handler; sync handlers go to the threadpool"""

    source = ToolSource.LOCAL

    def __init__(self, tool: RegisteredTool):
        self.tool = tool

    async def execute(self, call: ToolCall, timeout_hint: Optional[float] = None) -> ToolResult:
        handler = self.tool.handler
        if inspect.iscoroutinefunction(handler):
            output = await handler(call.input)
        else:
            # A sync handler that outlives the timeout keeps running in its
            # worker thread; its result is discarded
            output = await run_in_threadpool(handler, call.input)
            if inspect.isawaitable(output):
                output = await output

        return self._normalize(call, output)

    def _normalize(self, call: ToolCall, output: Any) -> ToolResult:
        if isinstance(output, ToolResult):
            return output.model_copy(
                update={"call_id": call.id, "metadata": {**self.metadata, **output.metadata}}
            )
        if isinstance(output, str):
            return ToolResult.success(call.id, output, metadata=self.metadata)
        if isinstance(output, dict):
            return ToolResult.success(call.id, output, metadata=self.metadata)
        if isinstance(output, list) and all(isinstance(item, dict) for item in output):
            return ToolResult.success(call.id, output, metadata=self.metadata)

        logger.error(f'Tool "{call.name}" returned unsupported output type {type(output).__name__}')
        raise MalformedToolOutputError(call.name, type(output).__name__)


class DelegateToolExecutor(ToolExecutor):
    """Forwards the call to a connected delegate and waits for its answer"""

    source = ToolSource.DELEGATE

    def __init__(self, manager, delegate, tool_name: Optional[str] = None):
        """
        Args:
            manager: DelegateManager owning the connection
            delegate: Target delegate
            tool_name: Name the delegate declared; the call's own name is
                forwarded when omitted
        """
        self.manager = manager
        self.delegate = delegate
        self.tool_name = tool_name

    @property
    def metadata(self) -> Dict[str, Any]:
        metadata = {"source": self.source.value, "delegate_id": self.delegate.delegate_id}
        if self.tool_name:
            metadata["resolved_name"] = self.delegate.qualify(self.tool_name)
        return metadata

    async def execute(self, call: ToolCall, timeout_hint: Optional[float] = None) -> ToolResult:
        if self.tool_name and self.tool_name != call.name:
            call = call.model_copy(update={"name": self.tool_name})
        return await self.manager.execute_on_delegate(self.delegate, call, timeout_hint)
