"""
Tool Dispatcher

Resolves a tool call to an executor, applies the caller's execution
policy and races the execution against the policy timeout. Every path
ends in a ToolResult; nothing raised by a handler or delegate escapes.
"""

import asyncio
import logging
import time
from typing import Optional

from app.core.config import AppConfig, config
from app.core.errors import (
    ExecutionError,
    PolicyError,
    ToolGatewayError,
    ToolNotEnabledError,
    ToolNotFoundError,
    ToolsDisabledError,
    ToolTimeoutError,
)
from app.schemas.tools import ExecutionPolicy, ToolCall, ToolResult
from app.services.delegate_manager import split_qualified_name
from app.services.executors import DelegateToolExecutor, LocalToolExecutor, ToolExecutor
from app.services.tool_registry import ToolRegistry

logger = logging.getLogger("tool-gateway.dispatcher")


def _discard_late_result(task: asyncio.Task) -> None:
    """Consume the outcome of an abandoned execution"""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Abandoned tool execution failed after timeout: {exc}")
    else:
        logger.debug("Abandoned tool execution finished after timeout; result discarded")


class ToolDispatcher:
    """
    Single entry point for executing tool calls.

    Per call: pending -> running (local or delegate) -> succeeded | failed | timed out.
    No retries happen here.
    """

    def __init__(self, registry: ToolRegistry, settings: Optional[AppConfig] = None):
        """
        Args:
            registry: Tool registry (local tools plus delegate view)
            settings: Configuration supplying the default timeout (module config by default)
        """
        self.registry = registry
        self.settings = settings or config

    def default_policy(self) -> ExecutionPolicy:
        """Policy for callers that pass none: everything allowed, configured timeout"""
        return ExecutionPolicy(tool_timeout=self.settings.default_tool_timeout)

    def resolve(self, call: ToolCall, user_id: str, policy: Optional[ExecutionPolicy] = None) -> ToolExecutor:
        """
        Pick the executor for call under policy.

        Resolution order:
        1. Local tool with the exact name; it shadows any delegate
        2. Qualified delegate tool, "<delegateId>__<tool>"
        3. Plain name declared by delegates: the most recently connected
           delegate that policy allows

        Raises:
            ToolNotEnabledError: If a match exists but policy rejects it, or the
                name is missing from a restricted allow-list
            ToolNotFoundError: If neither a local tool nor a delegate matches
        """
        policy = policy or self.default_policy()
        registry = self.registry

        local = registry.lookup(call.name)
        if local:
            if not registry.is_tool_allowed(call.name, policy):
                raise ToolNotEnabledError(call.name)
            return LocalToolExecutor(local)

        manager = registry.delegate_manager
        delegate = manager.resolve_execution_target(
            user_id,
            call.name,
            allowed=lambda name: registry.is_tool_allowed(name, policy),
        )
        if delegate:
            qualified = split_qualified_name(call.name)
            return DelegateToolExecutor(manager, delegate, tool_name=qualified[1] if qualified else call.name)

        hint = registry.resolution_hint(user_id, call.name, policy)
        if hint or not registry.is_tool_allowed(call.name, policy):
            raise ToolNotEnabledError(call.name, hint=hint)
        raise ToolNotFoundError(call.name)

    def check_policy(self, call: ToolCall, policy: ExecutionPolicy) -> None:
        """
        Raises:
            ToolsDisabledError: If tools are off for the context
        """
        if not policy.tools_enabled:
            raise ToolsDisabledError()

    async def execute_tool(
        self,
        call: ToolCall,
        user_id: str,
        policy: Optional[ExecutionPolicy] = None,
    ) -> ToolResult:
        """
        Execute one tool call under policy.

        Args:
            call: The call to run
            user_id: Owner of the call, used for delegate resolution
            policy: Execution policy (defaults allow everything with the
                configured default_tool_timeout)

        Returns:
            ToolResult; is_error is set for policy rejections, unknown tools,
            timeouts and execution failures
        """
        policy = policy or self.default_policy()
        started = time.monotonic()
        metadata = {"tool_name": call.name}

        try:
            self.check_policy(call, policy)
            executor = self.resolve(call, user_id, policy)
            metadata.update(executor.metadata)

            hint = self.registry.resolution_hint(user_id, call.name, policy)
            if hint:
                logger.warning(f"{hint} (running {metadata.get('resolved_name', call.name)})")
                metadata["hint"] = hint

            logger.info(
                f'Executing tool "{call.name}" (call: {call.id}, user: {user_id}, '
                f"source: {executor.source.value})"
            )
            result = await self._run_with_timeout(executor, call, policy.tool_timeout)
            result = result.model_copy(
                update={"metadata": {**metadata, **result.metadata, "duration_ms": self._elapsed_ms(started)}}
            )
            if result.is_error:
                logger.warning(f'Tool "{call.name}" returned an error result (call: {call.id})')
            return result

        except PolicyError as e:
            logger.info(f'Tool "{call.name}" rejected by policy: {e.message}')
            return self._failure(call, e, metadata, started)
        except ToolNotFoundError as e:
            logger.warning(f"Unknown tool requested by user {user_id}: {call.name}")
            return self._failure(call, e, metadata, started)
        except ToolTimeoutError as e:
            logger.warning(e.message)
            return self._failure(call, e, metadata, started)
        except ExecutionError as e:
            logger.error(f'Tool "{call.name}" failed: {e.message}')
            return self._failure(call, e, metadata, started)
        except ToolGatewayError as e:
            logger.error(f'Tool "{call.name}" failed: {e.message}')
            return self._failure(call, e, metadata, started)
        except Exception as e:
            logger.error(f'Tool "{call.name}" raised {type(e).__name__}: {e}', exc_info=True)
            return ToolResult.failure(
                call.id,
                f"Tool execution failed: {e}",
                error="EXECUTION_ERROR",
                metadata={**metadata, "duration_ms": self._elapsed_ms(started)},
            )

    async def _run_with_timeout(self, executor: ToolExecutor, call: ToolCall, timeout: float) -> ToolResult:
        task = asyncio.create_task(executor.execute(call, timeout))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task not in done:
            # Only the wait is cut short; a thread-backed handler keeps running
            task.cancel()
            task.add_done_callback(_discard_late_result)
            raise ToolTimeoutError(call.name, timeout)

        return task.result()

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def _failure(self, call: ToolCall, error: ToolGatewayError, metadata: dict, started: float) -> ToolResult:
        return ToolResult.failure(
            call.id,
            error.message,
            error=error.error_code,
            metadata={**metadata, "duration_ms": self._elapsed_ms(started)},
        )
