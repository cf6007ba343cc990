"""
Delegate Manager

Tracks connected delegates per user and routes tool calls to them.
Each delegate is a remote process reachable over an established
bidirectional channel (a WebSocket in production).
"""

import asyncio
import itertools
import logging
import uuid
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from app.core.errors import (
    DelegateDisconnectedError,
    DelegateNotFoundError,
    ToolTimeoutError,
    TransportError,
)
from app.schemas.delegates import DelegateCapabilities
from app.schemas.protocol import (
    ToolCallPayload,
    ToolCallRequestMessage,
    ToolCallResponseMessage,
)
from app.schemas.tools import ToolCall, ToolDefinition, ToolResult, ToolSource
from app.services.tool_result_manager import ToolResultManager

logger = logging.getLogger("tool-gateway.delegates")

# Joins a delegate id and a declared tool name: "laptop__build".
# Delegate ids may not contain it, so the first occurrence splits the name.
TOOL_NAME_SEPARATOR = "__"


def qualified_tool_name(delegate_id: str, tool_name: str) -> str:
    return f"{delegate_id}{TOOL_NAME_SEPARATOR}{tool_name}"


def split_qualified_name(name: str) -> Optional[Tuple[str, str]]:
    """Split "<delegateId>__<tool>" into its parts; None for a plain name"""
    delegate_id, sep, tool_name = name.partition(TOOL_NAME_SEPARATOR)
    if not sep or not delegate_id or not tool_name:
        return None
    return delegate_id, tool_name


class DelegateChannel(Protocol):
    """Transport contract: deliver one JSON message to the delegate"""

    async def send_json(self, data: Any) -> None: ...


@dataclass
class ConnectedDelegate:
    delegate_id: str
    user_id: str
    session_id: str
    channel: DelegateChannel = field(repr=False)
    tools: List[ToolDefinition] = field(default_factory=list)
    capabilities: DelegateCapabilities = field(default_factory=DelegateCapabilities)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Monotonic connect order, used for deterministic target selection
    sequence: int = 0

    @property
    def tool_names(self) -> List[str]:
        return [t.name for t in self.tools]

    def declares(self, tool_name: str) -> bool:
        return any(t.name == tool_name for t in self.tools)

    def qualify(self, tool_name: str) -> str:
        return qualified_tool_name(self.delegate_id, tool_name)


def normalize_tools(tools: Optional[Iterable[Union[str, ToolDefinition, Dict[str, Any]]]]) -> List[ToolDefinition]:
    """Accept bare names, dicts or ToolDefinition objects; later duplicates win"""
    by_name: Dict[str, ToolDefinition] = {}
    for tool in tools or []:
        if isinstance(tool, str):
            tool = ToolDefinition(name=tool)
        elif isinstance(tool, dict):
            tool = ToolDefinition.model_validate(tool)
        by_name[tool.name] = tool
    return list(by_name.values())


class DelegateManager:
    """
    Registry of connected delegates plus the request/response bookkeeping
    for calls forwarded to them.

    Mutations (connect, disconnect, manifest updates) are serialized per
    user; lookups read the current snapshot without locking.
    """

    def __init__(
        self,
        result_manager: Optional[ToolResultManager] = None,
        call_timeout: float = 300.0,
    ):
        """
        Args:
            result_manager: Pending-call store (created if omitted)
            call_timeout: Safety-net timeout in seconds for a forwarded call;
                the per-call policy timeout normally fires first
        """
        self._delegates: Dict[str, ConnectedDelegate] = {}
        self._user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._results = result_manager or ToolResultManager()
        self._call_timeout = call_timeout
        self._sequence = itertools.count(1)

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        # Held only while in use, so idle users do not accumulate locks
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    # ==================== Delegate Lifecycle ====================

    async def connect(
        self,
        delegate_id: str,
        user_id: str,
        channel: DelegateChannel,
        declared_tools: Optional[Iterable[Union[str, ToolDefinition, Dict[str, Any]]]] = None,
        capabilities: Any = None,
    ) -> ConnectedDelegate:
        """
        Register a delegate connection.

        A connection reusing an existing (user_id, delegate_id) pair replaces
        the old one; calls in flight on the old connection fail with
        "delegate disconnected".

        Args:
            delegate_id: Delegate identity chosen by the delegate
            user_id: Owner authenticated by the API key
            channel: Transport used to forward calls
            declared_tools: Tool names or definitions the delegate executes
            capabilities: Capability flags in list or object form

        Returns:
            The registered delegate
        """
        normalized_caps = DelegateCapabilities.from_raw(capabilities)
        delegate = ConnectedDelegate(
            delegate_id=delegate_id,
            user_id=user_id,
            session_id=str(uuid.uuid4()),
            channel=channel,
            tools=normalize_tools(declared_tools),
            capabilities=normalized_caps,
            connected_at=datetime.now(timezone.utc),
            sequence=next(self._sequence),
        )

        async with self._lock_for(user_id):
            replaced = self.find_delegate(user_id, delegate_id)
            if replaced:
                self._delegates.pop(replaced.session_id, None)
            self._delegates[delegate.session_id] = delegate

        if replaced:
            logger.info(
                f'Delegate "{delegate_id}" for user {user_id} replaced '
                f"(old session: {replaced.session_id}, new session: {delegate.session_id})"
            )
            await self._fail_pending(replaced)

        logger.info(
            f'Delegate "{delegate_id}" connected for user {user_id} '
            f"(session: {delegate.session_id}, tools: {len(delegate.tools)})"
        )
        return delegate

    async def disconnect(
        self,
        delegate_id: str,
        user_id: str,
        session_id: Optional[str] = None,
    ) -> bool:
        """
        Remove a delegate and fail its in-flight calls.

        Args:
            delegate_id: Delegate identity
            user_id: Owner
            session_id: If given, only this connection is removed; a newer
                replacement connection is left untouched

        Returns:
            True if a delegate was removed
        """
        async with self._lock_for(user_id):
            delegate = self.find_delegate(user_id, delegate_id)
            if not delegate:
                return False
            if session_id is not None and delegate.session_id != session_id:
                logger.info(
                    f'Skipping disconnect of "{delegate_id}": session {session_id} '
                    f"was replaced by {delegate.session_id}"
                )
                return False
            self._delegates.pop(delegate.session_id, None)

        failed = await self._fail_pending(delegate)
        logger.info(
            f'Delegate "{delegate_id}" disconnected for user {user_id} '
            f"(session: {delegate.session_id}, failed pending calls: {failed})"
        )
        return True

    async def update_tools(
        self,
        session_id: str,
        tools: Iterable[Union[str, ToolDefinition, Dict[str, Any]]],
        capabilities: Any = None,
    ) -> Optional[ConnectedDelegate]:
        """Replace the declared tools (and optionally capabilities) of a connection"""
        delegate = self._delegates.get(session_id)
        if not delegate:
            logger.warning(f"Cannot update tools: session {session_id} not found")
            return None

        normalized = normalize_tools(tools)
        normalized_caps = (
            DelegateCapabilities.from_raw(capabilities) if capabilities is not None else None
        )
        async with self._lock_for(delegate.user_id):
            delegate.tools = normalized
            if normalized_caps is not None:
                delegate.capabilities = normalized_caps

        logger.info(f'Delegate "{delegate.delegate_id}" updated tools: {", ".join(delegate.tool_names)}')
        return delegate

    # ==================== Lookup ====================

    def get_delegate(self, session_id: str) -> Optional[ConnectedDelegate]:
        return self._delegates.get(session_id)

    def find_delegate(self, user_id: str, delegate_id: str) -> Optional[ConnectedDelegate]:
        for delegate in self._delegates.values():
            if delegate.user_id == user_id and delegate.delegate_id == delegate_id:
                return delegate
        return None

    def list_for_user(self, user_id: str) -> List[ConnectedDelegate]:
        """Delegates of user_id in connection order"""
        delegates = [d for d in self._delegates.values() if d.user_id == user_id]
        return sorted(delegates, key=lambda d: d.sequence)

    def candidates_for(self, user_id: str, tool_name: str) -> List[ConnectedDelegate]:
        """Delegates of user_id declaring the plain tool_name, in connection order"""
        return [d for d in self.list_for_user(user_id) if d.declares(tool_name)]

    def resolve_execution_target(
        self,
        user_id: str,
        tool_name: str,
        allowed: Optional[Callable[[str], bool]] = None,
    ) -> Optional[ConnectedDelegate]:
        """
        Pick the delegate that executes tool_name for user_id.

        A qualified name ("laptop__build") selects that delegate only. A plain
        name goes to the most recently connected delegate declaring it.

        Args:
            user_id: Owner of the call
            tool_name: Plain or qualified tool name
            allowed: Optional filter on qualified names; delegates whose
                qualified name it rejects are skipped
        """
        qualified = split_qualified_name(tool_name)
        if qualified:
            delegate_id, name = qualified
            delegate = self.find_delegate(user_id, delegate_id)
            if not delegate or not delegate.declares(name):
                return None
            if allowed is not None and not allowed(tool_name):
                return None
            return delegate

        candidates = self.candidates_for(user_id, tool_name)
        if allowed is not None:
            candidates = [d for d in candidates if allowed(d.qualify(tool_name))]
        if not candidates:
            return None
        return candidates[-1]
    # ==================== Tool Execution ====================

    async def execute_on_delegate(
        self,
        delegate: ConnectedDelegate,
        call: ToolCall,
        timeout_hint: Optional[float] = None,
    ) -> ToolResult:
        """
        Forward a call to a delegate and wait for its response.

        Cancellation of the caller (policy timeout) abandons the wait and
        drops the pending entry, so a late response is ignored. The delegate
        itself is not told to stop.

        Raises:
            DelegateNotFoundError: If the delegate is no longer connected
            DelegateDisconnectedError: If it disconnects while the call is in flight
            TransportError: If the request cannot be sent
            ToolTimeoutError: If the safety-net timeout expires
        """
        if self._delegates.get(delegate.session_id) is not delegate:
            raise DelegateNotFoundError(delegate.delegate_id)

        request_id = str(uuid.uuid4())
        timeout = timeout_hint or self._call_timeout
        request = ToolCallRequestMessage(
            request_id=request_id,
            tool=ToolCallPayload(id=call.id, name=call.name, input=call.input),
            timeout=int(timeout * 1000),
        )

        future = await self._results.register(
            request_id,
            session_id=delegate.session_id,
            delegate_id=delegate.delegate_id,
            tool_name=call.name,
        )
        try:
            try:
                await delegate.channel.send_json(request.model_dump(by_alias=True))
            except Exception as e:
                raise TransportError(delegate.delegate_id, str(e)) from e

            logger.debug(
                f'Forwarded "{call.name}" to delegate "{delegate.delegate_id}" '
                f"(request: {request_id})"
            )
            try:
                outcome = await asyncio.wait_for(future, timeout=self._call_timeout)
            except asyncio.TimeoutError:
                raise ToolTimeoutError(call.name, self._call_timeout)
        finally:
            await self._results.pop(request_id)

        return ToolResult(
            call_id=call.id,
            content=outcome.content,
            is_error=outcome.is_error,
            error="DELEGATE_ERROR" if outcome.is_error else None,
            metadata={"source": ToolSource.DELEGATE.value, "delegate_id": delegate.delegate_id},
        )

    async def handle_tool_call_response(self, msg: ToolCallResponseMessage) -> bool:
        """Resolve the pending call matching msg.request_id; unknown ids are dropped"""
        resolved = await self._results.resolve(msg.request_id, msg.result)
        if not resolved:
            logger.warning(f"Received response for unknown or expired request: {msg.request_id}")
        return resolved

    async def _fail_pending(self, delegate: ConnectedDelegate) -> int:
        return await self._results.reject_session(
            delegate.session_id,
            lambda pending: DelegateDisconnectedError(delegate.delegate_id, pending.tool_name),
        )

    # ==================== Stats ====================

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_delegates": len(self._delegates),
            "pending_calls": self._results.count(),
            "delegates": [
                {
                    "delegate_id": d.delegate_id,
                    "user_id": d.user_id,
                    "tool_count": len(d.tools),
                    "connected_at": d.connected_at.isoformat(),
                }
                for d in sorted(self._delegates.values(), key=lambda d: d.sequence)
            ],
        }
