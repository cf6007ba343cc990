import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class PendingCall:
    future: asyncio.Future
    session_id: str
    delegate_id: str
    tool_name: str


class ToolResultManager:
    """Holds pending delegate tool results (request_id -> future), asyncio-safe."""

    def __init__(self):
        self._pending: Dict[str, PendingCall] = {}
        self._lock = asyncio.Lock()

    async def register(
        self,
        request_id: str,
        session_id: str,
        delegate_id: str,
        tool_name: str,
    ) -> asyncio.Future:
        async with self._lock:
            fut = asyncio.get_running_loop().create_future()
            self._pending[request_id] = PendingCall(
                future=fut,
                session_id=session_id,
                delegate_id=delegate_id,
                tool_name=tool_name,
            )
            return fut

    async def resolve(self, request_id: str, result: Any) -> bool:
        """Returns False when nobody is waiting for request_id (unknown or late)."""
        async with self._lock:
            pending = self._pending.pop(request_id, None)
            if pending and not pending.future.done():
                pending.future.set_result(result)
                return True
            return False

    async def reject_session(self, session_id: str, make_exc) -> int:
        """Fail every call waiting on session_id; make_exc(pending) builds the error."""
        async with self._lock:
            request_ids: List[str] = [
                rid for rid, p in self._pending.items() if p.session_id == session_id
            ]
            failed = 0
            for rid in request_ids:
                pending = self._pending.pop(rid)
                if not pending.future.done():
                    pending.future.set_exception(make_exc(pending))
                    failed += 1
            return failed

    async def pop(self, request_id: str) -> Optional[PendingCall]:
        async with self._lock:
            return self._pending.pop(request_id, None)

    def count(self) -> int:
        return len(self._pending)
