"""Delegate WebSocket endpoint"""

from typing import Optional

from fastapi import APIRouter, Query, WebSocket

router = APIRouter()


@router.websocket("/ws/delegate")
async def delegate_websocket(
    websocket: WebSocket,
    delegate_id: Optional[str] = Query(None, alias="delegateId"),
    api_key: Optional[str] = Query(None, alias="apiKey"),
    token: Optional[str] = Query(None),
    capabilities: Optional[str] = Query(None),
):
    """
    Delegate connection.

    Query: delegateId (required), apiKey or token, capabilities (comma separated).
    """
    handler = websocket.app.state.container.delegate_handler
    await handler.handle_connection(
        websocket,
        delegate_id=delegate_id,
        api_key=api_key,
        token=token,
        capabilities=capabilities,
    )
