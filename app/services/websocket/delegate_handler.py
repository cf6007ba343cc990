"""
Delegate WebSocket connection handler.

Delegates connect with either credential:
    /ws/delegate?apiKey=dak_xxx&delegateId=xxx   (API key, preferred)
    /ws/delegate?token=JWT&delegateId=xxx        (user access token)
"""

import logging
import re
from typing import Callable, List, Optional

from fastapi import WebSocket
from jose import JWTError
from starlette.websockets import WebSocketDisconnect

from app.core.errors import InvalidDelegateIdError, StoreUnavailableError, ToolGatewayError
from app.middleware.auth import decode_access_token
from app.schemas.protocol import (
    DelegateAuthResultMessage,
    DelegateMessage,
    PongMessage,
    ToolManifestAckMessage,
)
from app.services.api_key_service import DelegateApiKeyService
from app.services.delegate_manager import TOOL_NAME_SEPARATOR, ConnectedDelegate, DelegateManager

from .message_parser import DelegateMessageParser

logger = logging.getLogger("tool-gateway.websocket.delegate")

DELEGATE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
DELEGATE_ID_MAX_LENGTH = 32
RESERVED_DELEGATE_IDS = {"server", "system", "internal", "admin"}

# RFC 6455 policy violation / internal error
CLOSE_POLICY_VIOLATION = 1008
CLOSE_INTERNAL_ERROR = 1011


def validate_delegate_id(raw: Optional[str]) -> str:
    """
    Validate and trim a delegate id from the handshake.

    Raises:
        InvalidDelegateIdError: With the reason the id was rejected
    """
    if not raw or not raw.strip():
        raise InvalidDelegateIdError("Missing delegateId")
    delegate_id = raw.strip()
    if len(delegate_id) > DELEGATE_ID_MAX_LENGTH:
        raise InvalidDelegateIdError(f"delegateId too long (max {DELEGATE_ID_MAX_LENGTH} chars)")
    if not DELEGATE_ID_PATTERN.match(delegate_id):
        raise InvalidDelegateIdError(
            "delegateId contains invalid characters (allowed: a-z, A-Z, 0-9, _, -)"
        )
    # Qualified tool names are split at the first separator
    if TOOL_NAME_SEPARATOR in delegate_id:
        raise InvalidDelegateIdError(f'delegateId must not contain "{TOOL_NAME_SEPARATOR}"')
    if delegate_id.endswith("_"):
        raise InvalidDelegateIdError('delegateId must not end with "_"')
    if delegate_id.lower() in RESERVED_DELEGATE_IDS:
        raise InvalidDelegateIdError(f'delegateId "{delegate_id}" is reserved')
    return delegate_id


def parse_capabilities_param(raw: Optional[str]) -> Optional[List[str]]:
    """'canFileAccess,canShellAccess' -> ['canFileAccess', 'canShellAccess']"""
    if not raw:
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]


class DelegateConnectionHandler:
    """Authenticates a delegate, registers it and serves its message loop."""

    def __init__(
        self,
        message_parser: DelegateMessageParser,
        delegate_manager: DelegateManager,
        api_key_service: DelegateApiKeyService,
        session_factory: Callable,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
    ):
        """
        Args:
            message_parser: Parser for delegate messages
            delegate_manager: Registry that owns connected delegates
            api_key_service: Validates delegate API keys
            session_factory: Async context manager factory yielding an AsyncSession
            jwt_secret: Secret for the token= fallback
            jwt_algorithm: JWT algorithm
        """
        self._parser = message_parser
        self._manager = delegate_manager
        self._api_keys = api_key_service
        self._session_factory = session_factory
        self._jwt_secret = jwt_secret
        self._jwt_algorithm = jwt_algorithm

    async def handle_connection(
        self,
        websocket: WebSocket,
        delegate_id: Optional[str],
        api_key: Optional[str] = None,
        token: Optional[str] = None,
        capabilities: Optional[str] = None,
    ) -> None:
        """
        Serve one delegate connection until it closes.

        Flow:
        1. Validate delegateId and credentials, close with 1008 on failure
        2. Register the delegate (replacing an older connection with the same id)
        3. Reply delegate_auth_result
        4. Process manifest, tool call response and ping messages
        5. On close, unregister this session and fail its pending calls
        """
        await websocket.accept()

        try:
            delegate_id = validate_delegate_id(delegate_id)
        except InvalidDelegateIdError as e:
            logger.warning(f"Invalid delegateId: {e.message}")
            await websocket.close(code=CLOSE_POLICY_VIOLATION, reason=e.message)
            return

        try:
            user_id, failure = await self.authenticate(api_key, token)
        except StoreUnavailableError as e:
            logger.error(f'Cannot authenticate delegate "{delegate_id}": {e.message}')
            await websocket.close(code=CLOSE_INTERNAL_ERROR, reason="Authentication unavailable")
            return

        if user_id is None:
            logger.warning(f'Delegate "{delegate_id}" rejected: {failure}')
            await websocket.close(code=CLOSE_POLICY_VIOLATION, reason=failure)
            return

        delegate = await self._manager.connect(
            delegate_id,
            user_id,
            channel=websocket,
            capabilities=parse_capabilities_param(capabilities),
        )

        try:
            await websocket.send_json(
                DelegateAuthResultMessage(
                    success=True,
                    user_id=user_id,
                    session_id=delegate.session_id,
                ).model_dump(by_alias=True, exclude_none=True)
            )

            while True:
                raw_msg = await websocket.receive_text()
                try:
                    message = self._parser.parse(raw_msg)
                except ValueError as e:
                    logger.warning(f'Ignoring message from delegate "{delegate_id}": {e}')
                    continue

                try:
                    await self._handle_message(websocket, delegate, message)
                except ToolGatewayError as e:
                    logger.warning(f'Failed to handle {message.type} from "{delegate_id}": {e.message}')

        except WebSocketDisconnect as e:
            logger.info(f'Delegate "{delegate_id}" disconnected (code: {e.code})')
        except Exception as e:
            logger.error(f'Delegate "{delegate_id}" WS fatal error: {e}', exc_info=True)
        finally:
            await self._manager.disconnect(delegate_id, user_id, session_id=delegate.session_id)

    async def authenticate(self, api_key: Optional[str], token: Optional[str]) -> tuple[Optional[str], str]:
        """
        Resolve the owning user from an API key, or from a JWT when no key is given.

        Returns:
            (user_id, "") on success, (None, reason) on failure

        Raises:
            StoreUnavailableError: If the key store cannot be reached
        """
        if not api_key and not token:
            return None, "Missing authentication (token or apiKey required)"

        if api_key:
            async with self._session_factory() as db:
                user_id = await self._api_keys.authenticate(db, api_key)
            if not user_id:
                return None, "Invalid API key (expired, revoked, or invalid)"
            logger.info(f"Delegate authenticated via API key (user: {user_id})")
            return user_id, ""

        try:
            user_id = decode_access_token(token, self._jwt_secret, self._jwt_algorithm)
        except JWTError as e:
            logger.warning(f"Delegate JWT validation failed: {e}")
            return None, "Authentication failed"
        logger.info(f"Delegate authenticated via JWT (user: {user_id})")
        return user_id, ""

    async def _handle_message(
        self,
        websocket: WebSocket,
        delegate: ConnectedDelegate,
        message: DelegateMessage,
    ) -> None:
        if message.type == "tool_manifest":
            # The handshake delegateId is canonical; message.delegate_id is ignored
            updated = await self._manager.update_tools(
                delegate.session_id, message.tools, message.capabilities
            )
            if updated is None:
                return
            await websocket.send_json(
                ToolManifestAckMessage(
                    tool_count=len(updated.tools),
                    tools=updated.tool_names,
                ).model_dump(by_alias=True)
            )
        elif message.type == "tool_call_response":
            await self._manager.handle_tool_call_response(message)
        elif message.type == "ping":
            await websocket.send_json(PongMessage(timestamp=message.timestamp).model_dump(by_alias=True))
        elif message.type == "delegate_auth":
            logger.debug(f'Ignoring re-auth from already authenticated "{delegate.delegate_id}"')
