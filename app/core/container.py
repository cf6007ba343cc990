"""
Service container for the Tool Gateway.

Builds the registry, delegate manager and dispatcher once at startup and
hands the same instances to routes and the delegate WebSocket handler.
"""

import logging
from typing import Callable, Optional

from app.core.config import AppConfig, config
from app.services.api_key_service import DelegateApiKeyService, api_key_service
from app.services.delegate_manager import DelegateManager
from app.services.dispatcher import ToolDispatcher
from app.services.server_tools import register_server_tools
from app.services.tool_registry import ToolRegistry
from app.services.tool_result_manager import ToolResultManager
from app.services.websocket import DelegateConnectionHandler, DelegateMessageParser

logger = logging.getLogger("tool-gateway.container")


class ServiceContainer:
    """Holds the single instance of every stateful service."""

    def __init__(
        self,
        settings: Optional[AppConfig] = None,
        key_service: Optional[DelegateApiKeyService] = None,
        session_factory: Optional[Callable] = None,
        register_builtin_tools: bool = True,
    ):
        """
        Args:
            settings: Configuration (module config by default)
            key_service: API key service (global instance by default)
            session_factory: AsyncSession factory for delegate authentication
            register_builtin_tools: Register get_current_time and echo
        """
        self.settings = settings or config
        self.result_manager = ToolResultManager()
        self.delegate_manager = DelegateManager(
            result_manager=self.result_manager,
            call_timeout=self.settings.delegate_call_timeout,
        )
        self.registry = ToolRegistry(self.delegate_manager)
        if register_builtin_tools:
            register_server_tools(self.registry)
        self.dispatcher = ToolDispatcher(self.registry, settings=self.settings)
        self.api_key_service = key_service or api_key_service

        if session_factory is None:
            from app.models.database import async_session_maker

            session_factory = async_session_maker
        self.delegate_handler = DelegateConnectionHandler(
            message_parser=DelegateMessageParser(),
            delegate_manager=self.delegate_manager,
            api_key_service=self.api_key_service,
            session_factory=session_factory,
            jwt_secret=self.settings.jwt_secret,
            jwt_algorithm=self.settings.jwt_algorithm,
        )
        logger.info("ServiceContainer initialized")

    def get_stats(self) -> dict:
        return {
            "registry": self.registry.get_stats(),
            "delegates": self.delegate_manager.get_stats(),
        }
