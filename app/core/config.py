"""Application configuration"""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Tool Gateway settings"""

    model_config = SettingsConfigDict(
        env_prefix="TOOL_GATEWAY__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    port: int = 8000
    version: str = "0.1.0"

    # Logging
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite:///data/tool_gateway.db"

    # Auth
    jwt_secret: str = "change-me-jwt-secret"
    jwt_algorithm: str = "HS256"
    internal_api_key: str = "change-me-internal-key"

    # Tool execution (seconds)
    default_tool_timeout: float = Field(default=30.0, ge=0.1, le=600.0)
    test_tool_timeout: float = Field(default=10.0, ge=0.1, le=600.0)
    test_tool_max_content: int = Field(default=2000, gt=0)
    delegate_call_timeout: float = Field(default=300.0, ge=1.0)

    # Delegate API keys
    api_key_prefix: str = "dak_"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.environment.lower() == "development"


config = AppConfig()

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger("tool-gateway")
