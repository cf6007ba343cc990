"""
Unit tests for AppConfig.
"""

import os

import pytest
from pydantic import ValidationError

from app.core.config import AppConfig


def test_config_defaults(monkeypatch):
    for key in list(os.environ.keys()):
        if key.startswith("TOOL_GATEWAY__"):
            monkeypatch.delenv(key, raising=False)

    config = AppConfig(_env_file=None)

    assert config.environment == "development"
    assert config.is_development is True
    assert config.db_url == "sqlite:///data/tool_gateway.db"
    assert config.jwt_algorithm == "HS256"
    assert config.default_tool_timeout == 30.0
    assert config.test_tool_timeout == 10.0
    assert config.test_tool_max_content == 2000
    assert config.delegate_call_timeout == 300.0
    assert config.api_key_prefix == "dak_"


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("TOOL_GATEWAY__ENVIRONMENT", "production")
    monkeypatch.setenv("TOOL_GATEWAY__DEFAULT_TOOL_TIMEOUT", "12.5")
    monkeypatch.setenv("TOOL_GATEWAY__API_KEY_PREFIX", "key_")

    config = AppConfig(_env_file=None)

    assert config.is_development is False
    assert config.default_tool_timeout == 12.5
    assert config.api_key_prefix == "key_"


def test_config_rejects_out_of_range_timeout(monkeypatch):
    monkeypatch.setenv("TOOL_GATEWAY__DEFAULT_TOOL_TIMEOUT", "0")

    with pytest.raises(ValidationError):
        AppConfig(_env_file=None)
