"""
Unit tests for ToolRegistry.
"""

import pytest

from app.core.errors import ToolAlreadyRegisteredError
from app.schemas.tools import ExecutionPolicy, ToolDefinition, ToolSource
from app.services.server_tools import register_server_tools


async def _noop(tool_input):
    return "ok"


def test_register_and_lookup(registry):
    """lookup returns exactly what was registered."""
    definition = ToolDefinition(name="echo", description="Echo back")
    registered = registry.register("echo", definition, _noop)

    found = registry.lookup("echo")

    assert found is registered
    assert found.definition == definition
    assert found.handler is _noop


def test_lookup_missing_returns_none(registry):
    assert registry.lookup("frobnicate") is None


def test_duplicate_registration_rejected(registry):
    registry.register("echo", ToolDefinition(name="echo"), _noop)

    with pytest.raises(ToolAlreadyRegisteredError) as exc_info:
        registry.register("echo", ToolDefinition(name="echo"), _noop)

    assert exc_info.value.error_code == "TOOL_ALREADY_REGISTERED"
    assert "echo" in exc_info.value.message


def test_register_uses_given_name(registry):
    registry.register("alias", ToolDefinition(name="other"), _noop)

    assert registry.lookup("alias").definition.name == "alias"


def test_server_tools_registered(registry):
    register_server_tools(registry)

    assert registry.lookup("echo") is not None
    assert registry.lookup("get_current_time") is not None
    assert registry.get_stats()["local_tool_count"] == 2


@pytest.mark.asyncio
async def test_list_for_user_merges_local_and_delegate(registry, delegate_manager, channel):
    """Delegate tools are listed under qualified names; local tools come first."""
    registry.register("echo", ToolDefinition(name="echo"), _noop)
    await delegate_manager.connect(
        "laptop", "user-1", channel, declared_tools=[ToolDefinition(name="build")]
    )

    tools = registry.list_for_user("user-1")

    assert [t.name for t in tools] == ["echo", "laptop__build"]
    assert tools[0].source == ToolSource.LOCAL
    assert tools[0].delegate_id is None
    assert tools[1].source == ToolSource.DELEGATE
    assert tools[1].delegate_id == "laptop"


@pytest.mark.asyncio
async def test_list_for_user_keeps_delegate_copy_of_local_name(registry, delegate_manager, channel):
    registry.register("echo", ToolDefinition(name="echo", description="local"), _noop)
    await delegate_manager.connect("laptop", "user-1", channel, declared_tools=["echo", "build"])

    tools = {t.name: t for t in registry.list_for_user("user-1")}

    assert set(tools) == {"echo", "laptop__echo", "laptop__build"}
    assert tools["echo"].source == ToolSource.LOCAL
    assert tools["echo"].description == "local"
    assert tools["laptop__echo"].source == ToolSource.DELEGATE


@pytest.mark.asyncio
async def test_list_for_user_ignores_other_users(registry, delegate_manager, channel):
    await delegate_manager.connect("laptop", "user-2", channel, declared_tools=["build"])

    assert registry.list_for_user("user-1") == []


@pytest.mark.asyncio
async def test_list_for_user_lists_every_delegate(registry, delegate_manager, channel_factory):
    """Two delegates declaring one name both stay listed and addressable."""
    await delegate_manager.connect("laptop", "user-1", channel_factory(), declared_tools=["build"])
    await delegate_manager.connect("desktop", "user-1", channel_factory(), declared_tools=["build"])

    tools = registry.list_for_user("user-1")

    assert [(t.name, t.delegate_id) for t in tools] == [
        ("laptop__build", "laptop"),
        ("desktop__build", "desktop"),
    ]


@pytest.mark.asyncio
async def test_list_for_user_long_qualified_name(registry, delegate_manager, channel):
    long_name = "t" * 128
    await delegate_manager.connect("d" * 32, "user-1", channel, declared_tools=[long_name])

    tools = registry.list_for_user("user-1")

    assert tools[0].name == f"{'d' * 32}__{long_name}"


@pytest.mark.asyncio
async def test_list_for_user_keeps_unmodelled_schema_keys(registry, delegate_manager, channel):
    schema = {
        "type": "object",
        "properties": {"x": {"type": "string"}},
        "required": ["x"],
        "additionalProperties": False,
    }
    await delegate_manager.connect(
        "laptop", "user-1", channel, declared_tools=[{"name": "build", "inputSchema": schema}]
    )

    tool = registry.list_for_user("user-1")[0]

    assert tool.model_dump(by_alias=True)["inputSchema"] == schema


def test_tools_for_policy(registry):
    registry.register("echo", ToolDefinition(name="echo"), _noop)
    registry.register("get_current_time", ToolDefinition(name="get_current_time"), _noop)

    everything = registry.tools_for_policy("user-1", ExecutionPolicy())
    selected = registry.tools_for_policy("user-1", ExecutionPolicy(enabled_tools=["echo"]))
    nothing = registry.tools_for_policy("user-1", ExecutionPolicy(enabled_tools=[]))
    disabled = registry.tools_for_policy("user-1", ExecutionPolicy(tools_enabled=False))

    assert {t.name for t in everything} == {"echo", "get_current_time"}
    assert [t.name for t in selected] == ["echo"]
    assert nothing == []
    assert disabled == []


def test_is_tool_allowed(registry):
    assert registry.is_tool_allowed("echo", ExecutionPolicy())
    assert registry.is_tool_allowed("echo", ExecutionPolicy(enabled_tools=["echo"]))
    assert not registry.is_tool_allowed("echo", ExecutionPolicy(enabled_tools=["other"]))
    assert not registry.is_tool_allowed("echo", ExecutionPolicy(tools_enabled=False))


def test_is_tool_allowed_for_qualified_names(registry):
    assert registry.is_tool_allowed("laptop__build", ExecutionPolicy(enabled_tools=["laptop__build"]))
    assert registry.is_tool_allowed("laptop__build", ExecutionPolicy(enabled_tools=["build"]))
    assert not registry.is_tool_allowed("laptop__build", ExecutionPolicy(enabled_tools=["desktop__build"]))
    assert not registry.is_tool_allowed("laptop__build", ExecutionPolicy(tools_enabled=False))


@pytest.mark.asyncio
async def test_tools_for_policy_with_delegates(registry, delegate_manager, channel_factory):
    await delegate_manager.connect("laptop", "user-1", channel_factory(), declared_tools=["build"])
    await delegate_manager.connect("desktop", "user-1", channel_factory(), declared_tools=["build"])

    qualified = registry.tools_for_policy("user-1", ExecutionPolicy(enabled_tools=["desktop__build"]))
    plain = registry.tools_for_policy("user-1", ExecutionPolicy(enabled_tools=["build"]))

    assert [t.name for t in qualified] == ["desktop__build"]
    assert [t.name for t in plain] == ["laptop__build", "desktop__build"]


@pytest.mark.asyncio
async def test_resolution_hint(registry, delegate_manager, channel_factory):
    registry.register("echo", ToolDefinition(name="echo"), _noop)
    await delegate_manager.connect("laptop", "user-1", channel_factory(), declared_tools=["build", "lint"])
    await delegate_manager.connect("desktop", "user-1", channel_factory(), declared_tools=["build"])

    everything = ExecutionPolicy()
    only_lint = ExecutionPolicy(enabled_tools=["laptop__lint"])

    assert registry.resolution_hint("user-1", "build", everything) == (
        'Ambiguous tool "build". Use full name: laptop__build or desktop__build'
    )
    assert registry.resolution_hint("user-1", "build", only_lint) == (
        'Tool "build" exists but is disabled. Enable one of: desktop__build, laptop__build'
    )
    assert registry.resolution_hint("user-1", "lint", everything) is None
    assert registry.resolution_hint("user-1", "laptop__build", everything) is None
    assert registry.resolution_hint("user-1", "echo", everything) is None
    assert registry.resolution_hint("user-1", "frobnicate", everything) is None
