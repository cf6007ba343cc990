"""Built-in server tools: get_current_time, echo"""

import logging
from datetime import datetime
from typing import Any, Dict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.schemas.tools import ToolDefinition, ToolInputSchema, ToolResult
from app.services.tool_registry import ToolRegistry

logger = logging.getLogger("tool-gateway.server-tools")

GET_CURRENT_TIME = ToolDefinition(
    name="get_current_time",
    description="Get the current date and time. Optionally specify a timezone.",
    input_schema=ToolInputSchema(
        properties={
            "timezone": {
                "type": "string",
                "description": (
                    'IANA timezone name (e.g., "America/New_York", "Europe/London", '
                    '"Asia/Tokyo"). Defaults to UTC.'
                ),
            },
        },
    ),
)

ECHO = ToolDefinition(
    name="echo",
    description="Echo back the input message. Useful for testing tool calling.",
    input_schema=ToolInputSchema(
        properties={
            "message": {"type": "string", "description": "The message to echo back."},
        },
        required=["message"],
    ),
)


async def get_current_time(tool_input: Dict[str, Any]):
    timezone_name = tool_input.get("timezone") or "UTC"
    try:
        tz = ZoneInfo(str(timezone_name))
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return ToolResult.failure(
            "",
            f'Invalid timezone: {timezone_name}. Use IANA timezone names like "America/New_York".',
            error="INVALID_INPUT",
        )

    now = datetime.now(tz)
    formatted = now.strftime("%A, %B %d, %Y, %I:%M:%S %p %Z")
    return f"Current time ({timezone_name}): {formatted}"


async def echo(tool_input: Dict[str, Any]) -> str:
    message = tool_input.get("message") or ""
    return f"Echo: {message}"


def register_server_tools(registry: ToolRegistry) -> None:
    registry.register("get_current_time", GET_CURRENT_TIME, get_current_time)
    registry.register("echo", ECHO, echo)
    logger.info("Registered built-in server tools: get_current_time, echo")
