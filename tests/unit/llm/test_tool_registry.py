"""Unit tests for the tool dispatch table."""

import pytest

from glossa.core.exceptions import ToolCallError
from glossa.core.llm import Tool, ToolRegistry


async def echo(text: str) -> str:
    return f"echo:{text}"


ECHO = Tool(
    name="echo",
    description="Echo the text back",
    handler=echo,
    parameters={
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    },
)


class TestToolRegistry:
    """Test registration and dispatch."""

    def test_schema(self):
        schema = ECHO.to_schema()

        assert schema["type"] == "function"
        assert schema["function"]["name"] == "echo"
        assert schema["function"]["parameters"]["required"] == ["text"]

    def test_membership(self):
        registry = ToolRegistry([ECHO])

        assert "echo" in registry
        assert len(registry) == 1
        assert registry.names == ["echo"]

    @pytest.mark.asyncio
    async def test_dispatch(self):
        registry = ToolRegistry([ECHO])

        assert await registry.dispatch("echo", {"text": "hi"}) == "echo:hi"

    @pytest.mark.asyncio
    async def test_unknown_arguments_are_dropped(self):
        """Arguments outside the schema never reach the handler."""
        registry = ToolRegistry([ECHO])

        assert await registry.dispatch("echo", {"text": "hi", "rm": "-rf"}) == "echo:hi"

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        registry = ToolRegistry([ECHO])

        assert await registry.dispatch("shell", {"cmd": "ls"}) == "Error: Tool shell not found"

    @pytest.mark.asyncio
    async def test_invalid_arguments(self):
        registry = ToolRegistry([ECHO])

        with pytest.raises(ToolCallError):
            await registry.dispatch("echo", ["hi"])
        with pytest.raises(ToolCallError):
            await registry.dispatch("echo", {})
