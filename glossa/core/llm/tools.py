"""
Typed dispatch table for model-invoked tools.

A tool is a named async function plus the JSON schema advertised to the
model. The registry is the closed set of operations a conversation may
trigger; anything outside it is answered with an error message instead of
being executed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List

from glossa.core.exceptions import ToolCallError

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[str]]


@dataclass(frozen=True)
class Tool:
    """A function the model may call.

    Attributes:
        name: Function name advertised to the model
        description: What the tool does, shown to the model
        parameters: JSON schema of the arguments object
        handler: Async callable receiving the arguments as keyword arguments
    """
    name: str
    description: str
    handler: ToolHandler
    parameters: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    @property
    def required(self) -> List[str]:
        return list(self.parameters.get("required", []))

    def to_schema(self) -> Dict[str, Any]:
        """OpenAI ``tools`` entry for this function"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    """Name-to-tool dispatch table"""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def schemas(self) -> List[Dict[str, Any]]:
        return [tool.to_schema() for tool in self._tools.values()]

    async def dispatch(self, name: str, arguments: Dict[str, Any]) -> str:
        """
        Execute a tool by name.

        Args:
            name: Tool name requested by the model
            arguments: Decoded arguments object

        Returns:
            Tool result text. Unknown tools yield an error message rather
            than an exception, so the model can recover.

        Raises:
            ToolCallError: If the arguments are not an object or miss required keys
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool '{name}'")
            return f"Error: Tool {name} not found"

        if not isinstance(arguments, dict):
            raise ToolCallError("Tool arguments must be a JSON object", tool_name=name)

        missing = [key for key in tool.required if key not in arguments]
        if missing:
            raise ToolCallError(f"Missing tool arguments: {', '.join(missing)}", tool_name=name)

        allowed = tool.parameters.get("properties", {})
        kwargs = {k: v for k, v in arguments.items() if k in allowed}

        result = await tool.handler(**kwargs)
        logger.debug(f"Tool {name}({kwargs}) -> {result!r}")
        return str(result)
