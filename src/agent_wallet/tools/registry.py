"""Registry of agent-callable wallet tools.

An agent runtime lists :meth:`ToolRegistry.schemas` to its model and routes
the model's tool calls back through :meth:`ToolRegistry.call`.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from agent_wallet.errors import WalletError

logger = logging.getLogger("agent_wallet.tools.registry")

ToolFunc = Callable[..., Any] | Callable[..., Awaitable[Any]]

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


@dataclass
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    func: ToolFunc
    is_async: bool = False

    def to_schema(self) -> dict[str, Any]:
        """Function-calling schema understood by common LLM tool APIs."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    async def execute(self, **kwargs) -> str:
        """Run the tool and return its output as text.

        Wallet errors are returned as a JSON error object so the agent can
        read them; anything else propagates.
        """
        try:
            result = await self.func(**kwargs) if self.is_async else self.func(**kwargs)
        except WalletError as e:
            logger.info(f"Tool {self.name} failed: {e.message}")
            return json.dumps(e.to_dict(), default=str)
        if isinstance(result, str):
            return result
        return json.dumps(result, default=str)


class ToolRegistry:
    """Process-wide registry, filled by the ``@tool`` decorator at import time."""

    _instance: ToolRegistry | None = None

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    @classmethod
    def get(cls) -> ToolRegistry:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            logger.debug(f"Replacing tool {tool.name}")
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_names(self) -> list[str]:
        return list(self._tools)

    def schemas(self, names: list[str] | None = None) -> list[dict[str, Any]]:
        """Schemas for *names* (all tools when ``None``), skipping unknown names."""
        selected = self._tools.values() if names is None else [
            self._tools[n] for n in names if n in self._tools
        ]
        return [t.to_schema() for t in selected]

    async def call(self, name: str, arguments: dict[str, Any] | str | None = None) -> str:
        """Dispatch a tool call; *arguments* may be the model's raw JSON string."""
        tool = self._tools.get(name)
        if tool is None:
            return json.dumps({"error": f"Unknown tool: {name}"})
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError:
                return json.dumps({"error": f"Invalid arguments for {name}: not JSON"})
        return await tool.execute(**(arguments or {}))


def _extract_parameters(func: Callable) -> dict[str, Any]:
    """JSON Schema for *func*'s parameters; string annotations are read by name."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    by_name = {t.__name__: j for t, j in _JSON_TYPES.items()}

    for name, param in inspect.signature(func).parameters.items():
        annotation = param.annotation
        if isinstance(annotation, str):
            json_type = by_name.get(annotation, "string")
        else:
            json_type = _JSON_TYPES.get(annotation, "string")
        properties[name] = {"type": json_type}
        if param.default is inspect.Parameter.empty:
            required.append(name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def tool(name: str, description: str, parameters: dict[str, Any] | None = None):
    """Register the decorated function as an agent tool.

    Without explicit *parameters* the schema is derived from the signature.
    """

    def decorator(func: Callable) -> Callable:
        ToolRegistry.get().register(
            Tool(
                name=name,
                description=description,
                parameters=parameters if parameters is not None else _extract_parameters(func),
                func=func,
                is_async=inspect.iscoroutinefunction(func),
            )
        )
        return func

    return decorator
