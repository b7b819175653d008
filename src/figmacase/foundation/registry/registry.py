"""Name-to-tool lookup for the dispatcher.

Filled once at startup. The set of enabled names is exactly what `tools/list`
publishes and what `tools/call` accepts.
"""

from __future__ import annotations

from pydantic import BaseModel

from ..core import BaseTool, ToolDefinition, ToolMetadata

AnyTool = BaseTool[BaseModel]


class ToolRegistry:
    """Tools keyed by published name, kept in registration order.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register_all(*figma_tools(client, cache))
        >>> registry.get("get-file")
        <GetFileTool ...>
        >>> "bogus" in registry
        False
    """

    __slots__ = ("_by_name",)

    def __init__(self) -> None:
        self._by_name: dict[str, AnyTool] = {}

    def register(self, tool: AnyTool) -> None:
        """Add `tool`; a second tool under the same name is a wiring bug and raises ValueError."""
        if (name := tool.metadata.name) in self._by_name:
            raise ValueError(f"Duplicate tool name: {name}")
        self._by_name[name] = tool

    def register_all(self, *tools: AnyTool) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> AnyTool | None:
        """Tool published as `name`, or None when unknown or disabled."""
        tool = self._by_name.get(name)
        if tool is None or not tool.metadata.enabled:
            return None
        return tool

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        return sum(1 for t in self._by_name.values() if t.metadata.enabled)

    def _enabled(self) -> list[AnyTool]:
        return [t for t in self._by_name.values() if t.metadata.enabled]

    def list_tools(self) -> list[ToolMetadata]:
        return [t.metadata for t in self._enabled()]

    def definitions(self) -> list[ToolDefinition]:
        return [t.definition() for t in self._enabled()]
