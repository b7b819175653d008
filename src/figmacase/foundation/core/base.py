"""Core tool abstractions: BaseTool, ToolMetadata, ToolDefinition, ToolResult.

Tools are defined by subclassing BaseTool with a typed parameter schema. The
schema doubles as the tool's declared input shape: it produces the JSON schema
published by `listTools` and validates the untyped arguments of each call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ArgumentError, ToolError
from .context import Context


class ToolMetadata(BaseModel):
    """Metadata describing a tool's capabilities.

    Attributes:
        name: Unique identifier (kebab-case, e.g., "get-file")
        description: What the tool does (shown to the agent for selection)
        category: Grouping category (e.g., "files", "variables")
        mutating: Whether the tool writes upstream state
        enabled: Whether tool is currently active
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., pattern=r"^[a-z][a-z0-9_-]*$")
    description: str = Field(..., min_length=10)
    category: str = Field(default="general")
    mutating: bool = Field(default=False)
    enabled: bool = Field(default=True)


class ToolDefinition(BaseModel):
    """Published description of a tool: `{name, description, inputSchema}`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")


class TextContent(BaseModel):
    """Single text block of a tool result."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """The only return type of a tool invocation. Errors are values here."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_error: bool = Field(default=False, alias="isError")
    content: tuple[TextContent, ...] = ()

    @classmethod
    def ok(cls, text: str) -> ToolResult:
        return cls(is_error=False, content=(TextContent(text=text),))

    @classmethod
    def error(cls, text: str) -> ToolResult:
        return cls(is_error=True, content=(TextContent(text=text),))

    @classmethod
    def from_error(cls, error: ToolError) -> ToolResult:
        return cls.error(error.render())

    @property
    def text(self) -> str:
        """All content blocks joined by newlines."""
        return "\n".join(block.text for block in self.content)

    def to_wire(self) -> dict[str, Any]:
        """Protocol-shaped dict: `{isError, content: [{type, text}]}`."""
        return self.model_dump(by_alias=True, mode="json")


# Type variable for tool parameter schemas
TParams = TypeVar("TParams", bound=BaseModel)


def format_validation_error(exc: ValidationError) -> list[str]:
    """One `<field-path>: <reason>` entry per failing field."""
    issues = []
    for err in exc.errors(include_url=False):
        path = ".".join(str(part) for part in err["loc"]) or "arguments"
        issues.append(f"{path}: {err['msg']}")
    return issues


def strip_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Drop pydantic titles recursively so the published schema stays terse."""
    cleaned: dict[str, Any] = {}
    for key, value in schema.items():
        if key == "title" and isinstance(value, str):
            continue
        if isinstance(value, dict):
            cleaned[key] = strip_schema(value)
        elif isinstance(value, list):
            cleaned[key] = [strip_schema(v) if isinstance(v, dict) else v for v in value]
        else:
            cleaned[key] = value
    return cleaned


class BaseTool(ABC, Generic[TParams]):
    """Abstract base class for all tools.

    Subclasses must:
    - Define `metadata` class variable with ToolMetadata
    - Define `params_schema` class variable with the Pydantic model type
    - Implement `async _run(params, ctx)` returning a ToolResult or plain text

    Optional overrides:
    - `error_result(exc, params)` to map failures into tool-specific messages

    Example:
        >>> class FileParams(BaseModel):
        ...     file_key: str = Field(..., alias="fileKey")
        ...
        >>> class EchoTool(BaseTool[FileParams]):
        ...     metadata = ToolMetadata(name="echo-file", description="Echo a file key back")
        ...     params_schema = FileParams
        ...
        ...     async def _run(self, params: FileParams, ctx: Context) -> str:
        ...         return params.file_key
    """

    metadata: ClassVar[ToolMetadata]
    params_schema: ClassVar[type[BaseModel]]

    @property
    def name(self) -> str:
        return self.metadata.name

    def definition(self) -> ToolDefinition:
        """ToolDefinition with JSON schema generated from `params_schema`."""
        schema = strip_schema(self.params_schema.model_json_schema(by_alias=True))
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        return ToolDefinition(
            name=self.metadata.name,
            description=self.metadata.description,
            input_schema=schema,
        )

    def validate(self, arguments: object) -> TParams:
        """Validate raw arguments, raising ArgumentError with per-field issues."""
        try:
            return self.params_schema.model_validate({} if arguments is None else arguments)  # type: ignore[return-value]
        except ValidationError as e:
            raise ArgumentError(self.metadata.name, format_validation_error(e)) from e

    @abstractmethod
    async def _run(self, params: TParams, ctx: Context) -> ToolResult | str:
        """Execute the tool. Plain strings become successful results."""
        ...

    async def arun(self, params: TParams, ctx: Context | None = None) -> ToolResult:
        """Run with validated params, normalizing plain-text returns."""
        result = await self._run(params, ctx if ctx is not None else Context(tool_name=self.metadata.name))
        return ToolResult.ok(result) if isinstance(result, str) else result

    def error_result(self, exc: Exception, params: TParams) -> ToolResult:
        """Map a failure raised by `_run` into an error result."""
        return ToolResult.from_error(ToolError.from_exception(self.metadata.name, exc, "Tool execution failed"))
