"""Figma tools - files, projects, components and variables.

Read tools are served cache-first: one upstream fetch per key per TTL window.
Write tools always go upstream and then drop every cached read for the same
file key, so a later read never returns pre-write data.

Cache keys:
    file:<fileKey>                  get-file
    file:<fileKey>:variables        get-variables
    file:<fileKey>:components       list-components
    project:<projectId>             list-files
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal

import orjson
from pydantic import BaseModel, ConfigDict, Field

from figmacase.foundation.core import BaseTool, Context, ToolMetadata, ToolResult, TParams
from figmacase.foundation.errors import ToolError, UpstreamError
from figmacase.io.cache import ResponseCache, cache_through, make_key

from .http import FigmaClient, HttpMethod

VARIABLE_COLLECTION_NAME = "MCP Generated Variables"

FileKey = Annotated[str, Field(min_length=1, description="The Figma file key (found in the file URL)")]


# ─────────────────────────────────────────────────────────────────────────────
# Parameter Schemas
# ─────────────────────────────────────────────────────────────────────────────


class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class FileParams(_Params):
    """Parameters for tools addressing a single file."""
    file_key: FileKey = Field(..., alias="fileKey")


class ProjectParams(_Params):
    project_id: Annotated[str, Field(min_length=1)] = Field(..., alias="projectId", description="The Figma project ID")


class VariableDefinition(_Params):
    """A variable to create."""
    name: Annotated[str, Field(min_length=1, description="Name of the variable")]
    type: Literal["COLOR", "FLOAT", "STRING"] = Field(..., description="Type of variable")
    value: str = Field(..., description="Variable value (hex color for COLOR, number for FLOAT, text for STRING)")
    scope: Literal["LOCAL", "ALL_FRAMES"] = Field(..., description="Scope of the variable")
    description: str | None = Field(default=None, description="Optional description of the variable")


class CreateVariablesParams(FileParams):
    variables: list[VariableDefinition] = Field(..., min_length=1, description="Array of variables to create")


class VariableChange(_Params):
    """An update to an existing variable. Value changes need the target mode."""
    id: Annotated[str, Field(min_length=1, description="Variable ID")]
    name: str | None = Field(default=None, description="New name")
    description: str | None = Field(default=None, description="New description")
    mode_id: str | None = Field(default=None, alias="modeId", description="Mode whose value is replaced")
    value: str | None = Field(default=None, description="New value for the given mode")


class UpdateVariablesParams(FileParams):
    variables: list[VariableChange] = Field(..., min_length=1, description="Variables to update")


class DeleteVariablesParams(FileParams):
    variable_ids: list[Annotated[str, Field(min_length=1)]] = Field(
        ..., alias="variableIds", min_length=1, description="IDs of the variables to delete",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Error Mapping
# ─────────────────────────────────────────────────────────────────────────────


def upstream_error_message(exc: UpstreamError, resource: str, identifier: str, *, action: str = "accessing") -> str:
    """User-facing text for an upstream failure, keyed on HTTP status."""
    if exc.not_found:
        return f"{resource.capitalize()} not found: {identifier}. Please verify the {resource} key is correct."
    if exc.forbidden:
        return (
            f"Figma returned access denied for {resource} {identifier}: insufficient permission. "
            "Please verify your access token has the correct permissions."
        )
    return f"Error {action} {resource}: {exc}"


class FigmaTool(BaseTool[TParams]):
    """Base for tools backed by the Figma API.

    Subclasses name the `resource` they address and how to `identify` it in
    params; failures are mapped through `upstream_error_message`.
    """

    resource: ClassVar[str] = "file"
    action: ClassVar[str] = "accessing"

    __slots__ = ("client", "cache")

    def __init__(self, client: FigmaClient, cache: ResponseCache | None = None) -> None:
        self.client = client
        self.cache = cache

    def identify(self, params: TParams) -> str:
        return getattr(params, "file_key", "")

    async def _call(self, ctx: Context, endpoint: str, *, method: HttpMethod = "GET", body: Any = None) -> Any:
        """Upstream call whose outcome is recorded on the call context."""
        outcome = ctx.record(await self.client.request(endpoint, method=method, json=body))
        return outcome.json()

    async def _cached(self, ctx: Context, key: str, endpoint: str) -> Any:
        ctx["cache"] = "hit"

        async def fetch() -> Any:
            ctx["cache"] = "miss"
            return await self._call(ctx, endpoint)

        return await cache_through(self.cache, key, fetch)

    def _invalidate_file(self, file_key: str) -> None:
        if self.cache is not None:
            self.cache.invalidate_scope(make_key("file", file_key))

    def error_result(self, exc: Exception, params: TParams) -> ToolResult:
        if isinstance(exc, UpstreamError):
            return ToolResult.error(upstream_error_message(exc, self.resource, self.identify(params), action=self.action))
        return ToolResult.from_error(ToolError.from_exception(self.metadata.name, exc, "Tool execution failed"))


# ─────────────────────────────────────────────────────────────────────────────
# Read Tools
# ─────────────────────────────────────────────────────────────────────────────


class GetFileTool(FigmaTool[FileParams]):
    """Summary of a Figma file: name, version and document counts."""

    metadata = ToolMetadata(name="get-file", description="Get details of a Figma file", category="files")
    params_schema = FileParams

    async def _run(self, params: FileParams, ctx: Context) -> str:
        data = await self._cached(ctx, make_key("file", params.file_key), f"/files/{params.file_key}")
        return format_file_summary(data)


class ListFilesTool(FigmaTool[ProjectParams]):
    """Files of a project, as the API returns them."""

    metadata = ToolMetadata(name="list-files", description="List files in a Figma project", category="files")
    params_schema = ProjectParams
    resource = "project"

    def identify(self, params: ProjectParams) -> str:
        return params.project_id

    async def _run(self, params: ProjectParams, ctx: Context) -> str:
        data = await self._cached(ctx, make_key("project", params.project_id), f"/projects/{params.project_id}/files")
        return orjson.dumps(data, option=orjson.OPT_INDENT_2).decode()


class GetVariablesTool(FigmaTool[FileParams]):
    metadata = ToolMetadata(
        name="get-variables",
        description="List the local variables and variable collections of a Figma file",
        category="variables",
    )
    params_schema = FileParams

    async def _run(self, params: FileParams, ctx: Context) -> str:
        data = await self._cached(
            ctx, make_key("file", params.file_key, "variables"), f"/files/{params.file_key}/variables/local",
        )
        meta = (data or {}).get("meta") or {}
        variables = meta.get("variables") or {}
        collections = meta.get("variableCollections") or {}
        lines = [f"{len(variables)} variables in {len(collections)} collections"]
        lines += [
            f"- {v.get('name', var_id)} ({v.get('resolvedType', 'UNKNOWN')}) [{var_id}]"
            for var_id, v in variables.items()
        ]
        return "\n".join(lines)


class ListComponentsTool(FigmaTool[FileParams]):
    metadata = ToolMetadata(
        name="list-components",
        description="List all published components in a Figma file",
        category="components",
    )
    params_schema = FileParams

    async def _run(self, params: FileParams, ctx: Context) -> str:
        data = await self._cached(
            ctx, make_key("file", params.file_key, "components"), f"/files/{params.file_key}/components",
        )
        components = ((data or {}).get("meta") or {}).get("components") or []
        if not components:
            return f"No components found in file {params.file_key}"
        lines = [f"{len(components)} components:"]
        lines += [f"- {c.get('name', '?')} ({c.get('key', '?')})" for c in components]
        return "\n".join(lines)


def format_file_summary(data: dict[str, Any]) -> str:
    """`File details for: <name>` followed by `key: value` lines."""
    document = data.get("document") or {}
    summary = {
        "name": data.get("name"),
        "lastModified": data.get("lastModified"),
        "version": data.get("version"),
        "editorType": data.get("editorType"),
        "documentKey": data.get("documentKey"),
        "nodes": f"{len(document.get('children') or [])} nodes",
        "components": f"{len(data.get('components') or {})} components",
        "styles": f"{len(data.get('styles') or {})} styles",
    }
    body = "\n".join(f"{key}: {value}" for key, value in summary.items())
    return f"File details for: {data.get('name')}\n\n{body}"


# ─────────────────────────────────────────────────────────────────────────────
# Write Tools
# ─────────────────────────────────────────────────────────────────────────────


class CreateVariablesTool(FigmaTool[CreateVariablesParams]):
    """Creates a collection for the variable types, then the variables in it."""

    metadata = ToolMetadata(
        name="create-variables",
        description="Create variables in a Figma file",
        category="variables",
        mutating=True,
    )
    params_schema = CreateVariablesParams
    action = "creating variables in"

    async def _run(self, params: CreateVariablesParams, ctx: Context) -> str:
        file_key = params.file_key
        try:
            collection = await self._call(ctx, f"/files/{file_key}/variables/create-collection", method="POST", body={
                "name": VARIABLE_COLLECTION_NAME,
                "variableTypes": list(dict.fromkeys(v.type for v in params.variables)),
            })
            await self._call(ctx, f"/files/{file_key}/variables", method="POST", body={
                "variableCollectionId": (collection or {}).get("id"),
                "variables": [
                    {
                        "name": v.name,
                        "resolvedType": v.type,
                        "description": v.description,
                        "value": v.value,
                        "scope": v.scope,
                    }
                    for v in params.variables
                ],
            })
        finally:
            self._invalidate_file(file_key)
        listing = "\n".join(f"- {v.name} ({v.type})" for v in params.variables)
        return f"Successfully created {len(params.variables)} variables:\n{listing}"


class UpdateVariablesTool(FigmaTool[UpdateVariablesParams]):
    metadata = ToolMetadata(
        name="update-variables",
        description="Update names, descriptions or mode values of existing variables in a Figma file",
        category="variables",
        mutating=True,
    )
    params_schema = UpdateVariablesParams
    action = "updating variables in"

    async def _run(self, params: UpdateVariablesParams, ctx: Context) -> str:
        variables = []
        mode_values = []
        for change in params.variables:
            entry: dict[str, Any] = {"action": "UPDATE", "id": change.id}
            if change.name is not None:
                entry["name"] = change.name
            if change.description is not None:
                entry["description"] = change.description
            variables.append(entry)
            if change.mode_id is not None and change.value is not None:
                mode_values.append({"variableId": change.id, "modeId": change.mode_id, "value": change.value})
        body: dict[str, Any] = {"variables": variables}
        if mode_values:
            body["variableModeValues"] = mode_values
        try:
            await self._call(ctx, f"/files/{params.file_key}/variables", method="POST", body=body)
        finally:
            self._invalidate_file(params.file_key)
        return f"Successfully updated {len(variables)} variables:\n" + "\n".join(f"- {v['id']}" for v in variables)


class DeleteVariablesTool(FigmaTool[DeleteVariablesParams]):
    metadata = ToolMetadata(
        name="delete-variables",
        description="Delete variables from a Figma file by ID",
        category="variables",
        mutating=True,
    )
    params_schema = DeleteVariablesParams
    action = "deleting variables in"

    async def _run(self, params: DeleteVariablesParams, ctx: Context) -> str:
        body = {"variables": [{"action": "DELETE", "id": var_id} for var_id in params.variable_ids]}
        try:
            await self._call(ctx, f"/files/{params.file_key}/variables", method="POST", body=body)
        finally:
            self._invalidate_file(params.file_key)
        return f"Successfully deleted {len(params.variable_ids)} variables:\n" + "\n".join(
            f"- {var_id}" for var_id in params.variable_ids
        )


def figma_tools(client: FigmaClient, cache: ResponseCache | None = None) -> list[FigmaTool[Any]]:
    """All Figma tools sharing one client and cache, in publication order."""
    return [
        GetFileTool(client, cache),
        ListFilesTool(client, cache),
        GetVariablesTool(client, cache),
        ListComponentsTool(client, cache),
        CreateVariablesTool(client, cache),
        UpdateVariablesTool(client, cache),
        DeleteVariablesTool(client, cache),
    ]
