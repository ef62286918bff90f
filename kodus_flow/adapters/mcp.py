"""MCP adapter protocol: remote tool servers exposed as tools."""

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field


class MCPToolRawWithServer(BaseModel):
    """A tool advertised by an MCP server."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict)
    server_name: str


@runtime_checkable
class MCPAdapter(Protocol):
    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def get_tools(self) -> list[MCPToolRawWithServer]: ...

    async def execute_tool(
        self,
        name: str,
        args: dict[str, Any],
        server_name: str | None = None,
    ) -> Any: ...
