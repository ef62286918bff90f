"""Interfaces of the LLM and MCP collaborators."""

from kodus_flow.adapters.llm import LLMAdapter, LLMMessage, LLMResponse
from kodus_flow.adapters.mcp import MCPAdapter, MCPToolRawWithServer

__all__ = ["LLMAdapter", "LLMMessage", "LLMResponse", "MCPAdapter", "MCPToolRawWithServer"]
