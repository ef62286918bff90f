"""LLM adapter protocol consumed by planners."""

from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, Field


class LLMMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMResponse(BaseModel):
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class LLMAdapter(Protocol):
    """Anything that turns a message list into a completion."""

    async def call(self, messages: list[LLMMessage], **kwargs: Any) -> LLMResponse: ...

    def get_provider(self) -> str: ...
