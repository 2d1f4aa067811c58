"""Pydantic models for chat-related API requests, responses and stream chunks."""

import time
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """Data model for a single message in a chat history."""

    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Request body of the chat endpoint."""

    class Config:
        """Accept both the camelCase wire names and the field names."""

        populate_by_name = True
        extra = "ignore"

    messages: List[ChatMessage]
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")


class ErrorResponse(BaseModel):
    """JSON body returned when the chat endpoint cannot stream."""

    error: str


def _now_ms() -> int:
    return int(time.time() * 1000)


class BaseChunk(BaseModel):
    """Fields shared by every streamed chunk."""

    class Config:
        populate_by_name = True

    id: str
    model: str
    timestamp: int = Field(default_factory=_now_ms)
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ContentChunk(BaseChunk):
    """Incremental text, with the text accumulated so far."""

    type: Literal["content"] = "content"
    delta: str
    content: str


class ToolCallChunk(BaseChunk):
    """The model asked for a tool to be run."""

    type: Literal["tool_call"] = "tool_call"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolResultChunk(BaseChunk):
    """Result of a tool call, as fed back to the model."""

    type: Literal["tool_result"] = "tool_result"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    result: Dict[str, Any]


class DoneChunk(BaseChunk):
    """End of generation."""

    type: Literal["done"] = "done"
    finish_reason: Literal["stop", "max_iterations"] = Field(
        default="stop", alias="finishReason"
    )


class ErrorDetail(BaseModel):
    message: str


class ErrorChunk(BaseChunk):
    """Generation failed after the stream had started."""

    type: Literal["error"] = "error"
    error: ErrorDetail


StreamChunk = Union[ContentChunk, ToolCallChunk, ToolResultChunk, DoneChunk, ErrorChunk]
