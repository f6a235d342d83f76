"""Models for the maintenance chat turn and reasoning-engine decisions."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.maintenance import WorkOrderAttachment


class ChatMessage(BaseModel):
    """One history entry supplied by the chat client."""

    model_config = ConfigDict(extra="ignore")

    role: str
    content: Optional[str] = None


class ChatTurnRequest(BaseModel):
    """Turn entry point payload: history, tenant, utterance, attachments."""

    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatMessage] = Field(default_factory=list)
    tenant_id: str = Field(default="", alias="tenantId")
    message: Optional[str] = None
    attachments: List[WorkOrderAttachment] = Field(default_factory=list)


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the reasoning engine (arguments untyped)."""

    id: str
    name: str
    arguments: str = "{}"


class ReasoningDecision(BaseModel):
    """Next action from the reasoning engine: a final answer or a tool batch."""

    content: Optional[str] = None
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


class ToolCallTrace(BaseModel):
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolResultTrace(BaseModel):
    tool_call_id: str
    name: str
    ok: bool
    content: Any = None


class AssistantMessage(BaseModel):
    role: str = "assistant"
    content: str


class ChatTurnResponse(BaseModel):
    """Terminal response of a turn plus the ordered tool traces."""

    message: AssistantMessage
    tool_calls: List[ToolCallTrace] = Field(default_factory=list)
    tool_results: List[ToolResultTrace] = Field(default_factory=list)
    iterations: int = 0
