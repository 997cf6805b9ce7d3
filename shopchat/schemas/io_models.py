"""Pydantic models for API I/O and agent contracts."""
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .order_models import OrderLine, OrderState


class IntentLabel(str, Enum):
    details = "details"
    order_taking = "order_taking"
    recommendation = "recommendation"


class Memory(BaseModel):
    """Conversation state carried by the client between requests.

    Unknown keys are kept so the client can round-trip its own fields.
    """
    model_config = ConfigDict(extra="allow")

    agent: Optional[str] = None
    order: List[OrderLine] = Field(default_factory=list)
    order_state: Optional[OrderState] = None
    last_user_turn: Optional[str] = None


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str = ""
    memory: Optional[Memory] = None


class RetrievedPassage(BaseModel):
    text: str
    score: float
    source: Optional[str] = None


class GuardDecision(BaseModel):
    allowed: bool
    reason: Optional[str] = None


class AgentResult(BaseModel):
    agent: str
    intent: IntentLabel
    response: str
    memory: Memory
    facts: Dict[str, Any] = Field(default_factory=dict)
    status: Literal["ok", "clarify"] = "ok"


class ChatRequest(BaseModel):
    messages: List[ConversationTurn]
    memory: Optional[Memory] = None


class ChatResponse(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str
    memory: Memory


class RunpodInput(BaseModel):
    input: ChatRequest


class RunpodOutput(BaseModel):
    status: str = "COMPLETED"
    output: ChatResponse
