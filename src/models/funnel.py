"""Conversation funnel decision models."""

from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, Field

from src.models.conversation import ConversationState
from src.models.listing import Listing


class FunnelStage(str, Enum):
    """Named stages of the buyer funnel plus the broker branch."""
    START = "start"
    AWAITING_TYPE = "awaiting_type"
    AWAITING_CITY = "awaiting_city"
    AWAITING_NEIGHBORHOOD = "awaiting_neighborhood"
    RESULTS = "results"
    CLOSING = "closing"
    BROKER = "broker"


class QuickAction(BaseModel):
    """A badge/button offered to the user under the assistant reply.

    ``reply`` actions send ``value`` back as the next user message; ``link``
    and ``whatsapp`` actions open ``value``; ``action`` triggers a UI flow
    (schedule visit, custom listing request, restart).
    """
    label: str
    value: str
    kind: Literal["reply", "link", "whatsapp", "action"] = "reply"
    count: Optional[int] = None


class FunnelDecision(BaseModel):
    """What the assistant should say/offer after one user turn."""
    stage: FunnelStage
    reply: str
    quick_actions: list[QuickAction] = Field(default_factory=list)
    listings: list[Listing] = Field(default_factory=list)
    state: ConversationState
    search_tier: Optional[int] = Field(None, description="Fallback tier that produced the listings (1-3)")


class SearchTier(BaseModel):
    """One step of the listing search fallback."""
    tier: int = Field(..., ge=1, le=3)
    bairros: list[str] = Field(default_factory=list)
    valor_max: Optional[float] = None


class AssistantTurn(BaseModel):
    """Response of the assistant to one user message."""
    conversation_id: str
    stage: FunnelStage
    reply: str
    quick_actions: list[QuickAction] = Field(default_factory=list)
    listings: list[Listing] = Field(default_factory=list)
    lead_score: Optional[int] = None
    lead_status: Optional[str] = None
