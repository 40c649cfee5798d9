"""Assistant conversation models (``iza_conversations`` / ``iza_messages``)."""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ClientType(str, Enum):
    """Who is talking to the assistant."""
    BUYER = "buyer"
    BROKER = "broker"


# Tags stored in ConversationState.answered_questions
QUESTION_OPERACAO = "operacao"
QUESTION_TIPO = "tipoImovel"
QUESTION_CIDADE = "cidade"
QUESTION_BAIRRO = "bairro"
QUESTION_VALOR = "valor"
QUESTION_QUARTOS = "quartos"
QUESTION_BUSCA_AMPLIADA = "buscaAmpliada"


class ConversationState(BaseModel):
    """Buyer preferences disclosed so far in one assistant session.

    Persisted as camelCase JSON in ``iza_conversations.conversation_state``.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)

    client_type: Optional[ClientType] = None
    operacao: Optional[str] = None
    tipo_imovel: Optional[str] = None
    cidade: Optional[str] = None
    bairro: Optional[str] = None
    bairros: list[str] = Field(default_factory=list)
    valor_min: Optional[float] = None
    valor_max: Optional[float] = None
    quartos: Optional[int] = None
    answered_questions: list[str] = Field(default_factory=list)
    shown_property_ids: list[str] = Field(default_factory=list)
    # Neighborhoods offered after a city-wide fallback, awaiting a pick
    offered_neighborhoods: list[str] = Field(default_factory=list)

    @property
    def neighborhoods(self) -> list[str]:
        """All disclosed neighborhoods, primary first, without duplicates."""
        result: list[str] = []
        for value in [self.bairro, *self.bairros]:
            if value and value not in result:
                result.append(value)
        return result

    @property
    def search_expanded(self) -> bool:
        return QUESTION_BUSCA_AMPLIADA in self.answered_questions

    def mark_answered(self, tag: str) -> None:
        if tag not in self.answered_questions:
            self.answered_questions.append(tag)

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class ChatMessage(BaseModel):
    """One chat turn."""
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime


class Conversation(BaseModel):
    """Row of ``iza_conversations``."""
    model_config = ConfigDict(extra="ignore")

    id: str
    broker_id: Optional[str] = Field(None, description="Broker whose page hosts the chat")
    name: Optional[str] = Field(None, description="Visitor name, when disclosed")
    phone_number: Optional[str] = Field(None, description="Visitor WhatsApp number, when disclosed")
    conversation_state: ConversationState = Field(default_factory=ConversationState)
    lead_score: Optional[int] = None
    lead_status: Optional[str] = None
    status: str = "active"
    created_at: Optional[str] = None
