"""Lead matching and lead temperature result models."""

from enum import Enum
from pydantic import BaseModel, Field

from src.models.listing import Listing


class LeadTemperature(str, Enum):
    """Conversational lead readiness."""
    QUENTE = "quente"
    MORNO = "morno"
    FRIO = "frio"


class LeadPriority(str, Enum):
    ALTA = "alta"
    MEDIA = "media"
    BAIXA = "baixa"


class LeadScoreBreakdown(BaseModel):
    """Points awarded per lead-temperature criterion."""
    operacao: int = 0
    tipo_imovel: int = 0
    bairro: int = 0
    valor_max: int = 0
    urgencia: int = 0
    interacao: int = 0
    detalhamento: int = 0

    @property
    def total(self) -> int:
        return (
            self.operacao + self.tipo_imovel + self.bairro + self.valor_max
            + self.urgencia + self.interacao + self.detalhamento
        )


class LeadClassification(BaseModel):
    """Lead temperature score with its classification."""
    score: int = Field(..., ge=0, le=100)
    status: LeadTemperature
    priority: LeadPriority
    breakdown: LeadScoreBreakdown


class PropertyMatch(BaseModel):
    """A candidate listing ranked for a lead."""
    listing: Listing
    match_score: int = Field(..., ge=0, le=100, multiple_of=20)
