"""Lead models (``leads`` table) - the broker's Kanban CRM."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class LeadStatus(str, Enum):
    """Kanban columns of the lead pipeline."""
    NOVO = "Novo"
    EM_CONTATO = "Em Contato"
    NEGOCIACAO = "Negociação"
    FECHADO = "Fechado"
    PERDIDO = "Perdido"
    ARQUIVADO = "Arquivado"


class LeadOrigin(str, Enum):
    """How the lead entered the pipeline."""
    MANUAL = "manual"
    ASSISTENTE = "assistente"


class Lead(BaseModel):
    """Prospective client with stated preferences, owned by a broker."""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: Optional[str] = Field(None, description="Lead ID")
    user_id: Optional[str] = Field(None, description="Owner (broker) ID")
    nome: str = Field(..., description="Contact name")
    telefone: Optional[str] = Field(None, description="Contact phone")
    email: Optional[str] = Field(None, description="Contact e-mail")
    operacao_interesse: Optional[str] = Field(None, description="Desired operation")
    tipo_imovel_interesse: Optional[str] = Field(None, description="Desired property type")
    cidade_interesse: Optional[str] = Field(None, description="Desired city")
    bairro_interesse: Optional[str] = Field(None, description="Desired neighborhood")
    bairro_interesse_2: Optional[str] = Field(None, description="Second desired neighborhood")
    bairro_interesse_3: Optional[str] = Field(None, description="Third desired neighborhood")
    orcamento_min: Optional[float] = Field(None, ge=0, description="Minimum budget")
    orcamento_max: Optional[float] = Field(None, ge=0, description="Maximum budget")
    status: LeadStatus = Field(default=LeadStatus.NOVO.value, description="Pipeline column")
    origem: LeadOrigin = Field(default=LeadOrigin.MANUAL.value, description="manual or assistente")
    observacoes: Optional[str] = Field(None, description="Broker notes")
    data_criacao: Optional[str] = Field(None, description="Creation timestamp (ISO)")

    @property
    def neighborhoods(self) -> list[str]:
        """Non-empty desired neighborhoods, at most three."""
        values = [self.bairro_interesse, self.bairro_interesse_2, self.bairro_interesse_3]
        return [value for value in values if value and value.strip()]

    @property
    def has_budget(self) -> bool:
        return bool(self.orcamento_min and self.orcamento_min > 0 and self.orcamento_max and self.orcamento_max > 0)
