"""Listing models (``anuncios`` table)."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Operation(str, Enum):
    """Operation labels as stored in the ``operacao`` lookup table."""
    VENDA = "Venda"
    LOCACAO = "Locação"
    TEMPORADA = "Temporada"
    VENDA_LOCACAO = "Venda/Locação"


class ListingStatus(str, Enum):
    """Publication status of a listing."""
    ATIVO = "ativo"
    PENDENTE = "pendente"
    REPROVADO = "reprovado"
    INATIVO = "inativo"


class Listing(BaseModel):
    """Real estate listing with lookups resolved to plain strings."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Listing ID")
    user_id: Optional[str] = Field(None, description="Owner (broker) ID")
    cod_imovel: Optional[int] = Field(None, description="Unique internal listing code")
    titulo: str = Field(default="", description="Listing title")
    uf: Optional[str] = Field(None, description="State (UF)")
    cidade: str = Field(default="", description="City")
    bairro: str = Field(default="", description="Neighborhood")
    operacao: str = Field(default="", description="Venda, Locação, Temporada or Venda/Locação")
    tipo_imovel: str = Field(default="", description="Property type (Apartamento, Casa, ...)")
    valor_venda: Optional[float] = Field(None, description="Sale price")
    valor_locacao: Optional[float] = Field(None, description="Monthly rental price")
    valor_diaria: Optional[float] = Field(None, description="Daily (seasonal) price")
    valor_mensal: Optional[float] = Field(None, description="Monthly (seasonal) price")
    area_priv: Optional[float] = Field(None, description="Private area in m2")
    quartos: Optional[int] = Field(None, description="Bedrooms")
    suites: Optional[int] = Field(None, description="Suites")
    banheiros: Optional[int] = Field(None, description="Bathrooms")
    vagas: Optional[int] = Field(None, description="Parking spots")
    fotos: list[str] = Field(default_factory=list, description="Ordered photo URLs")
    caracteristicas: list[str] = Field(default_factory=list, description="Free-text feature tags")
    status: Optional[str] = Field(None, description="ativo, pendente, reprovado or inativo")
    aceita_parceria: bool = Field(default=False, description="Listing may be shown by partner brokers")
    is_partnership: bool = Field(default=False, description="Shown under another broker's context")
    created_at: Optional[str] = None

    @property
    def has_price(self) -> bool:
        """True when at least one price is meaningful."""
        return any(
            value is not None and value > 0
            for value in (self.valor_venda, self.valor_locacao, self.valor_diaria, self.valor_mensal)
        )

    @property
    def is_active(self) -> bool:
        return self.status == ListingStatus.ATIVO.value
