"""Market intelligence result models."""

from typing import Optional
from pydantic import BaseModel


class MarketAnalysis(BaseModel):
    """R$/m2 statistics for one group of listings."""
    location: str
    uf: Optional[str] = None
    cidade: Optional[str] = None
    bairro: Optional[str] = None
    tipo_imovel: Optional[str] = None
    total_anuncios: int
    media_m2_venda: Optional[int] = None
    media_m2_locacao: Optional[int] = None
    min_m2_venda: Optional[int] = None
    max_m2_venda: Optional[int] = None
    min_m2_locacao: Optional[int] = None
    max_m2_locacao: Optional[int] = None
    yield_anual: Optional[float] = None


class MarketSummary(BaseModel):
    """Country-wide overview of the active listings."""
    total_anuncios: int
    total_estados: int
    total_cidades: int
    total_bairros: int
    media_m2_venda: int
    media_m2_locacao: int
    anuncios_venda: int
    anuncios_locacao: int
