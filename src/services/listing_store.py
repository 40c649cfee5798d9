"""Listing queries against ``anuncios`` used by the funnel, suggestions and market pages."""

import os
from typing import Optional, Protocol

from pydantic import BaseModel, Field

from src.models.listing import Listing, ListingStatus
from src.services.property_normalizer import PROPERTY_SELECT_QUERY, normalize_listings
from src.services.supabase_client import SupabaseClient
from src.utils.errors import DataStoreError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

SEARCH_RESULT_LIMIT = int(os.environ.get("SEARCH_RESULT_LIMIT", "20"))
# Option lists (types, cities, neighborhoods) are counted over a wider window
OPTIONS_SCAN_LIMIT = 500

# Budget column per funnel operation key
PRICE_COLUMNS = {
    "venda": "valor_venda",
    "locacao": "valor_locacao",
    "temporada": "valor_diaria",
}


class ListingQuery(BaseModel):
    """Filters of one listing search.

    ``operacao`` and ``tipo_imovel`` are funnel keys (``venda``, ``apartamento``);
    they only select the budget column here because the lookup tables cannot be
    filtered efficiently through the join. Callers re-validate them afterwards.
    """
    operacao: Optional[str] = None
    tipo_imovel: Optional[str] = None
    cidade: Optional[str] = None
    bairros: list[str] = Field(default_factory=list)
    valor_max: Optional[float] = None
    exclude_ids: list[str] = Field(default_factory=list)
    limit: int = SEARCH_RESULT_LIMIT


class ListingStore(Protocol):
    """Read access to active listings."""

    async def search(self, query: ListingQuery) -> list[Listing]:
        ...


class SupabaseListingStore:
    """ListingStore backed by the Supabase ``anuncios`` table."""

    async def search(self, query: ListingQuery) -> list[Listing]:
        async with SupabaseClient() as client:
            try:
                request = (
                    client.table("anuncios")
                    .select(PROPERTY_SELECT_QUERY)
                    .eq("status", ListingStatus.ATIVO.value)
                )
                if query.cidade:
                    request = request.ilike("cidade", query.cidade)
                if query.bairros:
                    request = request.in_("bairro", query.bairros)
                if query.exclude_ids:
                    request = request.not_.in_("id", query.exclude_ids)
                price_column = PRICE_COLUMNS.get(query.operacao or "")
                if query.valor_max and price_column:
                    request = request.lte(price_column, query.valor_max)

                result = request.order("created_at", desc=True).limit(query.limit).execute()
                rows = result.data if result.data else []
            except Exception as e:
                raise DataStoreError(f"Failed to search listings: {e}")

        logger.debug(
            "Listing search executed",
            cidade=query.cidade,
            bairros_count=len(query.bairros),
            has_budget=bool(query.valor_max),
            excluded_count=len(query.exclude_ids),
            rows=len(rows)
        )
        return normalize_listings(rows)

    async def fetch_partner_listings(self, broker_id: str, cidade: Optional[str] = None) -> list[Listing]:
        """Active listings of other brokers that accept partnerships."""
        async with SupabaseClient() as client:
            try:
                request = (
                    client.table("anuncios")
                    .select(PROPERTY_SELECT_QUERY)
                    .eq("status", ListingStatus.ATIVO.value)
                    .eq("aceita_parceria", True)
                    .neq("user_id", broker_id)
                )
                if cidade:
                    request = request.ilike("cidade", cidade)
                result = request.limit(OPTIONS_SCAN_LIMIT).execute()
                rows = result.data if result.data else []
            except Exception as e:
                raise DataStoreError(f"Failed to fetch partner listings: {e}")

        listings = normalize_listings(rows)
        return [listing.model_copy(update={"is_partnership": True}) for listing in listings]

    async def fetch_market_listings(self, uf: Optional[str] = None, cidade: Optional[str] = None) -> list[Listing]:
        """Active listings with area, for the market aggregator."""
        async with SupabaseClient() as client:
            try:
                request = (
                    client.table("anuncios")
                    .select(PROPERTY_SELECT_QUERY)
                    .eq("status", ListingStatus.ATIVO.value)
                    .gt("area_priv", 0)
                )
                if uf:
                    request = request.eq("uf", uf)
                if cidade:
                    request = request.eq("cidade", cidade)
                result = request.execute()
                rows = result.data if result.data else []
            except Exception as e:
                raise DataStoreError(f"Failed to fetch market listings: {e}")

        return normalize_listings(rows)
