"""
Lead-to-listing matching.

A listing earns 20 points per criterion it satisfies for a lead: operation,
property type, city, neighborhood (any of the lead's three) and price within
the lead's budget. There is no partial credit and no budget flexibility here;
the assistant funnel relaxes budgets on its own.
"""

from typing import Optional, Union

from src.models.lead import Lead
from src.models.listing import Listing, ListingStatus, Operation
from src.models.scoring import PropertyMatch
from src.services.listing_store import SEARCH_RESULT_LIMIT
from src.services.property_normalizer import normalize_listing, normalize_listings
from src.services.supabase_client import SupabaseClient, find_matching_properties_rpc, get_lead_by_id
from src.utils.errors import DataStoreError
from src.utils.logging import get_structured_logger, mask_identifier, timed

logger = get_structured_logger(__name__)

CRITERION_POINTS = 20
STRONG_MATCH_THRESHOLD = 60

# Inner joins so filters on the lookup labels drop non-matching rows
MATCH_SELECT_QUERY = """
    *,
    operacao:operacao_id!inner(tipo),
    tipo_imovel:tipo_imovel_id!inner(tipo)
"""


def _same(left: Optional[str], right: Optional[str]) -> bool:
    """Exact comparison on trimmed, case-folded text. Empty never matches."""
    if not left or not right:
        return False
    left, right = left.strip().casefold(), right.strip().casefold()
    return bool(left) and left == right


def _match_price(listing: Listing) -> Optional[float]:
    return listing.valor_venda or listing.valor_locacao


def calculate_match_score(lead: Union[Lead, dict], listing: Union[Listing, dict]) -> int:
    """Score how well a listing fits a lead (0-100 in 20-point steps)."""
    if isinstance(lead, dict):
        lead = Lead.model_validate(lead)
    listing = normalize_listing(listing)

    score = 0

    if _same(lead.operacao_interesse, listing.operacao):
        score += CRITERION_POINTS

    if _same(lead.tipo_imovel_interesse, listing.tipo_imovel):
        score += CRITERION_POINTS

    if _same(lead.cidade_interesse, listing.cidade):
        score += CRITERION_POINTS

    if any(_same(bairro, listing.bairro) for bairro in lead.neighborhoods):
        score += CRITERION_POINTS

    price = _match_price(listing)
    if lead.has_budget and price is not None:
        if lead.orcamento_min <= price <= lead.orcamento_max:
            score += CRITERION_POINTS

    return score


def is_strong_match(score: int) -> bool:
    return score >= STRONG_MATCH_THRESHOLD


def rank_matches(lead: Union[Lead, dict], listings: list, limit: Optional[int] = None) -> list[PropertyMatch]:
    """Score and order listings for a lead; ties keep their input order."""
    matches = [
        PropertyMatch(listing=normalize_listing(listing), match_score=calculate_match_score(lead, listing))
        for listing in listings
    ]
    matches.sort(key=lambda match: match.match_score, reverse=True)
    return matches[:limit] if limit is not None else matches


def _operation_filter(operation: str) -> list[str]:
    """A lead wanting to buy or rent also accepts combined sale/rental listings."""
    values = [operation]
    if operation in (Operation.VENDA.value, Operation.LOCACAO.value):
        values.append(Operation.VENDA_LOCACAO.value)
    return values


async def _fetch_candidates(lead: Lead) -> list[Listing]:
    async with SupabaseClient() as client:
        try:
            request = (
                client.table("anuncios")
                .select(MATCH_SELECT_QUERY)
                .eq("status", ListingStatus.ATIVO.value)
            )
            if lead.operacao_interesse:
                request = request.in_("operacao.tipo", _operation_filter(lead.operacao_interesse))
            if lead.tipo_imovel_interesse:
                request = request.eq("tipo_imovel.tipo", lead.tipo_imovel_interesse)
            if lead.cidade_interesse:
                request = request.ilike("cidade", lead.cidade_interesse)
            if lead.neighborhoods:
                request = request.in_("bairro", lead.neighborhoods)
            result = request.limit(SEARCH_RESULT_LIMIT).execute()
            rows = result.data if result.data else []
        except Exception as e:
            raise DataStoreError(f"Failed to fetch candidate listings: {e}")

    return normalize_listings(rows)


@timed("get_property_suggestions")
async def get_property_suggestions(lead_id: str, limit: int = 5) -> list[PropertyMatch]:
    """
    Best listings for a stored lead.

    Returns an empty list when the lead does not exist or the store fails;
    suggestions are advisory and never block the caller.
    """
    try:
        row = await get_lead_by_id(lead_id)
        if not row:
            logger.warning("Lead not found for suggestions", lead_id=mask_identifier(lead_id))
            return []
        lead = Lead.model_validate(row)
        candidates = await _fetch_candidates(lead)
    except DataStoreError as e:
        logger.error("Property suggestions failed", lead_id=mask_identifier(lead_id), error=str(e))
        return []

    matches = rank_matches(lead, candidates, limit)
    logger.info(
        "Property suggestions computed",
        lead_id=mask_identifier(lead_id),
        candidates=len(candidates),
        returned=len(matches),
        strong_matches=sum(1 for match in matches if is_strong_match(match.match_score))
    )
    return matches


async def find_matching_properties(lead_id: str) -> list[dict]:
    """Server-side matching through the database function; empty on failure."""
    try:
        return await find_matching_properties_rpc(lead_id)
    except DataStoreError as e:
        logger.error("Matching RPC failed", lead_id=mask_identifier(lead_id), error=str(e))
        return []
