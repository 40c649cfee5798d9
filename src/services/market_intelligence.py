"""
Market intelligence: R$/m2 statistics over active listings.

Everything here is pure; the market API handler fetches the listings through
the listing store and passes them in.
"""

from collections import OrderedDict
from typing import Optional

from src.models.listing import Listing
from src.models.market import MarketAnalysis, MarketSummary
from src.services.property_normalizer import normalize_listings, round_half_up
from src.utils.errors import MarketDataError

NOT_INFORMED = "Não informado"
GROUP_KEYS = ("uf", "cidade", "bairro", "tipo")
UNIQUE_FIELDS = ("uf", "cidade", "tipo")


def calculate_price_per_m2(value: Optional[float], area: Optional[float]) -> Optional[int]:
    """Rounded R$/m2, or None when the price is missing or the area is not positive."""
    if not value or not area or area <= 0:
        return None
    return round_half_up(value / area)


def calculate_rental_yield(sale: Optional[float], monthly_rent: Optional[float]) -> Optional[float]:
    """Annual gross yield in percent with two decimals: ``(rent * 12) / sale * 100``."""
    if not sale or not monthly_rent or sale <= 0 or monthly_rent <= 0:
        return None
    return round_half_up((monthly_rent * 12) / sale * 10000) / 100


def _group_key(listing: Listing, group_by: str) -> tuple[str, ...]:
    if group_by == "uf":
        return (listing.uf or NOT_INFORMED,)
    if group_by == "cidade":
        return (listing.cidade or NOT_INFORMED, listing.uf or "")
    if group_by == "bairro":
        return (listing.bairro or NOT_INFORMED, listing.cidade or "", listing.uf or "")
    return (listing.tipo_imovel or NOT_INFORMED,)


def format_location(key: tuple[str, ...]) -> str:
    """Display label of a group key, e.g. "Ponta Negra, Natal, RN"."""
    return ", ".join(key)


def group_listings(listings: list, group_by: str) -> "OrderedDict[tuple[str, ...], list[Listing]]":
    """Group listings by location or type, keeping first-seen group order.

    Keys are tuples of the location fields (or the type) so names containing
    commas stay intact; use ``format_location`` for the label.
    """
    if group_by not in GROUP_KEYS:
        raise MarketDataError(f"Invalid group_by: {group_by!r} (expected one of {', '.join(GROUP_KEYS)})")

    groups: "OrderedDict[tuple[str, ...], list[Listing]]" = OrderedDict()
    for listing in normalize_listings(listings):
        groups.setdefault(_group_key(listing, group_by), []).append(listing)
    return groups


def _mean(values: list[int]) -> Optional[int]:
    if not values:
        return None
    return round_half_up(sum(values) / len(values))


def calculate_statistics(listings: list, location: str) -> MarketAnalysis:
    listings = normalize_listings(listings)
    sale_m2 = [m2 for m2 in (calculate_price_per_m2(l.valor_venda, l.area_priv) for l in listings) if m2]
    rent_m2 = [m2 for m2 in (calculate_price_per_m2(l.valor_locacao, l.area_priv) for l in listings) if m2]

    media_venda = _mean(sale_m2)
    media_locacao = _mean(rent_m2)

    return MarketAnalysis(
        location=location,
        total_anuncios=len(listings),
        media_m2_venda=media_venda,
        media_m2_locacao=media_locacao,
        min_m2_venda=min(sale_m2) if sale_m2 else None,
        max_m2_venda=max(sale_m2) if sale_m2 else None,
        min_m2_locacao=min(rent_m2) if rent_m2 else None,
        max_m2_locacao=max(rent_m2) if rent_m2 else None,
        yield_anual=calculate_rental_yield(media_venda, media_locacao),
    )


def _filter(listings: list[Listing], uf: Optional[str], cidade: Optional[str], tipo: Optional[str]) -> list[Listing]:
    if uf:
        listings = [l for l in listings if l.uf == uf]
    if cidade:
        listings = [l for l in listings if l.cidade == cidade]
    if tipo:
        listings = [l for l in listings if l.tipo_imovel.lower() == tipo.lower()]
    return listings


def analyze_market(
    listings: list,
    group_by: str,
    uf: Optional[str] = None,
    cidade: Optional[str] = None,
    tipo: Optional[str] = None,
) -> list[MarketAnalysis]:
    """Statistics per group, largest groups first (ties keep first-seen order)."""
    filtered = _filter(normalize_listings(listings), uf, cidade, tipo)
    analyses = []
    for key, group in group_listings(filtered, group_by).items():
        analysis = calculate_statistics(group, format_location(key))
        if group_by == "uf":
            analysis.uf = key[0]
        elif group_by == "cidade":
            analysis.cidade, analysis.uf = key[0], key[1] or None
        elif group_by == "bairro":
            analysis.bairro, analysis.cidade, analysis.uf = key[0], key[1] or None, key[2] or None
        else:
            analysis.tipo_imovel = key[0]
        analyses.append(analysis)

    analyses.sort(key=lambda analysis: analysis.total_anuncios, reverse=True)
    return analyses


def analyze_by_neighborhood(
    listings: list,
    uf: Optional[str] = None,
    cidade: Optional[str] = None,
    tipo: Optional[str] = None,
) -> list[MarketAnalysis]:
    return analyze_market(listings, "bairro", uf=uf, cidade=cidade, tipo=tipo)


def generate_market_summary(listings: list) -> MarketSummary:
    """Country-wide overview: distinct locations, mean R$/m2 and counts."""
    listings = normalize_listings(listings)
    states, cities, neighborhoods = set(), set(), set()
    sale_m2, rent_m2 = [], []

    for listing in listings:
        if listing.uf:
            states.add(listing.uf)
        if listing.cidade:
            cities.add((listing.cidade, listing.uf))
        if listing.bairro:
            neighborhoods.add((listing.bairro, listing.cidade, listing.uf))

        m2_venda = calculate_price_per_m2(listing.valor_venda, listing.area_priv)
        m2_locacao = calculate_price_per_m2(listing.valor_locacao, listing.area_priv)
        if m2_venda:
            sale_m2.append(m2_venda)
        if m2_locacao:
            rent_m2.append(m2_locacao)

    return MarketSummary(
        total_anuncios=len(listings),
        total_estados=len(states),
        total_cidades=len(cities),
        total_bairros=len(neighborhoods),
        media_m2_venda=_mean(sale_m2) or 0,
        media_m2_locacao=_mean(rent_m2) or 0,
        anuncios_venda=len(sale_m2),
        anuncios_locacao=len(rent_m2),
    )


def unique_values(listings: list, field: str) -> list[str]:
    """Sorted distinct non-empty values of ``uf``, ``cidade`` or ``tipo`` for filter dropdowns."""
    if field not in UNIQUE_FIELDS:
        raise MarketDataError(f"Invalid field: {field!r} (expected one of {', '.join(UNIQUE_FIELDS)})")
    attribute = "tipo_imovel" if field == "tipo" else field
    return sorted({getattr(listing, attribute) for listing in normalize_listings(listings) if getattr(listing, attribute)})
