"""Listing normalization, SEO slugs and canonical URLs.

Raw ``anuncios`` rows come back from PostgREST with ``fotos`` as a comma-joined
string and ``operacao``/``tipo_imovel`` either as plain strings or as
``{"tipo": "..."}`` objects produced by the foreign-key expansion in
``PROPERTY_SELECT_QUERY``. Everything past this module works with ``Listing``.
"""

import os
import re
import unicodedata
from typing import Any, Optional, Union

from src.models.listing import Listing


APP_BASE_URL = os.environ.get("APP_BASE_URL", "https://izibrokerz.com.br")

# Join select used against anuncios; expands the lookup tables in one query
PROPERTY_SELECT_QUERY = """
    *,
    operacao:operacao_id(tipo),
    tipo_imovel:tipo_imovel_id(tipo)
"""


def lookup_label(value: Any) -> str:
    """Resolve a lookup column (``{"tipo": ...}`` or plain string) to a string."""
    if isinstance(value, dict):
        return str(value.get("tipo") or "")
    if value is None:
        return ""
    return str(value)


def split_photos(value: Union[str, list, None]) -> list[str]:
    """Turn the stored photo field into an ordered list of non-empty URLs."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = value
    return [item.strip() for item in items if item and str(item).strip()]


def normalize_listing(row: Union[dict, Listing]) -> Listing:
    """Normalize one raw listing row. Already-normalized input is returned unchanged."""
    if isinstance(row, Listing):
        return row

    data = dict(row)
    data["fotos"] = split_photos(data.get("fotos"))
    data["operacao"] = lookup_label(data.get("operacao"))
    data["tipo_imovel"] = lookup_label(data.get("tipo_imovel"))
    data["caracteristicas"] = split_photos(data.get("caracteristicas"))
    if data.get("id") is not None:
        data["id"] = str(data["id"])
    for field in ("titulo", "cidade", "bairro"):
        if data.get(field) is None:
            data[field] = ""
    return Listing.model_validate(data)


def normalize_listings(rows: list) -> list[Listing]:
    """Normalize a list of raw rows."""
    return [normalize_listing(row) for row in rows]


def strip_accents(text: str) -> str:
    """Remove diacritics (``Locação`` -> ``Locacao``)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def fold(text: Optional[str]) -> str:
    """Accent-free, lower-cased, trimmed form used for string comparisons."""
    if not text:
        return ""
    return strip_accents(text).lower().strip()


def slugify(text: str) -> str:
    """Lower-case ASCII slug: non-alphanumerics collapse into single hyphens."""
    slug = re.sub(r"[^a-z0-9]+", "-", fold(text))
    return slug.strip("-")


def get_operation_label(operation: Any) -> str:
    """Display label for an operation value (``venda`` -> ``Venda``)."""
    label = lookup_label(operation)
    folded = fold(label)
    if folded == "venda":
        return "Venda"
    if folded == "locacao":
        return "Locação"
    return label


def listing_price(listing: Listing) -> float:
    """The price that applies to a listing: sale, then rental, daily, monthly."""
    for value in (listing.valor_venda, listing.valor_locacao, listing.valor_diaria, listing.valor_mensal):
        if value is not None and value > 0:
            return value
    return 0


def generate_property_slug(listing: Union[dict, Listing]) -> str:
    """
    Build the SEO slug of a listing.

    Format: tipo-[N-quartos]-bairro-cidade-[com-garagem]-[areaM2]-operacao-[RSvalor]-codN
    Example: apartamento-3-quartos-ponta-negra-natal-com-garagem-85m2-venda-rs450000-cod1012
    """
    listing = normalize_listing(listing)
    parts: list[str] = [listing.tipo_imovel or "imovel"]

    if listing.quartos and listing.quartos > 0:
        parts.append(f"{listing.quartos}-quartos")

    parts.append(listing.bairro)
    parts.append(listing.cidade)

    if listing.vagas and listing.vagas > 0:
        parts.append("com-garagem")

    if listing.area_priv and listing.area_priv > 0:
        parts.append(f"{round_half_up(listing.area_priv)}m2")

    parts.append(get_operation_label(listing.operacao))

    price = listing.valor_venda or listing.valor_locacao or 0
    if price > 0:
        parts.append(f"RS{round_half_up(price)}")

    code = listing.cod_imovel if listing.cod_imovel is not None else listing.id
    parts.append(f"cod{code}")

    return slugify("-".join(part for part in parts if part))


def property_path(listing: Union[dict, Listing], broker_slug: Optional[str] = None) -> str:
    """Canonical site path of a listing, under the broker's page when given."""
    slug = generate_property_slug(listing)
    if broker_slug:
        return f"/{broker_slug}/imovel/{slug}"
    return f"/imovel/{slug}"


def property_url(listing: Union[dict, Listing], broker_slug: Optional[str] = None) -> str:
    """Absolute share URL of a listing."""
    return f"{APP_BASE_URL.rstrip('/')}{property_path(listing, broker_slug)}"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value < 0:
        return -round_half_up(-value)
    return int(value + 0.5)


def format_brl(value: Optional[float]) -> str:
    """Format a price as ``R$ 450.000`` (no cents); missing values are ``Sob Consulta``."""
    if not value:
        return "Sob Consulta"
    return "R$ " + f"{round_half_up(value):,}".replace(",", ".")
