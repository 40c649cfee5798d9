"""Tests for listing normalization, slugs and URLs."""

import pytest
from src.services.property_normalizer import (
    fold,
    format_brl,
    generate_property_slug,
    get_operation_label,
    listing_price,
    normalize_listing,
    property_path,
    property_url,
    round_half_up,
    split_photos,
)
from tests.utils.factories import create_listing_row, make_listing


@pytest.mark.unit
def test_normalize_listing_resolves_join_artifacts():
    """Test that {"tipo": ...} lookups and comma-joined photos are flattened."""
    row = create_listing_row(
        operacao={"tipo": "Locação"},
        tipo_imovel={"tipo": "Casa"},
        fotos="https://cdn/a.jpg, https://cdn/b.jpg,,",
    )

    listing = normalize_listing(row)

    assert listing.operacao == "Locação"
    assert listing.tipo_imovel == "Casa"
    assert listing.fotos == ["https://cdn/a.jpg", "https://cdn/b.jpg"]


@pytest.mark.unit
def test_normalize_listing_accepts_plain_strings_and_none():
    row = create_listing_row(operacao="Venda", tipo_imovel=None, fotos=None, bairro=None)

    listing = normalize_listing(row)

    assert listing.operacao == "Venda"
    assert listing.tipo_imovel == ""
    assert listing.fotos == []
    assert listing.bairro == ""


@pytest.mark.unit
def test_normalize_listing_is_idempotent():
    """Test that normalizing an already-normalized listing is a no-op."""
    listing = normalize_listing(create_listing_row())

    assert normalize_listing(listing) == listing
    assert normalize_listing(listing.model_dump()) == listing


@pytest.mark.unit
def test_normalize_listing_stringifies_numeric_id():
    assert normalize_listing(create_listing_row(id=1012)).id == "1012"


@pytest.mark.unit
def test_split_photos_keeps_list_order():
    assert split_photos(["b.jpg", " ", "a.jpg"]) == ["b.jpg", "a.jpg"]


@pytest.mark.unit
def test_generate_property_slug_full():
    """Test the documented slug format."""
    listing = make_listing(
        id="99", cod_imovel=1012, tipo_imovel="Apartamento", quartos=3,
        bairro="Ponta Negra", cidade="Natal", vagas=2, area_priv=85,
        operacao="Venda", valor_venda=450000, valor_locacao=None,
    )

    slug = generate_property_slug(listing)

    assert slug == "apartamento-3-quartos-ponta-negra-natal-com-garagem-85m2-venda-rs450000-cod1012"


@pytest.mark.unit
def test_generate_property_slug_minimal_uses_id():
    """Test optional parts are skipped and the id stands in for a missing code."""
    listing = make_listing(
        id="abc", cod_imovel=None, tipo_imovel="Casa", quartos=0, bairro="Tirol",
        cidade="Natal", vagas=0, area_priv=None, operacao="Locação",
        valor_venda=None, valor_locacao=None,
    )

    slug = generate_property_slug(listing)

    assert slug == "casa-tirol-natal-locacao-codabc"


@pytest.mark.unit
def test_generate_property_slug_strips_accents_and_is_deterministic():
    row = create_listing_row(
        cod_imovel=7, tipo_imovel={"tipo": "Chácara"}, bairro="Jardim São Paulo",
        cidade="São José de Mipibu", operacao={"tipo": "Venda/Locação"},
    )

    first = generate_property_slug(row)

    assert first == generate_property_slug(row)
    assert first.startswith("chacara-")
    assert "jardim-sao-paulo-sao-jose-de-mipibu" in first
    assert "venda-locacao" in first
    assert first.endswith("-cod7")


@pytest.mark.unit
def test_property_path_with_and_without_broker():
    listing = make_listing(cod_imovel=5, tipo_imovel="Casa", quartos=0, vagas=0, area_priv=None,
                           bairro="Tirol", cidade="Natal", operacao="Venda", valor_venda=None)

    assert property_path(listing) == "/imovel/casa-tirol-natal-venda-cod5"
    assert property_path(listing, "joao-corretor") == "/joao-corretor/imovel/casa-tirol-natal-venda-cod5"
    assert property_url(listing).startswith("https://izibrokerz.com.br/imovel/")


@pytest.mark.unit
def test_listing_price_order():
    """Test price precedence: sale, rental, daily, monthly."""
    assert listing_price(make_listing(valor_venda=500000, valor_locacao=2500)) == 500000
    assert listing_price(make_listing(valor_venda=None, valor_locacao=2500)) == 2500
    assert listing_price(make_listing(valor_venda=0, valor_diaria=300)) == 300
    assert listing_price(make_listing(valor_venda=None, valor_mensal=4000)) == 4000
    assert listing_price(make_listing(valor_venda=None)) == 0


@pytest.mark.unit
def test_operation_label():
    assert get_operation_label("venda") == "Venda"
    assert get_operation_label({"tipo": "Locacao"}) == "Locação"
    assert get_operation_label("Temporada") == "Temporada"


@pytest.mark.unit
def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2
    assert round_half_up(-2.5) == -3


@pytest.mark.unit
def test_format_brl():
    assert format_brl(450000) == "R$ 450.000"
    assert format_brl(1234567.6) == "R$ 1.234.568"
    assert format_brl(None) == "Sob Consulta"


@pytest.mark.unit
def test_fold():
    assert fold("  Locação ") == "locacao"
    assert fold(None) == ""
