"""Tests for Listing model."""

import pytest
from pydantic import ValidationError
from src.models.listing import Listing, ListingStatus


@pytest.mark.unit
def test_listing_valid():
    """Test valid listing creation."""
    listing = Listing(id="42", cidade="Natal", bairro="Tirol", operacao="Venda", valor_venda=450000)

    assert listing.id == "42"
    assert listing.fotos == []
    assert listing.aceita_parceria is False
    assert listing.is_partnership is False
    assert listing.has_price


@pytest.mark.unit
def test_listing_missing_id():
    """Test that id is required."""
    with pytest.raises(ValidationError):
        Listing(cidade="Natal")


@pytest.mark.unit
def test_listing_has_price_ignores_zero_and_missing():
    """Test that zero prices are not meaningful."""
    assert not Listing(id="1").has_price
    assert not Listing(id="1", valor_venda=0, valor_locacao=0).has_price
    assert Listing(id="1", valor_diaria=350).has_price


@pytest.mark.unit
def test_listing_is_active():
    """Test active status check."""
    assert Listing(id="1", status=ListingStatus.ATIVO.value).is_active
    assert not Listing(id="1", status="pendente").is_active


@pytest.mark.unit
def test_listing_ignores_unknown_columns():
    """Test that extra table columns are dropped."""
    listing = Listing(id="1", latitude=-5.79, descricao="Vista mar")

    assert not hasattr(listing, "latitude")
