"""Tests for the Supabase-backed listing store."""

import pytest
from src.services.listing_store import ListingQuery, SupabaseListingStore
from src.utils.errors import DataStoreError
from tests.utils.factories import create_listing_row


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_applies_filters(patch_supabase):
    client = patch_supabase("src.services.listing_store")
    client.query.execute.return_value.data = [create_listing_row(id="7", fotos="a.jpg,b.jpg")]
    query = ListingQuery(
        operacao="locacao", cidade="Natal", bairros=["Tirol"],
        valor_max=3000, exclude_ids=["1", "2"], limit=10,
    )

    listings = await SupabaseListingStore().search(query)

    assert [listing.id for listing in listings] == ["7"]
    assert listings[0].fotos == ["a.jpg", "b.jpg"]
    client.table.assert_called_with("anuncios")
    client.query.eq.assert_called_with("status", "ativo")
    client.query.ilike.assert_called_with("cidade", "Natal")
    client.query.in_.assert_any_call("bairro", ["Tirol"])
    client.query.in_.assert_any_call("id", ["1", "2"])
    client.query.lte.assert_called_with("valor_locacao", 3000)
    client.query.order.assert_called_with("created_at", desc=True)
    client.query.limit.assert_called_with(10)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_without_operation_skips_budget(patch_supabase):
    """Test that a budget needs an operation to know which price column to use."""
    client = patch_supabase("src.services.listing_store")

    assert await SupabaseListingStore().search(ListingQuery(valor_max=500000)) == []
    client.query.lte.assert_not_called()
    client.query.ilike.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_failure_raises_data_store_error(patch_supabase):
    client = patch_supabase("src.services.listing_store")
    client.query.execute.side_effect = Exception("connection reset")

    with pytest.raises(DataStoreError, match="Failed to search listings"):
        await SupabaseListingStore().search(ListingQuery(cidade="Natal"))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_partner_listings_marks_partnership(patch_supabase):
    client = patch_supabase("src.services.listing_store")
    client.query.execute.return_value.data = [create_listing_row(id="9", user_id="other", aceita_parceria=True)]

    listings = await SupabaseListingStore().fetch_partner_listings("broker-1", cidade="Natal")

    assert listings[0].is_partnership is True
    client.query.eq.assert_any_call("aceita_parceria", True)
    client.query.neq.assert_called_with("user_id", "broker-1")
    client.query.ilike.assert_called_with("cidade", "Natal")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_market_listings_requires_area(patch_supabase):
    client = patch_supabase("src.services.listing_store")
    client.query.execute.return_value.data = [create_listing_row(uf="RN"), create_listing_row(uf="RN")]

    listings = await SupabaseListingStore().fetch_market_listings(uf="RN")

    assert len(listings) == 2
    client.query.gt.assert_called_with("area_priv", 0)
    client.query.eq.assert_any_call("uf", "RN")
