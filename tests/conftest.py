"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import MagicMock, patch
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("LLM_PROVIDER", "anthropic")
os.environ.setdefault("LLM_MODEL", "claude-sonnet-4-20250514")
os.environ.setdefault("USE_LLM_ASSISTANT", "false")
os.environ.setdefault("APP_BASE_URL", "https://izibrokerz.com.br")
os.environ.setdefault("LOG_FORMAT", "text")

from src.models.conversation import ConversationState
from tests.utils.factories import make_listing
from tests.utils.fakes import FakeListingStore


def build_query_chain(data=None):
    """MagicMock PostgREST query chain whose every filter returns itself."""
    query = MagicMock()
    for method in ("select", "eq", "neq", "ilike", "in_", "lte", "gt", "order", "limit", "insert", "update", "delete"):
        getattr(query, method).return_value = query
    query.not_ = query
    query.execute.return_value = MagicMock(data=data if data is not None else [])
    return query


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client whose tables all share one query chain."""
    client = MagicMock()
    query = build_query_chain()
    client.table.return_value = query
    client.rpc.return_value = query
    client.query = query
    return client


@pytest.fixture
def patch_supabase(mock_supabase_client):
    """Patch the SupabaseClient context manager of a module with the mock client."""
    patchers = []

    def _patch(module_path: str):
        patcher = patch(f"{module_path}.SupabaseClient")
        mock_client_class = patcher.start()
        mock_client_class.return_value.__aenter__.return_value = mock_supabase_client
        mock_client_class.return_value.__aexit__.return_value = None
        patchers.append(patcher)
        return mock_supabase_client

    yield _patch

    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def natal_listings():
    """Active sale apartments spread over three Natal neighborhoods, plus noise."""
    return [
        make_listing(id="1", cod_imovel=1001, operacao="Venda", tipo_imovel="Apartamento",
                     cidade="Natal", bairro="Ponta Negra", valor_venda=450000, area_priv=85),
        make_listing(id="2", cod_imovel=1002, operacao="Venda", tipo_imovel="Apartamento",
                     cidade="Natal", bairro="Tirol", valor_venda=520000, area_priv=90),
        make_listing(id="3", cod_imovel=1003, operacao="Venda/Locação", tipo_imovel="Apartamento",
                     cidade="Natal", bairro="Lagoa Nova", valor_venda=380000, valor_locacao=2500, area_priv=70),
        make_listing(id="4", cod_imovel=1004, operacao="Venda", tipo_imovel="Terreno",
                     cidade="Natal", bairro="Ponta Negra", valor_venda=300000, area_priv=360),
        make_listing(id="5", cod_imovel=1005, operacao="Locação", tipo_imovel="Casa",
                     cidade="Parnamirim", bairro="Nova Parnamirim", valor_locacao=3000, area_priv=120),
    ]


@pytest.fixture
def listing_store(natal_listings):
    return FakeListingStore(natal_listings)


@pytest.fixture
def empty_state():
    return ConversationState()


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2025-06-09 12:00:00") as frozen_time:
        yield frozen_time


@pytest.fixture
def mock_vercel_request():
    """Mock Vercel serverless function request."""
    return {
        "method": "POST",
        "path": "/api/assistant/message",
        "headers": {"content-type": "application/json"},
        "body": '{"message": "Quero comprar"}',
        "query": {}
    }
