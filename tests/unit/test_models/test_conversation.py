"""Tests for conversation models."""

import pytest
from src.models.conversation import (
    ClientType,
    Conversation,
    ConversationState,
    QUESTION_BUSCA_AMPLIADA,
    QUESTION_TIPO,
)


@pytest.mark.unit
def test_conversation_state_empty():
    """Test a fresh state has nothing disclosed."""
    state = ConversationState()

    assert state.client_type is None
    assert state.neighborhoods == []
    assert state.answered_questions == []
    assert not state.search_expanded


@pytest.mark.unit
def test_conversation_state_storage_uses_camel_case():
    """Test the stored JSON keys match the persisted format."""
    state = ConversationState(client_type=ClientType.BUYER, tipo_imovel="apartamento", valor_max=500000)

    stored = state.to_storage()

    assert stored["clientType"] == "buyer"
    assert stored["tipoImovel"] == "apartamento"
    assert stored["valorMax"] == 500000
    assert stored["shownPropertyIds"] == []


@pytest.mark.unit
def test_conversation_state_loads_stored_json():
    """Test a stored camelCase state loads back."""
    state = ConversationState.model_validate({
        "clientType": "buyer",
        "operacao": "venda",
        "tipoImovel": "casa",
        "answeredQuestions": ["operacao", "tipoImovel"],
        "shownPropertyIds": ["7"],
    })

    assert state.tipo_imovel == "casa"
    assert state.shown_property_ids == ["7"]


@pytest.mark.unit
def test_conversation_state_neighborhoods_deduplicated():
    state = ConversationState(bairro="Tirol", bairros=["Tirol", "Petrópolis"])

    assert state.neighborhoods == ["Tirol", "Petrópolis"]


@pytest.mark.unit
def test_mark_answered_is_idempotent():
    state = ConversationState()

    state.mark_answered(QUESTION_TIPO)
    state.mark_answered(QUESTION_TIPO)
    state.mark_answered(QUESTION_BUSCA_AMPLIADA)

    assert state.answered_questions == [QUESTION_TIPO, QUESTION_BUSCA_AMPLIADA]
    assert state.search_expanded


@pytest.mark.unit
def test_conversation_defaults():
    conversation = Conversation(id="c1")

    assert conversation.status == "active"
    assert conversation.conversation_state == ConversationState()
