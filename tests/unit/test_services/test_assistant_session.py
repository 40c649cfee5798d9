"""Tests for assistant session orchestration."""

import pytest
from unittest.mock import AsyncMock, patch
from src.models.conversation import ConversationState
from src.models.funnel import FunnelStage
from src.services.assistant_session import get_or_create_conversation, handle_user_message
from src.utils.errors import DataStoreError
from tests.utils.factories import create_conversation_row


QUALIFIED_STATE = ConversationState(
    client_type="buyer", operacao="venda", tipo_imovel="apartamento",
    cidade="Natal", bairro="Tirol", bairros=["Tirol"], valor_max=500000,
)


@pytest.fixture
def session_db():
    """Patch every data store helper the session uses with AsyncMocks."""
    mocks = {
        "get_conversation": AsyncMock(return_value=None),
        "create_conversation": AsyncMock(side_effect=lambda data: create_conversation_row(**data)),
        "update_conversation": AsyncMock(return_value=None),
        "save_message": AsyncMock(return_value=None),
        "get_messages": AsyncMock(return_value=[]),
        "get_broker_profile": AsyncMock(return_value=None),
    }
    patchers = [patch(f"src.services.supabase_client.{name}", new=mock) for name, mock in mocks.items()]
    for patcher in patchers:
        patcher.start()
    yield mocks
    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def hot_lead_hooks():
    notify = AsyncMock(return_value=True)
    create = AsyncMock(return_value=({"id": "lead-1"}, []))
    with patch("src.services.assistant_session.notify_hot_lead", new=notify), \
         patch("src.services.assistant_session.create_lead_with_matches", new=create):
        yield notify, create


def _existing(session_db, state: ConversationState, **overrides):
    row = create_conversation_row(conversation_state=state.to_storage(), **overrides)
    session_db["get_conversation"].return_value = row
    return row


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_or_create_conversation_creates_missing(session_db):
    conversation = await get_or_create_conversation("conv-1", broker_id="broker-1")

    assert conversation.id == "conv-1"
    assert conversation.broker_id == "broker-1"
    assert conversation.conversation_state == ConversationState()
    session_db["create_conversation"].assert_awaited_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_or_create_conversation_generates_id(session_db):
    conversation = await get_or_create_conversation(None)

    assert len(conversation.id) == 26
    session_db["get_conversation"].assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_or_create_conversation_loads_camel_case_state(session_db):
    _existing(session_db, QUALIFIED_STATE, id="conv-1")

    conversation = await get_or_create_conversation("conv-1")

    assert conversation.conversation_state.tipo_imovel == "apartamento"
    assert conversation.conversation_state.valor_max == 500000
    session_db["create_conversation"].assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_first_message_greets(session_db, listing_store):
    turn = await handle_user_message(None, "Oi", listing_store)

    assert turn.stage == FunnelStage.START
    assert [action.label for action in turn.quick_actions][:2] == ["Comprar", "Alugar"]
    assert turn.lead_status == "frio"
    roles = [call.args[1] for call in session_db["save_message"].await_args_list]
    assert roles == ["user", "assistant"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_turn_persists_state_and_score(session_db, listing_store, hot_lead_hooks):
    _existing(session_db, QUALIFIED_STATE.model_copy(update={"bairro": None, "bairros": []}), id="conv-1")

    turn = await handle_user_message("conv-1", "Tirol", listing_store)

    assert turn.stage == FunnelStage.RESULTS
    assert [listing.id for listing in turn.listings] == ["2"]
    conversation_id, updates = session_db["update_conversation"].await_args.args
    assert conversation_id == "conv-1"
    assert updates["conversation_state"]["bairro"] == "Tirol"
    assert updates["conversation_state"]["shownPropertyIds"] == ["2"]
    assert updates["lead_score"] == turn.lead_score
    metadata = session_db["save_message"].await_args_list[-1].args[3]
    assert metadata["stage"] == "results"
    assert metadata["listing_ids"] == ["2"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_persistence_failures_do_not_block_reply(session_db, listing_store):
    session_db["get_conversation"].side_effect = DataStoreError("Failed to get conversation: timeout")
    session_db["save_message"].side_effect = DataStoreError("Failed to save message: timeout")
    session_db["update_conversation"].side_effect = DataStoreError("Failed to update conversation: timeout")

    turn = await handle_user_message("conv-1", "Quero alugar", listing_store)

    assert turn.conversation_id == "conv-1"
    assert turn.stage == FunnelStage.AWAITING_TYPE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stored_history_with_naive_timestamps(session_db, listing_store):
    _existing(session_db, ConversationState(), id="conv-1")
    session_db["get_messages"].return_value = [
        {"role": "assistant", "content": "Olá!", "created_at": "2025-06-09T12:00:00"},
        {"role": "user", "content": "Oi", "created_at": "2025-06-09T12:00:30"},
    ]

    turn = await handle_user_message("conv-1", "Quero comprar", listing_store)

    assert turn.stage == FunnelStage.AWAITING_TYPE
    session_db["get_messages"].assert_awaited_once_with("conv-1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_hot_lead_notifies_and_creates_lead_once(session_db, listing_store, hot_lead_hooks):
    """Test that the broker is alerted on the first transition to hot only."""
    notify, create = hot_lead_hooks
    _existing(session_db, QUALIFIED_STATE, id="conv-1", broker_id="broker-1", lead_status="morno")
    history = [
        {"role": "assistant", "content": "Qual bairro?", "timestamp": "2025-06-09T12:00:00+00:00"},
        {"role": "user", "content": "Tirol", "timestamp": "2025-06-09T12:00:20+00:00"},
    ]

    turn = await handle_user_message("conv-1", "Preciso urgente, pode mostrar", listing_store, history=history)

    assert turn.lead_status == "quente"
    assert turn.lead_score >= 80
    notify.assert_awaited_once()
    lead_data = create.await_args.args[0]
    assert lead_data["bairro_interesse"] == "Tirol"
    assert lead_data["user_id"] == "broker-1"
    assert lead_data["origem"] == "assistente"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_hot_lead_waits_for_saved_state(session_db, listing_store, hot_lead_hooks):
    """Test that an unsaved hot status does not alert the broker twice across turns."""
    notify, create = hot_lead_hooks
    _existing(session_db, QUALIFIED_STATE, id="conv-1", broker_id="broker-1", lead_status="morno")
    session_db["update_conversation"].side_effect = [
        DataStoreError("Failed to update conversation: timeout"),
        None,
        None,
    ]
    history = [
        {"role": "assistant", "content": "Qual bairro?", "timestamp": "2025-06-09T12:00:00+00:00"},
        {"role": "user", "content": "Tirol", "timestamp": "2025-06-09T12:00:20+00:00"},
    ]

    first = await handle_user_message("conv-1", "Preciso urgente, pode mostrar", listing_store, history=history)
    notify.assert_not_called()
    create.assert_not_called()

    second = await handle_user_message("conv-1", "Preciso urgente, pode mostrar", listing_store, history=history)

    assert first.lead_status == second.lead_status == "quente"
    notify.assert_awaited_once()
    create.assert_awaited_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_already_hot_conversation_does_not_notify_again(session_db, listing_store, hot_lead_hooks):
    notify, create = hot_lead_hooks
    _existing(session_db, QUALIFIED_STATE, id="conv-1", broker_id="broker-1", lead_status="quente")

    turn = await handle_user_message("conv-1", "Preciso urgente, pode mostrar", listing_store, history=[])

    assert turn.lead_status == "quente"
    notify.assert_not_called()
    create.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_closing_links_broker_whatsapp(session_db, listing_store, hot_lead_hooks):
    _existing(session_db, QUALIFIED_STATE, id="conv-1", broker_id="broker-1", lead_status="quente")
    session_db["get_broker_profile"].return_value = {"whatsapp": "(84) 99999-8888", "telefone": None}

    turn = await handle_user_message("conv-1", "Obrigado!", listing_store, history=[])

    assert turn.stage == FunnelStage.CLOSING
    whatsapp = [action for action in turn.quick_actions if action.kind == "whatsapp"][0]
    assert whatsapp.value.startswith("https://wa.me/5584999998888?text=")
    session_db["get_broker_profile"].assert_awaited_once_with("broker-1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_closing_without_broker_keeps_contact_action(session_db, listing_store):
    _existing(session_db, ConversationState(), id="conv-1", broker_id=None)

    turn = await handle_user_message("conv-1", "Obrigado!", listing_store, history=[])

    whatsapp = [action for action in turn.quick_actions if action.kind == "whatsapp"][0]
    assert whatsapp.value == "contact_broker"
    session_db["get_broker_profile"].assert_not_called()
