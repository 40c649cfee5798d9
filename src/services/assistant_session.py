"""
Assistant session orchestration.

One call per user message: persist it, run the funnel, phrase the reply,
persist the reply and the new state, then score the lead. Persistence and
notification failures are logged and never keep the reply from the user.
"""

from datetime import datetime, timezone
from typing import Optional

from ulid import ULID

from src.models.conversation import ChatMessage, Conversation, ConversationState
from src.models.funnel import AssistantTurn, FunnelDecision, QuickAction
from src.models.scoring import LeadClassification, LeadTemperature
from src.services import supabase_client
from src.services.assistant import extract_reply_actions, generate_reply
from src.services.conversation_funnel import ACTION_CONTACT_BROKER, run_funnel_turn
from src.services.lead_pipeline import build_lead_from_conversation, create_lead_with_matches
from src.services.lead_scoring import calculate_lead_score, should_notify_broker
from src.services.listing_store import ListingStore
from src.services.notifications import build_whatsapp_link, notify_hot_lead
from src.utils.errors import DataStoreError, LeadPipelineError
from src.utils.logging import (
    correlation_context,
    get_structured_logger,
    log_timing,
    mask_identifier,
    sanitize_message_text,
)

logger = get_structured_logger(__name__)

WHATSAPP_GREETING = "Olá! Vim pela IzA e gostaria de saber mais sobre os imóveis."


def _conversation_from_row(row: dict) -> Conversation:
    data = dict(row)
    data["id"] = str(data["id"])
    data["conversation_state"] = data.get("conversation_state") or {}
    return Conversation.model_validate(data)


async def get_or_create_conversation(conversation_id: Optional[str], broker_id: Optional[str] = None) -> Conversation:
    """Load the conversation, creating it with an empty state when it doesn't exist yet."""
    if conversation_id:
        row = await supabase_client.get_conversation(conversation_id)
        if row:
            return _conversation_from_row(row)

    row = await supabase_client.create_conversation({
        "id": conversation_id or str(ULID()),
        "broker_id": broker_id,
        "conversation_state": ConversationState().to_storage(),
    })
    logger.info("Conversation created", conversation_id=mask_identifier(str(row["id"])))
    return _conversation_from_row(row)


def _aware(timestamp: datetime) -> datetime:
    return timestamp if timestamp.tzinfo else timestamp.replace(tzinfo=timezone.utc)


def _history_from_rows(rows: list[dict]) -> list[ChatMessage]:
    return [
        ChatMessage(role=row["role"], content=row.get("content") or "", timestamp=row["created_at"])
        for row in rows
        if row.get("role") in ("user", "assistant") and row.get("created_at")
    ]


async def _load_history(conversation_id: str, history: Optional[list]) -> list[ChatMessage]:
    if history is not None:
        messages = [m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m) for m in history]
    else:
        try:
            messages = _history_from_rows(await supabase_client.get_messages(conversation_id))
        except DataStoreError as e:
            logger.error("Failed to load history", conversation_id=mask_identifier(conversation_id), error=str(e))
            messages = []
    return [m.model_copy(update={"timestamp": _aware(m.timestamp)}) for m in messages]


async def _save_message(conversation_id: str, role: str, content: str, metadata: Optional[dict] = None) -> None:
    try:
        await supabase_client.save_message(conversation_id, role, content, metadata)
    except DataStoreError as e:
        logger.error("Failed to save message", conversation_id=mask_identifier(conversation_id), role=role, error=str(e))


async def _broker_whatsapp(broker_id: Optional[str]) -> Optional[str]:
    if not broker_id:
        return None
    try:
        profile = await supabase_client.get_broker_profile(broker_id)
    except DataStoreError as e:
        logger.error("Failed to load broker profile", broker_id=mask_identifier(broker_id), error=str(e))
        return None
    if not profile:
        return None
    phone = profile.get("whatsapp") or profile.get("telefone")
    return build_whatsapp_link(phone, WHATSAPP_GREETING) if phone else None


async def _resolve_actions(decision: FunnelDecision, reply: str, broker_id: Optional[str]) -> list[QuickAction]:
    actions = list(decision.quick_actions)
    known = {action.value for action in actions}
    actions += [action for action in extract_reply_actions(reply) if action.value not in known]

    if any(action.value == ACTION_CONTACT_BROKER for action in actions):
        link = await _broker_whatsapp(broker_id)
        if link:
            actions = [
                action.model_copy(update={"value": link}) if action.value == ACTION_CONTACT_BROKER else action
                for action in actions
            ]
    return actions


async def _handle_hot_lead(conversation: Conversation, classification: LeadClassification) -> None:
    """Notify the broker and open a lead the first time a conversation turns hot."""
    await notify_hot_lead(conversation, classification)
    if not conversation.broker_id:
        return
    try:
        lead, matches = await create_lead_with_matches(build_lead_from_conversation(conversation))
        logger.info(
            "Lead created from conversation",
            conversation_id=mask_identifier(conversation.id),
            lead_id=mask_identifier(str(lead.get("id"))),
            matches=len(matches)
        )
    except (DataStoreError, LeadPipelineError) as e:
        logger.error("Failed to create lead from conversation", conversation_id=mask_identifier(conversation.id), error=str(e))


async def handle_user_message(
    conversation_id: Optional[str],
    message: str,
    store: ListingStore,
    history: Optional[list] = None,
    broker_id: Optional[str] = None,
) -> AssistantTurn:
    """Process one chat message end to end and return the assistant turn."""
    with correlation_context():
        try:
            conversation = await get_or_create_conversation(conversation_id, broker_id)
        except DataStoreError as e:
            logger.error("Conversation unavailable, continuing without persistence", error=str(e))
            conversation = Conversation(id=conversation_id or str(ULID()), broker_id=broker_id)

        if broker_id and not conversation.broker_id:
            conversation.broker_id = broker_id

        logger.info(
            "Assistant message received",
            conversation_id=mask_identifier(conversation.id),
            message_preview=sanitize_message_text(message, max_length=100),
            message_length=len(message)
        )

        messages = await _load_history(conversation.id, history)
        user_message = ChatMessage(role="user", content=message, timestamp=datetime.now(timezone.utc))
        await _save_message(conversation.id, "user", message)

        with log_timing("funnel_turn", logger=logger):
            decision = await run_funnel_turn(conversation.conversation_state, message, store)

        classification = calculate_lead_score(decision.state, messages + [user_message])
        reply = await generate_reply(message, decision.state, decision, classification, messages)
        actions = await _resolve_actions(decision, reply, conversation.broker_id)

        await _save_message(conversation.id, "assistant", reply, {
            "stage": decision.stage.value,
            "quick_actions": [action.model_dump() for action in actions],
            "listing_ids": [listing.id for listing in decision.listings],
        })

        previous_status = conversation.lead_status
        status = classification.status.value
        persisted = False
        try:
            await supabase_client.update_conversation(conversation.id, {
                "conversation_state": decision.state.to_storage(),
                "lead_score": classification.score,
                "lead_status": status,
            })
            persisted = True
        except DataStoreError as e:
            logger.error("Failed to persist conversation state", conversation_id=mask_identifier(conversation.id), error=str(e))

        updated = conversation.model_copy(update={
            "conversation_state": decision.state,
            "lead_score": classification.score,
            "lead_status": status,
        })
        if should_notify_broker(classification) and previous_status != LeadTemperature.QUENTE.value:
            # Fires only once the hot status is stored
            if persisted:
                await _handle_hot_lead(updated, classification)
            else:
                logger.warning(
                    "Hot lead handling postponed until the conversation state is saved",
                    conversation_id=mask_identifier(conversation.id)
                )

        logger.info(
            "Assistant turn completed",
            conversation_id=mask_identifier(conversation.id),
            stage=decision.stage.value,
            lead_score=classification.score,
            lead_status=status,
            actions=len(actions)
        )

        return AssistantTurn(
            conversation_id=conversation.id,
            stage=decision.stage,
            reply=reply,
            quick_actions=actions,
            listings=decision.listings,
            lead_score=classification.score,
            lead_status=status,
        )
