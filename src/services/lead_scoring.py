"""Lead temperature scoring of assistant conversations."""

import re
from typing import Optional, Union

from src.models.conversation import ChatMessage, Conversation, ConversationState
from src.models.scoring import LeadClassification, LeadPriority, LeadScoreBreakdown, LeadTemperature
from src.services.property_normalizer import format_brl

HOT_THRESHOLD = 80
WARM_THRESHOLD = 50

# Seconds; a user answering faster than this on average is actively engaged
ACTIVE_RESPONSE_SECONDS = 300
DETAILED_MESSAGE_LENGTH = 50

URGENCY_KEYWORDS = [
    "urgente", "rápido", "logo", "imediato", "hoje", "amanhã",
    "essa semana", "este mês", "preciso", "necessito",
    "quanto antes", "o mais rápido", "asap",
]

TEMPERATURE_EMOJI = {
    LeadTemperature.QUENTE: "🔥",
    LeadTemperature.MORNO: "🌡️",
    LeadTemperature.FRIO: "❄️",
}


def _as_messages(messages: list) -> list[ChatMessage]:
    return [m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m) for m in messages]


def _user_messages(messages: list[ChatMessage]) -> list[ChatMessage]:
    return [m for m in messages if m.role == "user"]


def has_urgency(messages: list[ChatMessage]) -> bool:
    return any(
        keyword in message.content.lower()
        for message in _user_messages(messages)
        for keyword in URGENCY_KEYWORDS
    )


def average_response_time(messages: list[ChatMessage]) -> float:
    """Mean seconds between an assistant message and the user reply right after it."""
    response_times = [
        (current.timestamp - previous.timestamp).total_seconds()
        for previous, current in zip(messages, messages[1:])
        if current.role == "user" and previous.role == "assistant"
    ]
    if not response_times:
        return 0
    return sum(response_times) / len(response_times)


def calculate_lead_score(state: ConversationState, messages: list) -> LeadClassification:
    """Score a conversation from the disclosed preferences and the chat behaviour."""
    messages = _as_messages(messages)
    breakdown = LeadScoreBreakdown()

    if state.operacao:
        breakdown.operacao = 20
    if state.tipo_imovel:
        breakdown.tipo_imovel = 20
    if state.bairro or state.bairros:
        breakdown.bairro = 15
    if state.valor_max:
        breakdown.valor_max = 15
    if has_urgency(messages):
        breakdown.urgencia = 15

    avg_response = average_response_time(messages)
    if 0 < avg_response < ACTIVE_RESPONSE_SECONDS:
        breakdown.interacao = 10

    if any(len(m.content) > DETAILED_MESSAGE_LENGTH for m in _user_messages(messages)):
        breakdown.detalhamento = 5

    score = breakdown.total
    return LeadClassification(
        score=score,
        status=classify_lead_status(score),
        priority=get_lead_priority(score),
        breakdown=breakdown,
    )


def classify_lead_status(score: int) -> LeadTemperature:
    if score >= HOT_THRESHOLD:
        return LeadTemperature.QUENTE
    if score >= WARM_THRESHOLD:
        return LeadTemperature.MORNO
    return LeadTemperature.FRIO


def get_lead_priority(score: int) -> LeadPriority:
    if score >= HOT_THRESHOLD:
        return LeadPriority.ALTA
    if score >= WARM_THRESHOLD:
        return LeadPriority.MEDIA
    return LeadPriority.BAIXA


def should_notify_broker(classification: LeadClassification) -> bool:
    return classification.status == LeadTemperature.QUENTE


def get_lead_emoji(status: Union[LeadTemperature, str]) -> str:
    return TEMPERATURE_EMOJI[LeadTemperature(status)]


def format_phone_number(phone: Optional[str]) -> str:
    """Render a 13-digit number as ``+55 84 99999-9999``; anything else is returned as given."""
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 13:
        return f"+{digits[:2]} {digits[2:4]} {digits[4:9]}-{digits[9:]}"
    return phone


def generate_lead_summary(conversation: Conversation, classification: LeadClassification) -> str:
    """WhatsApp-formatted summary of a qualified lead, sent to the broker."""
    state = conversation.conversation_state
    status = LeadTemperature(classification.status).value
    priority = LeadPriority(classification.priority).value

    lines = [
        f"{get_lead_emoji(status)} *LEAD {status.upper()}!*",
        "",
        f"📊 Score: {classification.score}/100",
        f"⏰ Prioridade: {priority.upper()}",
        "",
    ]
    if conversation.name:
        lines.append(f"👤 Cliente: {conversation.name}")
    lines.append(f"📱 WhatsApp: {format_phone_number(conversation.phone_number)}")
    lines.append("")

    lines.append("*Interesse:*")
    if state.operacao:
        lines.append(f"• Operação: {state.operacao}")
    if state.tipo_imovel:
        lines.append(f"• Tipo: {state.tipo_imovel}")
    if state.bairro:
        lines.append(f"• Bairro: {state.bairro}")
    elif state.cidade:
        lines.append(f"• Cidade: {state.cidade}")
    if state.valor_max:
        lines.append(f"• Valor máximo: {format_brl(state.valor_max)}")

    lines.append("")
    lines.append("👉 Acesse o painel para assumir o lead!")
    return "\n".join(lines)
