"""IzA reply generation with LangChain chat models and keyword fallbacks."""

import os
import re
import time
from typing import Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from src.models.conversation import ChatMessage, ConversationState
from src.models.funnel import FunnelDecision, QuickAction
from src.models.scoring import LeadClassification
from src.services.platform_knowledge import (
    ASSISTANT_NAME,
    GOLDEN_RULES,
    PLATFORM_NAME,
    VOICE_RULES,
)
from src.services.property_normalizer import format_brl
from src.utils.errors import AssistantError
from src.utils.logging import get_correlation_id, get_structured_logger, sanitize_message_text

logger = get_structured_logger(__name__)

HISTORY_TURNS = 6

MARKDOWN_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")
BARE_LINK_PATTERN = re.compile(r"(https://wa\.me/[^\s)\]]+|(?<![\w(])/imovel/[^\s)\]]+|(?<![\w(])/search\?[^\s)\]]+)")


def get_llm_model():
    """Get configured LLM model."""
    provider = os.environ.get("LLM_PROVIDER", "anthropic").lower()
    model_name = os.environ.get("LLM_MODEL", "claude-sonnet-4-20250514")

    logger.debug(
        "Getting LLM model",
        llm_provider=provider,
        llm_model=model_name
    )

    if provider == "anthropic":
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise AssistantError("ANTHROPIC_API_KEY not set")
        return ChatAnthropic(model=model_name, api_key=api_key)
    elif provider == "openai":
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise AssistantError("OPENAI_API_KEY not set")
        return ChatOpenAI(model=model_name, api_key=api_key)
    else:
        raise AssistantError(f"Unsupported LLM provider: {provider}")


def _describe_state(state: ConversationState) -> str:
    fields = [
        ("Tipo de cliente", state.client_type),
        ("Operação", state.operacao),
        ("Tipo de imóvel", state.tipo_imovel),
        ("Cidade", state.cidade),
        ("Bairros", ", ".join(state.neighborhoods) or None),
        ("Valor máximo", format_brl(state.valor_max) if state.valor_max else None),
        ("Quartos", state.quartos),
    ]
    lines = [f"- {label}: {value}" for label, value in fields if value]
    return "\n".join(lines) or "- Nada informado ainda"


def _describe_decision(decision: FunnelDecision) -> str:
    lines = [f"Etapa do funil: {decision.stage.value}", f"Resposta sugerida: {decision.reply}"]
    options = [action for action in decision.quick_actions if action.kind == "reply"]
    if options:
        rendered = ", ".join(
            f"{action.label} ({action.count})" if action.count is not None else action.label
            for action in options
        )
        lines.append(f"Opções oferecidas: {rendered}")
    links = [action for action in decision.quick_actions if action.kind == "link"]
    if links:
        lines.append("Links disponíveis (use exatamente estes):")
        lines.extend(f"- [{action.label}]({action.value})" for action in links)
    return "\n".join(lines)


def build_assistant_prompt(
    message: str,
    state: ConversationState,
    decision: FunnelDecision,
    classification: Optional[LeadClassification] = None,
    history: Optional[list[ChatMessage]] = None,
) -> dict:
    """
    Build the assistant prompt.

    Returns dict with system and user prompts. The funnel decision is the
    source of truth for options and links; the model only phrases it.
    """
    rules = "\n".join(f"- {rule}" for rule in VOICE_RULES + GOLDEN_RULES)
    system_prompt = f"""Você é a {ASSISTANT_NAME}, assistente virtual da {PLATFORM_NAME}, uma plataforma imobiliária que conecta compradores, locatários e corretores.

Regras de estilo e conduta:
{rules}

Responda sempre em português do Brasil, em no máximo 5 frases curtas.
Conduza a conversa seguindo a etapa do funil informada. Nunca invente imóveis ou links."""

    qualification = ""
    if classification is not None:
        qualification = (
            f"\n\nQualificação do lead: {classification.status.value} "
            f"(score {classification.score}/100, prioridade {classification.priority.value})"
        )

    history_section = ""
    if history:
        turns = history[-HISTORY_TURNS:]
        rendered = "\n".join(
            f"{'Cliente' if turn.role == 'user' else ASSISTANT_NAME}: {turn.content}" for turn in turns
        )
        history_section = f"\n\nÚltimas mensagens:\n{rendered}"

    user_prompt = f"""Preferências extraídas:
{_describe_state(state)}

{_describe_decision(decision)}{qualification}{history_section}

Mensagem do cliente:
{message}"""

    return {"system": system_prompt, "user": user_prompt}


def fallback_reply(message: str) -> str:
    """Canned reply chosen by keywords, used when the model is unavailable."""
    lowered = message.lower()
    if any(word in lowered for word in ("imóvel", "imovel", "casa", "apartamento")):
        return "Temos diversos imóveis disponíveis! 🏠 Para ver todas as opções, acesse nossa busca avançada no menu. Posso te ajudar com algo mais específico?"
    if any(word in lowered for word in ("corretor", "parceria", "cadastr")):
        return "Nossa plataforma oferece um sistema de parcerias único! 🤝 Cadastre-se gratuitamente e comece a anunciar. Quer saber mais sobre as funcionalidades?"
    if any(word in lowered for word in ("preço", "preco", "valor")):
        return "Nossos imóveis têm valores variados para todos os perfis! 💰 Use os filtros de busca para encontrar dentro do seu orçamento. Qual faixa de preço você procura?"
    return "Estou aqui para ajudar! 😊 Posso te auxiliar a encontrar imóveis, explicar sobre nossa plataforma ou tirar dúvidas sobre parcerias. O que você gostaria de saber?"


def _response_text(response) -> str:
    content = response.content if hasattr(response, "content") else str(response)
    if isinstance(content, list):
        content = "".join(
            block.get("text", "") if isinstance(block, dict) else str(block) for block in content
        )
    return content.strip()


async def generate_reply(
    message: str,
    state: ConversationState,
    decision: Optional[FunnelDecision] = None,
    classification: Optional[LeadClassification] = None,
    history: Optional[list[ChatMessage]] = None,
) -> str:
    """
    Phrase the reply for one user turn.

    Without a model (disabled, misconfigured or failing) the funnel's own reply
    is used, or a keyword fallback when there is no funnel decision.
    """
    correlation_id = get_correlation_id()
    canned = decision.reply if decision is not None else fallback_reply(message)

    use_llm = os.environ.get("USE_LLM_ASSISTANT", "true").lower() == "true"
    if not use_llm or decision is None:
        logger.debug("Assistant model skipped", correlation_id=correlation_id, llm_enabled=use_llm)
        return canned

    try:
        prompt = build_assistant_prompt(message, state, decision, classification, history)
        model = get_llm_model()

        logger.info(
            "LLM reply request started",
            correlation_id=correlation_id,
            stage=decision.stage.value,
            prompt_size_chars=len(prompt["system"]) + len(prompt["user"]),
            message_preview=sanitize_message_text(message, max_length=100)
        )

        llm_start_time = time.time()
        response = await model.ainvoke([
            SystemMessage(content=prompt["system"]),
            HumanMessage(content=prompt["user"]),
        ])
        llm_latency_ms = (time.time() - llm_start_time) * 1000

        text = _response_text(response) if response is not None else ""
        if not text:
            raise AssistantError("Empty LLM response")

        logger.info(
            "LLM reply received",
            correlation_id=correlation_id,
            llm_latency_ms=round(llm_latency_ms, 2),
            reply_length=len(text)
        )
        return text

    except AssistantError as e:
        logger.warning("Assistant reply fell back", correlation_id=correlation_id, error=str(e))
        return canned
    except Exception as e:
        logger.error(
            "LLM reply failed",
            correlation_id=correlation_id,
            error=str(e),
            error_type=type(e).__name__
        )
        return canned


def extract_reply_actions(reply: str) -> list[QuickAction]:
    """Turn links written in a reply into quick actions, without duplicates."""
    actions: list[QuickAction] = []
    seen = set()

    def add(label: str, url: str) -> None:
        if url in seen:
            return
        seen.add(url)
        kind = "whatsapp" if "wa.me/" in url else "link"
        actions.append(QuickAction(label=label, value=url, kind=kind))

    for label, url in MARKDOWN_LINK_PATTERN.findall(reply):
        add(label, url)

    without_markdown = MARKDOWN_LINK_PATTERN.sub("", reply)
    for url in BARE_LINK_PATTERN.findall(without_markdown):
        url = url.rstrip(".,!?;:")
        if "wa.me/" in url:
            label = "Falar no WhatsApp"
        elif url.startswith("/search"):
            label = "Ver todos"
        else:
            label = "Ver imóvel"
        add(label, url)

    return actions
