"""
Buyer qualification funnel of the assistant.

Each user turn goes through three steps: keyword extraction updates the
conversation state, ``resolve_stage`` picks the stage from the state with a
fixed guard table, and the stage handler queries the listing store to build
the options or the listings offered back. Stages that capture a value from
the options they offer (type, city, neighborhood) try the current message
first, so a message like "apartamento à venda em Natal" skips straight ahead.
"""

from collections import Counter
from typing import Optional
from urllib.parse import urlencode

from src.models.conversation import (
    ClientType,
    ConversationState,
    QUESTION_CIDADE,
    QUESTION_TIPO,
    QUESTION_VALOR,
)
from src.models.funnel import FunnelDecision, FunnelStage, QuickAction, SearchTier
from src.models.listing import Listing
from src.services.listing_store import OPTIONS_SCAN_LIMIT, SEARCH_RESULT_LIMIT, ListingQuery, ListingStore
from src.services.message_extraction import (
    add_neighborhood,
    apply_expand_search,
    apply_neighborhood_pick,
    contains_keyword,
    detect_closing,
    detect_expand_search,
    detect_restart,
    extract_info_from_message,
    match_option,
)
from src.services.platform_knowledge import (
    BROKER_EDUCATION_TIPS,
    BROKER_HEADLINE,
    BROKER_TOPICS,
    CLOSING_REPLY,
    GREETING,
    NO_RESULTS_REPLY,
    OPERATION_LABELS,
)
from src.services.property_normalizer import fold, format_brl, listing_price, property_path, round_half_up
from src.utils.errors import DataStoreError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

BUDGET_FLEX_FACTOR = 1.2
MAX_LISTING_LINKS = 4
MAX_CITY_OPTIONS = 6

START_ACTIONS = [
    QuickAction(label="Comprar", value="Quero comprar"),
    QuickAction(label="Alugar", value="Quero alugar"),
    QuickAction(label="Temporada", value="Quero temporada"),
    QuickAction(label="Sou corretor", value="Sou corretor"),
]

# Action values understood by the chat widget
ACTION_SCHEDULE_VISIT = "schedule_visit"
ACTION_CUSTOM_LISTING = "custom_listing_request"
ACTION_CONTACT_BROKER = "contact_broker"

NEW_SEARCH_ACTION = QuickAction(label="Nova busca", value="Nova busca")


def resolve_stage(state: ConversationState, message: str) -> FunnelStage:
    """Pick the funnel stage for the state after extraction. Pure and ordered."""
    if detect_closing(message):
        return FunnelStage.CLOSING
    if state.client_type == ClientType.BROKER.value:
        return FunnelStage.BROKER
    if not state.operacao:
        return FunnelStage.START
    if not state.tipo_imovel:
        return FunnelStage.AWAITING_TYPE
    if not state.cidade:
        return FunnelStage.AWAITING_CITY
    if not state.neighborhoods and not state.search_expanded:
        return FunnelStage.AWAITING_NEIGHBORHOOD
    return FunnelStage.RESULTS


def strict_filter(listings: list[Listing], state: ConversationState) -> list[Listing]:
    """
    Keep listings whose operation and type really match the state.

    Matching is accent-insensitive substring matching, so ``Venda/Locação``
    satisfies both ``venda`` and ``locacao`` and ``Sala Comercial`` satisfies
    ``comercial``.
    """
    operation = fold(state.operacao)
    property_type = fold(state.tipo_imovel)
    return [
        listing for listing in listings
        if (not operation or operation in fold(listing.operacao))
        and (not property_type or property_type in fold(listing.tipo_imovel))
    ]


def build_search_tiers(state: ConversationState) -> list[SearchTier]:
    """Search fallback steps: exact budget, flexible budget, then city-wide."""
    neighborhoods = state.neighborhoods
    budget = state.valor_max or None
    flexible_budget = budget * BUDGET_FLEX_FACTOR if budget else None

    candidates = [
        SearchTier(tier=1, bairros=neighborhoods, valor_max=budget),
        SearchTier(tier=2, bairros=neighborhoods, valor_max=flexible_budget),
        SearchTier(tier=3, bairros=[], valor_max=flexible_budget),
    ]

    tiers: list[SearchTier] = []
    seen = set()
    for tier in candidates:
        key = (tuple(tier.bairros), tier.valor_max)
        if key in seen:
            continue
        seen.add(key)
        tiers.append(tier)
    return tiers


def generate_smart_search_link(state: ConversationState) -> str:
    """Link to the search page pre-filled with the conversation preferences."""
    params = []
    if state.operacao:
        params.append(("operacao", state.operacao))
    if state.tipo_imovel:
        params.append(("tipo", state.tipo_imovel))
    if state.cidade:
        params.append(("cidade", state.cidade))
    if state.bairro:
        params.append(("bairro", state.bairro))
    if state.valor_max:
        params.append(("valorMax", _plain_number(state.valor_max)))
    if state.quartos:
        params.append(("quartos", str(state.quartos)))
    return f"/search?{urlencode(params)}"


def _plain_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def format_price_badge(value: float) -> str:
    """Short price for badges: ``R$ 300 mil``, ``R$ 1,2 milhão``."""
    if value >= 1_000_000:
        millions = f"{value / 1_000_000:.1f}".replace(".0", "").replace(".", ",")
        return f"R$ {millions} milhão" if value < 2_000_000 else f"R$ {millions} milhões"
    if value >= 10_000:
        return f"R$ {round_half_up(value / 1000)} mil"
    return format_brl(value)


def build_price_badges(listings: list[Listing]) -> list[QuickAction]:
    """Three price ranges splitting the listings into terciles; empty when prices don't spread."""
    prices = sorted(price for price in (listing_price(listing) for listing in listings) if price > 0)
    if len(prices) < 3:
        return []
    low_cut = prices[len(prices) // 3]
    high_cut = prices[(2 * len(prices)) // 3]
    if low_cut >= high_cut:
        return []

    low_label = format_price_badge(low_cut)
    high_label = format_price_badge(high_cut)
    ranges = [
        (f"Até {low_label}", sum(1 for p in prices if p <= low_cut)),
        (f"De {low_label} a {high_label}", sum(1 for p in prices if low_cut < p <= high_cut)),
        (f"Acima de {high_label}", sum(1 for p in prices if p > high_cut)),
    ]
    return [QuickAction(label=label, value=label, count=count) for label, count in ranges]


def _listing_label(listing: Listing) -> str:
    if listing.titulo:
        return listing.titulo
    return f"{listing.tipo_imovel or 'Imóvel'} em {listing.bairro or listing.cidade}"


def _listing_links(listings: list[Listing]) -> tuple[str, list[QuickAction]]:
    lines = []
    actions = []
    for listing in listings:
        path = property_path(listing)
        label = _listing_label(listing)
        lines.append(f"• [{label}]({path}) - {format_brl(listing_price(listing))}")
        actions.append(QuickAction(label=label, value=path, kind="link"))
    return "\n".join(lines), actions


def _count_options(values: list[str], limit: Optional[int] = None) -> list[QuickAction]:
    counts = Counter(value for value in values if value)
    return [QuickAction(label=value, value=value, count=count) for value, count in counts.most_common(limit)]


def _operation_label(state: ConversationState) -> str:
    return OPERATION_LABELS.get(state.operacao or "", state.operacao or "")


def _start_decision(state: ConversationState) -> FunnelDecision:
    return FunnelDecision(
        stage=FunnelStage.START,
        reply=f"{GREETING}\n\nVocê quer comprar, alugar ou é corretor?",
        quick_actions=list(START_ACTIONS),
        state=state,
    )


def _closing_decision(state: ConversationState) -> FunnelDecision:
    return FunnelDecision(
        stage=FunnelStage.CLOSING,
        reply=f"{CLOSING_REPLY}\n\nQuer falar direto com o corretor ou agendar uma visita?",
        quick_actions=[
            QuickAction(label="Falar no WhatsApp", value=ACTION_CONTACT_BROKER, kind="whatsapp"),
            QuickAction(label="Agendar visita", value=ACTION_SCHEDULE_VISIT, kind="action"),
            NEW_SEARCH_ACTION,
        ],
        state=state,
    )


def find_broker_topic(message: str) -> Optional[int]:
    """Index of the broker topic a message asks about, if any."""
    title = match_option(message, [topic["title"] for topic in BROKER_TOPICS])
    if title:
        return next(i for i, topic in enumerate(BROKER_TOPICS) if topic["title"] == title)
    for index, topic in enumerate(BROKER_TOPICS):
        if contains_keyword(message, topic["keywords"]):
            return index
    return None


def _broker_decision(state: ConversationState, message: str) -> FunnelDecision:
    topic_actions = [QuickAction(label=topic["title"], value=topic["title"]) for topic in BROKER_TOPICS]
    index = find_broker_topic(message)

    if index is None:
        reply = (
            f"Que bom ter você por aqui! 🤝\n\n**{BROKER_HEADLINE}**\n\n"
            "Sobre o que você quer saber?"
        )
        return FunnelDecision(stage=FunnelStage.BROKER, reply=reply, quick_actions=topic_actions, state=state)

    topic = BROKER_TOPICS[index]
    tip = BROKER_EDUCATION_TIPS[index % len(BROKER_EDUCATION_TIPS)]
    reply = f"{topic['icon']} **{topic['title']}**\n\n{topic['description']}\n\n{tip}"
    others = [action for action in topic_actions if action.value != topic["title"]]
    return FunnelDecision(stage=FunnelStage.BROKER, reply=reply, quick_actions=others, state=state)


def _no_results_decision(state: ConversationState) -> FunnelDecision:
    actions = []
    if state.cidade and not state.search_expanded:
        actions.append(QuickAction(label="Ampliar busca", value="Ampliar busca para toda a cidade"))
    actions.append(QuickAction(label="Solicitar imóvel sob medida", value=ACTION_CUSTOM_LISTING, kind="action"))
    actions.append(NEW_SEARCH_ACTION)
    return FunnelDecision(stage=FunnelStage.RESULTS, reply=NO_RESULTS_REPLY, quick_actions=actions, state=state)


def _neighborhood_decision(state: ConversationState, options: list[QuickAction], reply: str) -> FunnelDecision:
    return FunnelDecision(
        stage=FunnelStage.AWAITING_NEIGHBORHOOD,
        reply=reply,
        quick_actions=options + [QuickAction(label="Toda a cidade", value="Toda a cidade")],
        state=state,
    )


def _scan_query(state: ConversationState, cidade: Optional[str] = None) -> ListingQuery:
    return ListingQuery(
        operacao=state.operacao,
        tipo_imovel=state.tipo_imovel,
        cidade=cidade,
        exclude_ids=list(state.shown_property_ids),
        limit=OPTIONS_SCAN_LIMIT,
    )


async def type_options(state: ConversationState, store: ListingStore) -> list[QuickAction]:
    """Property types among active listings of the chosen operation, most frequent first."""
    query = _scan_query(state).model_copy(update={"tipo_imovel": None})
    listings = await store.search(query)
    operation_only = state.model_copy(update={"tipo_imovel": None})
    return _count_options([listing.tipo_imovel for listing in strict_filter(listings, operation_only)])


async def city_options(state: ConversationState, store: ListingStore) -> list[QuickAction]:
    """Top cities for the chosen operation and type."""
    listings = strict_filter(await store.search(_scan_query(state)), state)
    return _count_options([listing.cidade for listing in listings], MAX_CITY_OPTIONS)


async def neighborhood_candidates(state: ConversationState, store: ListingStore) -> list[Listing]:
    """City-wide listings matching operation and type, used to offer neighborhoods."""
    return strict_filter(await store.search(_scan_query(state, cidade=state.cidade)), state)


def _apply_floor(listings: list[Listing], state: ConversationState) -> list[Listing]:
    # Only an explicit "acima de X" (floor without ceiling) filters cheap listings out
    if state.valor_min and not state.valor_max:
        return [listing for listing in listings if listing_price(listing) >= state.valor_min]
    return listings


async def search_with_fallback(state: ConversationState, store: ListingStore) -> tuple[Optional[SearchTier], list[Listing]]:
    """Run the search tiers in order and stop at the first non-empty result."""
    for tier in build_search_tiers(state):
        query = ListingQuery(
            operacao=state.operacao,
            tipo_imovel=state.tipo_imovel,
            cidade=state.cidade,
            bairros=tier.bairros,
            valor_max=tier.valor_max,
            exclude_ids=list(state.shown_property_ids),
            limit=SEARCH_RESULT_LIMIT,
        )
        listings = _apply_floor(strict_filter(await store.search(query), state), state)
        if listings:
            return tier, listings
    return None, []


async def _results_decision(state: ConversationState, store: ListingStore, allow_deferral: bool = True) -> FunnelDecision:
    tier, listings = await search_with_fallback(state, store)
    if not listings:
        return _no_results_decision(state)

    if tier.tier == 3 and allow_deferral and not state.search_expanded:
        options = _count_options([listing.bairro for listing in listings])
        if len(options) > 1:
            wanted = ", ".join(state.neighborhoods)
            budget_note = " dentro do seu orçamento" if state.valor_max else ""
            reply = (
                f"Não encontrei opções em {wanted}{budget_note}, "
                f"mas tenho imóveis nestes bairros de {state.cidade}. Qual te interessa?"
            )
            offered = state.model_copy(update={"offered_neighborhoods": [option.value for option in options]})
            return _neighborhood_decision(offered, options, reply)

    new_state = state.model_copy(deep=True)
    budget_disclosed = QUESTION_VALOR in state.answered_questions or bool(state.valor_max)

    if len(listings) > MAX_LISTING_LINKS and not budget_disclosed:
        badges = build_price_badges(listings)
        if badges:
            return FunnelDecision(
                stage=FunnelStage.RESULTS,
                reply=f"Encontrei {len(listings)} imóveis! 🎉 Qual faixa de preço faz mais sentido para você?",
                quick_actions=badges,
                state=new_state,
                search_tier=tier.tier,
            )

    if len(listings) <= MAX_LISTING_LINKS:
        shown = listings
        actions_tail: list[QuickAction] = []
        intro = "Encontrei estas opções para você:"
    else:
        shown = listings[:MAX_LISTING_LINKS]
        actions_tail = [QuickAction(label="Ver todos", value=generate_smart_search_link(state), kind="link", count=len(listings))]
        intro = f"Encontrei {len(listings)} imóveis! Estes são os primeiros:"

    text, link_actions = _listing_links(shown)
    for listing in shown:
        if listing.id not in new_state.shown_property_ids:
            new_state.shown_property_ids.append(listing.id)

    if tier.tier == 2:
        intro = "Com um pequeno ajuste no orçamento, encontrei estas opções:"
    return FunnelDecision(
        stage=FunnelStage.RESULTS,
        reply=f"{intro}\n\n{text}\n\nQuer agendar uma visita ou ver mais opções?",
        quick_actions=link_actions + actions_tail,
        listings=shown,
        state=new_state,
        search_tier=tier.tier,
    )


async def _advance(state: ConversationState, message: str, store: ListingStore) -> FunnelDecision:
    while True:
        stage = resolve_stage(state, message)

        if stage == FunnelStage.CLOSING:
            return _closing_decision(state)

        if stage == FunnelStage.BROKER:
            return _broker_decision(state, message)

        if stage == FunnelStage.START:
            return _start_decision(state)

        if stage == FunnelStage.AWAITING_TYPE:
            options = await type_options(state, store)
            if not options:
                return _no_results_decision(state)
            chosen = match_option(message, [option.value for option in options])
            if chosen:
                state = state.model_copy(update={"tipo_imovel": fold(chosen)})
                state.mark_answered(QUESTION_TIPO)
                continue
            return FunnelDecision(
                stage=stage,
                reply=f"Ótimo! Que tipo de imóvel você procura para {_operation_label(state).lower()}?",
                quick_actions=options,
                state=state,
            )

        if stage == FunnelStage.AWAITING_CITY:
            options = await city_options(state, store)
            if not options:
                return _no_results_decision(state)
            chosen = match_option(message, [option.value for option in options])
            if chosen:
                state = state.model_copy(update={"cidade": chosen})
                state.mark_answered(QUESTION_CIDADE)
                continue
            return FunnelDecision(
                stage=stage,
                reply="Em qual cidade você está procurando?",
                quick_actions=options,
                state=state,
            )

        if stage == FunnelStage.AWAITING_NEIGHBORHOOD:
            candidates = await neighborhood_candidates(state, store)
            options = _count_options([listing.bairro for listing in candidates])
            chosen = match_option(message, [option.value for option in options])
            if chosen:
                state = add_neighborhood(state, chosen)
                continue
            if len(options) > 1:
                reply = f"Tenho opções em {len(options)} bairros de {state.cidade}. Qual bairro você prefere?"
                return _neighborhood_decision(state, options, reply)
            if not candidates:
                return _no_results_decision(state)
            return await _results_decision(state, store, allow_deferral=False)

        return await _results_decision(state, store)


async def run_funnel_turn(state: ConversationState, message: str, store: ListingStore) -> FunnelDecision:
    """
    Process one user message.

    Returns the decision with the updated state; the input state is never
    mutated. Store failures degrade to the no-results decision.
    """
    if detect_restart(message):
        return _start_decision(ConversationState())

    new_state = apply_neighborhood_pick(extract_info_from_message(message, state), message)
    if detect_expand_search(message) and new_state.cidade:
        new_state = apply_expand_search(new_state)

    try:
        decision = await _advance(new_state, message, store)
    except DataStoreError as e:
        logger.error("Funnel listing query failed", error=str(e))
        return _no_results_decision(new_state)

    logger.info(
        "Funnel turn resolved",
        stage=decision.stage.value,
        search_tier=decision.search_tier,
        listings=len(decision.listings),
        options=len(decision.quick_actions)
    )
    return decision
