"""
Keyword extraction of buyer preferences from free chat text.

Extraction is monotonic: a preference already present in the conversation
state is never overwritten by a later message. Changing a preference goes
through an explicit restart or search expansion instead.
"""

import re
from typing import Iterable, Optional

from src.models.conversation import (
    ClientType,
    ConversationState,
    QUESTION_BAIRRO,
    QUESTION_BUSCA_AMPLIADA,
    QUESTION_OPERACAO,
    QUESTION_QUARTOS,
    QUESTION_TIPO,
    QUESTION_VALOR,
)
from src.services.platform_knowledge import (
    BROKER_KEYWORDS,
    CLOSING_KEYWORDS,
    EXPAND_SEARCH_KEYWORDS,
    OPERATION_KEYWORDS,
    PROPERTY_TYPE_KEYWORDS,
    RESTART_KEYWORDS,
)
from src.services.property_normalizer import fold

# A single stated price is treated as the ceiling; the floor sits 20% below it
BUDGET_FLOOR_RATIO = 0.8

_NUMBER = r"(\d+(?:[.,]\d+)*)"
_MULTIPLIER = r"(milh[oõ]es|milh[aã]o|mil)?"
_NOT_ROOMS = r"(?!\s*(?:quartos?|dormit[oó]rios?|dorms?|su[ií]tes?|vagas?|banheiros?|m2|m²))"

RANGE_PATTERN = re.compile(
    rf"(?:\bde\s*)?(?:r\$\s*)?{_NUMBER}\s*{_MULTIPLIER}\s*(?:a|até|e)\s*(?:r\$\s*)?{_NUMBER}\s*{_MULTIPLIER}\b{_NOT_ROOMS}"
)
ABOVE_PATTERN = re.compile(rf"\b(?:acima de|a partir de|mais de)\s*(?:r\$\s*)?{_NUMBER}\s*{_MULTIPLIER}\b{_NOT_ROOMS}")
UP_TO_PATTERN = re.compile(rf"\b(?:até|ate)\s*(?:r\$\s*)?{_NUMBER}\s*{_MULTIPLIER}\b{_NOT_ROOMS}")
CURRENCY_PATTERN = re.compile(rf"r\$\s*{_NUMBER}\s*{_MULTIPLIER}\b")
MULTIPLIER_PATTERN = re.compile(r"\b(\d+(?:[.,]\d+)*)\s*(milh[oõ]es|milh[aã]o|mil)\b")
BEDROOMS_PATTERN = re.compile(r"(\d+)\s*(?:quartos?|dormit[oó]rios?|dorms?)\b")


def contains_keyword(text: str, keywords: Iterable[str]) -> bool:
    """True when any keyword appears in the text as a whole word or phrase."""
    lowered = text.lower()
    return any(re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", lowered) for keyword in keywords)


def _first_key(text: str, dictionary: dict[str, list[str]]) -> Optional[str]:
    for key, keywords in dictionary.items():
        if contains_keyword(text, keywords):
            return key
    return None


def detect_operation(message: str) -> Optional[str]:
    return _first_key(message, OPERATION_KEYWORDS)


def detect_property_type(message: str) -> Optional[str]:
    return _first_key(message, PROPERTY_TYPE_KEYWORDS)


def detect_broker_intent(message: str) -> bool:
    return contains_keyword(message, BROKER_KEYWORDS)


def detect_closing(message: str) -> bool:
    return contains_keyword(message, CLOSING_KEYWORDS)


def detect_restart(message: str) -> bool:
    return contains_keyword(message, RESTART_KEYWORDS)


def detect_expand_search(message: str) -> bool:
    return contains_keyword(message, EXPAND_SEARCH_KEYWORDS)


def parse_brl_number(raw: str, multiplier: Optional[str] = None) -> float:
    """
    Parse a Brazilian-formatted number with an optional word multiplier.

    Dots are thousand separators and a comma is the decimal mark:
    ``"450.000"`` -> 450000, ``"1,5" + "milhão"`` -> 1500000.
    """
    value = float(raw.replace(".", "").replace(",", "."))
    if multiplier:
        if multiplier.startswith("milh"):
            value *= 1_000_000
        elif multiplier == "mil":
            value *= 1_000
    return value


def parse_price(message: str) -> tuple[Optional[float], Optional[float]]:
    """
    Extract a ``(minimum, maximum)`` budget from a message.

    Handles ``de X a Y``, ``acima de X``, ``até X``, ``R$ X`` and ``X mil`` /
    ``X milhão``. Returns ``(None, None)`` when no price is mentioned.
    """
    text = message.lower()

    match = RANGE_PATTERN.search(text)
    if match and (match.group(0).lstrip().startswith(("de", "r$")) or match.group(2) or match.group(4)):
        low_raw, low_mult, high_raw, high_mult = match.groups()
        # "de 300 a 500 mil": the trailing multiplier applies to both ends
        low = parse_brl_number(low_raw, low_mult or high_mult)
        high = parse_brl_number(high_raw, high_mult)
        if low > high:
            low, high = high, low
        return low, high

    match = ABOVE_PATTERN.search(text)
    if match:
        return parse_brl_number(*match.groups()), None

    for pattern in (UP_TO_PATTERN, CURRENCY_PATTERN, MULTIPLIER_PATTERN):
        match = pattern.search(text)
        if match:
            return None, parse_brl_number(*match.groups())

    return None, None


def parse_bedrooms(message: str) -> Optional[int]:
    match = BEDROOMS_PATTERN.search(message.lower())
    return int(match.group(1)) if match else None


def match_option(message: str, options: Iterable[str]) -> Optional[str]:
    """
    Find which offered option (city, neighborhood) the message names.

    Comparison ignores accents and case. The longest option wins so that
    ``Ponta Negra`` is preferred over ``Negra``.
    """
    folded_message = fold(message)
    if not folded_message:
        return None
    found = [
        option for option in options
        if option and re.search(rf"(?<!\w){re.escape(fold(option))}(?!\w)", folded_message)
    ]
    if not found:
        return None
    return max(found, key=lambda option: len(fold(option)))


def extract_info_from_message(message: str, state: ConversationState) -> ConversationState:
    """Return a copy of the state enriched with what the message reveals."""
    new_state = state.model_copy(deep=True)

    if new_state.client_type is None and detect_broker_intent(message):
        new_state.client_type = ClientType.BROKER.value

    if not new_state.operacao:
        operation = detect_operation(message)
        if operation:
            new_state.operacao = operation
            new_state.mark_answered(QUESTION_OPERACAO)
            if new_state.client_type is None:
                new_state.client_type = ClientType.BUYER.value

    if not new_state.tipo_imovel:
        property_type = detect_property_type(message)
        if property_type:
            new_state.tipo_imovel = property_type
            new_state.mark_answered(QUESTION_TIPO)

    low, high = parse_price(message)
    if low is not None or high is not None:
        if high is not None and not new_state.valor_max:
            new_state.valor_max = high
            if low is None and not new_state.valor_min:
                new_state.valor_min = high * BUDGET_FLOOR_RATIO
        if low is not None and not new_state.valor_min:
            new_state.valor_min = low
        new_state.mark_answered(QUESTION_VALOR)

    if not new_state.quartos:
        bedrooms = parse_bedrooms(message)
        if bedrooms:
            new_state.quartos = bedrooms
            new_state.mark_answered(QUESTION_QUARTOS)

    return new_state


def add_neighborhood(state: ConversationState, bairro: str) -> ConversationState:
    """Record a chosen neighborhood; the first one becomes the primary ``bairro``."""
    new_state = state.model_copy(deep=True)
    if bairro not in new_state.bairros:
        new_state.bairros.append(bairro)
    if not new_state.bairro:
        new_state.bairro = bairro
    new_state.mark_answered(QUESTION_BAIRRO)
    return new_state


def apply_neighborhood_pick(state: ConversationState, message: str) -> ConversationState:
    """
    Resolve a pick among the neighborhoods offered after a city-wide fallback.

    The picked neighborhood replaces the earlier neighborhood filter. The
    offer is consumed either way.
    """
    if not state.offered_neighborhoods:
        return state
    new_state = state.model_copy(deep=True)
    new_state.offered_neighborhoods = []
    chosen = match_option(message, state.offered_neighborhoods)
    if not chosen:
        return new_state
    new_state.bairro = None
    new_state.bairros = []
    return add_neighborhood(new_state, chosen)


def apply_expand_search(state: ConversationState) -> ConversationState:
    """Drop the neighborhood filters and search the whole city."""
    new_state = state.model_copy(deep=True)
    new_state.bairro = None
    new_state.bairros = []
    new_state.mark_answered(QUESTION_BUSCA_AMPLIADA)
    return new_state
