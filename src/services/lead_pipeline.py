"""
Kanban lead pipeline.

Leads move freely between columns; archiving replaces deletion except when a
broker explicitly deletes a lead.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Optional, Union

from ulid import ULID

from src.models.conversation import Conversation
from src.models.lead import Lead, LeadOrigin, LeadStatus
from src.models.scoring import PropertyMatch
from src.services import supabase_client
from src.services.lead_matching import get_property_suggestions
from src.services.platform_knowledge import OPERATION_LABELS
from src.utils.errors import LeadPipelineError
from src.utils.logging import get_structured_logger, mask_identifier

logger = get_structured_logger(__name__)

COLUMN_IDS = {status.value for status in LeadStatus}

PROPERTY_TYPE_LABELS = {
    "apartamento": "Apartamento",
    "casa": "Casa",
    "terreno": "Terreno",
    "comercial": "Comercial",
    "kitnet": "Kitnet",
    "sobrado": "Sobrado",
    "cobertura": "Cobertura",
    "chacara": "Chácara",
    "fazenda": "Fazenda",
    "galpao": "Galpão",
}


def _as_lead(lead: Union[Lead, dict]) -> Lead:
    return lead if isinstance(lead, Lead) else Lead.model_validate(lead)


def parse_status(value: str) -> LeadStatus:
    try:
        return LeadStatus(value)
    except ValueError:
        raise LeadPipelineError(f"Invalid lead status: {value!r}")


def resolve_drop_target(lead: Union[Lead, dict], over_id: str, leads: list) -> Optional[LeadStatus]:
    """
    Map a Kanban drop onto the destination status.

    ``over_id`` is either a column id (a status value) or the id of the lead
    the card was dropped on, in which case the dragged lead joins that lead's
    column. Returns None when nothing changes or the target is unknown.
    """
    lead = _as_lead(lead)
    if over_id in COLUMN_IDS:
        target = LeadStatus(over_id)
    else:
        other = next((_as_lead(l) for l in leads if str(_as_lead(l).id) == str(over_id)), None)
        if other is None:
            return None
        target = LeadStatus(other.status)

    if target.value == lead.status:
        return None
    return target


async def move_lead(lead_id: str, new_status: Union[LeadStatus, str]) -> Optional[dict]:
    """Persist a status transition. Moving to the current status is a no-op returning None."""
    status = parse_status(new_status.value if isinstance(new_status, LeadStatus) else new_status)

    row = await supabase_client.get_lead_by_id(lead_id)
    if not row:
        raise LeadPipelineError(f"Lead not found: {lead_id}")
    if row.get("status") == status.value:
        return None

    updated = await supabase_client.update_lead(lead_id, {"status": status.value})
    logger.info(
        "Lead moved",
        lead_id=mask_identifier(lead_id),
        from_status=row.get("status"),
        to_status=status.value
    )
    return updated


async def archive_lead(lead_id: str) -> Optional[dict]:
    return await move_lead(lead_id, LeadStatus.ARQUIVADO)


async def unarchive_lead(lead_id: str) -> Optional[dict]:
    """Bring an archived lead back to the first column."""
    return await move_lead(lead_id, LeadStatus.NOVO)


async def delete_lead(lead_id: str) -> None:
    await supabase_client.delete_lead(lead_id)
    logger.info("Lead deleted", lead_id=mask_identifier(lead_id))


def pipeline_stats(leads: list) -> dict:
    """Per-column counts; ``total`` leaves archived leads out."""
    counts = Counter(_as_lead(lead).status for lead in leads)
    by_status = {status.value: counts.get(status.value, 0) for status in LeadStatus}
    return {
        "total": sum(count for status, count in by_status.items() if status != LeadStatus.ARQUIVADO.value),
        "by_status": by_status,
    }


async def create_lead_with_matches(lead_data: dict) -> tuple[dict, list[PropertyMatch]]:
    """
    Create a lead, then look up its best listings.

    The two steps are sequential with no rollback: if suggestions fail the
    created lead is kept and returned with no matches.
    """
    lead = Lead.model_validate(lead_data)
    payload = lead.model_dump(exclude_none=True)
    payload.setdefault("id", str(ULID()))
    payload.setdefault("data_criacao", datetime.now(timezone.utc).isoformat())

    created = await supabase_client.create_lead(payload)
    matches = await get_property_suggestions(str(created["id"]))
    logger.info(
        "Lead created",
        lead_id=mask_identifier(str(created["id"])),
        origem=created.get("origem"),
        matches=len(matches)
    )
    return created, matches


def build_lead_from_conversation(conversation: Conversation) -> dict:
    """Lead record for the broker from a qualified assistant conversation."""
    state = conversation.conversation_state
    neighborhoods = state.neighborhoods[:3] + [None, None, None]

    notes = "Lead qualificado pela IzA"
    if conversation.lead_score is not None:
        notes += f" (score {conversation.lead_score}/100)"
    if state.quartos:
        notes += f". Quartos: {state.quartos}"

    lead = Lead(
        user_id=conversation.broker_id,
        nome=conversation.name or "Visitante IzA",
        telefone=conversation.phone_number,
        operacao_interesse=OPERATION_LABELS.get(state.operacao or "") or state.operacao,
        tipo_imovel_interesse=PROPERTY_TYPE_LABELS.get(state.tipo_imovel or "") or state.tipo_imovel,
        cidade_interesse=state.cidade,
        bairro_interesse=neighborhoods[0],
        bairro_interesse_2=neighborhoods[1],
        bairro_interesse_3=neighborhoods[2],
        orcamento_min=state.valor_min,
        orcamento_max=state.valor_max,
        status=LeadStatus.NOVO.value,
        origem=LeadOrigin.ASSISTENTE.value,
        observacoes=notes,
    )
    return lead.model_dump(exclude_none=True)
