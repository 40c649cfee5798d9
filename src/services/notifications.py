"""Broker notifications (push via the ``onesignal-push`` Edge Function) and WhatsApp share links."""

import os
import re
from typing import Any, Optional
from urllib.parse import quote

from src.models.conversation import Conversation
from src.models.scoring import LeadClassification
from src.services.lead_scoring import generate_lead_summary, should_notify_broker
from src.services.supabase_client import SupabaseClient
from src.utils.errors import DataStoreError, NotificationError
from src.utils.logging import get_structured_logger, mask_identifier

logger = get_structured_logger(__name__)

PUSH_FUNCTION_NAME = "onesignal-push"
HOT_LEAD_NOTIFICATIONS = os.environ.get("HOT_LEAD_NOTIFICATIONS", "true").lower() == "true"
LEADS_PANEL_PATH = "/dashboard/leads"


async def _invoke_push(payload: dict) -> Any:
    try:
        async with SupabaseClient() as client:
            return client.functions.invoke(PUSH_FUNCTION_NAME, invoke_options={"body": payload})
    except DataStoreError as e:
        raise NotificationError(f"Push client unavailable: {e}")
    except Exception as e:
        raise NotificationError(f"Push notification failed: {e}")


async def send_push_notification(title: str, body: str, user_id: str, link: Optional[str] = None) -> Any:
    """
    Send a push notification to a user.

    Fire-and-forget: failures are logged and ``None`` is returned so the
    caller's flow never depends on delivery.
    """
    payload = {"title": title, "message": body, "userId": user_id, "link": link}
    try:
        result = await _invoke_push(payload)
    except NotificationError as e:
        logger.error("Push notification not sent", user_id=mask_identifier(user_id), error=str(e))
        return None

    logger.info("Push notification sent", user_id=mask_identifier(user_id), has_link=bool(link))
    return result


async def notify_hot_lead(conversation: Conversation, classification: LeadClassification) -> bool:
    """Tell the broker hosting the conversation that a hot lead is waiting. Returns whether a push was attempted."""
    if not HOT_LEAD_NOTIFICATIONS or not should_notify_broker(classification):
        return False
    if not conversation.broker_id:
        logger.warning("Hot lead without broker", conversation_id=mask_identifier(conversation.id))
        return False

    summary = generate_lead_summary(conversation, classification)
    await send_push_notification(
        title=f"🔥 Lead quente! Score {classification.score}/100",
        body=summary,
        user_id=conversation.broker_id,
        link=LEADS_PANEL_PATH,
    )
    return True


def normalize_whatsapp_number(phone: str) -> str:
    """Digits of a Brazilian number without the 55 country code."""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("55") and len(digits) in (12, 13):
        digits = digits[2:]
    return digits


def build_whatsapp_link(phone: str, message: str = "") -> str:
    """``https://wa.me/55<digits>?text=<url-encoded message>``"""
    link = f"https://wa.me/55{normalize_whatsapp_number(phone)}"
    if message:
        link += f"?text={quote(message)}"
    return link
