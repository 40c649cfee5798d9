"""Assistant chat endpoint: one user message in, the IzA turn out."""

import json
import asyncio

from src.services.assistant_session import handle_user_message
from src.services.listing_store import SupabaseListingStore
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)

MAX_MESSAGE_LENGTH = 2000


def _response(status_code: int, payload: dict) -> dict:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload, ensure_ascii=False),
    }


def _parse_body(request: dict) -> dict:
    body = request.get("body") or {}
    if isinstance(body, (bytes, str)):
        body = json.loads(body) if body else {}
    if not isinstance(body, dict):
        raise ValueError("Body must be a JSON object")
    return body


def handler(request):
    """
    Handle a chat message.

    Body: ``{"conversation_id"?, "message", "broker_id"?, "history"?}``
    """
    method = (request.get("method") or "POST").upper()
    if method != "POST":
        return _response(405, {"error": "Method not allowed"})

    with correlation_context() as correlation_id:
        try:
            body = _parse_body(request)
        except ValueError as e:
            return _response(400, {"error": f"Invalid JSON body: {e}"})

        message = (body.get("message") or "").strip()
        if not message:
            return _response(400, {"error": "message is required"})
        if len(message) > MAX_MESSAGE_LENGTH:
            return _response(400, {"error": f"message exceeds {MAX_MESSAGE_LENGTH} characters"})

        try:
            turn = asyncio.run(handle_user_message(
                conversation_id=body.get("conversation_id"),
                message=message,
                store=SupabaseListingStore(),
                history=body.get("history"),
                broker_id=body.get("broker_id"),
            ))
        except Exception as e:
            logger.exception("Assistant request failed", correlation_id=correlation_id, error=str(e))
            return _response(500, {"error": "Internal error", "correlation_id": correlation_id})

        return _response(200, turn.model_dump(mode="json"))
