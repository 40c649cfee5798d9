"""Lead match suggestions endpoint."""

import json
import asyncio

from src.services.lead_matching import get_property_suggestions, is_strong_match
from src.services.property_normalizer import property_path
from src.utils.logging import correlation_context, get_structured_logger, mask_identifier
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)

DEFAULT_LIMIT = 5
MAX_LIMIT = 20


def handler(request):
    """Return the best listings for ``?lead_id=`` (optional ``&limit=``)."""
    query_params = request.get("query", {}) or {}
    lead_id = query_params.get("lead_id")
    if not lead_id:
        return {
            "statusCode": 400,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"error": "lead_id is required"})
        }

    try:
        limit = min(int(query_params.get("limit", DEFAULT_LIMIT)), MAX_LIMIT)
    except (TypeError, ValueError):
        limit = DEFAULT_LIMIT

    with correlation_context():
        matches = asyncio.run(get_property_suggestions(lead_id, limit=limit))
        logger.info("Lead matches served", lead_id=mask_identifier(lead_id), returned=len(matches))

    return {
        "statusCode": 200,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps({
            "lead_id": lead_id,
            "matches": [
                {
                    "match_score": match.match_score,
                    "strong_match": is_strong_match(match.match_score),
                    "path": property_path(match.listing),
                    "listing": match.listing.model_dump(mode="json"),
                }
                for match in matches
            ],
        }, ensure_ascii=False)
    }
