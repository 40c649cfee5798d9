"""Market intelligence endpoint: R$/m2 per group plus the overall summary."""

import json
import asyncio

from src.services.listing_store import SupabaseListingStore
from src.services.market_intelligence import GROUP_KEYS, analyze_market, generate_market_summary, unique_values
from src.utils.errors import DataStoreError, MarketDataError
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)


def _response(status_code: int, payload: dict) -> dict:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload, ensure_ascii=False),
    }


def handler(request):
    """``?group_by=uf|cidade|bairro|tipo&uf=&cidade=&tipo=``"""
    query_params = request.get("query", {}) or {}
    group_by = query_params.get("group_by") or "bairro"
    uf = query_params.get("uf") or None
    cidade = query_params.get("cidade") or None
    tipo = query_params.get("tipo") or None

    if group_by not in GROUP_KEYS:
        return _response(400, {"error": f"Invalid group_by: {group_by}"})

    with correlation_context() as correlation_id:
        try:
            listings = asyncio.run(SupabaseListingStore().fetch_market_listings(uf=uf, cidade=cidade))
            analyses = analyze_market(listings, group_by, uf=uf, cidade=cidade, tipo=tipo)
        except MarketDataError as e:
            return _response(400, {"error": str(e)})
        except DataStoreError as e:
            logger.error("Market data unavailable", correlation_id=correlation_id, error=str(e))
            return _response(503, {"error": "Market data unavailable", "correlation_id": correlation_id})

        logger.info("Market analysis served", group_by=group_by, groups=len(analyses), listings=len(listings))
        return _response(200, {
            "group_by": group_by,
            "summary": generate_market_summary(listings).model_dump(),
            "analyses": [analysis.model_dump() for analysis in analyses],
            "filters": {
                "uf": unique_values(listings, "uf"),
                "cidade": unique_values(listings, "cidade"),
                "tipo": unique_values(listings, "tipo"),
            },
        })
