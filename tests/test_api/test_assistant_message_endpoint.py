"""Tests for the assistant chat endpoint."""

import pytest
import json
import sys
import os
from unittest.mock import AsyncMock, patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from src.models.funnel import AssistantTurn, FunnelStage, QuickAction
from tests.utils.assertions import assert_valid_response
from tests.utils.helpers import create_vercel_request


def _turn(**overrides) -> AssistantTurn:
    data = dict(
        conversation_id="conv-1",
        stage=FunnelStage.START,
        reply="Olá! Sou a IzA.",
        quick_actions=[QuickAction(label="Comprar", value="Quero comprar")],
        lead_score=0,
        lead_status="frio",
    )
    data.update(overrides)
    return AssistantTurn(**data)


@pytest.mark.unit
def test_assistant_message_success():
    """Test a chat message returns the serialized assistant turn."""
    from api.assistant.message import handler

    request = create_vercel_request(body={"conversation_id": "conv-1", "message": "  Oi  ", "broker_id": "broker-1"})
    handle = AsyncMock(return_value=_turn())

    with patch('api.assistant.message.handle_user_message', new=handle):
        response = handler(request)

    body = assert_valid_response(response, 200)
    assert body["conversation_id"] == "conv-1"
    assert body["stage"] == "start"
    assert body["quick_actions"][0]["label"] == "Comprar"
    kwargs = handle.call_args.kwargs
    assert kwargs["message"] == "Oi"
    assert kwargs["broker_id"] == "broker-1"
    assert kwargs["history"] is None


@pytest.mark.unit
def test_assistant_message_rejects_get():
    from api.assistant.message import handler

    response = handler(create_vercel_request(method="GET"))

    assert response["statusCode"] == 405


@pytest.mark.unit
def test_assistant_message_invalid_json():
    from api.assistant.message import handler

    response = handler(create_vercel_request(body="{not json"))

    body = assert_valid_response(response, 400)
    assert "Invalid JSON" in body["error"]


@pytest.mark.unit
def test_assistant_message_requires_message():
    from api.assistant.message import handler

    response = handler(create_vercel_request(body={"conversation_id": "conv-1", "message": "   "}))

    body = assert_valid_response(response, 400)
    assert body["error"] == "message is required"


@pytest.mark.unit
def test_assistant_message_too_long():
    from api.assistant.message import handler

    response = handler(create_vercel_request(body={"message": "a" * 2001}))

    assert_valid_response(response, 400)


@pytest.mark.unit
def test_assistant_message_internal_error():
    """Test unexpected failures return 500 with the correlation id."""
    from api.assistant.message import handler

    with patch('api.assistant.message.handle_user_message', new=AsyncMock(side_effect=RuntimeError("boom"))):
        response = handler(create_vercel_request(body={"message": "Oi"}))

    body = assert_valid_response(response, 500)
    assert body["error"] == "Internal error"
    assert body["correlation_id"].startswith("req_")
