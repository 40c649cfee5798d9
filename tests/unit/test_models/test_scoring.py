"""Tests for scoring models."""

import pytest
from pydantic import ValidationError
from src.models.listing import Listing
from src.models.scoring import (
    LeadClassification,
    LeadPriority,
    LeadScoreBreakdown,
    LeadTemperature,
    PropertyMatch,
)


@pytest.mark.unit
def test_breakdown_total():
    breakdown = LeadScoreBreakdown(operacao=20, tipo_imovel=20, urgencia=15, detalhamento=5)

    assert breakdown.total == 60


@pytest.mark.unit
def test_classification_score_bounds():
    """Test that scores outside 0-100 are rejected."""
    with pytest.raises(ValidationError):
        LeadClassification(
            score=101,
            status=LeadTemperature.QUENTE,
            priority=LeadPriority.ALTA,
            breakdown=LeadScoreBreakdown(),
        )


@pytest.mark.unit
def test_property_match_requires_twenty_point_steps():
    """Test that match scores only come in 20-point steps."""
    listing = Listing(id="1")

    assert PropertyMatch(listing=listing, match_score=60).match_score == 60
    with pytest.raises(ValidationError):
        PropertyMatch(listing=listing, match_score=50)
