"""
Tests for the AI fallback extractor
"""
import pytest
from unittest.mock import AsyncMock

from propscrape.models.extraction import (
    AIExtractionResponse, ConfidenceBand, ExtractedCandidate, PropertiesExtraction, UISpecExtraction
)
from propscrape.models.property import ExtractionProvenance, ExtractionSource
from propscrape.modules.scraper.ai_fallback import (
    AIFallbackExtractor, confidence_band, mean_confidence, should_fallback
)

SOURCE_URL = "https://www.magicbricks.com/property-for-rent/commercial/mumbai"


def ai_response(content, **kwargs):
    return AIExtractionResponse(content=content, model="test-model", tokens_used=100, **kwargs)


class TestConfidence:

    @pytest.mark.parametrize("score,band", [
        (0.95, ConfidenceBand.HIGH),
        (0.8, ConfidenceBand.HIGH),
        (0.79, ConfidenceBand.MEDIUM),
        (0.5, ConfidenceBand.MEDIUM),
        (0.49, ConfidenceBand.LOW),
        (None, ConfidenceBand.LOW),
    ])
    def test_confidence_band(self, score, band):
        assert confidence_band(score) == band

    def test_fallback_when_no_records(self):
        assert should_fallback([], threshold=0.5) is True

    def test_fallback_on_low_mean_confidence(self, make_record):
        low = make_record(provenance=ExtractionProvenance(extracted_by=ExtractionSource.SCRAPE, confidence=0.3))
        high = make_record()
        assert mean_confidence([low, high]) == pytest.approx(0.6)
        assert should_fallback([low, high], threshold=0.7) is True
        assert should_fallback([low, high], threshold=0.5) is False


class TestAIFallbackExtractor:
    """Test interpretation of both response variants"""

    @pytest.mark.asyncio
    async def test_properties_variant_becomes_ai_records(self):
        client = AsyncMock()
        client.extract.return_value = ai_response(PropertiesExtraction(candidates=[
            ExtractedCandidate(
                data={"title": "Coworking Hub Andheri", "description": "Hot desks and private cabins",
                      "location": "Andheri East, Mumbai", "price": {"amount": "8000"},
                      "size": {"area": 20, "unit": "seats"}},
                confidence=0.85,
                warnings=["price per seat"],
                fields_extracted=["title", "price"],
                fields_missing=["contact"],
            ),
        ]))

        outcome = await AIFallbackExtractor(client).extract({"markdown": "..."}, SOURCE_URL, hints="seats")

        client.extract.assert_awaited_once()
        assert client.extract.await_args.kwargs["hints"] == "seats"
        assert outcome.ui_spec is None
        assert len(outcome.records) == 1
        record = outcome.records[0]
        assert record.price.amount == 8000
        assert record.provenance.extracted_by == ExtractionSource.AI
        assert record.provenance.confidence == 0.85
        assert record.provenance.warnings == ["price per seat"]
        assert record.provenance.fields_missing == ["contact"]
        assert record.validation_errors == []
        assert outcome.metadata.records_extracted == 1
        assert outcome.metadata.model == "test-model"

    def test_ui_spec_variant_yields_no_records(self):
        response = ai_response(UISpecExtraction(spec={"component": {"component": "Cards"}}, component_type="Cards"))

        outcome = AIFallbackExtractor(AsyncMock()).interpret(response, SOURCE_URL)

        assert outcome.is_ui_spec
        assert outcome.records == []
        assert outcome.ui_spec == {"component": {"component": "Cards"}}
        assert outcome.metadata.records_extracted == 0

    def test_ai_records_are_validated(self):
        response = ai_response(PropertiesExtraction(candidates=[
            ExtractedCandidate(data={"title": "Ab"}),
        ]))

        outcome = AIFallbackExtractor(AsyncMock()).interpret(response, SOURCE_URL)

        assert outcome.records[0].provenance.confidence == 0.5
        assert "Title is too short (minimum 5 characters)" in outcome.records[0].validation_errors

    def test_unknown_variant_is_rejected(self):
        response = ai_response(PropertiesExtraction())
        response.content = object()

        with pytest.raises(TypeError):
            AIFallbackExtractor(AsyncMock()).interpret(response, SOURCE_URL)
