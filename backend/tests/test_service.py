"""
Tests for the end-to-end pipeline service with mocked capabilities
"""
import json
import httpx
import pytest
from unittest.mock import AsyncMock

from propscrape.core.exceptions import (
    AIExtractionError, ConfigurationError, ExternalServiceError, PollingTimeoutError,
    SearchParameterError
)
from propscrape.models.extraction import (
    AIExtractionResponse, ExtractedCandidate, PropertiesExtraction, UISpecExtraction
)
from propscrape.models.property import ExtractionSource
from propscrape.models.scraper import CrawlStatus, ScrapeRequest
from propscrape.modules.scraper.clients.ai_extraction import AIExtractionClient
from propscrape.modules.scraper.service import ScraperService
from propscrape.modules.scraper.staging import StagingArea

LISTINGS = [
    {
        "title": "Premium Office in Whitefield",
        "description": "Grade A office space with 100 seats and power backup",
        "location": "Whitefield, Bangalore",
        "price": {"amount": 250000, "currency": "INR", "period": "monthly"},
        "size": {"area": 5000, "unit": "sqft"},
        "amenities": ["Parking", "Cafeteria"],
        "features": {"parking": True},
        "contact": {"phone": "+91 98765 43210"},
        "images": ["https://img.example.com/1.jpg"],
        "availability": "Available immediately",
    },
    {
        "title": "Furnished Office near MG Road",
        "description": "Ready to move office with conference rooms",
        "location": "MG Road, Bangalore",
        "price": {"amount": "180000"},
        "size": {"area": "3200"},
        "amenities": ["Lift"],
        "features": {"furnished": True},
        "contact": {"email": "agent@example.com"},
        "images": ["https://img.example.com/2.jpg"],
        "availability": "Available",
    },
]


def page(json_block, **extra):
    return {"markdown": "# Listings", "json": json_block, "metadata": {"statusCode": 200, "creditsUsed": 1}, **extra}


@pytest.fixture
def scrape_client():
    client = AsyncMock()
    client.scrape.return_value = page(LISTINGS)
    return client


@pytest.fixture
def ai_client():
    return AsyncMock()


async def no_sleep(seconds):
    return None


def make_service(scrape_client, ai_client=None, staging=None):
    return ScraperService(scrape_client, ai_client=ai_client, staging=staging,
                          poll_interval=1.0, max_poll_attempts=5, sleep=no_sleep)


class TestScraperServiceRun:
    """Test full pipeline runs"""

    @pytest.mark.asyncio
    async def test_scrape_transform_validate_and_stage(self, scrape_client, ai_client):
        staging = StagingArea()
        service = make_service(scrape_client, ai_client, staging)

        result = await service.run(ScrapeRequest(search_params={"location": "Bangalore", "property_type": "office"}))

        assert result.success is True
        assert len(result.data) == 2
        assert all(r.validation_errors == [] for r in result.data)
        assert result.metadata.total_found == 2
        assert result.metadata.url.endswith("/bangalore/office-space")
        assert result.metadata.search_params.location == "Bangalore"
        assert result.metadata.credits_used == 1
        assert result.raw_payload["markdown"] == "# Listings"
        # High-confidence structured records do not trigger the AI path
        ai_client.extract.assert_not_called()
        assert staging.get(result.staged_id).records == result.data

    @pytest.mark.asyncio
    async def test_invalid_params_fail_before_external_call(self, scrape_client):
        service = make_service(scrape_client)

        with pytest.raises(SearchParameterError):
            await service.run(ScrapeRequest(search_params={"min_price": 10, "max_price": 5}))

        scrape_client.scrape.assert_not_called()

    @pytest.mark.asyncio
    async def test_direct_url(self, scrape_client):
        service = make_service(scrape_client)
        result = await service.run(ScrapeRequest(direct_url="https://example.com/listing/42"))

        assert result.metadata.url == "https://example.com/listing/42"
        assert result.metadata.search_params is None
        assert scrape_client.scrape.await_args.args[0] == "https://example.com/listing/42"

    @pytest.mark.asyncio
    async def test_crawl_mode(self, scrape_client):
        scrape_client.start_crawl.return_value = "job-9"
        scrape_client.get_crawl_status.side_effect = [
            CrawlStatus(status="scraping"),
            CrawlStatus(status="completed", credits_used=3,
                        data=[page([LISTINGS[0]]), page([LISTINGS[1]])]),
        ]
        service = make_service(scrape_client)

        result = await service.run(ScrapeRequest(direct_url="https://example.com/search",
                                                 use_crawl=True, max_pages=3))

        assert result.metadata.job_id == "job-9"
        assert result.metadata.pages_scraped == 2
        assert result.metadata.credits_used == 3
        assert len(result.data) == 2
        assert isinstance(result.raw_payload, list)
        assert scrape_client.start_crawl.await_args.kwargs["limit"] == 3

    @pytest.mark.asyncio
    async def test_crawl_timeout_propagates(self, scrape_client):
        scrape_client.start_crawl.return_value = "job-9"
        scrape_client.get_crawl_status.return_value = CrawlStatus(status="running")
        service = make_service(scrape_client)

        with pytest.raises(PollingTimeoutError) as exc_info:
            await service.run(ScrapeRequest(direct_url="https://example.com/search",
                                            use_crawl=True, max_pages=2))

        assert exc_info.value.attempts == 5

    @pytest.mark.asyncio
    async def test_scrape_failure_propagates(self, scrape_client):
        scrape_client.scrape.side_effect = ExternalServiceError("firecrawl", "HTTP 500", status_code=500)
        service = make_service(scrape_client)

        with pytest.raises(ExternalServiceError):
            await service.run(ScrapeRequest(direct_url="https://example.com/listing"))


class TestAIFallbackInPipeline:
    """Test the fallback branch of the pipeline"""

    @pytest.mark.asyncio
    async def test_empty_structured_result_uses_ai_records(self, scrape_client, ai_client):
        scrape_client.scrape.return_value = {"markdown": "# Listing text", "metadata": {}}
        ai_client.extract.return_value = AIExtractionResponse(
            content=PropertiesExtraction(candidates=[ExtractedCandidate(data=LISTINGS[0], confidence=0.9)]),
            model="test-model",
        )
        service = make_service(scrape_client, ai_client)

        result = await service.run(ScrapeRequest(direct_url="https://example.com/listing",
                                                 extraction_hints="Office listings"))

        assert len(result.data) == 1
        assert result.data[0].provenance.extracted_by == ExtractionSource.AI
        assert result.ai_metadata.model == "test-model"
        assert ai_client.extract.await_args.kwargs["hints"] == "Office listings"

    @pytest.mark.asyncio
    async def test_ui_spec_yields_no_records(self, scrape_client, ai_client):
        scrape_client.scrape.return_value = {"markdown": "# Listing text", "json": {}}
        ai_client.extract.return_value = AIExtractionResponse(
            content=UISpecExtraction(spec={"component": {"component": "ListingCards"}}),
        )
        service = make_service(scrape_client, ai_client)

        result = await service.run(ScrapeRequest(direct_url="https://example.com/listing"))

        assert result.data == []
        assert result.ui_spec == {"component": {"component": "ListingCards"}}
        assert result.metadata.total_found == 0

    @pytest.mark.asyncio
    async def test_ai_error_keeps_structured_records(self, scrape_client, ai_client):
        # Sparse candidates have low scrape confidence and trigger the fallback
        scrape_client.scrape.return_value = page([{"title": "Sparse listing"}])
        ai_client.extract.side_effect = AIExtractionError("model overloaded")
        service = make_service(scrape_client, ai_client)

        result = await service.run(ScrapeRequest(direct_url="https://example.com/listing"))

        assert result.success is True
        assert len(result.data) == 1
        assert result.data[0].provenance.extracted_by == ExtractionSource.SCRAPE
        assert any("model overloaded" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_malformed_ai_answer_keeps_structured_records(self, scrape_client):
        scrape_client.scrape.return_value = page([{"title": "Sparse listing"}])
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"choices": ["not a message"]})
        )
        ai_client = AIExtractionClient("ai-key", "https://ai.example.com/v1", model="m", transport=transport)
        service = make_service(scrape_client, ai_client)

        async with ai_client:
            result = await service.run(ScrapeRequest(direct_url="https://example.com/listing"))

        assert len(result.data) == 1
        assert result.data[0].provenance.extracted_by == ExtractionSource.SCRAPE
        assert any(w.startswith("AI fallback failed") for w in result.warnings)

    @pytest.mark.asyncio
    async def test_odd_ai_metadata_still_yields_records(self, scrape_client):
        scrape_client.scrape.return_value = {"markdown": "# Listing text", "metadata": {}}
        answer = json.dumps({
            "properties": [{"title": "Office A", "description": "Open plan office",
                            "location": "Pune", "metadata": ["x"]}],
            "metadata": {"warnings": [{"field": "price"}]},
        })
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={
            "model": "m",
            "choices": [{"message": {"content": answer}}],
            "usage": {"total_tokens": None},
        }))
        ai_client = AIExtractionClient("ai-key", "https://ai.example.com/v1", model="m", transport=transport)
        service = make_service(scrape_client, ai_client)

        async with ai_client:
            result = await service.run(ScrapeRequest(direct_url="https://example.com/listing"))

        assert [r.title for r in result.data] == ["Office A"]
        assert result.data[0].provenance.extracted_by == ExtractionSource.AI
        assert result.ai_metadata.tokens_used == 0

    @pytest.mark.asyncio
    async def test_fallback_disabled_per_request(self, scrape_client, ai_client):
        scrape_client.scrape.return_value = {"markdown": "# Listing text"}
        service = make_service(scrape_client, ai_client)

        result = await service.run(ScrapeRequest(direct_url="https://example.com/listing",
                                                 use_ai_fallback=False))

        assert result.data == []
        ai_client.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_ai_client_is_a_warning(self, scrape_client):
        scrape_client.scrape.return_value = {"markdown": "# Listing text"}
        service = make_service(scrape_client)

        result = await service.run(ScrapeRequest(direct_url="https://example.com/listing"))

        assert result.data == []
        assert result.warnings == ["AI fallback skipped: AI extraction is not configured"]


class TestPreviewAndTransform:

    def test_preview_makes_no_external_call(self, scrape_client):
        service = make_service(scrape_client)
        preview = service.preview(ScrapeRequest(search_params={"location": "Pune"}))

        assert preview.url.endswith("/pune")
        assert preview.from_search_params is True
        scrape_client.scrape.assert_not_called()

    @pytest.mark.asyncio
    async def test_transform_with_ai(self, ai_client):
        ai_client.extract.return_value = AIExtractionResponse(
            content=PropertiesExtraction(candidates=[ExtractedCandidate(data=LISTINGS[1], confidence=0.7)]),
        )
        staging = StagingArea()
        service = ScraperService(None, ai_client=ai_client, staging=staging)

        result = await service.transform_with_ai({"markdown": "raw"}, "https://example.com/l/1",
                                                 search_params={"location": "Bangalore"})

        assert len(result.data) == 1
        assert result.metadata.search_params.location == "Bangalore"
        assert result.staged_id is not None

    @pytest.mark.asyncio
    async def test_transform_without_ai_client(self):
        service = ScraperService(None)
        with pytest.raises(ConfigurationError):
            await service.transform_with_ai({"markdown": "raw"}, "https://example.com/l/1")
