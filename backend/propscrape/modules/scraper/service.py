"""
Extraction pipeline service: build URL, scrape or crawl, transform, validate,
optionally fall back to AI extraction, then stage the result for review.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from propscrape.core.config import settings
from propscrape.core.exceptions import AIExtractionError, ConfigurationError
from propscrape.models.property import PropertyRecord
from propscrape.models.scraper import (
    PreviewResult, RawScrapePayload, ScrapeMetadata, ScrapeRequest, ScrapeResult
)
from propscrape.models.search import SearchParameters
from .ai_fallback import AIFallbackExtractor, FallbackOutcome, should_fallback
from .orchestrator import ScrapeOrchestrator
from .staging import StagingArea
from .transformer import transform
from .url_builder import build_url, coerce_search_params
from .validator import annotate

logger = logging.getLogger(__name__)


class ScraperService:
    """One instance per pipeline run; capability clients are injected"""

    def __init__(self, scrape_client, ai_client=None, staging: Optional[StagingArea] = None,
                 **orchestrator_options: Any):
        self.scrape_client = scrape_client
        self.ai_client = ai_client
        self.staging = staging
        self.orchestrator = ScrapeOrchestrator(scrape_client, **orchestrator_options)

    @staticmethod
    def resolve_target(request: ScrapeRequest):
        """Return (url, search_params); raises SearchParameterError before any external call"""
        if request.search_params is not None:
            params = coerce_search_params(request.search_params)
            return build_url(params), params
        return request.direct_url, None

    def preview(self, request: ScrapeRequest) -> PreviewResult:
        url, params = self.resolve_target(request)
        return PreviewResult(url=url, search_params=params, from_search_params=params is not None)

    async def run(self, request: ScrapeRequest) -> ScrapeResult:
        url, params = self.resolve_target(request)
        logger.info(f"Starting {'crawl' if request.is_crawl else 'scrape'} of {url}")

        job_id = None
        credits_used = None
        if request.is_crawl:
            max_pages = min(request.max_pages, settings.CRAWL_MAX_PAGES)
            outcome = await self.orchestrator.crawl(
                url,
                max_pages=max_pages,
                scrape_options=self.orchestrator.default_crawl_scrape_options(
                    request.wait_for, request.include_tags, request.exclude_tags
                ),
            )
            pages: List[RawScrapePayload] = outcome.pages
            raw_payload: Any = outcome.pages
            job_id = outcome.job_id
            credits_used = outcome.credits_used
        else:
            page = await self.orchestrator.scrape_page(
                url,
                wait_for_ms=request.wait_for,
                include_tags=request.include_tags,
                exclude_tags=request.exclude_tags,
            )
            pages = [page]
            raw_payload = page
            credits_used = (page.get("metadata") or {}).get("creditsUsed")

        records = annotate(transform(pages, url, params))
        warnings: List[str] = []
        ui_spec = None
        ai_metadata = None

        if request.use_ai_fallback and settings.AI_EXTRACTION_ENABLED and should_fallback(records):
            if self.ai_client is None:
                warnings.append("AI fallback skipped: AI extraction is not configured")
            else:
                try:
                    fallback = await AIFallbackExtractor(self.ai_client).extract(
                        raw_payload, url, search_params=params, hints=request.extraction_hints
                    )
                except AIExtractionError as e:
                    logger.warning(f"AI fallback failed for {url}, keeping {len(records)} structured records: {e}")
                    warnings.append(f"AI fallback failed: {e}")
                else:
                    records, ui_spec = self._merge(records, fallback)
                    ai_metadata = fallback.metadata
                    warnings.extend(fallback.warnings)

        result = ScrapeResult(
            success=True,
            data=records,
            raw_payload=raw_payload,
            ui_spec=ui_spec,
            ai_metadata=ai_metadata,
            warnings=warnings,
            metadata=ScrapeMetadata(
                url=url,
                scraped_at=datetime.now(),
                total_found=len(records),
                search_params=params,
                job_id=job_id,
                credits_used=credits_used,
                pages_scraped=len(pages),
            ),
        )
        self._stage(result)
        logger.info(f"Pipeline for {url} finished with {len(records)} records"
                    f"{' and a UI specification' if ui_spec is not None else ''}")
        return result

    @staticmethod
    def _merge(records: List[PropertyRecord], fallback: FallbackOutcome):
        # A UI specification is never mixed with property records
        if fallback.is_ui_spec:
            return [], fallback.ui_spec
        return records + fallback.records, None

    def _stage(self, result: ScrapeResult):
        if self.staging is not None:
            result.staged_id = self.staging.stage(result)

    async def transform_with_ai(self, raw_payload: Any, source_url: str,
                                search_params: Optional[Dict[str, Any]] = None,
                                hints: Optional[str] = None) -> ScrapeResult:
        """Run AI extraction on an already scraped payload"""
        if self.ai_client is None:
            raise ConfigurationError("AI extraction is not configured")

        params: Optional[SearchParameters] = (
            coerce_search_params(search_params) if search_params is not None else None
        )
        fallback = await AIFallbackExtractor(self.ai_client).extract(
            raw_payload, source_url, search_params=params, hints=hints
        )
        records, ui_spec = self._merge([], fallback)

        result = ScrapeResult(
            success=True,
            data=records,
            raw_payload=raw_payload,
            ui_spec=ui_spec,
            ai_metadata=fallback.metadata,
            warnings=fallback.warnings,
            metadata=ScrapeMetadata(
                url=source_url,
                scraped_at=datetime.now(),
                total_found=len(records),
                search_params=params,
            ),
        )
        self._stage(result)
        return result
