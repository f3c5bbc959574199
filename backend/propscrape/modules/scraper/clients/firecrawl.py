"""
Firecrawl v2 client for single-page scrapes and asynchronous crawl jobs
"""
import logging
from typing import Dict, List, Optional, Any, Union

import httpx

from propscrape.core.config import settings
from propscrape.core.exceptions import ExternalServiceError
from propscrape.models.scraper import CrawlStatus, RawScrapePayload
from .base import BaseCapabilityClient

logger = logging.getLogger(__name__)


class FirecrawlClient(BaseCapabilityClient):
    """Thin wrapper over the Firecrawl v2 REST endpoints"""

    service_name = "firecrawl"

    def __init__(self, api_key: str, base_url: str = "https://api.firecrawl.dev",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        # Per-request timeouts are set from the scrape options
        super().__init__(api_key, base_url, timeout=150.0, transport=transport)

    async def scrape(self, url: str, wait_for_ms: int, timeout_ms: int,
                     formats: List[Union[str, Dict[str, Any]]],
                     **options: Any) -> RawScrapePayload:
        """Scrape one page; returns the page payload (markdown/html/json/metadata)"""
        body = {
            "url": url,
            "formats": formats,
            "waitFor": wait_for_ms,
            "timeout": timeout_ms,
            **options,
        }
        # Allow the HTTP round trip a little longer than the server-side timeout
        response = await self._request("POST", "/v2/scrape", json=body,
                                       timeout=timeout_ms / 1000 + 10)

        if response.get("success") is False:
            raise ExternalServiceError(self.service_name, f"Scrape failed: {response.get('error', 'Unknown error')}")

        data = response.get("data", response)
        if not isinstance(data, dict):
            raise ExternalServiceError(self.service_name, "Scrape returned an unexpected payload")

        metadata = data.get("metadata") or {}
        logger.info(f"Scraped {url} (status {metadata.get('statusCode')}, "
                    f"credits {metadata.get('creditsUsed')}, sections {sorted(data.keys())})")
        return data

    async def start_crawl(self, url: str, limit: int, include_paths: List[str],
                          scrape_options: Dict[str, Any], **options: Any) -> str:
        """Dispatch a crawl job and return its id"""
        body = {
            "url": url,
            "limit": limit,
            "includePaths": include_paths,
            "scrapeOptions": scrape_options,
            **options,
        }
        response = await self._request("POST", "/v2/crawl", json=body)

        job_id = response.get("id")
        if response.get("success") is False or not job_id:
            raise ExternalServiceError(
                self.service_name,
                f"Crawl failed to start: {response.get('error', 'Unknown error')}"
            )

        logger.info(f"Crawl job {job_id} started for {url}")
        return job_id

    async def get_crawl_status(self, job_id: str) -> CrawlStatus:
        """Crawl job status; a completed job's pages are collected across every batch"""
        response = await self._request("GET", f"/v2/crawl/{job_id}")
        status = response.get("status", "unknown")
        data = list(response.get("data") or [])

        next_url = response.get("next")
        seen = set()
        while status == "completed" and next_url and next_url not in seen:
            seen.add(next_url)
            batch = await self._request("GET", next_url)
            data.extend(batch.get("data") or [])
            next_url = batch.get("next")
        if seen:
            logger.info(f"Crawl job {job_id}: collected {len(data)} pages over {len(seen) + 1} batches")

        return CrawlStatus(
            status=status,
            completed=response.get("completed") or 0,
            total=response.get("total") or 0,
            credits_used=response.get("creditsUsed"),
            data=data,
            error=response.get("error"),
        )


def get_firecrawl_client() -> FirecrawlClient:
    """Build a client from settings; raises ConfigurationError without credentials"""
    return FirecrawlClient(settings.FIRECRAWL_API_KEY, settings.FIRECRAWL_BASE_URL)
