"""
Scrape/crawl orchestration against the external scraping capability.

Single pages are scraped with one blocking call. Multi-page crawls dispatch an
asynchronous job and poll its status with a bounded number of checks.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from propscrape.core.config import settings
from propscrape.core.exceptions import (
    CrawlJobFailedError, ExternalServiceError, PollingTimeoutError
)
from propscrape.models.scraper import CrawlStatus, RawScrapePayload

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]
ClockFunc = Callable[[], float]

EXTRACTION_PROMPT = (
    "Extract commercial property listing details including title, price, location, "
    "size, amenities, features, contact info, and images"
)

PROPERTY_EXTRACTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "Property listing title"},
        "description": {"type": "string", "description": "Detailed property description"},
        "price": {
            "type": "object",
            "properties": {
                "amount": {"type": "number"},
                "currency": {"type": "string"},
                "period": {"type": "string"},
            },
        },
        "location": {"type": "string", "description": "Property location/address"},
        "size": {
            "type": "object",
            "properties": {
                "area": {"type": "number"},
                "unit": {"type": "string"},
            },
        },
        "amenities": {
            "type": "array",
            "items": {"type": "string"},
            "description": "List of available amenities",
        },
        "features": {
            "type": "object",
            "properties": {
                name: {"type": "boolean"}
                for name in ["furnished", "parking", "wifi", "ac", "security", "cafeteria"]
            },
        },
        "contact": {
            "type": "object",
            "properties": {
                "phone": {"type": "string"},
                "email": {"type": "string"},
            },
        },
        "images": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Array of image URLs",
        },
        "availability": {"type": "string", "description": "Availability status and date"},
    },
}

JSON_EXTRACTION_FORMAT = {
    "type": "json",
    "prompt": EXTRACTION_PROMPT,
    "schema": PROPERTY_EXTRACTION_SCHEMA,
}

PAGINATION_INCLUDE_PATHS = [r".*page=[0-9]+.*", r".*p=[0-9]+.*"]

RUNNING_STATUSES = {"scraping", "running", "pending", "queued"}


class CrawlState(str, Enum):
    STARTED = "started"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


TERMINAL_STATES = {CrawlState.COMPLETED, CrawlState.FAILED, CrawlState.TIMED_OUT, CrawlState.CANCELLED}


@dataclass
class CrawlOutcome:
    job_id: str
    pages: List[RawScrapePayload]
    attempts: int
    completed: int = 0
    total: int = 0
    credits_used: Optional[int] = None


@dataclass
class CrawlJobPoller:
    """Polls one crawl job until it completes, fails, times out or is cancelled.

    Transient errors while *querying* status consume attempts but do not end
    the loop. Cancelling only stops local polling; the remote job keeps running.
    """
    client: Any
    job_id: str
    poll_interval: float
    max_attempts: int
    sleep: SleepFunc = asyncio.sleep
    clock: ClockFunc = time.monotonic
    max_wait_seconds: Optional[float] = None
    cancel_event: Optional[asyncio.Event] = None

    state: CrawlState = CrawlState.STARTED
    attempts: int = 0
    history: List[CrawlState] = field(default_factory=lambda: [CrawlState.STARTED])

    def _transition(self, state: CrawlState):
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Crawl job {self.job_id} already finished as {self.state.value}")
        self.state = state
        if self.history[-1] != state:
            self.history.append(state)

    def _check_cancelled(self):
        if self.cancel_event is not None and self.cancel_event.is_set():
            self._transition(CrawlState.CANCELLED)
            logger.info(f"Stopped polling crawl job {self.job_id} after {self.attempts} checks "
                        f"(remote job left running)")
            raise asyncio.CancelledError(f"Polling of crawl job {self.job_id} was cancelled")

    def _deadline_passed(self, started_at: float) -> bool:
        return (self.max_wait_seconds is not None and
                self.clock() - started_at >= self.max_wait_seconds)

    async def run(self) -> CrawlOutcome:
        started_at = self.clock()
        last_error: Optional[ExternalServiceError] = None

        try:
            while self.attempts < self.max_attempts and not self._deadline_passed(started_at):
                self._check_cancelled()
                await self.sleep(self.poll_interval)
                self._check_cancelled()

                self.attempts += 1
                self._transition(CrawlState.POLLING)

                try:
                    status: CrawlStatus = await self.client.get_crawl_status(self.job_id)
                except ExternalServiceError as e:
                    last_error = e
                    logger.warning(f"Error checking crawl status for {self.job_id} "
                                   f"(attempt {self.attempts}/{self.max_attempts}): {e}")
                    continue

                last_error = None
                logger.info(f"Crawl job {self.job_id} status {status.status} "
                            f"({status.completed}/{status.total}, attempt {self.attempts})")

                if status.status == "completed":
                    self._transition(CrawlState.COMPLETED)
                    return CrawlOutcome(
                        job_id=self.job_id,
                        pages=list(status.data),
                        attempts=self.attempts,
                        completed=status.completed,
                        total=status.total,
                        credits_used=status.credits_used,
                    )

                if status.status in RUNNING_STATUSES:
                    continue

                self._transition(CrawlState.FAILED)
                reason = status.error or f"ended with status {status.status}"
                raise CrawlJobFailedError(self.job_id, reason)
        except asyncio.CancelledError:
            if self.state not in TERMINAL_STATES:
                self._transition(CrawlState.CANCELLED)
            raise

        if last_error is not None:
            self._transition(CrawlState.FAILED)
            raise ExternalServiceError(
                "firecrawl",
                f"Crawl status checks for {self.job_id} kept failing after {self.attempts} attempts: {last_error}",
                status_code=last_error.status_code,
            )

        self._transition(CrawlState.TIMED_OUT)
        logger.error(f"Crawl job {self.job_id} timed out after {self.attempts} status checks")
        raise PollingTimeoutError(self.job_id, self.attempts)


class ScrapeOrchestrator:
    """Drives the scraping capability for single pages and crawl jobs"""

    def __init__(self, client: Any, poll_interval: Optional[float] = None,
                 max_poll_attempts: Optional[int] = None,
                 sleep: SleepFunc = asyncio.sleep, clock: ClockFunc = time.monotonic,
                 max_wait_seconds: Optional[float] = None):
        self.client = client
        self.poll_interval = (settings.CRAWL_POLL_INTERVAL_SECONDS
                              if poll_interval is None else poll_interval)
        self.max_poll_attempts = (settings.CRAWL_MAX_POLL_ATTEMPTS
                                  if max_poll_attempts is None else max_poll_attempts)
        self.sleep = sleep
        self.clock = clock
        self.max_wait_seconds = max_wait_seconds

    async def scrape_page(self, url: str, wait_for_ms: Optional[int] = None,
                          timeout_ms: Optional[int] = None,
                          include_tags: Optional[List[str]] = None,
                          exclude_tags: Optional[List[str]] = None) -> RawScrapePayload:
        """One blocking scrape; fails immediately without retrying"""
        options: Dict[str, Any] = {"onlyMainContent": False}
        if include_tags:
            options["includeTags"] = include_tags
        if exclude_tags:
            options["excludeTags"] = exclude_tags

        logger.info(f"Scraping {url}")
        payload = await self.client.scrape(
            url,
            wait_for_ms=wait_for_ms or settings.SCRAPE_WAIT_FOR_MS,
            timeout_ms=timeout_ms or settings.SCRAPE_TIMEOUT_MS,
            formats=["markdown", "html", JSON_EXTRACTION_FORMAT],
            **options,
        )

        if not payload or not (payload.get("markdown") or payload.get("json")):
            raise ExternalServiceError("firecrawl", f"Scrape of {url} returned no content")
        return payload

    def default_crawl_scrape_options(self, wait_for_ms: Optional[int] = None,
                                     include_tags: Optional[List[str]] = None,
                                     exclude_tags: Optional[List[str]] = None) -> Dict[str, Any]:
        wait = wait_for_ms or 2000
        options: Dict[str, Any] = {
            "formats": ["markdown", JSON_EXTRACTION_FORMAT],
            "actions": [
                {"type": "wait", "milliseconds": wait},
                {"type": "scroll", "direction": "down"},
            ],
            "onlyMainContent": True,
            "waitFor": wait,
            "timeout": 30000,
        }
        if include_tags:
            options["includeTags"] = include_tags
        if exclude_tags:
            options["excludeTags"] = exclude_tags
        return options

    async def crawl(self, url: str, max_pages: int,
                    scrape_options: Optional[Dict[str, Any]] = None,
                    include_paths: Optional[List[str]] = None,
                    cancel_event: Optional[asyncio.Event] = None) -> CrawlOutcome:
        """Dispatch a crawl job and poll it to completion"""
        job_id = await self.client.start_crawl(
            url,
            limit=max_pages,
            include_paths=include_paths or PAGINATION_INCLUDE_PATHS,
            scrape_options=scrape_options or self.default_crawl_scrape_options(),
        )
        outcome = await self.poll_crawl_job(job_id, cancel_event=cancel_event)
        logger.info(f"Crawl job {job_id} completed with {len(outcome.pages)} pages "
                    f"after {outcome.attempts} status checks")
        return outcome

    def poller_for(self, job_id: str, cancel_event: Optional[asyncio.Event] = None) -> CrawlJobPoller:
        return CrawlJobPoller(
            client=self.client,
            job_id=job_id,
            poll_interval=self.poll_interval,
            max_attempts=self.max_poll_attempts,
            sleep=self.sleep,
            clock=self.clock,
            max_wait_seconds=self.max_wait_seconds,
            cancel_event=cancel_event,
        )

    async def poll_crawl_job(self, job_id: str,
                             cancel_event: Optional[asyncio.Event] = None) -> CrawlOutcome:
        return await self.poller_for(job_id, cancel_event).run()
