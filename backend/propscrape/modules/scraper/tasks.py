"""
Celery tasks for background scrape jobs
"""
import asyncio
import logging
from typing import Dict, Any

from propscrape.core.celery_app import celery_app
from propscrape.core.config import settings
from propscrape.core.exceptions import ConfigurationError
from propscrape.models.scraper import ScrapeRequest
from .clients.ai_extraction import get_ai_extraction_client
from .clients.firecrawl import get_firecrawl_client
from .service import ScraperService

logger = logging.getLogger(__name__)


async def _run_pipeline(request: ScrapeRequest) -> Dict[str, Any]:
    async with get_firecrawl_client() as scrape_client:
        ai_client = None
        if settings.AI_EXTRACTION_ENABLED and request.use_ai_fallback:
            try:
                ai_client = get_ai_extraction_client()
            except ConfigurationError as e:
                logger.warning(f"Running without AI fallback: {e}")

        try:
            service = ScraperService(scrape_client, ai_client=ai_client)
            result = await service.run(request)
        finally:
            if ai_client is not None:
                await ai_client.aclose()
    return result.model_dump(mode="json")


# Never auto-retried
@celery_app.task(bind=True)
def run_scrape_job(self, request_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Background task running one full pipeline invocation
    """
    request = ScrapeRequest.model_validate(request_data)
    logger.info(f"Task {self.request.id}: starting scrape job")
    try:
        result = asyncio.run(_run_pipeline(request))
    except Exception as e:
        logger.error(f"Task {self.request.id}: scrape job failed: {str(e)}")
        raise
    logger.info(f"Task {self.request.id}: scrape job found {result['metadata']['total_found']} records")
    return result


# Utility functions for task management
def schedule_scrape(request: ScrapeRequest):
    """Schedule a pipeline run in the background"""
    return run_scrape_job.delay(request.model_dump(mode="json"))


def get_task_status(task_id: str) -> Dict[str, Any]:
    """Get the status of a Celery task"""
    result = celery_app.AsyncResult(task_id)
    return {
        'task_id': task_id,
        'status': result.status,
        'result': result.result if result.ready() and not result.failed() else None,
        'error': str(result.result) if result.failed() else None,
        'traceback': result.traceback if result.failed() else None
    }
