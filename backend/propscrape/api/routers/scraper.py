from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
import logging

from propscrape.core.config import settings
from propscrape.core.database import get_db
from propscrape.core.exceptions import (
    AIExtractionError, AlreadyImportedError, ConfigurationError, ExternalServiceError,
    PollingTimeoutError, ScraperError, SearchParameterError, StagedResultNotFoundError
)
from propscrape.db.repository import SqlAlchemyPropertyRepository
from propscrape.models.scraper import (
    AITransformRequest, BulkImportRequest, BulkImportResult, PreviewResult,
    ScrapeRequest, ScrapeResult
)
from propscrape.models.search import SearchPreset, SearchPresetCreate
from propscrape.modules.scraper.clients.ai_extraction import get_ai_extraction_client
from propscrape.modules.scraper.clients.firecrawl import get_firecrawl_client
from propscrape.modules.scraper.presets import PresetService, get_search_preset_examples
from propscrape.modules.scraper.service import ScraperService
from propscrape.modules.scraper.staging import PropertyRepository, StagingArea
from propscrape.modules.scraper.tasks import get_task_status, schedule_scrape

logger = logging.getLogger(__name__)

router = APIRouter()

# Shared across requests for the lifetime of the process
staging_area = StagingArea()


def get_staging_area() -> StagingArea:
    return staging_area


def to_http_exception(error: ScraperError) -> HTTPException:
    """Map a pipeline error onto an HTTP response"""
    if isinstance(error, SearchParameterError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid search parameters", "errors": error.errors},
        )
    if isinstance(error, ConfigurationError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    if isinstance(error, PollingTimeoutError):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(error))
    if isinstance(error, (ExternalServiceError, AIExtractionError)):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))
    if isinstance(error, StagedResultNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, AlreadyImportedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


def _optional_ai_client():
    if not settings.AI_EXTRACTION_ENABLED:
        return None
    try:
        return get_ai_extraction_client()
    except ConfigurationError as e:
        logger.warning(f"AI fallback unavailable: {e}")
        return None


async def get_scraper_service(staging: StagingArea = Depends(get_staging_area)):
    try:
        scrape_client = get_firecrawl_client()
    except ConfigurationError as e:
        raise to_http_exception(e)

    ai_client = _optional_ai_client()
    try:
        yield ScraperService(scrape_client, ai_client=ai_client, staging=staging)
    finally:
        await scrape_client.aclose()
        if ai_client is not None:
            await ai_client.aclose()


async def get_ai_transform_service(staging: StagingArea = Depends(get_staging_area)):
    try:
        ai_client = get_ai_extraction_client()
    except ConfigurationError as e:
        raise to_http_exception(e)

    try:
        yield ScraperService(None, ai_client=ai_client, staging=staging)
    finally:
        await ai_client.aclose()


def get_property_repository(db: Session = Depends(get_db)) -> PropertyRepository:
    return SqlAlchemyPropertyRepository(db)


def get_preset_service(db: Session = Depends(get_db)) -> PresetService:
    return PresetService(db)


@router.post("/scrape", response_model=ScrapeResult)
async def scrape(
    request: ScrapeRequest,
    scraper_service: ScraperService = Depends(get_scraper_service)
):
    """
    Scrape a listing page (or crawl several) and stage the extracted records for review.

    Supply either search parameters (the URL is built from them) or a direct URL.
    """
    try:
        return await scraper_service.run(request)
    except ScraperError as e:
        logger.error(f"Scrape failed: {e}")
        raise to_http_exception(e)


@router.post("/preview", response_model=PreviewResult)
async def preview(request: ScrapeRequest):
    """Show the URL that would be scraped, without calling any external service"""
    try:
        url, params = ScraperService.resolve_target(request)
    except SearchParameterError as e:
        raise to_http_exception(e)
    return PreviewResult(url=url, search_params=params, from_search_params=params is not None)


@router.post("/transform", response_model=ScrapeResult)
async def transform_with_ai(
    request: AITransformRequest,
    scraper_service: ScraperService = Depends(get_ai_transform_service)
):
    """Run AI extraction on an already scraped raw payload"""
    try:
        return await scraper_service.transform_with_ai(
            request.raw_payload,
            request.source_url,
            search_params=request.search_params,
            hints=request.extraction_hints,
        )
    except ScraperError as e:
        logger.error(f"AI transform failed for {request.source_url}: {e}")
        raise to_http_exception(e)


@router.get("/staged/{staged_id}")
async def get_staged(staged_id: str, staging: StagingArea = Depends(get_staging_area)) -> Dict[str, Any]:
    try:
        return staging.get(staged_id).summary()
    except StagedResultNotFoundError as e:
        raise to_http_exception(e)


@router.post("/staged/{staged_id}/approve", response_model=BulkImportResult)
def approve_staged(
    staged_id: str,
    request: BulkImportRequest,
    staging: StagingArea = Depends(get_staging_area),
    repository: PropertyRepository = Depends(get_property_repository)
):
    """
    Import the reviewer-approved (possibly edited) subset of a staged result.

    A staged result can be approved only once.
    """
    try:
        return staging.approve(staged_id, request, repository)
    except ScraperError as e:
        raise to_http_exception(e)


@router.delete("/staged/{staged_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_staged(staged_id: str, staging: StagingArea = Depends(get_staging_area)):
    try:
        staging.discard(staged_id)
    except ScraperError as e:
        raise to_http_exception(e)


@router.get("/presets/examples", response_model=List[SearchPresetCreate])
async def get_preset_examples():
    return get_search_preset_examples()


@router.get("/presets", response_model=List[SearchPreset])
def list_presets(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    preset_service: PresetService = Depends(get_preset_service)
):
    return preset_service.list_presets(limit=limit, offset=offset)


@router.post("/presets", response_model=SearchPreset, status_code=status.HTTP_201_CREATED)
def create_preset(
    preset: SearchPresetCreate,
    preset_service: PresetService = Depends(get_preset_service)
):
    return preset_service.create_preset(preset)


@router.post("/presets/{preset_id}/use", response_model=SearchPreset)
def use_preset(
    preset_id: str,
    preset_service: PresetService = Depends(get_preset_service)
):
    """Record that a preset was used and return it"""
    preset = preset_service.mark_used(preset_id)
    if preset is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Search preset {preset_id} not found"
        )
    return preset


@router.delete("/presets/{preset_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_preset(
    preset_id: str,
    preset_service: PresetService = Depends(get_preset_service)
):
    if not preset_service.delete_preset(preset_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Search preset {preset_id} not found"
        )


@router.post("/jobs", status_code=status.HTTP_202_ACCEPTED)
async def schedule_job(request: ScrapeRequest) -> Dict[str, Any]:
    """Run the pipeline in the background; poll /jobs/{task_id} for the result"""
    try:
        ScraperService.resolve_target(request)
    except SearchParameterError as e:
        raise to_http_exception(e)

    task = schedule_scrape(request)
    logger.info(f"Scheduled background scrape job {task.id}")
    return {"task_id": task.id, "status": "queued"}


@router.get("/jobs/{task_id}")
async def get_job(task_id: str) -> Dict[str, Optional[Any]]:
    return get_task_status(task_id)
