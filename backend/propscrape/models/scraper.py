from pydantic import BaseModel, Field, AliasChoices, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from propscrape.models.property import PropertyRecord
from propscrape.models.search import SearchParameters

# One scraped page as returned by the scraping capability: optional
# "markdown", "html" and "json" sections plus "metadata". Never typed further.
RawScrapePayload = Dict[str, Any]


class CrawlStatus(BaseModel):
    """Status of an asynchronous crawl job as reported by the scraping capability"""
    status: str
    completed: int = 0
    total: int = 0
    credits_used: Optional[int] = None
    data: List[RawScrapePayload] = []
    error: Optional[str] = None


class ScrapeRequest(BaseModel):
    # Left untyped here; the URL builder validates it and reports every problem at once
    search_params: Optional[Dict[str, Any]] = None
    direct_url: Optional[str] = None
    use_crawl: bool = False
    max_pages: int = Field(1, ge=1, le=10)
    wait_for: Optional[int] = Field(None, ge=0, le=60000)  # milliseconds
    include_tags: List[str] = []
    exclude_tags: List[str] = []
    use_ai_fallback: bool = True
    extraction_hints: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode='after')
    def validate_target(self):
        if self.search_params is None and not self.direct_url:
            raise ValueError('Either direct_url or search_params must be provided')
        if self.search_params is not None and self.direct_url:
            raise ValueError('Provide either direct_url or search_params, not both')
        if self.direct_url and not self.direct_url.startswith(('http://', 'https://')):
            raise ValueError('direct_url must be an absolute http(s) URL')
        return self

    @property
    def is_crawl(self) -> bool:
        return self.use_crawl and self.max_pages > 1


class ScrapeMetadata(BaseModel):
    url: str
    scraped_at: datetime
    total_found: int
    search_params: Optional[SearchParameters] = None
    job_id: Optional[str] = None
    credits_used: Optional[int] = None
    pages_scraped: int = 0


class AIExtractionMetadata(BaseModel):
    model: str
    tokens_used: int = 0
    processing_time_ms: int = 0
    warnings: List[str] = []
    extraction_method: str = "mixed"
    records_extracted: int = 0


class ScrapeResult(BaseModel):
    """Pipeline output handed to the review layer"""
    success: bool
    data: List[PropertyRecord] = []
    raw_payload: Optional[Any] = None
    ui_spec: Optional[Dict[str, Any]] = None
    ai_metadata: Optional[AIExtractionMetadata] = None
    error: Optional[str] = None
    warnings: List[str] = []
    staged_id: Optional[str] = None
    metadata: ScrapeMetadata

    class Config:
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }


class PreviewResult(BaseModel):
    url: str
    search_params: Optional[SearchParameters] = None
    from_search_params: bool
    note: str = "This URL will be scraped when the full scrape runs"


class AITransformRequest(BaseModel):
    raw_payload: Any
    source_url: str
    search_params: Optional[Dict[str, Any]] = None
    extraction_hints: Optional[str] = Field(None, max_length=2000)


class BulkImportRequest(BaseModel):
    records: List[PropertyRecord] = Field(
        ..., validation_alias=AliasChoices('records', 'properties')
    )
    skip_validation: bool = False
    overwrite_existing: bool = False


class ImportErrorItem(BaseModel):
    index: int
    error: str


class BulkImportResult(BaseModel):
    success: bool = False
    imported: int = 0
    failed: int = 0
    errors: List[ImportErrorItem] = []
    created_ids: List[str] = []
