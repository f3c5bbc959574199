"""
Error types raised by the extraction pipeline
"""
from typing import List, Optional


class ScraperError(Exception):
    """Base class for all pipeline errors"""


class ConfigurationError(ScraperError):
    """A capability cannot be used because its credentials are missing"""


class SearchParameterError(ScraperError):
    """Search parameters failed validation; raised before any external call"""
    
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid search parameters: {', '.join(self.errors)}")


class ExternalServiceError(ScraperError):
    """A call to an external capability failed or returned no content"""
    
    def __init__(self, service: str, message: str, status_code: Optional[int] = None,
                 details: Optional[str] = None):
        self.service = service
        self.status_code = status_code
        self.details = details
        super().__init__(f"{service}: {message}")


class CrawlJobFailedError(ExternalServiceError):
    """The scraping capability reported the crawl job itself as failed"""
    
    def __init__(self, job_id: str, message: str):
        self.job_id = job_id
        super().__init__("firecrawl", f"Crawl job {job_id} failed: {message}")


class PollingTimeoutError(ExternalServiceError):
    """A crawl job did not finish within the polling attempt budget"""
    
    def __init__(self, job_id: str, attempts: int):
        self.job_id = job_id
        self.attempts = attempts
        super().__init__("firecrawl", f"Crawl job {job_id} timed out after {attempts} status checks")


class TransformationError(ScraperError):
    """A single scraped candidate could not be mapped to a property record"""


class AIExtractionError(ScraperError):
    """The AI extraction capability failed or returned unusable content"""


class StagingError(ScraperError):
    """Base class for review/import staging errors"""


class StagedResultNotFoundError(StagingError):
    pass


class AlreadyImportedError(StagingError):
    """A staged result set was already approved (or is being approved)"""
