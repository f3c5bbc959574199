# Listing extraction pipeline

from .service import ScraperService
from .orchestrator import ScrapeOrchestrator, CrawlJobPoller, CrawlState, CrawlOutcome
from .ai_fallback import AIFallbackExtractor, confidence_band, should_fallback
from .staging import StagingArea, StagedResult, StagedStatus, PropertyRepository
from .presets import PresetService, get_search_preset_examples

__all__ = [
    "ScraperService",
    "ScrapeOrchestrator", "CrawlJobPoller", "CrawlState", "CrawlOutcome",
    "AIFallbackExtractor", "confidence_band", "should_fallback",
    "StagingArea", "StagedResult", "StagedStatus", "PropertyRepository",
    "PresetService", "get_search_preset_examples",
]
