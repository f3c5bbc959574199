# Pydantic models for API contracts

from .search import (
    PropertyType, FurnishingStatus, AvailabilityWindow, SortOption,
    SearchParameters, SearchPreset, SearchPresetCreate
)
from .property import (
    Currency, PricePeriod, SizeUnit, AvailabilityStatus, ExtractionSource,
    Price, Size, Contact, Media, AvailabilityInfo, ExtractionProvenance, PropertyRecord
)
from .scraper import (
    RawScrapePayload, CrawlStatus, ScrapeRequest, ScrapeMetadata, AIExtractionMetadata,
    ScrapeResult, PreviewResult, AITransformRequest,
    BulkImportRequest, ImportErrorItem, BulkImportResult
)
from .extraction import (
    ConfidenceBand, ExtractedCandidate, PropertiesExtraction, UISpecExtraction,
    AIExtractionResponse
)

__all__ = [
    # Search models
    "PropertyType", "FurnishingStatus", "AvailabilityWindow", "SortOption",
    "SearchParameters", "SearchPreset", "SearchPresetCreate",

    # Property record models
    "Currency", "PricePeriod", "SizeUnit", "AvailabilityStatus", "ExtractionSource",
    "Price", "Size", "Contact", "Media", "AvailabilityInfo", "ExtractionProvenance",
    "PropertyRecord",

    # Pipeline I/O
    "RawScrapePayload", "CrawlStatus", "ScrapeRequest", "ScrapeMetadata",
    "AIExtractionMetadata", "ScrapeResult", "PreviewResult", "AITransformRequest",
    "BulkImportRequest", "ImportErrorItem", "BulkImportResult",

    # AI extraction
    "ConfidenceBand", "ExtractedCandidate", "PropertiesExtraction", "UISpecExtraction",
    "AIExtractionResponse"
]
