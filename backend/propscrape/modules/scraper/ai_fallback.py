"""
AI fallback extraction.

Used when the structured scrape yields nothing or only low-confidence records.
The AI capability answers with either property candidates or a UI
specification; both variants are handled explicitly.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from propscrape.core.config import settings
from propscrape.core.exceptions import TransformationError
from propscrape.models.extraction import (
    AIExtractionResponse, ConfidenceBand, PropertiesExtraction, UISpecExtraction
)
from propscrape.models.property import ExtractionProvenance, ExtractionSource, PropertyRecord
from propscrape.models.scraper import AIExtractionMetadata
from propscrape.models.search import SearchParameters
from .transformer import transform_candidate
from .validator import annotate

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5


def confidence_band(score: Optional[float]) -> ConfidenceBand:
    """Reviewer-facing band for a confidence score; never used for auto-approval"""
    if score is None:
        return ConfidenceBand.LOW
    if score >= HIGH_CONFIDENCE:
        return ConfidenceBand.HIGH
    if score >= MEDIUM_CONFIDENCE:
        return ConfidenceBand.MEDIUM
    return ConfidenceBand.LOW


def mean_confidence(records: List[PropertyRecord]) -> float:
    scores = [r.provenance.confidence for r in records if r.provenance.confidence is not None]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def should_fallback(records: List[PropertyRecord], threshold: Optional[float] = None) -> bool:
    """True when the structured path produced nothing or only low-confidence records"""
    if threshold is None:
        threshold = settings.AI_FALLBACK_CONFIDENCE_THRESHOLD
    if not records:
        return True
    return mean_confidence(records) < threshold


@dataclass
class FallbackOutcome:
    """Result of one AI extraction, already interpreted.

    Exactly one of ``records`` (possibly empty) or ``ui_spec`` carries data.
    """
    records: List[PropertyRecord] = field(default_factory=list)
    ui_spec: Optional[Dict[str, Any]] = None
    metadata: Optional[AIExtractionMetadata] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def is_ui_spec(self) -> bool:
        return self.ui_spec is not None


class AIFallbackExtractor:
    """Runs the AI extraction capability and turns its answer into records"""

    def __init__(self, client):
        self.client = client

    async def extract(self, raw_payload: Any, source_url: str,
                      search_params: Optional[SearchParameters] = None,
                      hints: Optional[str] = None) -> FallbackOutcome:
        response: AIExtractionResponse = await self.client.extract(
            raw_payload, source_url, hints=hints, search_params=search_params
        )
        return self.interpret(response, source_url, search_params)

    def interpret(self, response: AIExtractionResponse, source_url: str,
                  search_params: Optional[SearchParameters] = None) -> FallbackOutcome:
        content = response.content
        warnings = list(response.warnings)

        if isinstance(content, UISpecExtraction):
            logger.info(f"AI extraction for {source_url} returned a UI specification "
                        f"({content.component_type or 'unknown component'})")
            records: List[PropertyRecord] = []
            ui_spec = content.spec
        elif isinstance(content, PropertiesExtraction):
            records = self._records_from(content, source_url, search_params, warnings)
            ui_spec = None
        else:
            raise TypeError(f"Unhandled extraction variant: {type(content).__name__}")

        metadata = AIExtractionMetadata(
            model=response.model,
            tokens_used=response.tokens_used,
            processing_time_ms=response.processing_time_ms,
            warnings=warnings,
            extraction_method=response.extraction_method,
            records_extracted=len(records),
        )
        return FallbackOutcome(records=records, ui_spec=ui_spec, metadata=metadata, warnings=warnings)

    def _records_from(self, content: PropertiesExtraction, source_url: str,
                      search_params: Optional[SearchParameters],
                      warnings: List[str]) -> List[PropertyRecord]:
        scraped_at = datetime.now()
        records = []

        for index, candidate in enumerate(content.candidates):
            provenance = ExtractionProvenance(
                extracted_by=ExtractionSource.AI,
                confidence=candidate.confidence,
                warnings=candidate.warnings,
                fields_extracted=candidate.fields_extracted,
                fields_missing=candidate.fields_missing,
            )
            try:
                record = transform_candidate(candidate.data, source_url, scraped_at,
                                             search_params, provenance=provenance)
            except TransformationError as e:
                logger.warning(f"Dropping AI candidate {index} for {source_url}: {e}")
                warnings.append(f"Candidate {index} could not be converted: {e}")
                continue
            records.append(record)

        logger.info(f"AI extraction produced {len(records)} of {len(content.candidates)} "
                    f"candidates for {source_url}")
        return annotate(records)
