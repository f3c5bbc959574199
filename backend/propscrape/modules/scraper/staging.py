"""
In-memory staging of extracted records pending human review.

Approved records are handed verbatim to a persistence collaborator; nothing is
written durably here. Approval of a staged set happens at most once.
"""
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from propscrape.core.config import settings
from propscrape.core.exceptions import AlreadyImportedError, StagedResultNotFoundError
from propscrape.models.extraction import ConfidenceBand
from propscrape.models.property import PropertyRecord
from propscrape.models.scraper import (
    BulkImportRequest, BulkImportResult, ImportErrorItem, ScrapeResult
)
from .ai_fallback import confidence_band
from .validator import validate_record

logger = logging.getLogger(__name__)


class StagedStatus(str, Enum):
    PENDING = "pending"
    IMPORTING = "importing"
    IMPORTED = "imported"
    DISCARDED = "discarded"


class PropertyRepository(ABC):
    """Persistence collaborator that receives approved records"""

    @abstractmethod
    def create(self, record: PropertyRecord, overwrite_existing: bool = False) -> str:
        """Persist one record and return its permanent id"""


@dataclass
class StagedResult:
    staged_id: str
    records: List[PropertyRecord]
    raw_payload: Any = None
    ui_spec: Optional[Dict[str, Any]] = None
    source_url: Optional[str] = None
    confidence_bands: List[ConfidenceBand] = field(default_factory=list)
    status: StagedStatus = StagedStatus.PENDING
    staged_at: datetime = field(default_factory=datetime.now)
    import_result: Optional[BulkImportResult] = None

    def summary(self) -> Dict[str, Any]:
        return {
            "staged_id": self.staged_id,
            "status": self.status.value,
            "source_url": self.source_url,
            "staged_at": self.staged_at.isoformat(),
            "records": [r.model_dump(mode="json") for r in self.records],
            "confidence_bands": [b.value for b in self.confidence_bands],
            "ui_spec": self.ui_spec,
            "raw_payload": self.raw_payload,
            "import_result": self.import_result.model_dump() if self.import_result else None,
        }


class StagingArea:
    """Thread-safe holding area for scrape results awaiting approval.

    Entries older than ``max_age_seconds`` are swept whenever a new result is
    staged. Imported entries keep only their status and import result.
    """

    def __init__(self, max_age_seconds: Optional[int] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self._lock = threading.Lock()
        self._results: Dict[str, StagedResult] = {}
        if max_age_seconds is None:
            max_age_seconds = settings.STAGING_MAX_AGE_SECONDS
        self.max_age = timedelta(seconds=max_age_seconds)
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def _sweep_expired(self) -> int:
        # Caller holds the lock; an import in progress is never swept
        cutoff = self._clock() - self.max_age
        expired = [
            staged_id for staged_id, staged in self._results.items()
            if staged.staged_at < cutoff and staged.status != StagedStatus.IMPORTING
        ]
        for staged_id in expired:
            del self._results[staged_id]
        return len(expired)

    def stage(self, result: ScrapeResult) -> str:
        staged_id = str(uuid.uuid4())
        staged = StagedResult(
            staged_id=staged_id,
            records=list(result.data),
            raw_payload=result.raw_payload,
            ui_spec=result.ui_spec,
            source_url=result.metadata.url,
            confidence_bands=[confidence_band(r.provenance.confidence) for r in result.data],
            staged_at=self._clock(),
        )
        with self._lock:
            swept = self._sweep_expired()
            self._results[staged_id] = staged
        if swept:
            logger.info(f"Dropped {swept} expired staged results")
        logger.info(f"Staged {len(staged.records)} records from {staged.source_url} as {staged_id}")
        return staged_id

    def get(self, staged_id: str) -> StagedResult:
        with self._lock:
            staged = self._results.get(staged_id)
        if staged is None:
            raise StagedResultNotFoundError(f"No staged result with id {staged_id}")
        return staged

    def discard(self, staged_id: str) -> StagedResult:
        with self._lock:
            staged = self._results.get(staged_id)
            if staged is None:
                raise StagedResultNotFoundError(f"No staged result with id {staged_id}")
            if staged.status in (StagedStatus.IMPORTING, StagedStatus.IMPORTED):
                raise AlreadyImportedError(f"Staged result {staged_id} is {staged.status.value}")
            staged.status = StagedStatus.DISCARDED
            del self._results[staged_id]
        logger.info(f"Discarded staged result {staged_id}")
        return staged

    def _claim(self, staged_id: str) -> StagedResult:
        # pending -> importing must be atomic so only one approval proceeds
        with self._lock:
            staged = self._results.get(staged_id)
            if staged is None:
                raise StagedResultNotFoundError(f"No staged result with id {staged_id}")
            if staged.status != StagedStatus.PENDING:
                raise AlreadyImportedError(
                    f"Staged result {staged_id} cannot be approved (status: {staged.status.value})"
                )
            staged.status = StagedStatus.IMPORTING
            return staged

    def approve(self, staged_id: str, request: BulkImportRequest,
                repository: PropertyRepository) -> BulkImportResult:
        """Forward the reviewer-approved records to the repository, at most once"""
        staged = self._claim(staged_id)
        result = BulkImportResult()

        try:
            for index, record in enumerate(request.records):
                if not request.skip_validation:
                    errors = validate_record(record)
                    if errors:
                        result.failed += 1
                        result.errors.append(ImportErrorItem(
                            index=index, error=f"Validation failed: {', '.join(errors)}"
                        ))
                        continue

                try:
                    created_id = repository.create(record, request.overwrite_existing)
                except Exception as e:
                    logger.error(f"Failed to import record {index} of {staged_id}: {e}")
                    result.failed += 1
                    result.errors.append(ImportErrorItem(index=index, error=str(e)))
                    continue

                result.created_ids.append(created_id)
                result.imported += 1
                logger.debug(f"Imported record {index} of {staged_id} as {created_id}")
        finally:
            # The set is consumed even on a partial failure; a retry needs a new scrape
            with self._lock:
                staged.status = StagedStatus.IMPORTED
                staged.records = []
                staged.confidence_bands = []
                staged.raw_payload = None
                staged.ui_spec = None

        result.success = result.imported > 0
        staged.import_result = result
        logger.info(f"Approved {staged_id}: {result.imported} imported, {result.failed} failed")
        return result
