"""
Business-rule validation for extracted property records.

Validation is advisory: issues are attached to records, records are never dropped.
"""
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict

from propscrape.models.property import Currency, PropertyRecord, SizeUnit

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 5
MIN_DESCRIPTION_LENGTH = 10
MIN_LOCATION_LENGTH = 3

PHONE_PATTERN = re.compile(r'^[\d\s\-\+\(\)]{8,}$')

TITLE_PLACEHOLDER_MARKERS = ("placeholder", "lorem ipsum")
DESCRIPTION_PLACEHOLDER_MARKERS = ("lorem ipsum",)


def _contains_marker(text: str, markers) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in markers)


def validate_record(record: PropertyRecord) -> List[str]:
    """Return the list of business-rule issues for a record (empty if clean)"""
    errors = []

    title = record.title or ""
    if len(title.strip()) < MIN_TITLE_LENGTH:
        errors.append(f"Title is too short (minimum {MIN_TITLE_LENGTH} characters)")
    if _contains_marker(title, TITLE_PLACEHOLDER_MARKERS):
        errors.append("Title appears to contain placeholder text")

    description = record.description or ""
    if len(description.strip()) < MIN_DESCRIPTION_LENGTH:
        errors.append(f"Description is too short (minimum {MIN_DESCRIPTION_LENGTH} characters)")
    if _contains_marker(description, DESCRIPTION_PLACEHOLDER_MARKERS):
        errors.append("Description appears to contain placeholder text")

    if len((record.location or "").strip()) < MIN_LOCATION_LENGTH:
        errors.append("Location is required")

    if record.price is not None:
        if record.price.amount <= 0:
            errors.append("Price amount must be greater than 0")
        if record.price.currency not in set(Currency):
            errors.append("Invalid currency code")

    if record.size is not None:
        if record.size.area <= 0:
            errors.append("Area must be greater than 0")
        if record.size.unit not in set(SizeUnit):
            errors.append("Invalid size unit")

    if record.contact is not None:
        if record.contact.phone and not PHONE_PATTERN.match(record.contact.phone):
            errors.append("Phone number format appears invalid")
        if record.contact.email and "@" not in record.contact.email:
            errors.append("Email address format appears invalid")

    # Only the first bad image is reported
    for image in record.media.images:
        if not image.startswith("http"):
            errors.append("Invalid image URL format")
            break

    return errors


def annotate(records: List[PropertyRecord]) -> List[PropertyRecord]:
    """Return copies of the records with validation_errors filled in"""
    annotated = []
    for record in records:
        errors = validate_record(record)
        if errors:
            logger.debug(f"Record '{record.title}' has {len(errors)} validation issues")
        annotated.append(record.model_copy(update={"validation_errors": errors}))
    return annotated


@dataclass
class QualityReport:
    """Summary of validation results for a batch of records"""
    total_records: int
    clean_records: int
    issue_counts: Dict[str, int] = field(default_factory=dict)
    overall_score: float = 1.0
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def records_with_issues(self) -> int:
        return self.total_records - self.clean_records


def build_quality_report(records: List[PropertyRecord]) -> QualityReport:
    """Summarise validation issues across a batch (for reviewers only)"""
    counts: Counter = Counter()
    clean = 0

    for record in records:
        errors = record.validation_errors or validate_record(record)
        if not errors:
            clean += 1
        counts.update(errors)

    total = len(records)
    report = QualityReport(
        total_records=total,
        clean_records=clean,
        issue_counts=dict(counts),
        overall_score=round(clean / total, 3) if total else 1.0,
    )
    logger.info(f"Quality report: {clean}/{total} clean records, score {report.overall_score}")
    return report
