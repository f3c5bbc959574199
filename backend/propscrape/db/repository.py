"""
SQLAlchemy persistence for approved property records
"""
import logging
from sqlalchemy.orm import Session

from propscrape.db.models import ImportedProperty
from propscrape.models.property import ExtractionSource, PropertyRecord
from propscrape.modules.scraper.staging import PropertyRepository

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_TAG_THRESHOLD = 0.8


def build_tags(record: PropertyRecord):
    tags = ["imported", "scraped"]
    provenance = record.provenance
    if provenance.extracted_by == ExtractionSource.AI:
        tags.append("ai-processed")
        if provenance.confidence is not None and provenance.confidence >= HIGH_CONFIDENCE_TAG_THRESHOLD:
            tags.append("high-confidence")
    return tags


class SqlAlchemyPropertyRepository(PropertyRepository):
    """Writes approved records as draft catalog entries"""

    def __init__(self, db: Session):
        self.db = db

    def _apply(self, row: ImportedProperty, record: PropertyRecord):
        data = record.model_dump(mode="json")
        row.title = record.title
        row.description = record.description
        row.location = record.location
        row.price = data["price"]
        row.size = data["size"]
        row.amenities = data["amenities"] or []
        row.features = data["features"]
        row.contact = data["contact"]
        row.media = data["media"]
        row.availability = data["availability"]
        row.status = "draft"
        row.tags = build_tags(record)
        row.source_url = record.source_url
        row.scraped_at = record.scraped_at
        row.extracted_by = record.provenance.extracted_by.value
        row.confidence = record.provenance.confidence
        row.extraction_metadata = data["provenance"]
        row.validation_errors = record.validation_errors

    def create(self, record: PropertyRecord, overwrite_existing: bool = False) -> str:
        row = None
        if overwrite_existing:
            row = self.db.query(ImportedProperty).filter(
                ImportedProperty.source_url == record.source_url,
                ImportedProperty.title == record.title,
            ).first()

        if row is None:
            row = ImportedProperty()
            self.db.add(row)
        else:
            logger.info(f"Overwriting imported property {row.id} ({record.title})")

        self._apply(row, record)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(row)
        return row.id
