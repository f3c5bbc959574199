from sqlalchemy import Column, String, Float, DateTime, Text, JSON, Index
from sqlalchemy.sql import func
from propscrape.core.database import Base
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


class SearchPresetRecord(Base):
    """Named, reusable search parameters"""
    __tablename__ = "search_presets"

    id = Column(String(36), primary_key=True, default=_new_id)

    name = Column(String(200), nullable=False)
    description = Column(Text)

    # Search parameters (stored as JSON for flexibility)
    search_params = Column(JSON, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_used = Column(DateTime(timezone=True))

    __table_args__ = (
        Index('idx_search_presets_name', 'name'),
    )


class ImportedProperty(Base):
    """Draft catalog entry created from an approved staged record"""
    __tablename__ = "imported_properties"

    id = Column(String(36), primary_key=True, default=_new_id)

    # Basic property information
    title = Column(String(500), nullable=False)
    description = Column(Text)
    location = Column(String(500), nullable=False)

    # Composite fields kept as JSON, exactly as approved
    price = Column(JSON)
    size = Column(JSON)
    amenities = Column(JSON)
    features = Column(JSON)
    contact = Column(JSON)
    media = Column(JSON)
    availability = Column(JSON)

    # Catalog workflow
    status = Column(String(50), default="draft")
    tags = Column(JSON)

    # Data lineage
    source_url = Column(String(2000), nullable=False)
    scraped_at = Column(DateTime(timezone=True))
    extracted_by = Column(String(20))
    confidence = Column(Float)
    extraction_metadata = Column(JSON)
    validation_errors = Column(JSON)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_imported_properties_source', 'source_url', 'title'),
        Index('idx_imported_properties_status', 'status'),
    )
