"""
Saved search presets
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from propscrape.db.models import SearchPresetRecord
from propscrape.models.search import (
    AvailabilityWindow, FurnishingStatus, PropertyType, SearchParameters,
    SearchPreset, SearchPresetCreate, SortOption
)

logger = logging.getLogger(__name__)


def get_search_preset_examples() -> List[SearchPresetCreate]:
    """Built-in example searches for a quick start"""
    return [
        SearchPresetCreate(
            name="Bangalore Furnished Offices",
            description="Furnished office spaces in Bangalore",
            search_params=SearchParameters(
                location="Bangalore",
                property_type=PropertyType.OFFICE,
                furnished=FurnishingStatus.FURNISHED,
                amenities=["parking", "wifi", "ac"],
                sort_by=SortOption.PRICE_LOW_TO_HIGH,
            ),
        ),
        SearchPresetCreate(
            name="Mumbai Coworking Spaces",
            description="Coworking spaces in Mumbai for small teams",
            search_params=SearchParameters(
                location="Mumbai",
                property_type=PropertyType.COWORKING,
                max_price=5_000_000,  # 50L
                amenities=["wifi", "cafeteria", "parking"],
                availability=AvailabilityWindow.IMMEDIATE,
            ),
        ),
        SearchPresetCreate(
            name="Delhi Retail Shops Under 1Cr",
            description="Retail shops and showrooms in Delhi under 1 crore",
            search_params=SearchParameters(
                location="Delhi",
                property_type=PropertyType.RETAIL,
                max_price=10_000_000,  # 1Cr
                min_area=500,
                sort_by=SortOption.PRICE_LOW_TO_HIGH,
            ),
        ),
        SearchPresetCreate(
            name="Pune Warehouses Above 10000 sqft",
            description="Large warehouse spaces in Pune",
            search_params=SearchParameters(
                location="Pune",
                property_type=PropertyType.WAREHOUSE,
                min_area=10000,
                amenities=["security", "power-backup"],
                availability=AvailabilityWindow.WITHIN_30_DAYS,
            ),
        ),
    ]


class PresetService:
    """CRUD for search presets stored in the database"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_model(row: SearchPresetRecord) -> SearchPreset:
        return SearchPreset(
            id=row.id,
            name=row.name,
            description=row.description,
            search_params=SearchParameters.model_validate(row.search_params),
            created_at=row.created_at or datetime.now(timezone.utc),
            last_used=row.last_used,
        )

    def create_preset(self, preset: SearchPresetCreate) -> SearchPreset:
        row = SearchPresetRecord(
            name=preset.name,
            description=preset.description,
            search_params=preset.search_params.model_dump(mode="json", exclude_none=True),
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info(f"Created search preset '{row.name}' ({row.id})")
        return self._to_model(row)

    def list_presets(self, limit: int = 50, offset: int = 0) -> List[SearchPreset]:
        rows = (
            self.db.query(SearchPresetRecord)
            .order_by(SearchPresetRecord.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [self._to_model(row) for row in rows]

    def get_preset(self, preset_id: str) -> Optional[SearchPreset]:
        row = self.db.get(SearchPresetRecord, preset_id)
        return self._to_model(row) if row else None

    def delete_preset(self, preset_id: str) -> bool:
        row = self.db.get(SearchPresetRecord, preset_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.commit()
        logger.info(f"Deleted search preset {preset_id}")
        return True

    def mark_used(self, preset_id: str) -> Optional[SearchPreset]:
        row = self.db.get(SearchPresetRecord, preset_id)
        if row is None:
            return None
        row.last_used = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(row)
        return self._to_model(row)
