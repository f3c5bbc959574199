from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from enum import Enum
from datetime import datetime


class PropertyType(str, Enum):
    OFFICE = "office"
    COWORKING = "coworking"
    RETAIL = "retail"
    WAREHOUSE = "warehouse"
    LAND = "land"


class FurnishingStatus(str, Enum):
    FURNISHED = "furnished"
    SEMI_FURNISHED = "semi-furnished"
    UNFURNISHED = "unfurnished"


class AvailabilityWindow(str, Enum):
    IMMEDIATE = "immediate"
    WITHIN_15_DAYS = "within-15-days"
    WITHIN_30_DAYS = "within-30-days"
    AFTER_30_DAYS = "after-30-days"


class SortOption(str, Enum):
    RELEVANCE = "relevance"
    PRICE_LOW_TO_HIGH = "price-low-to-high"
    PRICE_HIGH_TO_LOW = "price-high-to-low"
    NEWEST = "newest"


def search_parameter_errors(params: "SearchParameters") -> List[str]:
    """Business-rule checks that need more than one field or a custom message"""
    errors = []

    numeric_labels = [
        ("min_price", "Minimum price"),
        ("max_price", "Maximum price"),
        ("min_area", "Minimum area"),
        ("max_area", "Maximum area"),
    ]
    for field_name, label in numeric_labels:
        value = getattr(params, field_name)
        if value is not None and value < 0:
            errors.append(f"{label} cannot be negative")

    if (params.min_price is not None and params.max_price is not None and
            params.min_price >= params.max_price):
        errors.append("Minimum price must be less than maximum price")

    if (params.min_area is not None and params.max_area is not None and
            params.min_area >= params.max_area):
        errors.append("Minimum area must be less than maximum area")

    if params.page is not None and not 1 <= params.page <= 100:
        errors.append("Page number must be between 1 and 100")

    return errors


class SearchParameters(BaseModel):
    """Search description used to build a listing-site search URL"""
    location: Optional[str] = None  # City or area, e.g. "Bangalore", "Koramangala"
    property_type: Optional[PropertyType] = None
    min_price: Optional[float] = None  # INR
    max_price: Optional[float] = None
    min_area: Optional[float] = None  # sqft
    max_area: Optional[float] = None
    furnished: Optional[FurnishingStatus] = None
    availability: Optional[AvailabilityWindow] = None
    amenities: List[str] = []
    sort_by: Optional[SortOption] = None
    page: Optional[int] = None

    @field_validator('amenities')
    @classmethod
    def normalize_amenities(cls, v):
        # Set semantics, but keep first-seen order so URLs stay deterministic
        seen = []
        for amenity in v:
            amenity = amenity.strip()
            if amenity and amenity not in seen:
                seen.append(amenity)
        return seen

    @model_validator(mode='after')
    def validate_search_logic(self):
        errors = search_parameter_errors(self)
        if errors:
            raise ValueError("; ".join(errors))
        return self


class SearchPreset(BaseModel):
    id: str
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    search_params: SearchParameters
    created_at: datetime
    last_used: Optional[datetime] = None

    class Config:
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }


class SearchPresetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    search_params: SearchParameters
