from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from propscrape.models.search import SearchParameters


class Currency(str, Enum):
    INR = "INR"
    USD = "USD"
    EUR = "EUR"


class PricePeriod(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"
    ONE_TIME = "one-time"


class SizeUnit(str, Enum):
    SQFT = "sqft"
    SEATS = "seats"


class AvailabilityStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    COMING_SOON = "coming-soon"


class ExtractionSource(str, Enum):
    SCRAPE = "scrape"
    AI = "ai"
    MANUAL = "manual"


class Price(BaseModel):
    amount: float
    currency: Currency = Currency.INR
    period: PricePeriod = PricePeriod.MONTHLY


class Size(BaseModel):
    area: float
    unit: SizeUnit = SizeUnit.SQFT


class Contact(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    contact_person: Optional[str] = None


class Media(BaseModel):
    images: List[str] = []
    videos: List[str] = []


class AvailabilityInfo(BaseModel):
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE
    date: Optional[str] = None


class ExtractionProvenance(BaseModel):
    extracted_by: ExtractionSource
    confidence: Optional[float] = Field(None, ge=0, le=1)
    warnings: List[str] = []
    fields_extracted: List[str] = []
    fields_missing: List[str] = []
    processed_at: datetime = Field(default_factory=datetime.now)


class PropertyRecord(BaseModel):
    """Canonical property record produced by one pipeline run.

    Composite fields (price, size) are either complete or None.
    raw_data is an opaque copy of the vendor candidate, kept for audit only.
    """
    title: str
    description: str
    location: str
    price: Optional[Price] = None
    size: Optional[Size] = None
    amenities: Optional[List[str]] = None
    features: Optional[Dict[str, bool]] = None
    contact: Optional[Contact] = None
    media: Media = Field(default_factory=Media)
    availability: AvailabilityInfo = Field(default_factory=AvailabilityInfo)
    source_url: str
    scraped_at: datetime
    search_params: Optional[SearchParameters] = None
    validation_errors: List[str] = []
    raw_data: Optional[Any] = None
    provenance: ExtractionProvenance

    class Config:
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }
