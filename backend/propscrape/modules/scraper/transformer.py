"""
Maps raw scraped payloads into canonical property records
"""
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional, Any, Iterable

from propscrape.core.exceptions import TransformationError
from propscrape.models.property import (
    AvailabilityInfo, AvailabilityStatus, Contact, Currency, ExtractionProvenance,
    ExtractionSource, Media, Price, PricePeriod, PropertyRecord, Size, SizeUnit
)
from propscrape.models.scraper import RawScrapePayload
from propscrape.models.search import SearchParameters

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Property"
DEFAULT_DESCRIPTION = "No description available"
DEFAULT_LOCATION = "Location not specified"

# Fields the extraction schema asks for; used for provenance and scrape confidence
SCHEMA_FIELDS = [
    "title", "description", "location", "price", "size", "amenities",
    "features", "contact", "images", "availability",
]

# Canonical feature name -> accepted source keys
FEATURE_KEYS = {
    "furnished": ["furnished"],
    "parking": ["parking"],
    "wifi": ["wifi"],
    "ac": ["ac"],
    "security": ["security"],
    "cafeteria": ["cafeteria"],
    "elevator": ["elevator"],
    "power_backup": ["powerBackup", "power_backup"],
    "conference_room": ["conferenceRoom", "conference_room"],
}


def _parse_number(value: Any) -> float:
    """Parse a number or numeric string; anything unparseable becomes 0"""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = re.sub(r'[,\s₹$€]', '', value)
        match = re.match(r'-?\d+(\.\d+)?', cleaned)
        if match:
            return float(match.group())
    return 0.0


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _is_http_url(value: Any) -> bool:
    return isinstance(value, str) and bool(re.match(r'^https?://\S+$', value.strip()))


def extract_price(raw_price: Any) -> Optional[Price]:
    if not isinstance(raw_price, dict):
        return None
    currency_value = str(raw_price.get("currency") or "").upper()
    currency = Currency(currency_value) if currency_value in Currency.__members__ else Currency.INR
    period_value = raw_price.get("period")
    period = (PricePeriod(period_value)
              if period_value in {p.value for p in PricePeriod}
              else PricePeriod.MONTHLY)
    return Price(amount=_parse_number(raw_price.get("amount")), currency=currency, period=period)


def extract_size(raw_size: Any) -> Optional[Size]:
    if not isinstance(raw_size, dict):
        return None
    unit_value = raw_size.get("unit")
    unit = SizeUnit(unit_value) if unit_value in {u.value for u in SizeUnit} else SizeUnit.SQFT
    return Size(area=_parse_number(raw_size.get("area")), unit=unit)


def extract_features(raw_features: Any) -> Optional[Dict[str, bool]]:
    if not isinstance(raw_features, dict):
        return None
    return {
        name: any(bool(raw_features.get(key)) for key in keys)
        for name, keys in FEATURE_KEYS.items()
    }


def extract_contact(raw_contact: Any) -> Optional[Contact]:
    if not isinstance(raw_contact, dict):
        return None
    contact = Contact(
        phone=_text(raw_contact.get("phone")),
        email=_text(raw_contact.get("email")),
        contact_person=_text(raw_contact.get("contactPerson") or raw_contact.get("contact_person")),
    )
    if not (contact.phone or contact.email or contact.contact_person):
        return None
    return contact


def extract_availability(raw_availability: Any) -> AvailabilityInfo:
    if isinstance(raw_availability, dict):
        text = str(raw_availability.get("status") or "")
        date = _text(raw_availability.get("date"))
    else:
        text = str(raw_availability or "")
        date = None

    if not text:
        return AvailabilityInfo(status=AvailabilityStatus.AVAILABLE, date=date)

    text = text.lower()
    if "available" in text:
        status = AvailabilityStatus.AVAILABLE
    elif "occupied" in text:
        status = AvailabilityStatus.OCCUPIED
    else:
        status = AvailabilityStatus.COMING_SOON
    return AvailabilityInfo(status=status, date=date)


def extract_media(raw_property: Dict[str, Any]) -> Media:
    images = raw_property.get("images")
    videos = []
    media = raw_property.get("media")
    if isinstance(media, dict):
        images = images or media.get("images")
        videos = media.get("videos") or []
    return Media(
        images=[img.strip() for img in images if _is_http_url(img)] if isinstance(images, list) else [],
        videos=[vid.strip() for vid in videos if _is_http_url(vid)] if isinstance(videos, list) else [],
    )


def present_fields(raw_property: Dict[str, Any]) -> List[str]:
    """Schema fields that carry a usable value in the raw candidate"""
    present = []
    for name in SCHEMA_FIELDS:
        value = raw_property.get(name)
        if name == "images" and not value and isinstance(raw_property.get("media"), dict):
            value = raw_property["media"].get("images")
        if value not in (None, "", [], {}):
            present.append(name)
    return present


def transform_candidate(raw_property: Dict[str, Any], source_url: str, scraped_at: datetime,
                        search_params: Optional[SearchParameters] = None,
                        provenance: Optional[ExtractionProvenance] = None) -> PropertyRecord:
    """Map one raw candidate to a record; required fields are defaulted, never rejected"""
    if not isinstance(raw_property, dict):
        raise TransformationError(f"Candidate is not an object: {type(raw_property).__name__}")

    try:
        amenities = raw_property.get("amenities")
        amenities = ([a.strip() for a in amenities if isinstance(a, str) and a.strip()]
                     if isinstance(amenities, list) else [])

        if provenance is None:
            extracted = present_fields(raw_property)
            provenance = ExtractionProvenance(
                extracted_by=ExtractionSource.SCRAPE,
                confidence=round(len(extracted) / len(SCHEMA_FIELDS), 2),
                fields_extracted=extracted,
                fields_missing=[f for f in SCHEMA_FIELDS if f not in extracted],
            )

        return PropertyRecord(
            title=_text(raw_property.get("title")) or DEFAULT_TITLE,
            description=_text(raw_property.get("description")) or DEFAULT_DESCRIPTION,
            location=_text(raw_property.get("location")) or DEFAULT_LOCATION,
            price=extract_price(raw_property.get("price")),
            size=extract_size(raw_property.get("size")),
            amenities=amenities or None,
            features=extract_features(raw_property.get("features")),
            contact=extract_contact(raw_property.get("contact")),
            media=extract_media(raw_property),
            availability=extract_availability(raw_property.get("availability")),
            source_url=source_url,
            scraped_at=scraped_at,
            search_params=search_params,
            raw_data=raw_property,
            provenance=provenance,
        )
    except TransformationError:
        raise
    except Exception as e:
        raise TransformationError(f"Could not transform candidate: {e}") from e


def iter_candidates(page: RawScrapePayload) -> Iterable[Any]:
    structured = page.get("json")
    if structured is None:
        return []
    # Extraction schemas sometimes wrap listings in {"properties": [...]}
    if isinstance(structured, dict) and isinstance(structured.get("properties"), list):
        return structured["properties"]
    return structured if isinstance(structured, list) else [structured]


def page_source_url(page: RawScrapePayload, default: str) -> str:
    metadata = page.get("metadata") or {}
    return metadata.get("sourceURL") or metadata.get("url") or page.get("url") or default


def transform(payloads: List[RawScrapePayload], source_url: str,
              search_params: Optional[SearchParameters] = None) -> List[PropertyRecord]:
    """Turn scraped pages into canonical records.

    A candidate that fails to transform is logged and skipped; the rest of the
    batch is unaffected.
    """
    records: List[PropertyRecord] = []
    scraped_at = datetime.now()

    for page_index, page in enumerate(payloads):
        if not isinstance(page, dict):
            logger.warning(f"Skipping page {page_index}: unexpected payload type {type(page).__name__}")
            continue

        if page.get("json") is None:
            logger.warning(f"No structured data in page {page_index} (sections: {sorted(page.keys())})")
            continue

        url = page_source_url(page, source_url)
        for candidate in iter_candidates(page):
            try:
                record = transform_candidate(candidate, url, scraped_at, search_params)
            except TransformationError as e:
                logger.error(f"Error transforming candidate on page {page_index}: {e}")
                continue
            records.append(record)
            logger.debug(f"Transformed property '{record.title}' at {record.location}")

    logger.info(f"Transformed {len(records)} properties from {len(payloads)} pages for {source_url}")
    return records
