"""
Builds listing-site search URLs from search parameters and parses them back.

The forward mapping is deterministic. The reverse mapping is best-effort and
lossy wherever the forward encoding collapses a value into an absent query
parameter (relevance sort, page 1, zero bounds).
"""
import logging
import math
import re
from typing import Dict, List, Optional, Any, Union
from urllib.parse import urlencode, urlsplit, parse_qs

from pydantic import ValidationError

from propscrape.core.exceptions import SearchParameterError
from propscrape.models.search import (
    SearchParameters, PropertyType, AvailabilityWindow, SortOption, FurnishingStatus
)

logger = logging.getLogger(__name__)

BASE_URL = "https://www.magicbricks.com"
COMMERCIAL_SEARCH_PATH = "/property-for-rent/commercial"

PROPERTY_TYPE_SLUGS: Dict[PropertyType, str] = {
    PropertyType.OFFICE: "office-space",
    PropertyType.COWORKING: "co-working-space",
    PropertyType.RETAIL: "retail-showroom",
    PropertyType.WAREHOUSE: "warehouse-godown",
    PropertyType.LAND: "industrial-land",
}

# Relevance is the site's default ordering and is encoded as no parameter at all
SORT_VALUES: Dict[SortOption, str] = {
    SortOption.RELEVANCE: "",
    SortOption.PRICE_LOW_TO_HIGH: "price-asc",
    SortOption.PRICE_HIGH_TO_LOW: "price-desc",
    SortOption.NEWEST: "date-desc",
}

AVAILABILITY_VALUES: Dict[AvailabilityWindow, str] = {
    AvailabilityWindow.IMMEDIATE: "immediate",
    AvailabilityWindow.WITHIN_15_DAYS: "15days",
    AvailabilityWindow.WITHIN_30_DAYS: "30days",
    AvailabilityWindow.AFTER_30_DAYS: "30plus",
}

SearchInput = Union[SearchParameters, Dict[str, Any]]


def slugify_location(location: str) -> str:
    slug = re.sub(r'\s+', '-', location.strip().lower())
    return re.sub(r'[^a-z0-9-]', '', slug)


def _format_validation_error(exc: ValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        msg = error['msg']
        if msg.startswith('Value error, '):
            messages.extend(msg[len('Value error, '):].split('; '))
        else:
            field = '.'.join(str(part) for part in error['loc'])
            messages.append(f"Invalid {field}: {msg}" if field else msg)
    return messages


def validate_search_params(params: SearchInput) -> List[str]:
    """Return every problem with the given parameters without raising"""
    if isinstance(params, SearchParameters):
        # Re-validate: instances built with model_construct skip validators
        params = params.model_dump(exclude_none=True)

    try:
        validated = SearchParameters.model_validate(params)
    except ValidationError as e:
        return _format_validation_error(e)

    if not validated.location:
        logger.warning("No location provided - search may return generic results")
    return []


def coerce_search_params(params: SearchInput) -> SearchParameters:
    """Validate raw or typed parameters, raising SearchParameterError on any problem"""
    errors = validate_search_params(params)
    if errors:
        raise SearchParameterError(errors)
    if isinstance(params, SearchParameters):
        return params
    return SearchParameters.model_validate(params)


def build_url(params: SearchInput) -> str:
    """Build the search URL for the given parameters"""
    search_params = coerce_search_params(params)

    url = f"{BASE_URL}{COMMERCIAL_SEARCH_PATH}"

    if search_params.location:
        location_slug = slugify_location(search_params.location)
        if location_slug:
            url += f"/{location_slug}"

    if search_params.property_type:
        url += f"/{PROPERTY_TYPE_SLUGS[search_params.property_type]}"

    query: List[tuple] = []

    # Zero bounds carry no filtering information and are left out
    if search_params.min_price:
        query.append(("budget-min", _format_number(search_params.min_price)))
    if search_params.max_price:
        query.append(("budget-max", _format_number(search_params.max_price)))
    if search_params.min_area:
        query.append(("carpet-min", _format_number(search_params.min_area)))
    if search_params.max_area:
        query.append(("carpet-max", _format_number(search_params.max_area)))

    if search_params.furnished:
        query.append(("furnishing", search_params.furnished.value))

    if search_params.availability:
        query.append(("availability", AVAILABILITY_VALUES[search_params.availability]))

    if search_params.amenities:
        query.append(("amenities", ",".join(search_params.amenities)))

    if search_params.sort_by:
        sort_value = SORT_VALUES[search_params.sort_by]
        if sort_value:
            query.append(("sort", sort_value))

    if search_params.page and search_params.page > 1:
        query.append(("page", str(search_params.page)))

    if query:
        url += "?" + urlencode(query, safe=",")

    logger.debug(f"Built search URL {url}")
    return url


def build_pagination_urls(params: SearchInput, max_pages: int) -> List[str]:
    """Build one search URL per page, starting from page 1"""
    search_params = coerce_search_params(params)
    urls = [
        build_url(search_params.model_copy(update={"page": page}))
        for page in range(1, max_pages + 1)
    ]
    logger.info(f"Built {len(urls)} pagination URLs")
    return urls


def _format_number(value: float) -> str:
    # 1500.0 is written as "1500"
    return str(int(value)) if float(value).is_integer() else str(value)


def _parse_number(value: Optional[str]) -> Optional[Union[int, float]]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _lookup(mapping: Dict[Any, str], encoded: str) -> Optional[Any]:
    for key, value in mapping.items():
        if value and value == encoded:
            return key
    return None


def parse_url(url: str) -> SearchParameters:
    """Best-effort reverse of build_url.

    Location comes back title-cased from its slug, and values the forward
    mapping encodes as absent (relevance sort, page 1) come back as None.
    A lone path segment that matches a property-type slug is read as the
    type, so a location named like one (e.g. "Industrial Land") without a
    property type comes back as that type with no location.
    """
    parts = urlsplit(url)
    values: Dict[str, Any] = {}

    path_parts = [part for part in parts.path.split('/') if part]
    # Expected: property-for-rent / commercial / {location} / {property-type}
    tail = path_parts[2:4]
    if tail:
        property_type = _lookup(PROPERTY_TYPE_SLUGS, tail[-1])
        if property_type is not None:
            values["property_type"] = property_type
            tail = tail[:-1]
        if tail:
            values["location"] = tail[0].replace('-', ' ').title()

    query = {key: items[0] for key, items in parse_qs(parts.query).items()}

    for field_name, key in [("min_price", "budget-min"), ("max_price", "budget-max"),
                            ("min_area", "carpet-min"), ("max_area", "carpet-max")]:
        number = _parse_number(query.get(key))
        if number is not None:
            values[field_name] = number

    page = _parse_number(query.get("page"))
    if isinstance(page, int):
        values["page"] = page

    furnishing = query.get("furnishing")
    if furnishing in {status.value for status in FurnishingStatus}:
        values["furnished"] = furnishing

    availability = _lookup(AVAILABILITY_VALUES, query.get("availability", ""))
    if availability is not None:
        values["availability"] = availability

    amenities = query.get("amenities")
    if amenities:
        values["amenities"] = [a for a in amenities.split(',') if a]

    sort_by = _lookup(SORT_VALUES, query.get("sort", ""))
    if sort_by is not None:
        values["sort_by"] = sort_by

    try:
        return SearchParameters.model_validate(values)
    except ValidationError as e:
        logger.warning(f"Could not parse search parameters from {url}: {_format_validation_error(e)}")
        return SearchParameters()
