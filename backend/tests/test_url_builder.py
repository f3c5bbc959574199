"""
Tests for search URL construction and parsing
"""
import pytest
from urllib.parse import urlsplit, parse_qs

from propscrape.core.exceptions import SearchParameterError
from propscrape.models.search import (
    AvailabilityWindow, FurnishingStatus, PropertyType, SearchParameters, SortOption
)
from propscrape.modules.scraper.url_builder import (
    build_pagination_urls, build_url, parse_url, slugify_location, validate_search_params
)


class TestBuildUrl:
    """Test forward URL construction"""

    def test_bangalore_office_scenario(self):
        """Location, type, furnishing and amenities all land in the URL"""
        url = build_url({
            "location": "Bangalore",
            "property_type": "office",
            "furnished": "furnished",
            "amenities": ["wifi", "parking"],
        })

        parts = urlsplit(url)
        path_segments = parts.path.split('/')
        assert "bangalore" in path_segments
        assert "office-space" in path_segments
        assert "furnishing=furnished" in parts.query
        assert "amenities=wifi,parking" in parts.query

    def test_deterministic(self):
        """Identical parameters always yield the identical URL"""
        params = SearchParameters(
            location="Mumbai",
            property_type=PropertyType.COWORKING,
            min_price=10000,
            max_price=500000,
            amenities=["wifi", "cafeteria"],
            sort_by=SortOption.NEWEST,
            page=3,
        )
        urls = {build_url(params) for _ in range(5)}
        assert len(urls) == 1
        assert build_url(params) == build_url(params.model_dump())

    def test_location_slugified(self):
        assert slugify_location("  New Delhi ") == "new-delhi"
        assert slugify_location("Koramangala (5th Block)") == "koramangala-5th-block"

    def test_no_params_gives_base_search(self):
        assert build_url({}) == "https://www.magicbricks.com/property-for-rent/commercial"

    def test_relevance_sort_and_first_page_are_omitted(self):
        url = build_url({"location": "Pune", "sort_by": "relevance", "page": 1})
        assert "sort=" not in url
        assert "page=" not in url

    def test_query_parameter_encoding(self):
        url = build_url({
            "min_price": 5000,
            "max_price": 90000,
            "min_area": 100,
            "max_area": 2000,
            "availability": "within-15-days",
            "sort_by": "price-low-to-high",
            "page": 2,
        })
        query = parse_qs(urlsplit(url).query)
        assert query["budget-min"] == ["5000"]
        assert query["budget-max"] == ["90000"]
        assert query["carpet-min"] == ["100"]
        assert query["carpet-max"] == ["2000"]
        assert query["availability"] == ["15days"]
        assert query["sort"] == ["price-asc"]
        assert query["page"] == ["2"]

    def test_duplicate_amenities_collapsed(self):
        url = build_url({"amenities": ["wifi", "wifi", "parking"]})
        assert "amenities=wifi,parking" in url


class TestValidation:
    """Test search parameter validation"""

    def test_min_not_less_than_max_rejected(self):
        with pytest.raises(SearchParameterError) as exc_info:
            build_url({"min_price": 500, "max_price": 100})
        assert "Minimum price must be less than maximum price" in exc_info.value.errors

    def test_area_range_rejected(self):
        errors = validate_search_params({"min_area": 1000, "max_area": 1000})
        assert errors == ["Minimum area must be less than maximum area"]

    def test_negative_values_rejected(self):
        errors = validate_search_params({"min_price": -1, "max_area": -5})
        assert "Minimum price cannot be negative" in errors
        assert "Maximum area cannot be negative" in errors

    def test_page_out_of_range(self):
        assert validate_search_params({"page": 0}) == ["Page number must be between 1 and 100"]
        assert validate_search_params({"page": 101}) == ["Page number must be between 1 and 100"]

    def test_unknown_enum_value(self):
        errors = validate_search_params({"property_type": "castle"})
        assert len(errors) == 1
        assert "property_type" in errors[0]

    def test_all_errors_reported_together(self):
        with pytest.raises(SearchParameterError) as exc_info:
            build_url({"min_price": -5, "page": 500})
        assert len(exc_info.value.errors) == 2

    def test_valid_params_have_no_errors(self):
        assert validate_search_params({"location": "Pune", "min_area": 100, "max_area": 200}) == []


class TestParseUrl:
    """Test best-effort reverse mapping"""

    def test_round_trip(self):
        params = SearchParameters(
            location="Bangalore",
            property_type=PropertyType.OFFICE,
            min_price=20000,
            max_price=80000,
            min_area=500,
            max_area=1500,
            furnished=FurnishingStatus.SEMI_FURNISHED,
            availability=AvailabilityWindow.WITHIN_30_DAYS,
            amenities=["wifi", "parking"],
            sort_by=SortOption.PRICE_HIGH_TO_LOW,
            page=4,
        )
        assert parse_url(build_url(params)) == params

    def test_relevance_sort_is_lossy(self):
        """A neutral sort and an absent sort parse back the same way"""
        with_relevance = parse_url(build_url({"location": "Pune", "sort_by": "relevance"}))
        without_sort = parse_url(build_url({"location": "Pune"}))
        assert with_relevance.sort_by is None
        assert with_relevance == without_sort

    def test_first_page_is_lossy(self):
        assert parse_url(build_url({"location": "Pune", "page": 1})).page is None

    def test_type_without_location(self):
        parsed = parse_url(build_url({"property_type": "warehouse"}))
        assert parsed.property_type == PropertyType.WAREHOUSE
        assert parsed.location is None

    def test_location_named_like_a_type_is_lossy(self):
        parsed = parse_url(build_url({"location": "Industrial Land"}))
        assert parsed.property_type == PropertyType.LAND
        assert parsed.location is None

    def test_fractional_bounds_round_trip(self):
        params = SearchParameters(min_price=1500.5, max_price=2000, min_area=99.75)
        query = parse_qs(urlsplit(build_url(params)).query)

        assert query["budget-min"] == ["1500.5"]
        assert query["budget-max"] == ["2000"]
        assert query["carpet-min"] == ["99.75"]
        assert parse_url(build_url(params)) == params

    def test_location_comes_back_title_cased(self):
        assert parse_url(build_url({"location": "new delhi"})).location == "New Delhi"

    def test_invalid_query_falls_back_to_empty(self):
        parsed = parse_url("https://www.magicbricks.com/property-for-rent/commercial?budget-min=900&budget-max=100")
        assert parsed == SearchParameters()


class TestPagination:

    def test_one_url_per_page(self):
        urls = build_pagination_urls({"location": "Delhi"}, 3)
        assert len(urls) == 3
        assert "page=" not in urls[0]
        assert urls[1].endswith("page=2")
        assert urls[2].endswith("page=3")
