"""
Tests for the SQLAlchemy import repository
"""
from propscrape.db.models import ImportedProperty
from propscrape.db.repository import SqlAlchemyPropertyRepository, build_tags
from propscrape.models.property import ExtractionProvenance, ExtractionSource


class TestSqlAlchemyPropertyRepository:

    def test_create_draft(self, test_db_session, make_record):
        repository = SqlAlchemyPropertyRepository(test_db_session)

        created_id = repository.create(make_record())

        row = test_db_session.get(ImportedProperty, created_id)
        assert row.status == "draft"
        assert row.price == {"amount": 150000.0, "currency": "INR", "period": "monthly"}
        assert row.extracted_by == "scrape"
        assert row.tags == ["imported", "scraped"]

    def test_overwrite_existing(self, test_db_session, make_record):
        repository = SqlAlchemyPropertyRepository(test_db_session)
        first_id = repository.create(make_record(description="First version of the description"))

        second_id = repository.create(make_record(description="Second version of the description"),
                                      overwrite_existing=True)

        assert second_id == first_id
        assert test_db_session.query(ImportedProperty).count() == 1
        assert test_db_session.get(ImportedProperty, first_id).description == "Second version of the description"

    def test_without_overwrite_creates_new_row(self, test_db_session, make_record):
        repository = SqlAlchemyPropertyRepository(test_db_session)
        repository.create(make_record())
        repository.create(make_record())
        assert test_db_session.query(ImportedProperty).count() == 2

    def test_ai_tags(self, make_record):
        record = make_record(provenance=ExtractionProvenance(extracted_by=ExtractionSource.AI, confidence=0.85))
        assert build_tags(record) == ["imported", "scraped", "ai-processed", "high-confidence"]
