import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from propscrape.core.database import Base
from propscrape.db.models import SearchPresetRecord, ImportedProperty
from propscrape.models.property import (
    ExtractionProvenance, ExtractionSource, Price, PropertyRecord, Size
)

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine"""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return engine

@pytest.fixture(scope="function")
def test_db_session(test_engine):
    """Create a test database session"""
    # Create all tables
    Base.metadata.create_all(bind=test_engine)
    
    # Create session
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestingSessionLocal()
    
    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=test_engine)

@pytest.fixture(scope="function")
def override_get_db(test_db_session):
    """Override the get_db dependency for testing"""
    def _override_get_db():
        try:
            yield test_db_session
        finally:
            pass
    return _override_get_db

@pytest.fixture
def make_record():
    """Factory for clean property records"""
    def _make_record(**overrides):
        data = dict(
            title="Modern Office Space in Koramangala",
            description="Fully furnished office with 50 workstations and a cafeteria",
            location="Koramangala, Bangalore",
            price=Price(amount=150000),
            size=Size(area=2500),
            source_url="https://www.magicbricks.com/property-for-rent/commercial/bangalore/office-space",
            scraped_at=datetime.now(),
            provenance=ExtractionProvenance(extracted_by=ExtractionSource.SCRAPE, confidence=0.9),
        )
        data.update(overrides)
        return PropertyRecord(**data)
    return _make_record
