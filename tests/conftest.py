import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from listings.config import Settings
from listings.database import init_db
from listings.schemas import PropertyStatus
from listings.transformations import PropertyRecord


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        attom_api_key="test-attom",
        rapidapi_key="test-rapidapi",
        scraperapi_key="test-scraperapi",
        attom_delay=0,
        redfin_delay=0,
        scrape_delay=0,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_record():
    def _make(**overrides) -> PropertyRecord:
        values = {
            "property_id": "12345",
            "address": "12 Maple Ave",
            "beds": 4,
            "baths": 3.5,
            "sqft": 3200,
            "acres": 2.0,
            "year_built": 1985,
            "property_type": "Single Family",
            "district": "Bedford Central",
            "lat": 41.2,
            "lng": -73.64,
            "location": "Bedford, NY",
            "asking_price": 1_250_000,
            "status": PropertyStatus.ACTIVE,
            "source": "redfin_api",
        }
        values.update(overrides)
        return PropertyRecord(**values)

    return _make
