"""
Pytest configuration and shared fixtures.
"""
import os
import tempfile

# Must be set before config/database are imported anywhere
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("IMAGE_CACHE_DIR", tempfile.mkdtemp(prefix="country-summary-"))
os.environ.setdefault("GDP_MULTIPLIER_MODE", "fixed")
os.environ.setdefault("GDP_MULTIPLIER", "1500")

import pytest
from datetime import datetime
from sqlalchemy.orm import sessionmaker

from database import Base, build_engine
from exceptions import ExternalSourceUnavailable
from sources import COUNTRIES_SOURCE, RATES_SOURCE
from store import SQLCatalogStore


FIXED_NOW = datetime(2025, 10, 22, 12, 30, 0)


def sample_countries():
    """Raw entries shaped like the restcountries v2 payload."""
    return [
        {
            "name": "Nigeria",
            "capital": "Abuja",
            "region": "Africa",
            "population": 206139589,
            "flag": "https://flagcdn.com/ng.svg",
            "currencies": [{"code": "NGN", "name": "Nigerian naira", "symbol": "₦"}],
        },
        {
            "name": "Ghana",
            "capital": "Accra",
            "region": "Africa",
            "population": 31072945,
            "flag": "https://flagcdn.com/gh.svg",
            "currencies": [{"code": "GHS", "name": "Ghanaian cedi", "symbol": "₵"}],
        },
        {
            "name": "Germany",
            "capital": "Berlin",
            "region": "Europe",
            "population": 83240525,
            "flag": "https://flagcdn.com/de.svg",
            "currencies": [{"code": "EUR", "name": "Euro", "symbol": "€"}],
        },
        {
            "name": "Antarctica",
            "region": "Polar",
            "population": 1000,
            "flag": "https://flagcdn.com/aq.svg",
        },
        {
            "name": "Wakanda",
            "region": "Africa",
            "population": 1000000,
            "currencies": [{"code": "WKD"}],
        },
        # dropped: no population
        {"name": "Atlantis", "region": "Ocean", "currencies": [{"code": "ATL"}]},
        # dropped: no name
        {"name": "", "population": 5000, "currencies": [{"code": "USD"}]},
    ]


def sample_rates():
    return {
        "USD": 1,
        "NGN": 1600.23,
        "GHS": 15.34,
        "EUR": 0.92,
        "WKD": 2.0,
    }


class FakeFetcher:
    """Stands in for SourceFetcher; records which sources were called."""

    def __init__(self, countries=None, rates=None, countries_error=False, rates_error=False):
        self.countries = sample_countries() if countries is None else countries
        self.rates = sample_rates() if rates is None else rates
        self.countries_error = countries_error
        self.rates_error = rates_error
        self.calls = []

    async def fetch_countries(self):
        self.calls.append("countries")
        if self.countries_error:
            raise ExternalSourceUnavailable(COUNTRIES_SOURCE, "HTTP 502")
        return self.countries

    async def fetch_rates(self):
        self.calls.append("rates")
        if self.rates_error:
            raise ExternalSourceUnavailable(RATES_SOURCE, "timeout")
        return self.rates


@pytest.fixture(scope="function")
def test_db():
    """
    Create an in-memory SQLite database for testing.

    Fresh database for each test.
    """
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def store(test_db):
    return SQLCatalogStore(test_db)


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


def make_country(name, estimated_gdp=None, population=1000, region="Africa",
                 currency_code="XXX", refreshed_at=FIXED_NOW):
    """Candidate dict in the shape produced by the estimator."""
    return {
        "name": name,
        "capital": None,
        "region": region,
        "population": population,
        "currency_code": currency_code,
        "exchange_rate": 1.0 if estimated_gdp is not None else None,
        "estimated_gdp": estimated_gdp,
        "flag_url": None,
        "last_refreshed_at": refreshed_at,
    }
