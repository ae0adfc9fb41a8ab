"""
Catalog storage: an abstract keyed store and its SQLAlchemy implementation.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from exceptions import InvalidQuery
from models import COUNTRY_FIELDS, CountryDB

logger = logging.getLogger(__name__)


SORT_OPTIONS = (
    "gdp_desc",
    "gdp_asc",
    "population_desc",
    "population_asc",
    "name_asc",
    "name_desc",
)


class CatalogStore(ABC):
    """
    Keyed country catalog. The key is the exact country name.

    upsert must be atomic per record: on failure nothing of that record
    is written.
    """

    @abstractmethod
    def upsert(self, country_data: Dict[str, Any]) -> CountryDB:
        ...

    @abstractmethod
    def find_by_name(self, name: str, case_insensitive: bool = False) -> Optional[CountryDB]:
        ...

    @abstractmethod
    def find_by_name_contains(self, substring: str, case_insensitive: bool = True) -> Optional[CountryDB]:
        ...

    @abstractmethod
    def delete(self, country: CountryDB) -> None:
        ...

    @abstractmethod
    def top_by_estimated_gdp(self, limit: int) -> List[CountryDB]:
        ...

    @abstractmethod
    def list_countries(
        self,
        region: Optional[str] = None,
        currency: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> List[CountryDB]:
        ...

    @abstractmethod
    def count(self) -> int:
        ...

    @abstractmethod
    def max_last_refreshed_at(self) -> Optional[datetime]:
        ...

    def lookup(self, name: str) -> Optional[CountryDB]:
        """
        Resolve a name from the show/delete endpoints.

        Case-insensitive exact match first, so "Guinea" does not resolve to
        "Guinea-Bissau"; case-insensitive containment only as a fallback.
        """
        exact = self.find_by_name(name, case_insensitive=True)
        if exact is not None:
            return exact
        return self.find_by_name_contains(name, case_insensitive=True)

    def delete_by_name(self, name: str) -> bool:
        """
        Delete the country resolved by lookup().

        Returns:
            True if deleted, False if not found
        """
        country = self.lookup(name)
        if country is None:
            return False
        self.delete(country)
        return True

    def status(self):
        """(total_countries, last_refreshed_at) aggregate."""
        return self.count(), self.max_last_refreshed_at()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLCatalogStore(CatalogStore):
    """CatalogStore over a SQLAlchemy session, one commit per mutation."""

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, country_data: Dict[str, Any]) -> CountryDB:
        """
        Insert or update country in database.
        Matches by exact name.

        Args:
            country_data: Full candidate produced by the estimator

        Returns:
            CountryDB instance
        """
        values = {key: country_data.get(key) for key in COUNTRY_FIELDS}
        try:
            existing = self.find_by_name(values["name"])
            if existing:
                for key, value in values.items():
                    setattr(existing, key, value)
                country = existing
            else:
                country = CountryDB(**values)
                self.db.add(country)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(country)
        return country

    def find_by_name(self, name: str, case_insensitive: bool = False) -> Optional[CountryDB]:
        if case_insensitive:
            condition = func.lower(CountryDB.name) == func.lower(name)
        else:
            condition = CountryDB.name == name
        return self.db.query(CountryDB).filter(condition).first()

    def find_by_name_contains(self, substring: str, case_insensitive: bool = True) -> Optional[CountryDB]:
        pattern = f"%{_escape_like(substring.lower())}%"
        query = self.db.query(CountryDB).filter(
            func.lower(CountryDB.name).like(pattern, escape="\\")
        ).order_by(CountryDB.id.asc())
        if case_insensitive:
            return query.first()
        # LIKE ignores case on SQLite and default MySQL collations
        return next((c for c in query if substring in c.name), None)

    def delete(self, country: CountryDB) -> None:
        try:
            self.db.delete(country)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Deleted country {country.name!r}")

    def top_by_estimated_gdp(self, limit: int) -> List[CountryDB]:
        """
        Get top countries by estimated GDP, descending with nulls last.

        Args:
            limit: Number of countries to return
        """
        return self.db.query(CountryDB).order_by(
            CountryDB.estimated_gdp.is_(None),
            CountryDB.estimated_gdp.desc(),
        ).limit(limit).all()

    def list_countries(
        self,
        region: Optional[str] = None,
        currency: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> List[CountryDB]:
        """Get all countries with optional filtering and sorting."""
        query = self.db.query(CountryDB)

        if region:
            query = query.filter(func.lower(CountryDB.region) == func.lower(region))

        if currency:
            query = query.filter(func.lower(CountryDB.currency_code) == func.lower(currency))

        if sort:
            if sort == "gdp_desc":
                # nulls last, portable across MySQL and SQLite
                query = query.order_by(
                    CountryDB.estimated_gdp.is_(None),
                    CountryDB.estimated_gdp.desc()
                )
            elif sort == "gdp_asc":
                query = query.order_by(
                    CountryDB.estimated_gdp.isnot(None),
                    CountryDB.estimated_gdp.asc()
                )
            elif sort == "population_desc":
                query = query.order_by(CountryDB.population.desc())
            elif sort == "population_asc":
                query = query.order_by(CountryDB.population.asc())
            elif sort == "name_asc":
                query = query.order_by(CountryDB.name.asc())
            elif sort == "name_desc":
                query = query.order_by(CountryDB.name.desc())
            else:
                raise InvalidQuery("sort", f"must be one of {', '.join(SORT_OPTIONS)}")
        else:
            query = query.order_by(CountryDB.id.asc())

        return query.all()

    def count(self) -> int:
        return self.db.query(func.count(CountryDB.id)).scalar() or 0

    def max_last_refreshed_at(self) -> Optional[datetime]:
        return self.db.query(func.max(CountryDB.last_refreshed_at)).scalar()
