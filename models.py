"""
Data models for both SQLAlchemy (database) and Pydantic (API validation).
"""

from sqlalchemy import BigInteger, Column, Integer, String, Float, DateTime
from pydantic import BaseModel, field_serializer
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from database import Base


# ============= SQLAlchemy Models (Database Tables) =============

class CountryDB(Base):
    """
    SQLAlchemy model representing the countries table.

    `name` is the catalog key; every other column is replaced wholesale
    on each refresh that still reports the country.
    """
    __tablename__ = "countries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    capital = Column(String(255), nullable=True)
    region = Column(String(100), nullable=True, index=True)
    population = Column(BigInteger, nullable=False)
    currency_code = Column(String(10), nullable=True, index=True)
    exchange_rate = Column(Float, nullable=True)
    estimated_gdp = Column(Float, nullable=True)
    flag_url = Column(String(500), nullable=True)
    last_refreshed_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<CountryDB name={self.name!r} estimated_gdp={self.estimated_gdp!r}>"


# Fields copied from an estimator candidate onto a stored row
COUNTRY_FIELDS = (
    "name",
    "capital",
    "region",
    "population",
    "currency_code",
    "exchange_rate",
    "estimated_gdp",
    "flag_url",
    "last_refreshed_at",
)


# ============= Pydantic Models (API Validation) =============

class UTCTimestampModel(BaseModel):
    """Stored timestamps are naive UTC; send them with an explicit offset."""

    @field_serializer("last_refreshed_at", check_fields=False)
    def serialize_last_refreshed_at(self, value: Optional[datetime]) -> Optional[str]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()


class CountryResponse(UTCTimestampModel):
    """Response model for country data."""
    id: int
    name: str
    capital: Optional[str] = None
    region: Optional[str] = None
    population: int
    currency_code: Optional[str] = None
    exchange_rate: Optional[float] = None
    estimated_gdp: Optional[float] = None
    flag_url: Optional[str] = None
    last_refreshed_at: datetime

    class Config:
        from_attributes = True


class StatusResponse(UTCTimestampModel):
    """Response model for status endpoint."""
    total_countries: int
    last_refreshed_at: Optional[datetime] = None


class RefreshResponse(UTCTimestampModel):
    """Response model for refresh endpoint."""
    message: str
    total_countries: int
    last_refreshed_at: datetime
    image_generated: bool


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    details: Optional[Any] = None


class ValidationErrorResponse(BaseModel):
    """Validation error response."""
    error: str = "Validation failed"
    details: Dict[str, str]
