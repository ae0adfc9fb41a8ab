"""
Turns one raw country entry plus the rate table into a catalog candidate.

Everything here is pure: no I/O, no clock, and randomness only through an
explicitly seeded generator.
"""

import logging
import math
import random
from datetime import datetime
from typing import Callable, Dict, Optional, Any

from config import Settings, settings

logger = logging.getLogger(__name__)

Multiplier = Callable[[], float]

# Largest value the BIGINT population column holds
MAX_POPULATION = 2 ** 63 - 1


class FixedMultiplier:
    """Always returns the same GDP multiplier."""

    def __init__(self, value: float = 1500.0):
        self.value = float(value)

    def __call__(self) -> float:
        return self.value


class RandomMultiplier:
    """Uniform draw in [low, high] from its own seedable generator."""

    def __init__(self, low: float = 1000.0, high: float = 2000.0, seed: Optional[int] = None):
        if low > high:
            raise ValueError("low must not exceed high")
        self.low = low
        self.high = high
        self._rng = random.Random(seed)

    def __call__(self) -> float:
        return self._rng.uniform(self.low, self.high)


def build_multiplier(current: Settings = settings) -> Multiplier:
    """Pick the multiplier strategy named by GDP_MULTIPLIER_MODE."""
    if current.GDP_MULTIPLIER_MODE == "random":
        return RandomMultiplier(
            current.GDP_MULTIPLIER_MIN,
            current.GDP_MULTIPLIER_MAX,
            seed=current.GDP_MULTIPLIER_SEED,
        )
    return FixedMultiplier(current.GDP_MULTIPLIER)


# ============= Field Extraction =============

def extract_currency_code(currencies: Any) -> Optional[str]:
    """
    Extract first currency code from currencies array.

    Args:
        currencies: List of currency dictionaries

    Returns:
        First currency code or None if the list is empty or malformed
    """
    if not isinstance(currencies, list) or not currencies:
        return None

    first_currency = currencies[0]
    if not isinstance(first_currency, dict):
        return None
    code = first_currency.get("code")
    return code if isinstance(code, str) and code else None


def parse_population(value: Any) -> Optional[int]:
    """Population as a positive int, or None when absent or unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        population = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return population if 0 < population <= MAX_POPULATION else None


def lookup_rate(currency_code: Optional[str], rates: Dict[str, Any]) -> Optional[float]:
    """Positive exchange rate for the code; None if unknown or unusable."""
    if currency_code is None:
        return None
    raw = rates.get(currency_code)
    if raw is None or isinstance(raw, bool):
        return None
    try:
        rate = float(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    return rate if math.isfinite(rate) and rate > 0 else None


def calculate_estimated_gdp(
    population: int,
    exchange_rate: Optional[float],
    multiplier: Multiplier,
) -> Optional[float]:
    """
    Calculate estimated GDP using formula:
    population × multiplier ÷ exchange_rate

    Returns None unless the exchange rate is known and positive.
    """
    if exchange_rate is None or exchange_rate <= 0:
        return None
    return (population * multiplier()) / exchange_rate


# ============= Entry Processing =============

def process_country_data(
    country: Any,
    exchange_rates: Dict[str, Any],
    multiplier: Multiplier,
    refreshed_at: datetime,
) -> Optional[Dict[str, Any]]:
    """
    Build the full record for one raw country entry.

    Args:
        country: Raw country entry from the countries source
        exchange_rates: Currency code to rate mapping
        multiplier: Source of the GDP multiplier
        refreshed_at: Timestamp stamped on the record

    Returns:
        Dict with every CountryDB field, or None when the entry is dropped
        (missing name or population).
    """
    if not isinstance(country, dict):
        return None

    name = country.get("name")
    if not isinstance(name, str) or not name.strip():
        return None

    population = parse_population(country.get("population"))
    if population is None:
        logger.debug(f"Dropping {name!r}: no usable population")
        return None

    currency_code = extract_currency_code(country.get("currencies"))
    exchange_rate = lookup_rate(currency_code, exchange_rates)
    estimated_gdp = calculate_estimated_gdp(population, exchange_rate, multiplier)

    return {
        "name": name,
        "capital": country.get("capital"),
        "region": country.get("region"),
        "population": population,
        "currency_code": currency_code,
        "exchange_rate": exchange_rate,
        "estimated_gdp": estimated_gdp,
        "flag_url": country.get("flag"),
        "last_refreshed_at": refreshed_at,
    }

