"""
Fetchers for the two external datasets: countries and exchange rates.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import httpx

from config import settings
from exceptions import ExternalSourceUnavailable

logger = logging.getLogger(__name__)

COUNTRIES_SOURCE = "restcountries.com"
RATES_SOURCE = "open.er-api.com"


class SourceFetcher:
    """
    Retrieves the raw countries list and the exchange-rate table.

    Each call opens its own client and makes a single attempt that must
    finish, body included, within `timeout` seconds. Any failure is reported as ExternalSourceUnavailable
    naming the source.
    """

    def __init__(
        self,
        countries_url: str = settings.COUNTRIES_API_URL,
        rates_url: str = settings.EXCHANGE_RATE_API_URL,
        timeout: float = settings.FETCH_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.countries_url = countries_url
        self.rates_url = rates_url
        self.timeout = timeout
        self.transport = transport

    async def _request(self, url: str):
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.json()

    async def _get_json(self, url: str, source: str):
        # httpx timeouts are per connect/read/write; the deadline covers the whole fetch
        try:
            return await asyncio.wait_for(self._request(url), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(f"Timed out fetching {source} after {self.timeout}s")
            raise ExternalSourceUnavailable(source, "timeout") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"{source} returned HTTP {e.response.status_code}")
            raise ExternalSourceUnavailable(source, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Transport error fetching {source}: {e}")
            raise ExternalSourceUnavailable(source, str(e)) from e
        except ValueError as e:
            logger.warning(f"{source} returned a body that is not JSON")
            raise ExternalSourceUnavailable(source, "invalid JSON") from e

    async def fetch_countries(self) -> List[Dict]:
        """Fetch country data from REST Countries API."""
        data = await self._get_json(self.countries_url, COUNTRIES_SOURCE)
        if not isinstance(data, list):
            raise ExternalSourceUnavailable(COUNTRIES_SOURCE, "expected a JSON array")
        logger.info(f"Fetched {len(data)} country entries")
        return data

    async def fetch_rates(self) -> Dict[str, float]:
        """Fetch exchange rates from Exchange Rate API."""
        data = await self._get_json(self.rates_url, RATES_SOURCE)
        rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict):
            raise ExternalSourceUnavailable(RATES_SOURCE, "missing rates mapping")
        logger.info(f"Fetched {len(rates)} exchange rates")
        return rates
