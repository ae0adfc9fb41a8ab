"""
Refresh pipeline: fetch both sources, estimate, upsert, render.

Stages run strictly in order and at most one refresh runs at a time per
process. Nothing is written unless both fetches succeed.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from starlette.concurrency import run_in_threadpool

from estimator import Multiplier, build_multiplier, process_country_data
from exceptions import ExternalSourceUnavailable, RefreshFailed, RefreshInProgress
from image_generator import TOP_N, SummaryRenderer
from sources import SourceFetcher
from store import CatalogStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current UTC time, naive, as stored in the catalog."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RefreshState(enum.Enum):
    IDLE = "idle"
    FETCHING_COUNTRIES = "fetching_countries"
    FETCHING_RATES = "fetching_rates"
    MERGING = "merging"
    RENDERING = "rendering"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class RefreshResult:
    total_saved: int
    last_refreshed_at: datetime
    image_generated: bool = True
    render_error: Optional[str] = None


# Process-wide single-flight admission for refresh passes
_refresh_lock = asyncio.Lock()


class RefreshOrchestrator:
    """
    Drives one refresh pass against a CatalogStore.

    A request arriving while another pass holds the lock is rejected with
    RefreshInProgress rather than queued.
    """

    def __init__(
        self,
        store: CatalogStore,
        fetcher: Optional[SourceFetcher] = None,
        renderer: Optional[SummaryRenderer] = None,
        multiplier: Optional[Multiplier] = None,
        clock: Clock = utc_now,
        lock: Optional[asyncio.Lock] = None,
    ):
        self.store = store
        self.fetcher = fetcher or SourceFetcher()
        self.renderer = renderer or SummaryRenderer()
        self.multiplier = multiplier or build_multiplier()
        self.clock = clock
        self.lock = lock or _refresh_lock
        self.state = RefreshState.IDLE

    def _enter(self, state: RefreshState) -> None:
        logger.info(f"Refresh: {self.state.value} -> {state.value}")
        self.state = state

    async def run(self) -> RefreshResult:
        if self.lock.locked():
            raise RefreshInProgress()
        async with self.lock:
            return await self._run()

    async def _run(self) -> RefreshResult:
        try:
            self._enter(RefreshState.FETCHING_COUNTRIES)
            countries = await self.fetcher.fetch_countries()

            self._enter(RefreshState.FETCHING_RATES)
            rates = await self.fetcher.fetch_rates()
        except ExternalSourceUnavailable:
            self._enter(RefreshState.ABORTED)
            raise

        refreshed_at = self.clock()
        saved = 0
        try:
            self._enter(RefreshState.MERGING)
            saved = await run_in_threadpool(self._merge, countries, rates, refreshed_at)

            self._enter(RefreshState.RENDERING)
            render_error = await run_in_threadpool(self._render, refreshed_at)
        except RefreshFailed:
            self._enter(RefreshState.ABORTED)
            raise
        except Exception as e:
            logger.exception(f"Refresh failed after {saved} upserts")
            self._enter(RefreshState.ABORTED)
            raise RefreshFailed(saved=saved, message=str(e)) from e

        self._enter(RefreshState.DONE)
        return RefreshResult(
            total_saved=saved,
            last_refreshed_at=refreshed_at,
            image_generated=render_error is None,
            render_error=render_error,
        )

    def _merge(self, countries, rates, refreshed_at: datetime) -> int:
        """
        Estimate and upsert each entry on its own; a failing entry is
        logged and skipped. Fails the stage only if no candidate was saved.
        """
        saved = 0
        dropped = 0
        failed = 0
        for country in countries:
            try:
                candidate = process_country_data(country, rates, self.multiplier, refreshed_at)
                if candidate is None:
                    dropped += 1
                    continue
                self.store.upsert(candidate)
            except Exception:
                failed += 1
                name = country.get("name") if isinstance(country, dict) else None
                logger.exception(f"Skipping entry {name!r}")
                continue
            saved += 1

        logger.info(f"{saved} saved, {dropped} dropped, {failed} failed")
        if failed and saved == 0:
            raise RefreshFailed(saved=0, message=f"all {failed} entries failed")
        return saved

    def _render(self, refreshed_at: datetime) -> Optional[str]:
        """Regenerate the summary image; returns the error text on failure."""
        total, _ = self.store.status()
        top_countries = self.store.top_by_estimated_gdp(TOP_N)
        try:
            self.renderer.generate(total, top_countries, refreshed_at)
        except Exception as e:
            logger.exception("Summary image generation failed")
            return str(e)
        return None
