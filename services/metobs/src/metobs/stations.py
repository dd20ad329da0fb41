"""Per-station latest-reading fetches with negative-result memo."""
import logging
from typing import Optional

from .client import ObservationSource
from .fanout import AdmissionGate
from .models import ObservationSeries, StationInfo
from .negative_cache import NegativeResultCache

logger = logging.getLogger(__name__)


class LatestReadingFetcher:
    """Fetches a station's latest short-period series through an admission gate."""

    def __init__(
        self,
        source: ObservationSource,
        parameter: int,
        gate: AdmissionGate,
        negative_cache: NegativeResultCache,
    ):
        self.source = source
        self.parameter = parameter
        self.gate = gate
        self.negative_cache = negative_cache

    async def fetch(self, station: StationInfo) -> Optional[ObservationSeries]:
        """
        Fetch the latest series for ``station``.

        Stations already known to be absent are answered from the memo
        without a network call. A fresh "not found" is recorded.
        Source errors propagate to the caller.
        """
        if station.id in self.negative_cache:
            return None

        series = await self.gate.run(
            self.source.fetch_latest_short_period, self.parameter, station.id
        )
        if series is None:
            logger.debug(f"Station {station.id} has no latest data, skipping it from now on")
            self.negative_cache.add(station.id)
        return series
