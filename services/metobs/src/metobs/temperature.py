"""
Network-wide average temperature.

The latest-hour station-set dataset is authoritative but is sometimes
published with no numeric samples. In that case every station's
latest-day series is fetched (bounded fan-out) and the most recent
reading inside the freshness window is averaged instead.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from .client import ObservationSource
from .config import MetObsConfig
from .decoding import round_half_away
from .fanout import AdmissionGate, fan_out
from .models import ObservationSeries, StationInfo
from .negative_cache import NegativeResultCache
from .stations import LatestReadingFetcher

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return round_half_away(sum(values) / len(values), 1)


def latest_within_window(
    series: Optional[ObservationSeries],
    now: datetime,
    window: timedelta,
) -> Optional[float]:
    """
    Most recent present value whose timestamp is at most ``window`` old.

    Entries without a timestamp never qualify.
    """
    if series is None:
        return None

    candidates = [
        v for v in series.present()
        if v.timestamp is not None and now - v.timestamp <= window
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda v: v.timestamp).value


class AverageTemperatureResolver:
    """Computes the current average air temperature across all stations."""

    def __init__(
        self,
        source: ObservationSource,
        config: MetObsConfig,
        negative_cache: NegativeResultCache,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize resolver.

        Args:
            source: Observation source
            config: Service configuration
            negative_cache: Process-wide memo of absent stations
            clock: Returns the current aware UTC time
        """
        self.source = source
        self.config = config
        self.negative_cache = negative_cache
        self.clock = clock

    @property
    def window(self) -> timedelta:
        return timedelta(minutes=self.config.latest_window_minutes)

    async def resolve(self) -> Optional[float]:
        """
        Average temperature in degC rounded to one decimal, or None.

        Raises:
            ObservationSourceError: If the bulk dataset or the station
                list cannot be fetched
        """
        parameter = self.config.temperature_parameter

        bulk = await asyncio.to_thread(self.source.fetch_latest_hour_bulk, parameter)
        hour_values = [v.value for v in bulk.present()] if bulk is not None else []
        if hour_values:
            average = _mean(hour_values)
            logger.info(f"Average temperature from {len(hour_values)} latest-hour samples: {average}")
            return average

        logger.info("Latest-hour dataset has no samples, falling back to per-station readings")
        return await self._resolve_per_station(parameter)

    async def _resolve_per_station(self, parameter: int) -> Optional[float]:
        station_set = await asyncio.to_thread(self.source.fetch_station_list, parameter)
        stations = station_set.stations if station_set is not None else []
        if not stations:
            logger.info("No stations listed for temperature, no average available")
            return None

        fetcher = LatestReadingFetcher(
            self.source,
            parameter,
            AdmissionGate(self.config.max_concurrency),
            self.negative_cache,
        )
        now = self.clock()
        window = self.window
        contributions: List[float] = []

        async def contribute(station: StationInfo) -> None:
            try:
                series = await fetcher.fetch(station)
            except Exception as e:
                logger.warning(f"Failed to fetch temperature for station {station.id}: {e}", exc_info=e)
                return
            value = latest_within_window(series, now, window)
            if value is not None:
                contributions.append(value)

        await fan_out(stations, contribute)

        if not contributions:
            logger.info(f"None of {len(stations)} stations reported within {window}")
            return None

        average = _mean(contributions)
        logger.info(f"Average temperature from {len(contributions)}/{len(stations)} stations: {average}")
        return average
