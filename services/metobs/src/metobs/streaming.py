"""
Per-station current temperature stream.

One fetch task per station is admitted through a shared gate, each
pushes its reading into a bounded ResultChannel, and a supervisor closes
the channel once every task has finished. Readings are delivered in
completion order; stations without a value or without a usable name are
filtered out before reaching the caller.
"""
import asyncio
import logging
from typing import AsyncIterator, List, NamedTuple, Optional

from .client import ObservationSource
from .config import MetObsConfig
from .fanout import AdmissionGate, ResultChannel, close_when_done
from .models import PLACEHOLDER_NAMES, StationInfo
from .negative_cache import NegativeResultCache
from .stations import LatestReadingFetcher

logger = logging.getLogger(__name__)


class StationReading(NamedTuple):
    """Latest temperature of one station."""
    station_id: int
    station_name: str
    temperature_c: Optional[float]


def is_deliverable(reading: StationReading) -> bool:
    """True if the reading has a value and a real station name."""
    if reading.temperature_c is None:
        return False
    name = (reading.station_name or "").strip()
    return bool(name) and name.lower() not in PLACEHOLDER_NAMES


class StationTemperatureStreamer:
    """Streams the latest temperature of every station as fetches complete."""

    def __init__(
        self,
        source: ObservationSource,
        config: MetObsConfig,
        negative_cache: NegativeResultCache,
    ):
        """
        Initialize streamer.

        Args:
            source: Observation source
            config: Service configuration (concurrency cap, queue capacity)
            negative_cache: Process-wide memo of absent stations
        """
        self.source = source
        self.config = config
        self.negative_cache = negative_cache

    async def stream(self) -> AsyncIterator[StationReading]:
        """
        Yield one StationReading per eligible station.

        The sequence is one-shot. Breaking out of it, or cancelling the
        consuming task, cancels every outstanding fetch; cancellation
        reaches the caller as asyncio.CancelledError.

        Raises:
            ObservationSourceError: If the station list cannot be fetched
        """
        parameter = self.config.temperature_parameter
        station_set = await asyncio.to_thread(self.source.fetch_station_list, parameter)
        stations = station_set.stations if station_set is not None else []
        logger.info(f"Streaming latest temperature for {len(stations)} stations")

        fetcher = LatestReadingFetcher(
            self.source,
            parameter,
            AdmissionGate(self.config.max_concurrency),
            self.negative_cache,
        )
        channel: ResultChannel[StationReading] = ResultChannel(self.config.queue_capacity)

        workers: List[asyncio.Task] = [
            asyncio.create_task(self._produce(fetcher, station, channel))
            for station in stations
        ]
        supervisor = asyncio.create_task(close_when_done(workers, channel))

        delivered = 0
        try:
            async for reading in channel:
                if not is_deliverable(reading):
                    continue
                delivered += 1
                yield reading
        finally:
            pending = [task for task in (*workers, supervisor) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"Temperature stream finished: {delivered}/{len(stations)} stations delivered")

    async def _produce(
        self,
        fetcher: LatestReadingFetcher,
        station: StationInfo,
        channel: ResultChannel[StationReading],
    ) -> None:
        temperature: Optional[float] = None
        try:
            series = await fetcher.fetch(station)
            if series is not None:
                latest = series.latest_present()
                temperature = latest.value if latest is not None else None
        except Exception as e:
            logger.warning(f"Failed to fetch temperature for station {station.id}: {e}", exc_info=e)

        await channel.send(StationReading(station.id, station.name, temperature))
