"""Entry points for the MetObs aggregates."""
from typing import AsyncIterator, List, Optional, Tuple

from .client import ObservationSource
from .config import MetObsConfig
from .negative_cache import NegativeResultCache
from .rainfall import RainfallAggregator
from .streaming import StationReading, StationTemperatureStreamer
from .temperature import AverageTemperatureResolver


class WeatherService:
    """Wires the aggregation components around one observation source."""

    def __init__(
        self,
        source: ObservationSource,
        config: MetObsConfig,
        negative_cache: Optional[NegativeResultCache] = None,
    ):
        """
        Initialize service.

        Args:
            source: Observation source (usually an SmhiClient)
            config: Service configuration
            negative_cache: Memo of absent stations; pass the same instance
                to every service built during a process run
        """
        self.source = source
        self.config = config
        self.negative_cache = negative_cache if negative_cache is not None else NegativeResultCache()

        self.temperature = AverageTemperatureResolver(source, config, self.negative_cache)
        self.rainfall = RainfallAggregator(source, config)
        self.streamer = StationTemperatureStreamer(source, config, self.negative_cache)

    async def compute_average_temperature(self) -> Optional[float]:
        """Average air temperature across the network (degC, 1 decimal), or None."""
        return await self.temperature.resolve()

    async def compute_rainfall_total(self, station_id: Optional[int] = None) -> Tuple[float, List[str]]:
        """Total latest-months rainfall (mm, 1 decimal) and its YYYY-MM labels."""
        return await self.rainfall.resolve(station_id)

    def stream_station_temperatures(self) -> AsyncIterator[StationReading]:
        """Lazy, one-shot stream of (station_id, station_name, temperature_c)."""
        return self.streamer.stream()
