"""Monthly precipitation totals for a single station."""
import asyncio
import logging
from typing import List, Optional, Tuple

from .client import ObservationSource
from .config import MetObsConfig
from .decoding import round_half_away
from .models import ObservationSeries

logger = logging.getLogger(__name__)


def summarize_months(series: Optional[ObservationSeries]) -> Tuple[float, List[str]]:
    """
    Sum a monthly series and collect its period labels.

    Entries are taken in upstream order. Value and label are independent:
    an entry without a label still adds to the total, and a labelled
    entry without a value adds nothing but still lists its month.

    Returns:
        Tuple of (total_mm rounded to one decimal, labels in encounter order)
    """
    if series is None or not series.values:
        return 0.0, []

    total = 0.0
    months: List[str] = []
    for entry in series.values:
        if entry.value is not None:
            total += entry.value
        label = entry.label
        if label:
            months.append(label)

    return round_half_away(total, 1), months


class RainfallAggregator:
    """Totals the latest-months precipitation of a target station."""

    def __init__(self, source: ObservationSource, config: MetObsConfig):
        self.source = source
        self.config = config

    async def resolve(self, station_id: Optional[int] = None) -> Tuple[float, List[str]]:
        """
        Total rainfall (mm) and month labels for ``station_id``.

        Defaults to the configured rainfall station. A missing or empty
        series yields (0.0, []).

        Raises:
            ObservationSourceError: If the series cannot be fetched
        """
        if station_id is None:
            station_id = self.config.rainfall_station_id

        series = await asyncio.to_thread(
            self.source.fetch_latest_months,
            self.config.precipitation_parameter,
            station_id,
        )
        total, months = summarize_months(series)
        logger.info(f"Station {station_id}: {total} mm over {len(months)} labelled month(s)")
        return total, months
