"""Test configuration and fixtures."""

import threading
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

import pytest

from metobs.client import ObservationSourceError
from metobs.config import MetObsConfig
from metobs.models import ObservationSeries, ObservationValue, StationInfo, StationSet
from metobs.negative_cache import NegativeResultCache

NOW = datetime(2025, 8, 14, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires network access)"
    )


def reading(value, minutes_ago: Optional[int] = 0, station: Optional[int] = None) -> ObservationValue:
    """Build an observation taken ``minutes_ago`` before NOW (None = no timestamp)."""
    timestamp = None if minutes_ago is None else NOW - timedelta(minutes=minutes_ago)
    return ObservationValue(timestamp=timestamp, value=value, station_id=station)


def series(*values: ObservationValue) -> ObservationSeries:
    return ObservationSeries(key="1", name="Lufttemperatur", values=list(values))


class FakeObservationSource:
    """
    In-memory observation source with call instrumentation.

    Blocking methods run on worker threads, so the in-flight counters are
    guarded by a lock. ``delay`` keeps per-station fetches open long
    enough for overlap to be observable.
    """

    def __init__(
        self,
        stations: Optional[List[StationInfo]] = None,
        bulk: Optional[ObservationSeries] = None,
        per_station: Optional[Dict[int, ObservationSeries]] = None,
        monthly: Optional[Dict[int, ObservationSeries]] = None,
        not_found: Optional[Set[int]] = None,
        failing: Optional[Set[int]] = None,
        delay: float = 0.0,
    ):
        self.stations = stations
        self.bulk = bulk
        self.per_station = per_station or {}
        self.monthly = monthly or {}
        self.not_found = not_found or set()
        self.failing = failing or set()
        self.delay = delay

        self.station_list_error: Optional[Exception] = None
        self.station_calls: Counter = Counter()
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def fetch_latest_hour_bulk(self, parameter: int) -> Optional[ObservationSeries]:
        return self.bulk

    def fetch_station_list(self, parameter: int) -> Optional[StationSet]:
        if self.station_list_error is not None:
            raise self.station_list_error
        if self.stations is None:
            return None
        return StationSet(stations=self.stations)

    def fetch_latest_months(self, parameter: int, station_id: int) -> Optional[ObservationSeries]:
        return self.monthly.get(station_id)

    def fetch_latest_short_period(self, parameter: int, station_id: int) -> Optional[ObservationSeries]:
        with self._lock:
            self.station_calls[station_id] += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if station_id in self.failing:
                raise ObservationSourceError(f"HTTP 500 for station {station_id}", status_code=500)
            if station_id in self.not_found:
                return None
            return self.per_station.get(station_id, series())
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def config():
    """Default configuration, isolated from the environment."""
    return MetObsConfig(_env_file=None)


@pytest.fixture
def negative_cache():
    return NegativeResultCache()


@pytest.fixture
def clock():
    return lambda: NOW
