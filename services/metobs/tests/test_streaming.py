"""Tests for the per-station temperature stream."""
import asyncio
import time

import pytest

from conftest import FakeObservationSource, reading, series
from metobs.client import ObservationSourceError
from metobs.models import StationInfo
from metobs.streaming import StationReading, StationTemperatureStreamer, is_deliverable


async def collect(streamer):
    return [item async for item in streamer.stream()]


def run_stream(source, config, negative_cache):
    return asyncio.run(collect(StationTemperatureStreamer(source, config, negative_cache)))


def test_stream_yields_latest_reading_per_station(config, negative_cache):
    source = FakeObservationSource(
        stations=[StationInfo(id=1, name="Lund"), StationInfo(id=2, name="Malmö")],
        per_station={
            1: series(reading(9.0, minutes_ago=60), reading(10.5, minutes_ago=0)),
            2: series(reading(None, minutes_ago=0), reading(12.3, minutes_ago=30)),
        },
    )

    results = run_stream(source, config, negative_cache)

    assert sorted(results) == [
        StationReading(1, "Lund", 10.5),
        StationReading(2, "Malmö", 12.3),
    ]


def test_stream_items_are_plain_tuples(config, negative_cache):
    source = FakeObservationSource(
        stations=[StationInfo(id=7, name="Visby")],
        per_station={7: series(reading(15.0))},
    )

    (station_id, name, temperature), = run_stream(source, config, negative_cache)

    assert (station_id, name, temperature) == (7, "Visby", 15.0)


def test_stream_filters_unusable_entries(config, negative_cache):
    """Test absent values, blank names and placeholder names are never yielded."""
    source = FakeObservationSource(
        stations=[
            StationInfo(id=1, name="Lund"),
            StationInfo(id=2, name=""),
            StationInfo(id=3, name="   "),
            StationInfo(id=4, name="N/A"),
            StationInfo(id=5, name="Kiruna"),
            StationInfo(id=6, name="Umeå"),
        ],
        per_station={
            1: series(reading(10.0)),
            2: series(reading(11.0)),
            3: series(reading(12.0)),
            4: series(reading(13.0)),
            5: series(reading(None)),
        },
    )

    results = run_stream(source, config, negative_cache)

    assert results == [StationReading(1, "Lund", 10.0)]
    assert len(results) <= 6


def test_stream_untimestamped_reading_is_oldest(config, negative_cache):
    source = FakeObservationSource(
        stations=[StationInfo(id=1, name="Lund")],
        per_station={1: series(reading(99.0, minutes_ago=None), reading(10.0, minutes_ago=500))},
    )

    assert run_stream(source, config, negative_cache) == [StationReading(1, "Lund", 10.0)]


def test_stream_failures_are_not_fatal(config, negative_cache, caplog):
    source = FakeObservationSource(
        stations=[StationInfo(id=1, name="Lund"), StationInfo(id=2, name="Malmö")],
        per_station={1: series(reading(10.0))},
        failing={2},
    )

    with caplog.at_level("WARNING"):
        results = run_stream(source, config, negative_cache)

    assert results == [StationReading(1, "Lund", 10.0)]
    assert "Failed to fetch temperature for station 2" in caplog.text
    assert 2 not in negative_cache


def test_negative_cache_prevents_repeat_fetches(config, negative_cache):
    """Test confirmed not-found stations are fetched once per process."""
    stations = [StationInfo(id=i, name=f"Station {i}") for i in range(1, 11)]
    not_found = {2, 5, 9}
    source = FakeObservationSource(
        stations=stations,
        per_station={s.id: series(reading(float(s.id))) for s in stations},
        not_found=not_found,
    )

    first = run_stream(source, config, negative_cache)
    second = run_stream(source, config, negative_cache)

    assert len(negative_cache) == len(not_found)
    assert set(negative_cache) == not_found
    for station_id in not_found:
        assert source.station_calls[station_id] == 1
    for station_id in set(range(1, 11)) - not_found:
        assert source.station_calls[station_id] == 2
    assert len(first) == len(second) == 7


def test_stream_delivers_each_station_once(config, negative_cache):
    stations = [StationInfo(id=i, name=f"Station {i}") for i in range(1, 101)]
    source = FakeObservationSource(
        stations=stations,
        per_station={s.id: series(reading(float(s.id))) for s in stations},
    )

    results = run_stream(source, config, negative_cache)

    assert sorted(r.station_id for r in results) == list(range(1, 101))


def test_stream_respects_concurrency_cap(config, negative_cache):
    """Test at most six per-station fetches are ever in flight."""
    stations = [StationInfo(id=i, name=f"Station {i}") for i in range(1, 61)]
    source = FakeObservationSource(
        stations=stations,
        per_station={s.id: series(reading(1.0)) for s in stations},
        delay=0.01,
    )

    results = run_stream(source, config, negative_cache)

    assert len(results) == 60
    assert 1 < source.max_in_flight <= 6


def test_stream_with_small_queue(config, negative_cache):
    """Test producers wait for a slow consumer instead of dropping readings."""
    config.queue_capacity = 1
    stations = [StationInfo(id=i, name=f"Station {i}") for i in range(1, 21)]
    source = FakeObservationSource(
        stations=stations,
        per_station={s.id: series(reading(2.0)) for s in stations},
    )

    async def slow_collect():
        results = []
        async for item in StationTemperatureStreamer(source, config, negative_cache).stream():
            await asyncio.sleep(0.001)
            results.append(item)
        return results

    results = asyncio.run(slow_collect())

    assert len(results) == 20


def test_stream_delivers_in_completion_order(config, negative_cache):
    """Test a fast station is not held back by a slow one listed before it."""
    class SlowFirstSource(FakeObservationSource):
        def fetch_latest_short_period(self, parameter, station_id):
            if station_id == 1:
                time.sleep(0.2)
            return super().fetch_latest_short_period(parameter, station_id)

    source = SlowFirstSource(
        stations=[StationInfo(id=1, name="Slow"), StationInfo(id=2, name="Fast")],
        per_station={1: series(reading(1.0)), 2: series(reading(2.0))},
    )

    results = run_stream(source, config, negative_cache)

    assert [r.station_id for r in results] == [2, 1]


def test_empty_or_missing_station_list(config, negative_cache):
    assert run_stream(FakeObservationSource(stations=[]), config, negative_cache) == []
    assert run_stream(FakeObservationSource(stations=None), config, negative_cache) == []


def test_station_list_failure_propagates(config, negative_cache):
    source = FakeObservationSource()
    source.station_list_error = ObservationSourceError("HTTP 500", status_code=500)

    with pytest.raises(ObservationSourceError):
        run_stream(source, config, negative_cache)


def test_breaking_out_cancels_outstanding_fetches(config, negative_cache):
    stations = [StationInfo(id=i, name=f"Station {i}") for i in range(1, 51)]
    source = FakeObservationSource(
        stations=stations,
        per_station={s.id: series(reading(1.0)) for s in stations},
        delay=0.02,
    )

    async def take_first():
        stream = StationTemperatureStreamer(source, config, negative_cache).stream()
        async for item in stream:
            await stream.aclose()
            return item

    first = asyncio.run(take_first())

    assert first is not None
    # Gate admits six at a time; closing early leaves most stations unfetched
    assert sum(source.station_calls.values()) < 50


def test_cancellation_surfaces_as_cancelled(config, negative_cache):
    """Test cancelling the consumer stops the stream and reports cancellation."""
    stations = [StationInfo(id=i, name=f"Station {i}") for i in range(1, 201)]
    source = FakeObservationSource(
        stations=stations,
        per_station={s.id: series(reading(1.0)) for s in stations},
        delay=0.02,
    )
    received = []

    async def consume():
        async for item in StationTemperatureStreamer(source, config, negative_cache).stream():
            received.append(item)

    async def main():
        task = asyncio.create_task(consume())
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, timeout=5)
        return len(received)

    count_at_cancel = asyncio.run(main())

    assert count_at_cancel < 200
    assert sum(source.station_calls.values()) < 200


@pytest.mark.parametrize(
    "item, expected",
    [
        (StationReading(1, "Lund", 10.0), True),
        (StationReading(1, "Lund", 0.0), True),
        (StationReading(1, "Lund", None), False),
        (StationReading(1, "", 10.0), False),
        (StationReading(1, "n/a", 10.0), False),
        (StationReading(1, "N/a", 10.0), False),
    ],
)
def test_is_deliverable(item, expected):
    assert is_deliverable(item) is expected
