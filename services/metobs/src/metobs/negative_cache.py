"""Memo of stations confirmed absent on the per-station latest-reading endpoint."""

from typing import Iterator, Set


class NegativeResultCache:
    """
    Insert-only set of station ids that answered "not found".

    One instance is created per process and handed to the components
    that fan out per-station fetches. Entries never expire; a restart
    clears them. Membership inserts are idempotent.
    """

    def __init__(self) -> None:
        self._stations: Set[int] = set()

    def add(self, station_id: int) -> None:
        self._stations.add(station_id)

    def __contains__(self, station_id: object) -> bool:
        return station_id in self._stations

    def __len__(self) -> int:
        return len(self._stations)

    def __iter__(self) -> Iterator[int]:
        return iter(frozenset(self._stations))

    def clear(self) -> None:
        self._stations.clear()
