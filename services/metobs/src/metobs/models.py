"""Pydantic models for MetObs API payloads."""

from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .decoding import decode_int, decode_number, from_unix_ms

# Station names the API uses when a station has no real name
PLACEHOLDER_NAMES = frozenset({"n/a"})

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class ObservationValue(BaseModel):
    """A single timestamped reading, or a period value for aggregated parameters."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    timestamp: Optional[datetime] = Field(default=None, alias="date")
    value: Optional[float] = None
    quality: Optional[Union[int, str]] = None
    station_id: Optional[int] = Field(default=None, alias="station")
    ref: Optional[str] = None
    period_start: Optional[datetime] = Field(default=None, alias="from")
    period_end: Optional[datetime] = Field(default=None, alias="to")

    @field_validator("timestamp", "period_start", "period_end", mode="before")
    @classmethod
    def _decode_epoch_ms(cls, v: Any) -> Optional[datetime]:
        return from_unix_ms(v)

    @field_validator("value", mode="before")
    @classmethod
    def _decode_value(cls, v: Any) -> Optional[float]:
        return decode_number(v)

    @field_validator("station_id", mode="before")
    @classmethod
    def _decode_station(cls, v: Any) -> Optional[int]:
        return decode_int(v)

    @field_validator("quality", mode="before")
    @classmethod
    def _decode_quality(cls, v: Any) -> Optional[Union[int, str]]:
        # Quality arrives as a code ("G", "Y") or a number depending on endpoint
        if isinstance(v, str) and decode_int(v) is None:
            return v.strip() or None
        return decode_int(v)

    @field_validator("ref", mode="before")
    @classmethod
    def _decode_ref(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return str(v) if not isinstance(v, (dict, list)) else None

    @property
    def is_present(self) -> bool:
        return self.value is not None

    @property
    def label(self) -> Optional[str]:
        """
        Period label for this entry.

        The explicit reference wins; otherwise the period start is
        rendered as YYYY-MM. Entries with neither have no label.
        """
        if self.ref and self.ref.strip():
            return self.ref
        if self.period_start is not None:
            return self.period_start.strftime("%Y-%m")
        return None


class ObservationSeries(BaseModel):
    """Observation values for one parameter and one station (or station set)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    key: Optional[str] = None
    name: Optional[str] = None
    values: List[ObservationValue] = Field(default_factory=list, alias="value")

    @field_validator("values", mode="before")
    @classmethod
    def _null_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def present(self) -> List[ObservationValue]:
        """Entries carrying a decoded value, in upstream order."""
        return [v for v in self.values if v.is_present]

    def latest_present(self) -> Optional[ObservationValue]:
        """
        Most recent entry with a value.

        Upstream order is not trusted. Entries without a timestamp sort
        as oldest so they only win when nothing else is present.
        """
        present = self.present()
        if not present:
            return None
        return max(present, key=lambda v: v.timestamp or _OLDEST)


class StationInfo(BaseModel):
    """Station identifier and display name."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    name: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    active: Optional[bool] = None

    @field_validator("id", mode="before")
    @classmethod
    def _decode_id(cls, v: Any) -> Any:
        decoded = decode_int(v)
        # Leave undecodable ids for pydantic to reject
        return v if decoded is None else decoded

    @field_validator("name", mode="before")
    @classmethod
    def _null_name(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _decode_coordinate(cls, v: Any) -> Optional[float]:
        return decode_number(v)

    @field_validator("active", mode="before")
    @classmethod
    def _decode_active(cls, v: Any) -> Optional[bool]:
        return v if isinstance(v, bool) else None

    @property
    def has_display_name(self) -> bool:
        name = self.name.strip()
        return bool(name) and name.lower() not in PLACEHOLDER_NAMES


class StationSet(BaseModel):
    """Stations reporting a parameter."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    stations: List[StationInfo] = Field(default_factory=list, alias="station")

    @field_validator("stations", mode="before")
    @classmethod
    def _null_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v
