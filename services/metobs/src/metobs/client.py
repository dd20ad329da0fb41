"""SMHI MetObs open data client for fetching station observation data."""
import logging
from typing import Optional, Protocol, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError
from requests.adapters import HTTPAdapter

from .config import MetObsConfig
from .models import ObservationSeries, StationSet

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class MetObsError(Exception):
    """Base error for the MetObs service."""


class ObservationSourceError(MetObsError):
    """Raised on transport failures, unexpected HTTP status or malformed payloads."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ObservationSource(Protocol):
    """
    Fetch interface consumed by the aggregation components.

    Every method returns None when the upstream resource does not exist
    and raises ObservationSourceError on any other failure.
    """

    def fetch_latest_hour_bulk(self, parameter: int) -> Optional[ObservationSeries]: ...

    def fetch_station_list(self, parameter: int) -> Optional[StationSet]: ...

    def fetch_latest_months(self, parameter: int, station_id: int) -> Optional[ObservationSeries]: ...

    def fetch_latest_short_period(self, parameter: int, station_id: int) -> Optional[ObservationSeries]: ...


class SmhiClient:
    """Client for interacting with the SMHI MetObs API."""

    API_ROOT = "/api/version/1.0"

    # Period names as used in MetObs URLs
    PERIOD_LATEST_HOUR = "latest-hour"
    PERIOD_LATEST_DAY = "latest-day"
    PERIOD_LATEST_MONTHS = "latest-months"

    def __init__(self, config: MetObsConfig, session: Optional[requests.Session] = None):
        """Initialize SMHI client.

        Args:
            config: MetObs configuration
            session: Optional pre-built session (tests inject mocks here)
        """
        self.config = config
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create requests session with a bounded connection pool and no retries."""
        session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=1,
            pool_maxsize=self.config.max_connections,
            max_retries=0,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"Accept": "application/json"})
        return session

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{self.API_ROOT}{path}"

    # Endpoints -------------------------------------------------------------

    def fetch_latest_hour_bulk(self, parameter: int) -> Optional[ObservationSeries]:
        """Fetch the latest-hour series for every station reporting a parameter."""
        return self._get_model(
            f"/parameter/{parameter}/station-set/all/period/{self.PERIOD_LATEST_HOUR}/data.json",
            ObservationSeries,
        )

    def fetch_latest_day_bulk(self, parameter: int) -> Optional[ObservationSeries]:
        """Fetch the latest-day series for every station reporting a parameter."""
        return self._get_model(
            f"/parameter/{parameter}/station-set/all/period/{self.PERIOD_LATEST_DAY}/data.json",
            ObservationSeries,
        )

    def fetch_station_list(self, parameter: int) -> Optional[StationSet]:
        """Fetch the stations reporting a parameter."""
        return self._get_model(f"/parameter/{parameter}.json", StationSet)

    def fetch_latest_months(self, parameter: int, station_id: int) -> Optional[ObservationSeries]:
        """Fetch the latest-months series of one station."""
        return self._get_model(
            f"/parameter/{parameter}/station/{station_id}/period/{self.PERIOD_LATEST_MONTHS}/data.json",
            ObservationSeries,
        )

    def fetch_latest_short_period(self, parameter: int, station_id: int) -> Optional[ObservationSeries]:
        """Fetch the latest-day series of one station."""
        return self._get_model(
            f"/parameter/{parameter}/station/{station_id}/period/{self.PERIOD_LATEST_DAY}/data.json",
            ObservationSeries,
        )

    # Helpers ---------------------------------------------------------------

    def _get_model(self, path: str, model: Type[ModelT]) -> Optional[ModelT]:
        """GET a JSON document and validate it into ``model``.

        Args:
            path: Path below the API root
            model: Pydantic model describing the payload

        Returns:
            Validated model, or None on HTTP 404

        Raises:
            ObservationSourceError: On transport errors, non-success status
                or a payload that does not fit the model
        """
        url = self._url(path)
        payload = self._get_json(url)
        if payload is None:
            return None

        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Malformed payload from {url}: {e.error_count()} validation error(s)")
            raise ObservationSourceError(f"Malformed payload from {url}", url=url) from e

    def _get_json(self, url: str) -> Optional[object]:
        try:
            response = self.session.get(url, timeout=self.config.request_timeout)
        except requests.RequestException as e:
            raise ObservationSourceError(f"Request to {url} failed: {e}", url=url) from e

        # Missing stations and periods are routine; keep them out of the log
        if response.status_code == 404:
            return None

        if not 200 <= response.status_code < 300:
            logger.warning(f"HTTP {response.status_code} GET {url}")
            raise ObservationSourceError(
                f"HTTP {response.status_code} from {url}",
                url=url,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ObservationSourceError(f"Invalid JSON from {url}", url=url) from e

    def close(self):
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self) -> "SmhiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
