"""
InfluxDB Telemetry Store for tempctl

Reads presence and temperature from, and writes heating status to, an
InfluxDB 1.x server over its HTTP API.

Presence comes from the UniFi poller's ``unifi_client`` measurement (a client
MAC seen recently means its owner is home), temperature from the
``environment`` measurement tagged with a ``location``.
"""

import logging
import re
import time
from datetime import timedelta
from typing import Any, Optional, Protocol, Sequence

import requests

from .exceptions import (
    DataNotFoundError,
    TelemetryError,
    TelemetryQueryError,
    TelemetryWriteError,
)
from .settings import User

logger = logging.getLogger(__name__)

PRESENCE_QUERY = "SELECT last(uptime) FROM unifi_client WHERE time >= now() - {window} AND mac =~ /{macs}/"
TEMPERATURE_QUERY = "SELECT last(temperature) FROM environment WHERE \"location\" = '{location}' AND time >= now() - {window}"
HEATING_STATUS_MEASUREMENT = "room_heating_status"


class TelemetryStore(Protocol):
    """What a room controller needs from the telemetry backend.

    Implementations must be safe to call from several threads at once.
    """

    def is_any_user_present(self, users: Sequence[User]) -> bool: ...

    def current_temperature(self, location: str) -> float: ...

    def record_heating_state(self, location: str, is_heating: bool) -> None: ...


def _influx_duration(window: timedelta) -> str:
    """Render a timedelta as an InfluxQL duration literal."""
    seconds = int(window.total_seconds())
    if seconds % 60 == 0:
        return f"{seconds // 60}m"
    return f"{seconds}s"


def _quote_string(value: str) -> str:
    """Escape a value for use inside a single-quoted InfluxQL string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _escape_tag(value: str) -> str:
    """Escape a tag value for the line protocol."""
    return re.sub(r"([,= \\])", r"\\\1", value)


class InfluxStore:
    """InfluxDB 1.x telemetry store.

    A single instance is shared by all rooms. Requests go through one pooled
    session; no per-call state is kept on the instance, so concurrent calls
    from worker threads are fine.
    """

    def __init__(
        self,
        address: str,
        database: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 5,
        presence_window: timedelta = timedelta(minutes=5),
        temperature_window: timedelta = timedelta(minutes=10),
    ):
        """Initialize the store.

        Args:
            address: InfluxDB base URL (e.g., "http://influxdb:8086")
            database: Database holding both the readings and the status points
            username: Optional basic auth user
            password: Optional basic auth password
            timeout: Per request timeout in seconds
            presence_window: How recently a device must have been seen
            temperature_window: How old a temperature reading may be
        """
        self.base_url = address.rstrip("/")
        self.database = database
        self.timeout = timeout
        self.presence_window = presence_window
        self.temperature_window = temperature_window

        self.session = requests.Session()
        if username or password:
            self.session.auth = (username or "", password or "")

    def ping(self) -> None:
        """Check that the server is reachable.

        Raises:
            TelemetryError: If the server does not answer the ping
        """
        try:
            response = self.session.get(f"{self.base_url}/ping", timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise TelemetryError(f"pinging influxdb at {self.base_url}: {e}") from e
        logger.info("Connected to InfluxDB at %s (database %s)", self.base_url, self.database)

    def close(self) -> None:
        self.session.close()

    def query(self, statement: str) -> list[dict[str, Any]]:
        """Run an InfluxQL statement and return the series of its first result.

        Raises:
            TelemetryQueryError: On transport errors, HTTP errors or an error in the result
        """
        params = {"db": self.database, "q": statement, "epoch": "s"}
        logger.debug("InfluxQL: %s", statement)
        try:
            response = self.session.get(f"{self.base_url}/query", params=params, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            raise TelemetryQueryError(f"querying influxdb: {e}") from e
        except ValueError as e:
            raise TelemetryQueryError(f"decoding influxdb response: {e}") from e

        if not isinstance(body, dict):
            raise TelemetryQueryError(f"unexpected influxdb response: {body!r}")
        if "error" in body:
            raise TelemetryQueryError(f"influxdb error: {body['error']}")
        results = body.get("results") or []
        if not results:
            raise TelemetryQueryError("influxdb returned no results")
        if "error" in results[0]:
            raise TelemetryQueryError(f"influxdb error: {results[0]['error']}")
        return results[0].get("series") or []

    def is_any_user_present(self, users: Sequence[User]) -> bool:
        """Report whether any of the users' devices was seen within the presence window."""
        if not users:
            return False

        macs = "|".join(re.escape(u.mac_address).replace("/", "\\/") for u in users)
        statement = PRESENCE_QUERY.format(window=_influx_duration(self.presence_window), macs=macs)
        return len(self.query(statement)) > 0

    def current_temperature(self, location: str) -> float:
        """Get the latest temperature for a location.

        Raises:
            DataNotFoundError: If no reading exists within the temperature window
            TelemetryQueryError: If the query fails or the value is not a number
        """
        window = _influx_duration(self.temperature_window)
        statement = TEMPERATURE_QUERY.format(location=_quote_string(location), window=window)
        series = self.query(statement)
        if not series or not series[0].get("values"):
            raise DataNotFoundError(f"no temperature in last {window} with location {location}")

        try:
            return float(series[0]["values"][0][1])
        except (IndexError, KeyError, TypeError, ValueError) as e:
            raise TelemetryQueryError(f"converting temperature for {location}: {e}") from e

    def record_heating_state(self, location: str, is_heating: bool) -> None:
        """Append a heating status point for a location.

        The point carries both a boolean ``heating`` field and an integer
        ``status`` field (0 idle, 1 heating).

        Raises:
            TelemetryWriteError: If the write fails
        """
        line = "{measurement},location={location} heating={heating},status={status}i {ts}".format(
            measurement=HEATING_STATUS_MEASUREMENT,
            location=_escape_tag(location),
            heating="true" if is_heating else "false",
            status=int(is_heating),
            ts=int(time.time()),
        )
        params = {"db": self.database, "precision": "s"}
        try:
            response = self.session.post(
                f"{self.base_url}/write", params=params, data=line.encode("utf-8"), timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise TelemetryWriteError(f"writing heating status for {location}: {e}") from e
        logger.debug("Wrote %s", line)
