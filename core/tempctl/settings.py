"""
tempctl Configuration Settings

Room and user definitions are loaded from a YAML config file.
Process settings come from TEMPCTL_* environment variables (or .env),
overridden by command line flags in the backend.
"""

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CLOCK_FORMAT = "%H:%M"
FULL_DAY = timedelta(hours=24)


def _camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def parse_clock(value: str) -> timedelta:
    """Parse an "HH:MM" clock time into a duration since midnight."""
    # YAML 1.1 loads an unquoted 22:30 as the base 60 integer 1350
    if isinstance(value, int) and not isinstance(value, bool):
        # the hour is at least 1, so a real HH:MM value is never below 60
        if 60 <= value < 24 * 60:
            return timedelta(minutes=value)
        raise ConfigurationError(f"invalid time {value!r}, expected HH:MM")
    try:
        parsed = datetime.strptime(str(value).strip(), CLOCK_FORMAT)
    except ValueError as e:
        raise ConfigurationError(f"invalid time {value!r}, expected HH:MM") from e
    return timedelta(hours=parsed.hour, minutes=parsed.minute)


@dataclass(frozen=True)
class User:
    """An occupant, identified on the network by a device MAC address."""

    name: str
    mac_address: str


@dataclass
class RoomSettings:
    """Configuration for a single heated room."""

    name: str
    users: list[User]
    target_temperature: float
    actuator_address: str
    active_window_start: timedelta = timedelta(0)  # since midnight
    active_window_stop: timedelta = timedelta(0)  # 0,0 means always active

    @property
    def always_active(self) -> bool:
        return self.active_window_start == timedelta(0) and self.active_window_stop == timedelta(0)

    def validate(self, require_occupants: bool = True) -> None:
        """Check the room's invariants.

        Args:
            require_occupants: When False, a room without users is accepted
                and treated as always occupied.

        Raises:
            ConfigurationError: If the room definition is invalid
        """
        if not self.name:
            raise ConfigurationError("room requires a name")

        label = f"room {self.name}"
        if self.active_window_start < timedelta(0):
            raise ConfigurationError(f"{label}: start time must be >= 0")
        if self.active_window_start > self.active_window_stop:
            raise ConfigurationError(f"{label}: start time cannot be later than stop time")
        if self.active_window_stop > FULL_DAY:
            raise ConfigurationError(f"{label}: stop time must not exceed 24h")
        if require_occupants and not self.users:
            raise ConfigurationError(f"{label}: at least one user is required")

    @classmethod
    def from_dict(cls, data: dict, users: dict[str, str]) -> "RoomSettings":
        """Create from a config file room entry.

        Args:
            data: Room entry (snake_case or camelCase keys)
            users: Known users, name -> MAC address

        Raises:
            ConfigurationError: On missing keys, bad times or unknown occupants
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"room entry must be a mapping, got {data!r}")
        converted = {_camel_to_snake(k): v for k, v in data.items()}
        name = str(converted.get("name") or "")
        label = f"room {name or '<unnamed>'}"

        occupants = []
        for occupant in converted.get("occupants") or []:
            if occupant not in users:
                raise ConfigurationError(f"{label}: no such user {occupant}")
            occupants.append(User(name=occupant, mac_address=users[occupant]))

        try:
            target = float(converted["target_temp"])
        except KeyError as e:
            raise ConfigurationError(f"{label}: target_temp is required") from e
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{label}: invalid target_temp {converted['target_temp']!r}") from e

        try:
            start = parse_clock(converted.get("start_time", "00:00"))
            stop = parse_clock(converted.get("stop_time", "00:00"))
        except ConfigurationError as e:
            raise ConfigurationError(f"{label}: {e}") from e

        return cls(
            name=name,
            users=occupants,
            target_temperature=target,
            actuator_address=str(converted.get("plug_address") or ""),
            active_window_start=start,
            active_window_stop=stop,
        )


def load_config(path: str, require_occupants: bool = True) -> list[RoomSettings]:
    """Load and validate all rooms from a YAML config file.

    The file has a top-level ``users`` map (name -> MAC address) and a
    ``rooms`` list.

    Raises:
        ConfigurationError: If the file cannot be read or any room is invalid
    """
    try:
        with open(path) as f:
            config = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"reading config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"parsing config file {path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")

    raw_users = config.get("users") or {}
    if not isinstance(raw_users, dict):
        raise ConfigurationError(f"users in {path} must be a mapping of name to MAC address")
    users = {str(name): str(mac) for name, mac in raw_users.items()}

    rooms: list[RoomSettings] = []
    seen = set()
    for entry in config.get("rooms") or []:
        room = RoomSettings.from_dict(entry, users)
        room.validate(require_occupants=require_occupants)
        if room.name in seen:
            raise ConfigurationError(f"room {room.name} is defined more than once")
        seen.add(room.name)
        rooms.append(room)

    logger.debug("Loaded %d rooms and %d users from %s", len(rooms), len(users), path)
    return rooms


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AppSettings:
    """Process level settings."""

    config_file: str = ""
    influx_address: str = ""
    influx_db: str = ""
    influx_username: Optional[str] = None
    influx_password: Optional[str] = None
    log_level: str = "info"
    sync_frequency: int = 30  # seconds between checks
    timezone: Optional[str] = None  # IANA name, local time when unset
    require_occupants: bool = True

    @classmethod
    def from_env(cls) -> "AppSettings":
        """Load settings from TEMPCTL_* environment variables, reading .env first."""
        load_dotenv()
        frequency = os.getenv("TEMPCTL_SYNC_FREQUENCY", "")
        try:
            sync_frequency = int(frequency) if frequency else 30
        except ValueError as e:
            raise ConfigurationError(f"TEMPCTL_SYNC_FREQUENCY must be an integer, got {frequency!r}") from e

        return cls(
            config_file=os.getenv("TEMPCTL_CONFIG_FILE", ""),
            influx_address=os.getenv("TEMPCTL_INFLUX_ADDRESS", ""),
            influx_db=os.getenv("TEMPCTL_INFLUX_DB", ""),
            influx_username=os.getenv("TEMPCTL_INFLUX_USERNAME") or None,
            influx_password=os.getenv("TEMPCTL_INFLUX_PASSWORD") or None,
            log_level=os.getenv("TEMPCTL_LOG_LEVEL", "info").lower(),
            sync_frequency=sync_frequency,
            timezone=os.getenv("TEMPCTL_TIMEZONE") or None,
            require_occupants=_env_bool("TEMPCTL_REQUIRE_OCCUPANTS", True),
        )

    def validate(self) -> None:
        """Raise ConfigurationError if a required setting is missing or invalid."""
        missing = [
            flag
            for flag, value in (
                ("config.file", self.config_file),
                ("influx.address", self.influx_address),
                ("influx.db", self.influx_db),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"missing required settings: {', '.join(missing)}")
        if self.log_level not in ("info", "debug"):
            raise ConfigurationError(f"unknown log level {self.log_level}")
        if self.sync_frequency <= 0:
            raise ConfigurationError("sync frequency must be a positive number of seconds")
