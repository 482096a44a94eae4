"""Tests for configuration loading."""

from datetime import timedelta
from textwrap import dedent

import pytest

from tempctl.exceptions import ConfigurationError, InitError
from tempctl.settings import AppSettings, RoomSettings, User, load_config, parse_clock

CONFIG = """
users:
  alice: "aa:bb:cc:dd:ee:01"
  bob: "aa:bb:cc:dd:ee:02"
rooms:
  - name: living
    plug_address: 10.0.0.10
    occupants: [alice, bob]
    target_temp: 21
    start_time: "07:00"
    stop_time: "22:30"
  - name: office
    plugAddress: 10.0.0.11
    occupants: [bob]
    targetTemp: 19.5
"""


def write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(dedent(text))
    return str(path)


class TestParseClock:
    """Tests for parse_clock."""

    def test_valid(self):
        assert parse_clock("07:30") == timedelta(hours=7, minutes=30)
        assert parse_clock("00:00") == timedelta(0)

    def test_unquoted_yaml_time(self, tmp_path):
        """PyYAML reads 22:00 without quotes as 1320."""
        path = write_config(
            tmp_path,
            """
            users: {alice: "aa:bb"}
            rooms:
              - {name: living, plug_address: x, occupants: [alice], target_temp: 20, start_time: 07:30, stop_time: 22:00}
            """,
        )
        (room,) = load_config(path)
        assert room.active_window_start == timedelta(hours=7, minutes=30)
        assert room.active_window_stop == timedelta(hours=22)

    @pytest.mark.parametrize("value", ["7", "24:00", "12:60", "noon", 1440, 7, 59])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError, match="expected HH:MM"):
            parse_clock(value)


class TestLoadConfig:
    """Tests for load_config."""

    def test_loads_rooms(self, tmp_path):
        rooms = load_config(write_config(tmp_path, CONFIG))

        living, office = rooms
        assert living.name == "living"
        assert living.users == [
            User(name="alice", mac_address="aa:bb:cc:dd:ee:01"),
            User(name="bob", mac_address="aa:bb:cc:dd:ee:02"),
        ]
        assert living.target_temperature == 21.0
        assert living.actuator_address == "10.0.0.10"
        assert living.active_window_start == timedelta(hours=7)
        assert living.active_window_stop == timedelta(hours=22, minutes=30)

        assert office.actuator_address == "10.0.0.11"
        assert office.target_temperature == 19.5
        assert office.always_active

    def test_unknown_occupant(self, tmp_path):
        path = write_config(
            tmp_path,
            """
            users: {alice: "aa:bb"}
            rooms:
              - {name: living, plug_address: x, occupants: [carol], target_temp: 20}
            """,
        )
        with pytest.raises(ConfigurationError, match="room living: no such user carol"):
            load_config(path)

    def test_bad_time(self, tmp_path):
        path = write_config(
            tmp_path,
            """
            users: {alice: "aa:bb"}
            rooms:
              - {name: living, plug_address: x, occupants: [alice], target_temp: 20, start_time: "7am"}
            """,
        )
        with pytest.raises(ConfigurationError, match="room living: invalid time"):
            load_config(path)

    def test_window_crossing_midnight_is_rejected(self, tmp_path):
        path = write_config(
            tmp_path,
            """
            users: {alice: "aa:bb"}
            rooms:
              - {name: living, plug_address: x, occupants: [alice], target_temp: 20, start_time: "22:00", stop_time: "06:00"}
            """,
        )
        with pytest.raises(InitError, match="later than stop"):
            load_config(path)

    def test_duplicate_rooms(self, tmp_path):
        path = write_config(
            tmp_path,
            """
            users: {alice: "aa:bb"}
            rooms:
              - {name: living, plug_address: x, occupants: [alice], target_temp: 20}
              - {name: living, plug_address: y, occupants: [alice], target_temp: 20}
            """,
        )
        with pytest.raises(ConfigurationError, match="more than once"):
            load_config(path)

    def test_missing_target(self, tmp_path):
        path = write_config(
            tmp_path,
            """
            users: {alice: "aa:bb"}
            rooms:
              - {name: living, plug_address: x, occupants: [alice]}
            """,
        )
        with pytest.raises(ConfigurationError, match="target_temp is required"):
            load_config(path)

    def test_room_without_occupants(self, tmp_path):
        text = """
            rooms:
              - {name: garage, plug_address: x, target_temp: 8}
            """
        with pytest.raises(ConfigurationError, match="at least one user"):
            load_config(write_config(tmp_path, text))

        (garage,) = load_config(write_config(tmp_path, text), require_occupants=False)
        assert garage.users == []

    def test_small_integer_time_is_rejected(self, tmp_path):
        """An unquoted 7 is not a clock time, not 00:07."""
        path = write_config(
            tmp_path,
            """
            users: {alice: "aa:bb"}
            rooms:
              - {name: living, plug_address: x, occupants: [alice], target_temp: 20, start_time: 7, stop_time: "22:00"}
            """,
        )
        with pytest.raises(ConfigurationError, match="room living: invalid time 7"):
            load_config(path)

    @pytest.mark.parametrize("users", ["[alice, bob]", '"alice"'])
    def test_users_must_be_a_mapping(self, tmp_path, users):
        path = write_config(tmp_path, f"users: {users}\nrooms: []\n")
        with pytest.raises(ConfigurationError, match="users in .* must be a mapping"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="reading config file"):
            load_config(str(tmp_path / "nope.yaml"))

    def test_malformed_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError, match="parsing config file"):
            load_config(write_config(tmp_path, "rooms: [unclosed"))


class TestRoomSettings:
    """Tests for RoomSettings validation."""

    def test_full_day_window_is_valid(self):
        room = RoomSettings(
            name="living",
            users=[User("alice", "aa:bb")],
            target_temperature=20,
            actuator_address="x",
            active_window_start=timedelta(0),
            active_window_stop=timedelta(hours=24),
        )
        room.validate()
        assert not room.always_active


class TestAppSettings:
    """Tests for AppSettings."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setattr("tempctl.settings.load_dotenv", lambda: None)
        monkeypatch.setenv("TEMPCTL_CONFIG_FILE", "/etc/tempctl.yaml")
        monkeypatch.setenv("TEMPCTL_INFLUX_ADDRESS", "http://influxdb:8086")
        monkeypatch.setenv("TEMPCTL_INFLUX_DB", "home")
        monkeypatch.setenv("TEMPCTL_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("TEMPCTL_SYNC_FREQUENCY", "60")
        monkeypatch.setenv("TEMPCTL_REQUIRE_OCCUPANTS", "false")

        settings = AppSettings.from_env()
        settings.validate()

        assert settings.config_file == "/etc/tempctl.yaml"
        assert settings.log_level == "debug"
        assert settings.sync_frequency == 60
        assert settings.require_occupants is False

    def test_bad_frequency(self, monkeypatch):
        monkeypatch.setattr("tempctl.settings.load_dotenv", lambda: None)
        monkeypatch.setenv("TEMPCTL_SYNC_FREQUENCY", "often")
        with pytest.raises(ConfigurationError, match="integer"):
            AppSettings.from_env()

    def test_validate_reports_missing(self):
        with pytest.raises(ConfigurationError, match="config.file, influx.address, influx.db"):
            AppSettings().validate()

    def test_validate_log_level(self):
        settings = AppSettings(config_file="c", influx_address="a", influx_db="d", log_level="trace")
        with pytest.raises(ConfigurationError, match="unknown log level"):
            settings.validate()
