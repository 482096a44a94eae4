"""Shared fixtures and test doubles."""

from datetime import datetime, timedelta

import pytest

from tempctl.context import ControllerContext
from tempctl.exceptions import ActuatorError
from tempctl.room import RoomController
from tempctl.settings import RoomSettings, User

ALICE = User(name="alice", mac_address="aa:bb:cc:dd:ee:01")
BOB = User(name="bob", mac_address="aa:bb:cc:dd:ee:02")


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, 15, hour, minute, 30)


class FakeStore:
    """Telemetry store double that records every call."""

    def __init__(self, present=True, temperature=18.0):
        self.present = present
        self.temperature = temperature
        self.presence_error = None
        self.temperature_error = None
        self.write_error = None
        self.ping_error = None
        self.calls = []
        self.writes = []
        self.closed = False

    def is_any_user_present(self, users):
        self.calls.append(("presence", tuple(u.mac_address for u in users)))
        if self.presence_error:
            raise self.presence_error
        return self.present

    def current_temperature(self, location):
        self.calls.append(("temperature", location))
        if self.temperature_error:
            raise self.temperature_error
        return self.temperature

    def record_heating_state(self, location, is_heating):
        self.writes.append((location, is_heating))
        if self.write_error:
            raise self.write_error

    def ping(self):
        if self.ping_error:
            raise self.ping_error

    def close(self):
        self.closed = True


class FakeActuator:
    """Plug double that records commands."""

    def __init__(self, error: ActuatorError | None = None):
        self.error = error
        self.commands = []
        self.closed = False

    async def turn_on(self):
        self.commands.append("on")
        if self.error:
            raise self.error

    async def turn_off(self):
        self.commands.append("off")
        if self.error:
            raise self.error

    async def close(self):
        self.closed = True


def room_settings(**overrides) -> RoomSettings:
    values = dict(
        name="living",
        users=[ALICE],
        target_temperature=21.0,
        actuator_address="10.0.0.10",
        active_window_start=timedelta(hours=7),
        active_window_stop=timedelta(hours=22),
    )
    values.update(overrides)
    return RoomSettings(**values)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_room(store):
    """Build an initialized room controller wired to fakes.

    Returns (controller, actuator).
    """

    async def _make(actuator=None, context_store=None, require_occupants=True, **overrides):
        actuator = actuator or FakeActuator()

        async def factory(address):
            return actuator

        context = ControllerContext(
            store=context_store or store,
            actuator_factory=factory,
            require_occupants=require_occupants,
        )
        controller = RoomController(room_settings(**overrides), context)
        await controller.initialize()
        return controller, actuator

    return _make
