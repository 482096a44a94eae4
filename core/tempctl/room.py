"""
Room Controller

Decides, once per cycle, whether a room's heater should be on:

1. Outside the room's active window the heater is off, nothing is queried.
2. Inside it, the heater is on when someone is home and the room is colder
   than its target.

Telemetry failures abort the cycle before the plug is touched, so the plug
keeps whatever state it had. Failures after the decision (plug command,
status write) are logged and the remaining step still runs.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from .actuator import Actuator
from .context import ControllerContext
from .exceptions import ActuatorError, CheckError, InitError, TelemetryError
from .models import HeatingDecision
from .settings import FULL_DAY, RoomSettings

logger = logging.getLogger(__name__)


def time_of_day(now: datetime) -> timedelta:
    """Duration since midnight, truncated to the minute."""
    return timedelta(hours=now.hour, minutes=now.minute)


class RoomController:
    """Runs the heating decision for one room."""

    def __init__(self, settings: RoomSettings, context: ControllerContext):
        self.settings = settings
        self.context = context
        self.actuator: Optional[Actuator] = None

    @property
    def name(self) -> str:
        return self.settings.name

    async def initialize(self) -> None:
        """Validate the room and connect to its plug.

        Raises:
            InitError: If the room is misconfigured or the plug is unreachable
        """
        self.settings.validate(require_occupants=self.context.require_occupants)

        try:
            self.actuator = await self.context.actuator_factory(self.settings.actuator_address)
        except ActuatorError as e:
            raise InitError(f"room {self.name}: initializing plug: {e}") from e

        if not self.settings.users:
            logger.info("Room %s has no occupants configured, treating it as always occupied", self.name)
        logger.debug("Room %s initialized", self.name)

    async def close(self) -> None:
        if self.actuator is not None:
            await self.actuator.close()
            self.actuator = None

    def is_active(self, now: datetime) -> bool:
        """Report whether `now` falls strictly inside the room's active window."""
        if self.settings.always_active:
            return True

        current = time_of_day(now)
        start = self.settings.active_window_start
        stop = self.settings.active_window_stop
        if start < current < stop:
            logger.debug("Room %s: inside active hours for the next %s", self.name, stop - current)
            return True

        until_start = start - current if current <= start else start + FULL_DAY - current
        logger.debug("Room %s: outside active hours for the next %s", self.name, until_start)
        return False

    async def check(self, now: datetime) -> HeatingDecision:
        """Evaluate the room and switch its plug.

        Raises:
            CheckError: If presence or temperature could not be read. The plug
                is not commanded in that case.
        """
        if self.actuator is None:
            raise CheckError(self.name, "room is not initialized")

        decision = HeatingDecision(room_name=self.name, is_heating=False, active=self.is_active(now))

        if decision.active:
            store = self.context.store

            if self.settings.users:
                try:
                    decision.occupied = await asyncio.to_thread(store.is_any_user_present, self.settings.users)
                except TelemetryError as e:
                    raise CheckError(self.name, f"checking for present user: {e}") from e
            else:
                decision.occupied = True

            try:
                decision.temperature = await asyncio.to_thread(store.current_temperature, self.name)
            except TelemetryError as e:
                raise CheckError(self.name, f"getting current temp: {e}") from e

            decision.is_heating = decision.occupied and decision.temperature < self.settings.target_temperature

        await self._apply(decision)
        return decision

    async def _apply(self, decision: HeatingDecision) -> None:
        if decision.is_heating:
            logger.info(
                "Room %s: heating (%.1f°C, target %.1f°C)",
                self.name,
                decision.temperature,
                self.settings.target_temperature,
            )
        else:
            logger.info("Room %s: idle", self.name)

        try:
            if decision.is_heating:
                await self.actuator.turn_on()
            else:
                await self.actuator.turn_off()
        except ActuatorError as e:
            logger.warning("Room %s: plug command failed: %s", self.name, e)

        try:
            await asyncio.to_thread(self.context.store.record_heating_state, self.name, decision.is_heating)
        except TelemetryError as e:
            logger.warning("Room %s: writing heating status failed: %s", self.name, e)
