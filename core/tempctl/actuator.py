"""
Heating actuators for tempctl

A room's heater hangs off a TP-Link Kasa smart plug (HS110 and friends).
"""

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from kasa import Device, Discover, KasaException

from .exceptions import ActuatorError

logger = logging.getLogger(__name__)

# Errors python-kasa lets through besides its own
_TRANSPORT_ERRORS = (KasaException, OSError, asyncio.TimeoutError)


class Actuator(Protocol):
    """An on/off heating device owned by one room."""

    async def turn_on(self) -> None: ...

    async def turn_off(self) -> None: ...

    async def close(self) -> None: ...


ActuatorFactory = Callable[[str], Awaitable[Actuator]]


class KasaPlug:
    """A Kasa smart plug driving a room heater."""

    def __init__(self, address: str, device: Device):
        self.address = address
        self.device = device

    @classmethod
    async def connect(cls, address: str, timeout: int = 5) -> "KasaPlug":
        """Find the plug at an address and fetch its state.

        Args:
            address: Host name or IP address of the plug
            timeout: Seconds to wait for the plug to answer

        Raises:
            ActuatorError: If the plug cannot be reached
        """
        if not address:
            raise ActuatorError("plug address is empty")
        try:
            device = await Discover.discover_single(address, timeout=timeout)
            await device.update()
        except _TRANSPORT_ERRORS as e:
            raise ActuatorError(f"connecting to plug {address}: {e}") from e

        logger.info("Connected to plug %s (%s, %s)", address, device.alias, "on" if device.is_on else "off")
        return cls(address, device)

    async def turn_on(self) -> None:
        try:
            await self.device.turn_on()
        except _TRANSPORT_ERRORS as e:
            raise ActuatorError(f"turning on plug {self.address}: {e}") from e

    async def turn_off(self) -> None:
        try:
            await self.device.turn_off()
        except _TRANSPORT_ERRORS as e:
            raise ActuatorError(f"turning off plug {self.address}: {e}") from e

    async def close(self) -> None:
        try:
            await self.device.disconnect()
        except _TRANSPORT_ERRORS as e:
            logger.warning("Closing plug %s: %s", self.address, e)
