"""
Shared controller context

Everything the room controllers share, created once at startup and closed at
shutdown.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Optional

from .actuator import ActuatorFactory, KasaPlug
from .influx_store import TelemetryStore

logger = logging.getLogger(__name__)


@dataclass
class ControllerContext:
    """State shared by reference among all room controllers."""

    store: TelemetryStore
    actuator_factory: ActuatorFactory = KasaPlug.connect
    require_occupants: bool = True
    tz: Optional[tzinfo] = None  # local time when unset

    def now(self) -> datetime:
        return datetime.now(self.tz) if self.tz else datetime.now()

    def close(self) -> None:
        """Release the telemetry store connection."""
        close = getattr(self.store, "close", None)
        if close is not None:
            close()
        logger.debug("Controller context closed")
