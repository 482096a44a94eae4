"""tempctl room thermostat controller."""

# Define public API
__all__ = [
    "ControllerContext",
    "InfluxStore",
    "KasaPlug",
    "PollingOrchestrator",
    "RoomController",
    "RoomSettings",
    "User",
    "load_config",
]

# Import settings
from .settings import RoomSettings, User, load_config

# Import backends
from .actuator import KasaPlug
from .influx_store import InfluxStore

# Import controllers
from .context import ControllerContext
from .orchestrator import PollingOrchestrator
from .room import RoomController
