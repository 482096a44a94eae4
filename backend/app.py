"""
tempctl Backend Application

Process entry point: reads flags and environment, sets up logging, brings up
every room and runs the polling loop until SIGINT or SIGTERM.
"""

import argparse
import asyncio
import signal
import sys
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import log_config
from loguru import logger

from tempctl.actuator import KasaPlug
from tempctl.context import ControllerContext
from tempctl.exceptions import ConfigurationError, InitError, TelemetryError
from tempctl.influx_store import InfluxStore
from tempctl.orchestrator import PollingOrchestrator
from tempctl.room import RoomController
from tempctl.settings import AppSettings, load_config


def parse_args(argv: list[str] | None, defaults: AppSettings) -> AppSettings:
    """Apply command line flags on top of environment defaults."""
    parser = argparse.ArgumentParser(prog="tempctl", description="Room thermostat controller")
    parser.add_argument("--config.file", dest="config_file", default=defaults.config_file, help="path to the config file")
    parser.add_argument("--influx.address", dest="influx_address", default=defaults.influx_address, help="influxdb server to connect to")
    parser.add_argument("--influx.db", dest="influx_db", default=defaults.influx_db, help="database on influxdb server to connect to")
    parser.add_argument("--influx.username", dest="influx_username", default=defaults.influx_username)
    parser.add_argument("--influx.password", dest="influx_password", default=defaults.influx_password)
    parser.add_argument("--log.level", dest="log_level", default=defaults.log_level, choices=["info", "debug"], help="log level to use")
    parser.add_argument("--sync.frequency", dest="sync_frequency", type=int, default=defaults.sync_frequency, help="time in seconds between checks")
    parser.add_argument("--timezone", dest="timezone", default=defaults.timezone, help="IANA timezone for active hours (default: local time)")
    parser.add_argument(
        "--allow-empty-rooms",
        dest="require_occupants",
        action="store_false",
        default=defaults.require_occupants,
        help="accept rooms without occupants and treat them as always occupied",
    )
    args = parser.parse_args(argv)
    return AppSettings(**vars(args))


async def serve(settings: AppSettings) -> None:
    """Bring up all rooms and poll them until a shutdown signal arrives.

    Raises:
        InitError: If the config or any room is invalid
        TelemetryError: If InfluxDB is unreachable at startup
    """
    rooms = load_config(settings.config_file, require_occupants=settings.require_occupants)

    try:
        tz = ZoneInfo(settings.timezone) if settings.timezone else None
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"unknown timezone {settings.timezone}") from e

    store = InfluxStore(
        settings.influx_address,
        settings.influx_db,
        username=settings.influx_username,
        password=settings.influx_password,
    )
    context = ControllerContext(
        store=store,
        actuator_factory=KasaPlug.connect,
        require_occupants=settings.require_occupants,
        tz=tz,
    )
    controllers = [RoomController(room, context) for room in rooms]

    try:
        store.ping()
        for controller in controllers:
            await controller.initialize()
        logger.info(f"Initialized {len(controllers)} rooms")

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        orchestrator = PollingOrchestrator(controllers, settings.sync_frequency, clock=context.now)
        await orchestrator.run(stop_event)
    finally:
        for controller in controllers:
            await controller.close()
        context.close()
        logger.info("tempctl shut down")


def main(argv: list[str] | None = None) -> int:
    try:
        settings = parse_args(argv, AppSettings.from_env())
        settings.validate()
    except ConfigurationError as e:
        logger.error(f"Invalid settings: {e}")
        return 1

    log_config.setup_logging(settings.log_level)
    logger.info("tempctl starting")

    try:
        asyncio.run(serve(settings))
    except InitError as e:
        logger.error(f"Startup failed: {e}")
        return 1
    except TelemetryError as e:
        logger.error(f"Creating storage: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
