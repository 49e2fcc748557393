"""Vehicle simulator console driver.

Asks for a vehicle id, a route from WAYPOINT_DIR and the broker address,
then lets the vehicle patrol the route publishing to MQTT until Enter,
Ctrl-C or SIGTERM.
"""
import signal
import sys
import threading

from loguru import logger

from . import config
from .channel import MqttChannel
from .errors import ChannelConnectionError, InvalidRoute, InvalidVehicleId, RouteParseError
from .protocol import check_vehicle_id, last_will
from .route import list_route_files, load_route
from .vehicle import VehicleSimulator


def ask_input(prompt: str, default: str) -> str:
    answer = input(f"{prompt} [{default}]: ").strip()
    return answer or default


def choose_route(directory: str):
    route_files = list_route_files(directory)
    if not route_files:
        raise RouteParseError("no *.itn route files found", path=directory)

    print()
    print(f"Waypoint directory: {directory}")
    print()
    print("Available routes")
    print()
    for i, path in enumerate(route_files):
        print(f"  [{i}] {path.name}")
    print()

    choice = ask_input("Route to drive", "0")
    try:
        return route_files[int(choice)]
    except (ValueError, IndexError) as exc:
        raise RouteParseError(f"no route number {choice!r}", path=directory) from exc


def wait_for_enter(shutdown: threading.Event) -> None:
    try:
        sys.stdin.readline()
    finally:
        shutdown.set()


def main():
    config.configure_logging()

    vehicle_id = ask_input("Vehicle ID", config.VEHICLE_ID)
    try:
        check_vehicle_id(vehicle_id)
        waypoints = load_route(choose_route(config.WAYPOINT_DIR))
        broker = ask_input("MQTT broker", config.MQTT_BROKER)

        channel = MqttChannel(client_id=f"vehicle-{vehicle_id}")
        channel.set_last_will(last_will(vehicle_id, config.MQTT_TOPIC))
        channel.connect(broker)
    except (InvalidVehicleId, RouteParseError, ChannelConnectionError) as exc:
        logger.error(f"[VehicleSim] {exc}")
        sys.exit(1)

    try:
        simulator = VehicleSimulator(vehicle_id, waypoints, channel)
    except InvalidRoute as exc:
        logger.error(f"[VehicleSim] {exc}")
        channel.disconnect()
        sys.exit(1)

    shutdown = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: shutdown.set())
    threading.Thread(target=wait_for_enter, args=(shutdown,), daemon=True).start()
    print("Press Enter to stop the vehicle.")

    try:
        simulator.run_until(shutdown)
    except KeyboardInterrupt:
        print("Simulator stopped by user")
    finally:
        channel.disconnect()


if __name__ == "__main__":
    main()
