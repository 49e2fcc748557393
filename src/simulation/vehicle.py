"""Simulated vehicle patrolling a route and reporting over a messaging channel.

A VehicleSimulator is driven through ``start()`` and ``stop()``. While it is
running a dedicated worker thread performs one tick per period: it moves the
vehicle to the next waypoint and publishes a SensorMessage to the vehicle's
telemetry topic. Past the last waypoint the vehicle starts over at the first
one and keeps patrolling until stopped.

The channel only needs ``publish(topic, payload, qos=..., retain=...)``,
raising PublishError on failure, and must be safe to call from several
threads.
"""
import random
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional

from loguru import logger

from . import config, telemetry
from .errors import AlreadyRunning, InvalidRoute, NotRunning, PublishError
from .protocol import (
    SensorMessage,
    StatusMessage,
    StatusType,
    check_vehicle_id,
    lifecycle_topic,
    telemetry_topic,
)
from .route import Coordinate, advance, at


class SimulatorState(str, Enum):
    CREATED = "CREATED"
    READY = "READY"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


@dataclass
class VehicleState:
    vehicle_id: str
    current_waypoint_index: int = 0
    running: bool = False
    rpm: float = 0.0
    speed_kmh: float = 0.0
    gear: int = 0

    def park(self) -> None:
        self.speed_kmh = 0.0
        self.gear = 0
        self.rpm = 0.0


class VehicleSimulator:
    def __init__(
        self,
        vehicle_id: str,
        route: Iterable[Coordinate],
        channel,
        root_topic: str = config.MQTT_TOPIC,
        period: float = config.PUBLISH_INTERVAL,
        rng: Optional[random.Random] = None,
        status_qos: int = config.STATUS_QOS,
        telemetry_qos: int = config.TELEMETRY_QOS,
    ):
        check_vehicle_id(vehicle_id)
        self.route = tuple(route)
        if not self.route:
            raise InvalidRoute(f"vehicle {vehicle_id!r} needs at least one waypoint")
        self.vehicle_id = vehicle_id
        self.channel = channel
        self.period = period
        self.lifecycle_topic = lifecycle_topic(root_topic)
        self.telemetry_topic = telemetry_topic(vehicle_id, root_topic)
        self.status_qos = status_qos
        self.telemetry_qos = telemetry_qos
        self.publish_failures = 0

        self._rng = rng or random.Random()
        self._vehicle = VehicleState(vehicle_id)
        self._state = SimulatorState.CREATED
        # Serializes start(), stop() and step(); the worker never takes it.
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None

    @property
    def state(self) -> SimulatorState:
        return self._state

    @property
    def vehicle(self) -> VehicleState:
        """Copy of the current vehicle state."""
        return replace(self._vehicle)

    @property
    def position(self) -> Coordinate:
        return at(self.route, self._vehicle.current_waypoint_index)

    def start(self) -> None:
        """Announce the vehicle, publish its first position and start ticking."""
        with self._lock:
            if self._state is SimulatorState.RUNNING:
                raise AlreadyRunning(f"vehicle {self.vehicle_id!r} is already running")

            self._state = SimulatorState.READY
            self._vehicle.current_waypoint_index = 0
            self._vehicle.running = True
            self._vehicle.park()
            self._vehicle.rpm = telemetry.IDLE_RPM

            self._publish_status(StatusType.VEHICLE_READY, "Vehicle is ready.")
            self._publish_sensor(StatusType.VEHICLE_READY)

            self._stop_event.clear()
            self._worker = threading.Thread(
                target=self._run, name=f"vehicle-{self.vehicle_id}", daemon=True
            )
            self._state = SimulatorState.RUNNING
            self._worker.start()
            logger.info(f"[VehicleSimulator] {self.vehicle_id} running on {len(self.route)} waypoints")

    def stop(self) -> None:
        """Halt the tick loop, then announce VEHICLE_STOPPED.

        No tick fires once this returns.
        """
        with self._lock:
            if self._state is not SimulatorState.RUNNING:
                raise NotRunning(f"vehicle {self.vehicle_id!r} is not running")

            self._stop_event.set()
            worker, self._worker = self._worker, None
            if worker is not None and worker is not threading.current_thread():
                worker.join()

            self._vehicle.running = False
            self._vehicle.park()
            self._publish_status(StatusType.VEHICLE_STOPPED, "Vehicle has been stopped.")
            self._state = SimulatorState.STOPPED
            logger.info(f"[VehicleSimulator] {self.vehicle_id} stopped")

    def run_until(self, shutdown: threading.Event) -> None:
        """Run until ``shutdown`` is set, then stop."""
        self.start()
        try:
            shutdown.wait()
        finally:
            self.stop()

    def step(self) -> SensorMessage:
        """Perform one tick on the calling thread.

        Only allowed while the worker is not running; a running simulator
        ticks on its own.
        """
        with self._lock:
            if self._state is SimulatorState.RUNNING:
                raise AlreadyRunning(f"vehicle {self.vehicle_id!r} is ticking on its own")
            return self._tick()

    def _tick(self) -> SensorMessage:
        vehicle = self._vehicle
        previous = at(self.route, vehicle.current_waypoint_index)
        vehicle.current_waypoint_index = advance(vehicle.current_waypoint_index, len(self.route))
        vehicle.speed_kmh, vehicle.gear, vehicle.rpm = telemetry.sample(previous, self.position, self._rng)
        return self._publish_sensor(StatusType.VEHICLE_RUNNING)

    def snapshot(self, status: StatusType) -> SensorMessage:
        vehicle = self._vehicle
        position = self.position
        return SensorMessage(
            vehicle_id=self.vehicle_id,
            type=status,
            latitude=position.latitude,
            longitude=position.longitude,
            rpm=vehicle.rpm,
            speed_kmh=vehicle.speed_kmh,
            gear=vehicle.gear,
            running=vehicle.running,
        )

    def _run(self):
        while not self._stop_event.wait(self.period):
            try:
                self._tick()
            except Exception:
                logger.exception(f"[VehicleSimulator] {self.vehicle_id} tick failed")

    def _publish_sensor(self, status: StatusType) -> SensorMessage:
        message = self.snapshot(status)
        logger.debug(f"[VehicleSimulator] {self.telemetry_topic} {message.to_json()}")
        self._publish(self.telemetry_topic, message.to_json(), self.telemetry_qos)
        return message

    def _publish_status(self, status: StatusType, text: str) -> StatusMessage:
        message = StatusMessage(vehicle_id=self.vehicle_id, type=status, message=text)
        logger.info(f"[VehicleSimulator] {self.vehicle_id} {status.value}")
        # Retained: the topic holds the latest lifecycle event, never a stale will.
        self._publish(self.lifecycle_topic, message.to_json(), self.status_qos, retain=True)
        return message

    def _publish(self, topic: str, payload: str, qos: int, retain: bool = False) -> bool:
        try:
            self.channel.publish(topic, payload, qos=qos, retain=retain)
        except PublishError as exc:
            self.publish_failures += 1
            logger.warning(f"[VehicleSimulator] {self.vehicle_id} publish to {topic} failed: {exc}")
            return False
        return True
