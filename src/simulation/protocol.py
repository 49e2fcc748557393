"""Status protocol spoken by simulated vehicles.

Two flat JSON message shapes travel over two kinds of topic:

* lifecycle announcements (StatusMessage) on the root topic shared by all
  vehicles, e.g. ``fleet/vehicles``
* telemetry snapshots (SensorMessage) on ``<root>/<vehicleId>``

Wire field names are camelCase (``vehicleId``, ``speedKmh``); Python
attributes are snake_case.
"""
import json
import time
from enum import Enum
from typing import NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from . import config
from .errors import InvalidVehicleId

TOPIC_SEPARATOR = "/"
WILDCARDS = ("+", "#")


def now_ms() -> int:
    return int(time.time() * 1000)


class StatusType(str, Enum):
    VEHICLE_READY = "VEHICLE_READY"
    VEHICLE_RUNNING = "VEHICLE_RUNNING"
    CONNECTION_LOST = "CONNECTION_LOST"
    VEHICLE_STOPPED = "VEHICLE_STOPPED"

    @property
    def terminal(self) -> bool:
        return self in (StatusType.CONNECTION_LOST, StatusType.VEHICLE_STOPPED)


class _Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    vehicle_id: str
    type: StatusType
    timestamp: int = Field(default_factory=now_ms)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, payload: Union[str, bytes]):
        return cls.model_validate_json(payload)


class StatusMessage(_Message):
    """Lifecycle announcement of a single vehicle."""

    message: str = ""


class SensorMessage(_Message):
    """Telemetry snapshot of a single vehicle."""

    latitude: float
    longitude: float
    rpm: float = 0.0
    speed_kmh: float = 0.0
    gear: int = 0
    running: bool = False


class LastWill(NamedTuple):
    topic: str
    payload: str
    qos: int
    retain: bool


def check_vehicle_id(vehicle_id: str) -> str:
    """Vehicle ids form a single topic level: non-empty, no separator, no wildcards."""
    if not vehicle_id:
        raise InvalidVehicleId("vehicle id must not be empty")
    for forbidden in (TOPIC_SEPARATOR,) + WILDCARDS:
        if forbidden in vehicle_id:
            raise InvalidVehicleId(f"vehicle id {vehicle_id!r} must not contain {forbidden!r}")
    return vehicle_id


def lifecycle_topic(root: str = config.MQTT_TOPIC) -> str:
    return root


def telemetry_topic(vehicle_id: str, root: str = config.MQTT_TOPIC) -> str:
    return f"{root}{TOPIC_SEPARATOR}{vehicle_id}"


def telemetry_wildcard(root: str = config.MQTT_TOPIC) -> str:
    """Subscription filter matching the telemetry topic of every vehicle."""
    return f"{root}{TOPIC_SEPARATOR}+"


def last_will(vehicle_id: str, root: str = config.MQTT_TOPIC) -> LastWill:
    """CONNECTION_LOST announcement to register with the broker before connecting."""
    message = StatusMessage(
        vehicle_id=vehicle_id,
        type=StatusType.CONNECTION_LOST,
        message="Connection to the vehicle was lost.",
    )
    return LastWill(lifecycle_topic(root), message.to_json(), qos=2, retain=True)


def parse_message(payload: Union[str, bytes]) -> Union[StatusMessage, SensorMessage]:
    """Decode either message shape. Raises ValueError on malformed payloads."""
    data = json.loads(payload)
    if not isinstance(data, dict):
        raise ValueError("message payload must be a JSON object")
    if "latitude" in data or "longitude" in data:
        return SensorMessage.model_validate(data)
    return StatusMessage.model_validate(data)
