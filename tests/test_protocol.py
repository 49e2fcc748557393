import json

import pytest

from simulation.errors import InvalidVehicleId
from simulation.protocol import (
    SensorMessage,
    StatusMessage,
    StatusType,
    check_vehicle_id,
    last_will,
    lifecycle_topic,
    parse_message,
    telemetry_topic,
    telemetry_wildcard,
)


def test_topics():
    assert lifecycle_topic("fleet/vehicles") == "fleet/vehicles"
    assert telemetry_topic("postauto", "fleet/vehicles") == "fleet/vehicles/postauto"
    assert telemetry_wildcard("fleet/vehicles") == "fleet/vehicles/+"


def test_terminal_states():
    assert StatusType.CONNECTION_LOST.terminal
    assert StatusType.VEHICLE_STOPPED.terminal
    assert not StatusType.VEHICLE_READY.terminal
    assert not StatusType.VEHICLE_RUNNING.terminal


def test_sensor_message_wire_shape_is_flat_camel_case():
    message = SensorMessage(
        vehicle_id="postauto",
        type=StatusType.VEHICLE_RUNNING,
        latitude=49.02352,
        longitude=8.45453,
        rpm=2100.5,
        speed_kmh=42.17,
        gear=3,
        running=True,
        timestamp=1700000000000,
    )
    data = json.loads(message.to_json())
    assert data == {
        "vehicleId": "postauto",
        "type": "VEHICLE_RUNNING",
        "timestamp": 1700000000000,
        "latitude": 49.02352,
        "longitude": 8.45453,
        "rpm": 2100.5,
        "speedKmh": 42.17,
        "gear": 3,
        "running": True,
    }
    assert not any(isinstance(v, (dict, list)) for v in data.values())


def test_sensor_message_round_trip():
    message = SensorMessage(
        vehicle_id="postauto",
        type=StatusType.VEHICLE_RUNNING,
        latitude=48.97723,
        longitude=8.49796,
        rpm=1234.567891,
        speed_kmh=61.123456,
        gear=4,
        running=True,
    )
    parsed = SensorMessage.from_json(message.to_json())
    assert parsed.vehicle_id == message.vehicle_id
    assert parsed.type is StatusType.VEHICLE_RUNNING
    for field in ("latitude", "longitude", "rpm", "speed_kmh"):
        assert getattr(parsed, field) == pytest.approx(getattr(message, field), abs=1e-6)
    assert (parsed.gear, parsed.running, parsed.timestamp) == (4, True, message.timestamp)


def test_status_message_round_trip():
    message = StatusMessage(vehicle_id="bus-7", type=StatusType.VEHICLE_READY, message="Vehicle is ready.")
    data = json.loads(message.to_json())
    assert set(data) == {"vehicleId", "type", "message", "timestamp"}
    assert StatusMessage.from_json(message.to_json()) == message


def test_unknown_type_is_rejected():
    with pytest.raises(ValueError):
        StatusMessage.from_json('{"vehicleId": "x", "type": "VEHICLE_FLYING", "message": ""}')


def test_parse_message_picks_shape():
    status = StatusMessage(vehicle_id="x", type=StatusType.VEHICLE_STOPPED)
    sensor = SensorMessage(vehicle_id="x", type=StatusType.VEHICLE_READY, latitude=1.0, longitude=2.0)
    assert isinstance(parse_message(status.to_json()), StatusMessage)
    assert isinstance(parse_message(sensor.to_json().encode("utf-8")), SensorMessage)


@pytest.mark.parametrize("payload", [b"not json", b"[1, 2]", b'{"type": "VEHICLE_READY"}'])
def test_parse_message_rejects_garbage(payload):
    with pytest.raises(ValueError):
        parse_message(payload)


def test_last_will():
    will = last_will("postauto", "fleet/vehicles")
    assert will.topic == "fleet/vehicles"
    assert will.qos == 2
    assert will.retain is True
    message = StatusMessage.from_json(will.payload)
    assert message.vehicle_id == "postauto"
    assert message.type is StatusType.CONNECTION_LOST
    assert message.message


@pytest.mark.parametrize("vehicle_id", ["", "a/b", "bus+1", "fleet#"])
def test_check_vehicle_id_rejects_topic_syntax(vehicle_id):
    with pytest.raises(InvalidVehicleId):
        check_vehicle_id(vehicle_id)


def test_check_vehicle_id_accepts_plain_ids():
    assert check_vehicle_id("postauto") == "postauto"
    assert check_vehicle_id("bus-7_A") == "bus-7_A"
