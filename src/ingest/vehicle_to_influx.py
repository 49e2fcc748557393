"""MQTT subscriber → writes vehicle lifecycle and telemetry into InfluxDB.

Lifecycle announcements on MQTT_TOPIC become ``vehicle_status`` points,
telemetry on MQTT_TOPIC/<vehicleId> becomes ``vehicle_telemetry`` points.
Both are tagged with ``vehicle_id``.
"""
import signal
import sys
import threading
from datetime import datetime, timezone

from influxdb_client import InfluxDBClient, Point
from influxdb_client.client.write_api import SYNCHRONOUS
from loguru import logger

from simulation import config
from simulation.channel import MqttChannel
from simulation.errors import ChannelConnectionError
from simulation.protocol import (
    SensorMessage,
    StatusMessage,
    lifecycle_topic,
    parse_message,
    telemetry_wildcard,
)


def _time(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)


def status_point(message: StatusMessage) -> Point:
    return (
        Point("vehicle_status")
        .tag("vehicle_id", message.vehicle_id)
        .field("type", message.type.value)
        .field("message", message.message)
        .time(_time(message.timestamp))
    )


def sensor_point(message: SensorMessage) -> Point:
    return (
        Point("vehicle_telemetry")
        .tag("vehicle_id", message.vehicle_id)
        .field("type", message.type.value)
        .field("latitude", float(message.latitude))
        .field("longitude", float(message.longitude))
        .field("rpm", float(message.rpm))
        .field("speed_kmh", float(message.speed_kmh))
        .field("gear", int(message.gear))
        .field("running", bool(message.running))
        .time(_time(message.timestamp))
    )


class TelemetryRecorder:
    """Turns protocol messages into InfluxDB points."""

    def __init__(self, write_api, bucket: str = config.INFLUX_BUCKET):
        self.write_api = write_api
        self.bucket = bucket
        self.skipped = 0

    def handle(self, topic: str, payload: bytes):
        try:
            message = parse_message(payload)
        except ValueError as exc:
            self.skipped += 1
            logger.warning(f"[Ingest] Skipping malformed message on {topic}: {exc}")
            return None

        if isinstance(message, SensorMessage):
            point = sensor_point(message)
        else:
            point = status_point(message)
            logger.info(f"[Ingest] {message.vehicle_id} {message.type.value}")
        try:
            self.write_api.write(bucket=self.bucket, record=point)
        except Exception:
            logger.exception(f"[Ingest] Failed to write {topic} message to InfluxDB")
            return None
        return point


def main():
    config.configure_logging()

    client = InfluxDBClient(url=config.INFLUX_URL, token=config.INFLUX_TOKEN, org=config.INFLUX_ORG, timeout=30000)
    recorder = TelemetryRecorder(client.write_api(write_options=SYNCHRONOUS))

    channel = MqttChannel(client_id="vehicle-ingest")
    channel.subscribe(lifecycle_topic(config.MQTT_TOPIC), recorder.handle)
    channel.subscribe(telemetry_wildcard(config.MQTT_TOPIC), recorder.handle)
    try:
        channel.connect(config.MQTT_BROKER)
    except ChannelConnectionError as exc:
        logger.error(f"[Ingest] {exc}")
        client.close()
        sys.exit(1)

    shutdown = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: shutdown.set())
    try:
        # The MQTT network loop runs on its own thread.
        shutdown.wait()
    except KeyboardInterrupt:
        logger.info("[Ingest] Stopped by user")
    finally:
        channel.disconnect()
        client.close()


if __name__ == "__main__":
    main()
