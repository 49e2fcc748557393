"""Environment-driven settings shared by the simulator and the recorder."""
import os
import sys

from loguru import logger

MQTT_BROKER = os.getenv("MQTT_BROKER", "tcp://localhost:1883")
MQTT_TOPIC = os.getenv("MQTT_TOPIC", "fleet/vehicles")
MQTT_KEEPALIVE = int(os.getenv("MQTT_KEEPALIVE", "60"))
MQTT_CONNECT_TIMEOUT = float(os.getenv("MQTT_CONNECT_TIMEOUT", "10"))
MQTT_FLUSH_TIMEOUT = float(os.getenv("MQTT_FLUSH_TIMEOUT", "5"))

VEHICLE_ID = os.getenv("VEHICLE_ID", "postauto")
WAYPOINT_DIR = os.getenv("WAYPOINT_DIR", "./waypoints")
PUBLISH_INTERVAL = float(os.getenv("PUBLISH_INTERVAL", "1"))  # seconds

MIN_SPEED_KMH = float(os.getenv("MIN_SPEED_KMH", "30"))
MAX_SPEED_KMH = float(os.getenv("MAX_SPEED_KMH", "80"))

STATUS_QOS = int(os.getenv("STATUS_QOS", "2"))
TELEMETRY_QOS = int(os.getenv("TELEMETRY_QOS", "1"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

INFLUX_URL = os.getenv("INFLUX_URL", "http://localhost:8086")
INFLUX_TOKEN = os.getenv("INFLUX_TOKEN", "")  # For local dev, may be empty if auth disabled
INFLUX_ORG = os.getenv("INFLUX_ORG", "my-org")
INFLUX_BUCKET = os.getenv("INFLUX_BUCKET", "fleet_metrics")


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Replace loguru's default sink with a single stderr sink at ``level``."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
