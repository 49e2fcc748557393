"""Publish/subscribe channel backed by paho-mqtt."""
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt
from loguru import logger

from . import config
from .errors import ChannelConnectionError, PublishError
from .protocol import LastWill

DEFAULT_PORT = 1883
SCHEMES = ("tcp", "mqtt")

MessageHandler = Callable[[str, bytes], None]


def parse_address(address: str) -> Tuple[str, int]:
    """Split ``[scheme://]host[:port]`` into host and port."""
    if "://" not in address:
        address = f"tcp://{address}"
    parts = urlsplit(address)
    if parts.scheme not in SCHEMES or not parts.hostname:
        raise ValueError(f"unsupported broker address {address!r}")
    return parts.hostname, parts.port or DEFAULT_PORT


class MqttChannel:
    """Thread-safe messaging channel over a single MQTT connection.

    The last will has to be registered before ``connect``. Subscriptions are
    replayed whenever the connection is (re)established.
    """

    def __init__(self, client_id: str = "", client=None, connect_timeout: float = config.MQTT_CONNECT_TIMEOUT):
        if client is None:
            client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        self._client = client
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._connect_timeout = connect_timeout
        self._connack = threading.Event()
        self._connected = threading.Event()
        self._refusal: Optional[str] = None
        self._subscriptions: Dict[str, int] = {}
        self._loop_started = False
        self._pending: List = []
        self._pending_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def set_last_will(self, will: LastWill) -> None:
        if self._loop_started:
            raise RuntimeError("the last will must be set before connecting")
        self._client.will_set(will.topic, will.payload, qos=will.qos, retain=will.retain)

    def connect(self, address: str = config.MQTT_BROKER, keepalive: int = config.MQTT_KEEPALIVE) -> None:
        try:
            host, port = parse_address(address)
        except ValueError as exc:
            raise ChannelConnectionError(str(exc)) from exc

        logger.info(f"[MqttChannel] Connecting to {host}:{port}")
        self._connack.clear()
        self._refusal = None
        try:
            self._client.connect(host, port, keepalive=keepalive)
        except (OSError, ValueError) as exc:
            raise ChannelConnectionError(f"cannot connect to {host}:{port}: {exc}") from exc
        self._client.loop_start()
        self._loop_started = True

        if not self._connack.wait(self._connect_timeout):
            self._stop_loop()
            raise ChannelConnectionError(f"no answer from {host}:{port} within {self._connect_timeout}s")
        if self._refusal is not None:
            self._stop_loop()
            raise ChannelConnectionError(f"{host}:{port} refused the connection: {self._refusal}")

    def publish(self, topic: str, payload: str, qos: int = 1, retain: bool = False):
        try:
            info = self._client.publish(topic, payload, qos=qos, retain=retain)
        except (OSError, ValueError, RuntimeError) as exc:
            raise PublishError(f"publish to {topic} failed: {exc}") from exc
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(f"publish to {topic} failed: {mqtt.error_string(info.rc)}")
        if qos > 0:
            with self._pending_lock:
                self._pending = [p for p in self._pending if not p.is_published()]
                self._pending.append(info)
        return info

    def subscribe(self, topic: str, handler: MessageHandler, qos: int = 1) -> None:
        def dispatch(client, userdata, msg):
            handler(msg.topic, msg.payload)

        self._client.message_callback_add(topic, dispatch)
        self._subscriptions[topic] = qos
        if self.connected:
            self._subscribe(topic, qos)

    def flush(self, timeout: float = config.MQTT_FLUSH_TIMEOUT) -> bool:
        """Wait until every QoS 1/2 publish has completed its handshake.

        Returns False if some message is still in flight after ``timeout``.
        """
        with self._pending_lock:
            pending, self._pending = self._pending, []
        deadline = time.monotonic() + timeout
        complete = True
        for info in pending:
            try:
                info.wait_for_publish(max(0.0, deadline - time.monotonic()))
            except (RuntimeError, ValueError) as exc:
                logger.warning(f"[MqttChannel] Message {info.mid} was not delivered: {exc}")
                complete = False
                continue
            if not info.is_published():
                complete = False
        if not complete:
            logger.warning("[MqttChannel] Disconnecting with undelivered messages")
        return complete

    def disconnect(self, timeout: float = config.MQTT_FLUSH_TIMEOUT) -> None:
        if self.connected:
            self.flush(timeout)
        logger.info("[MqttChannel] Disconnecting")
        self._stop_loop()

    def _subscribe(self, topic: str, qos: int) -> None:
        result, _ = self._client.subscribe(topic, qos=qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(f"[MqttChannel] Subscribing to {topic} failed: {mqtt.error_string(result)}")

    def _stop_loop(self) -> None:
        self._client.disconnect()
        if self._loop_started:
            self._client.loop_stop()
            self._loop_started = False
        self._connected.clear()

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            self._refusal = str(reason_code)
            self._connack.set()
            return
        logger.info("[MqttChannel] Connected")
        self._connected.set()
        self._connack.set()
        for topic, qos in self._subscriptions.items():
            self._subscribe(topic, qos)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        self._connected.clear()
        if reason_code.is_failure:
            logger.warning(f"[MqttChannel] Connection lost: {reason_code}")
        else:
            logger.info("[MqttChannel] Disconnected")
