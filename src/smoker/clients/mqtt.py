"""MQTT client built on paho-mqtt.

paho runs its network loop on a background thread; received messages are
appended to a buffer guarded by a lock and read from the event loop by the
wait operations.
"""

import asyncio
import logging
import threading
import uuid
from collections import deque
from typing import Deque, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

import paho.mqtt.client as mqtt

from smoker.clients.base import BaseServiceClient
from smoker.core.errors import ServiceClientError, ValidationError, ERR_MQTT
from smoker.core.polling import wait_for


logger = logging.getLogger(__name__)

DEFAULT_BROKER_URL = "mqtt://localhost:1883"
DEFAULT_KEEP_ALIVE_SECONDS = 60
DEFAULT_CONNECT_TIMEOUT_SECONDS = 30.0
DEFAULT_PUBLISH_TIMEOUT_SECONDS = 10.0
DEFAULT_BUFFER_SIZE = 1000

DEFAULT_PORTS = {"mqtt": 1883, "tcp": 1883, "mqtts": 8883, "ssl": 8883, "ws": 80, "wss": 443}
TLS_SCHEMES = ("mqtts", "ssl", "wss")
WEBSOCKET_SCHEMES = ("ws", "wss")


def parse_broker_url(url: str) -> Tuple[str, str, int]:
    """Split a broker URL into scheme, host and port.

    Raises:
        ValidationError: For unsupported schemes or a missing host
    """
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        raise ValidationError(f"Unsupported MQTT broker URL scheme: {url}")
    if not parsed.hostname:
        raise ValidationError(f"MQTT broker URL has no host: {url}")
    return scheme, parsed.hostname, parsed.port or DEFAULT_PORTS[scheme]


class MqttClient(BaseServiceClient):
    """Publishes to and receives from an MQTT broker.

    Configuration:
        url: Broker URL (default mqtt://localhost:1883)
        clientId: MQTT client identifier (random when omitted)
        username, password: Optional credentials
        keepAlive: Keep alive interval in seconds (default 60)
        connectTimeout: Seconds to wait for the broker's CONNACK (default 30)
        publishTimeout: Seconds to wait for a publish to complete (default 10)
        bufferSize: Received messages kept for the wait operations; the
            oldest are dropped beyond it (default 1000)
    """

    def __init__(self, client_id: str = "MqttClient", config=None) -> None:
        super().__init__(client_id, config)
        self._client: Optional[mqtt.Client] = None
        self._connected = threading.Event()
        self._connect_error: Optional[str] = None
        self._lock = threading.Lock()
        self._messages: Deque[Tuple[str, str]] = deque(maxlen=DEFAULT_BUFFER_SIZE)
        self.subscriptions: List[str] = []

    async def _initialize_client(self) -> None:
        broker_url = self.get_config("url", DEFAULT_BROKER_URL)
        scheme, host, port = parse_broker_url(broker_url)
        mqtt_client_id = self.get_config("clientId") or f"smoker-{uuid.uuid4().hex[:8]}"

        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=mqtt_client_id,
            transport="websockets" if scheme in WEBSOCKET_SCHEMES else "tcp",
        )
        username = self.get_config("username")
        if username:
            client.username_pw_set(username, self.get_config("password") or None)
        if scheme in TLS_SCHEMES:
            client.tls_set()

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

        with self._lock:
            self._messages = deque(
                maxlen=int(self.get_config("bufferSize", DEFAULT_BUFFER_SIZE))
            )

        self._connected.clear()
        self._connect_error = None
        try:
            await asyncio.to_thread(
                client.connect,
                host,
                port,
                int(self.get_config("keepAlive", DEFAULT_KEEP_ALIVE_SECONDS)),
            )
        except (OSError, ValueError) as e:
            raise ServiceClientError(
                f"Failed to connect to MQTT broker at {broker_url}: {e}",
                code=ERR_MQTT,
                domain="messaging",
                details={"client": self.name, "url": broker_url},
            ) from e

        client.loop_start()
        connected = await wait_for(
            lambda: self._connected.is_set() or self._connect_error is not None,
            lambda done: done,
            float(self.get_config("connectTimeout", DEFAULT_CONNECT_TIMEOUT_SECONDS)),
            0.1,
        )
        if not connected or self._connect_error is not None:
            client.disconnect()
            client.loop_stop()
            reason = self._connect_error or "connection timeout"
            raise ServiceClientError(
                f"Failed to connect to MQTT broker at {broker_url}: {reason}",
                code=ERR_MQTT,
                domain="messaging",
                details={"client": self.name, "url": broker_url},
            )

        self._client = client
        self.subscriptions = []
        logger.info(f"MQTT client {self.name} connected to {host}:{port}")

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self._connect_error = str(reason_code)
        else:
            self._connected.set()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        self._connected.clear()
        if reason_code.is_failure:
            logger.warning(f"MQTT client {self.name} disconnected: {reason_code}")

    def _on_message(self, client, userdata, message) -> None:
        payload = message.payload.decode("utf-8", errors="replace")
        with self._lock:
            self._messages.append((message.topic, payload))

    async def publish(self, topic: str, message: Union[str, bytes], qos: int = 0,
                      retain: bool = False) -> None:
        """Publish a message and wait until paho has sent it.

        Raises:
            ValidationError: When topic is empty
            ServiceClientError: When the publish fails or times out
        """
        self.ensure_initialized()
        if not topic:
            raise ValidationError("MQTT publish requires a topic")

        info = self._client.publish(topic, message, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise ServiceClientError(
                f"Failed to publish message to {topic}: {mqtt.error_string(info.rc)}",
                code=ERR_MQTT,
                domain="messaging",
                details={"client": self.name, "topic": topic},
            )

        timeout = float(self.get_config("publishTimeout", DEFAULT_PUBLISH_TIMEOUT_SECONDS))
        await asyncio.to_thread(info.wait_for_publish, timeout)
        if not info.is_published():
            raise ServiceClientError(
                f"Publish to {topic} timeout after {timeout}s",
                code=ERR_MQTT,
                domain="messaging",
                details={"client": self.name, "topic": topic},
            )

    @staticmethod
    def _topic_list(topic: Union[str, Sequence[str]]) -> List[str]:
        topics = [topic] if isinstance(topic, str) else list(topic)
        return [t for t in topics if t]

    async def subscribe(self, topic: Union[str, Sequence[str]], qos: int = 0) -> None:
        """Subscribe to one or more topic filters."""
        self.ensure_initialized()
        topics = self._topic_list(topic)
        if not topics:
            raise ValidationError("MQTT subscribe requires at least one topic")

        result, _ = self._client.subscribe([(t, qos) for t in topics])
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise ServiceClientError(
                f"Failed to subscribe to {', '.join(topics)}: {mqtt.error_string(result)}",
                code=ERR_MQTT,
                domain="messaging",
                details={"client": self.name, "topics": topics},
            )
        for t in topics:
            if t not in self.subscriptions:
                self.subscriptions.append(t)

    async def unsubscribe(self, topic: Union[str, Sequence[str]]) -> None:
        """Unsubscribe from one or more topic filters."""
        self.ensure_initialized()
        topics = self._topic_list(topic)
        if not topics:
            raise ValidationError("MQTT unsubscribe requires at least one topic")

        result, _ = self._client.unsubscribe(topics)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise ServiceClientError(
                f"Failed to unsubscribe from {', '.join(topics)}: {mqtt.error_string(result)}",
                code=ERR_MQTT,
                domain="messaging",
                details={"client": self.name, "topics": topics},
            )
        self.subscriptions = [t for t in self.subscriptions if t not in topics]
        self._discard_unsubscribed()

    def _discard_unsubscribed(self) -> None:
        with self._lock:
            self._messages = deque(
                (
                    (message_topic, payload)
                    for message_topic, payload in self._messages
                    if any(mqtt.topic_matches_sub(sub, message_topic)
                           for sub in self.subscriptions)
                ),
                maxlen=self._messages.maxlen,
            )

    def take_message(self, topic: str) -> Optional[str]:
        """Remove and return the oldest buffered payload matching a topic filter."""
        with self._lock:
            for index, (message_topic, payload) in enumerate(self._messages):
                if mqtt.topic_matches_sub(topic, message_topic):
                    del self._messages[index]
                    return payload
        return None

    async def wait_for_message(self, topic: str, timeout_seconds: float = 30) -> Optional[str]:
        """Wait for a message on a topic, subscribing first if needed.

        Returns:
            The payload as text, or None on timeout
        """
        self.ensure_initialized()
        if not topic:
            raise ValidationError("MQTT wait_for_message requires a topic")
        if topic not in self.subscriptions:
            await self.subscribe(topic)

        return await wait_for(
            lambda: self.take_message(topic),
            lambda payload: payload is not None,
            timeout_seconds,
            self.get_poll_interval(),
        )

    async def cleanup_client(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        client.disconnect()
        client.loop_stop()
        self._connected.clear()
        with self._lock:
            self._messages.clear()
        self.subscriptions = []
