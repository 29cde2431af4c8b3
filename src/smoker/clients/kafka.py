"""Kafka client built on aiokafka."""

import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.errors import KafkaError

from smoker.clients.base import BaseServiceClient
from smoker.core.errors import ServiceClientError, ValidationError, ERR_KAFKA
from smoker.core.polling import wait_for


logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = "smoke-test-client"
DEFAULT_GROUP_ID = "smoke-test-group"

# How long one poll of the consumer waits for a batch, in milliseconds
FETCH_TIMEOUT_MS = 500


@dataclass
class KafkaRecordMetadata:
    """Where a produced record landed."""

    topic: str
    partition: int
    offset: int
    timestamp: int


@dataclass
class KafkaMessage:
    """A consumed record with decoded key and value."""

    topic: str
    partition: int
    offset: int
    value: str
    key: Optional[str] = None
    timestamp: Optional[int] = None
    headers: Dict[str, bytes] = field(default_factory=dict)


def _decode(data: Optional[bytes]) -> Optional[str]:
    if data is None:
        return None
    return data.decode("utf-8", errors="replace")


def _to_message(record: Any) -> KafkaMessage:
    return KafkaMessage(
        topic=record.topic,
        partition=record.partition,
        offset=record.offset,
        value=_decode(record.value) or "",
        key=_decode(record.key),
        timestamp=record.timestamp,
        headers={name: value for name, value in (record.headers or ())},
    )


class KafkaClient(BaseServiceClient):
    """Produces to and consumes from Kafka topics.

    Configuration:
        brokers: (required) Bootstrap servers, a list or a comma separated string
        clientId: Client identifier sent to the brokers
        groupId: Consumer group used when subscribing from configuration
        topics: Topics to subscribe to on init
    """

    def __init__(self, client_id: str = "KafkaClient", config=None) -> None:
        super().__init__(client_id, config)
        self._producer: Optional[AIOKafkaProducer] = None
        self._consumer: Optional[AIOKafkaConsumer] = None
        self.brokers: List[str] = []
        self.topics: List[str] = []
        self.group_id = DEFAULT_GROUP_ID

    def _bootstrap_servers(self) -> List[str]:
        brokers = self.get_config("brokers") or []
        if isinstance(brokers, str):
            brokers = [broker.strip() for broker in brokers.split(",") if broker.strip()]
        return list(brokers)

    async def _initialize_client(self) -> None:
        self.brokers = self._bootstrap_servers()
        if not self.brokers:
            raise ValidationError(
                "Kafka client requires 'brokers' in its configuration",
                details={"client": self.name, "field": "brokers"},
            )
        self.group_id = self.get_config("groupId", DEFAULT_GROUP_ID)
        self.topics = []

        producer = AIOKafkaProducer(
            bootstrap_servers=self.brokers,
            client_id=self.get_config("clientId", DEFAULT_CLIENT_ID),
        )
        try:
            await producer.start()
        except KafkaError as e:
            raise ServiceClientError(
                f"Failed to initialize Kafka client: {e}",
                code=ERR_KAFKA,
                domain="messaging",
                details={"client": self.name, "brokers": self.brokers},
            ) from e
        self._producer = producer

        topics = self.get_config("topics") or []
        if topics:
            try:
                await self._start_consumer(list(topics), self.group_id)
            except Exception:
                await self._stop_producer()
                raise

    async def _start_consumer(self, topics: List[str], group_id: str) -> None:
        consumer = AIOKafkaConsumer(
            bootstrap_servers=self.brokers,
            client_id=self.get_config("clientId", DEFAULT_CLIENT_ID),
            group_id=group_id,
            auto_offset_reset="latest",
        )
        try:
            await consumer.start()
            consumer.subscribe(topics=topics)
        except KafkaError as e:
            await self._stop_quietly(consumer, "consumer")
            raise ServiceClientError(
                f"Failed to subscribe to topics: {e}",
                code=ERR_KAFKA,
                domain="messaging",
                details={"client": self.name, "topics": topics, "group_id": group_id},
            ) from e
        self._consumer = consumer
        self.topics = topics
        self.group_id = group_id

    async def send_message(self, topic: str, message: str,
                           key: Optional[str] = None) -> KafkaRecordMetadata:
        """Produce one message and wait for the broker acknowledgement."""
        self.ensure_initialized()
        if not topic:
            raise ValidationError("Topic is required for sending a message")

        try:
            metadata = await self._producer.send_and_wait(
                topic,
                value=message.encode("utf-8"),
                key=key.encode("utf-8") if key else None,
            )
        except KafkaError as e:
            raise ServiceClientError(
                f"Failed to send message to topic {topic}: {e}",
                code=ERR_KAFKA,
                domain="messaging",
                details={"client": self.name, "topic": topic},
            ) from e

        timestamp = metadata.timestamp
        if timestamp is None or timestamp < 0:
            timestamp = int(time.time() * 1000)
        return KafkaRecordMetadata(
            topic=metadata.topic,
            partition=metadata.partition,
            offset=metadata.offset,
            timestamp=timestamp,
        )

    async def subscribe(self, topics: Union[str, Sequence[str]], group_id: str) -> None:
        """Subscribe to topics, switching consumer group if needed.

        Topics accumulate across calls within the same group.
        """
        self.ensure_initialized()
        requested = [topics] if isinstance(topics, str) else list(topics)
        if not requested:
            raise ValidationError("At least one topic is required for subscription")

        if self._consumer is not None and group_id == self.group_id:
            merged = list(dict.fromkeys(self.topics + requested))
            self._consumer.subscribe(topics=merged)
            self.topics = merged
            return

        await self._stop_consumer()
        await self._start_consumer(requested, group_id)

    def _require_consumer(self) -> AIOKafkaConsumer:
        if self._consumer is None:
            raise ValidationError(
                "Kafka client has no subscription. Call subscribe() first.",
                details={"client": self.name},
            )
        return self._consumer

    async def _poll(self) -> List[KafkaMessage]:
        consumer = self._require_consumer()
        try:
            batches = await consumer.getmany(timeout_ms=FETCH_TIMEOUT_MS)
        except KafkaError as e:
            raise ServiceClientError(
                f"Error consuming messages: {e}",
                code=ERR_KAFKA,
                domain="messaging",
                details={"client": self.name, "topics": self.topics},
            ) from e
        return [
            _to_message(record)
            for records in batches.values()
            for record in records
            if record.value is not None
        ]

    async def consume_messages(self, callback: Callable[[KafkaMessage], Union[None, Awaitable[None]]],
                               timeout_seconds: float) -> int:
        """Hand every message received within the timeout to callback.

        Returns:
            Number of messages delivered
        """
        self.ensure_initialized()
        self._require_consumer()
        delivered = 0
        deadline = time.monotonic() + timeout_seconds

        while time.monotonic() < deadline:
            for message in await self._poll():
                result = callback(message)
                if inspect.isawaitable(result):
                    await result
                delivered += 1

        logger.debug(f"Kafka client {self.name} delivered {delivered} messages")
        return delivered

    async def wait_for_message(self, matcher: Callable[[KafkaMessage], bool],
                               timeout_seconds: float = 30) -> Optional[KafkaMessage]:
        """Wait for a message accepted by matcher.

        Returns:
            The first matching message, or None on timeout
        """
        self.ensure_initialized()
        self._require_consumer()

        def first_match(messages: List[KafkaMessage]) -> Optional[KafkaMessage]:
            return next((message for message in messages if matcher(message)), None)

        return await wait_for(
            self._poll, first_match, timeout_seconds, self.get_poll_interval()
        )

    async def _stop_quietly(self, component: Any, label: str) -> None:
        try:
            await component.stop()
        except KafkaError as e:
            logger.warning(f"Error stopping Kafka {label} for {self.name}: {e}")

    async def _stop_consumer(self) -> None:
        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            await self._stop_quietly(consumer, "consumer")

    async def _stop_producer(self) -> None:
        producer, self._producer = self._producer, None
        if producer is not None:
            await self._stop_quietly(producer, "producer")

    async def disconnect(self) -> None:
        """Stop the consumer and the producer."""
        self.ensure_initialized()
        await self._stop_consumer()
        await self._stop_producer()

    async def cleanup_client(self) -> None:
        await self.disconnect()
