"""Unit tests for the Kafka client."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import pytest
from aiokafka.errors import KafkaConnectionError

from smoker.clients.kafka import KafkaClient, KafkaMessage
from smoker.core.errors import ServiceClientError, ValidationError


def record(value, key=None, topic="orders", offset=0):
    return SimpleNamespace(
        topic=topic, partition=0, offset=offset, timestamp=1700000000000,
        key=key, value=value, headers=[("trace", b"t-1")],
    )


def make_consumer():
    consumer = Mock()
    consumer.start = AsyncMock()
    consumer.stop = AsyncMock()
    consumer.getmany = AsyncMock(return_value={})
    return consumer


@pytest.fixture
def producer():
    producer = Mock()
    producer.start = AsyncMock()
    producer.stop = AsyncMock()
    producer.send_and_wait = AsyncMock(return_value=SimpleNamespace(
        topic="orders", partition=1, offset=7, timestamp=1700000000000
    ))
    return producer


@pytest.fixture
def kafka(producer):
    """Patch aiokafka producer and consumer classes."""
    with patch("smoker.clients.kafka.AIOKafkaProducer", return_value=producer) as producer_class, \
         patch("smoker.clients.kafka.AIOKafkaConsumer") as consumer_class:
        consumer_class.side_effect = lambda **kwargs: make_consumer()
        yield SimpleNamespace(producer=producer, producer_class=producer_class,
                              consumer_class=consumer_class)


class TestKafkaClient:
    """Test cases for KafkaClient."""

    @pytest.mark.asyncio
    async def test_requires_brokers(self, kafka):
        """Test that init fails without brokers."""
        with pytest.raises(ValidationError, match="brokers"):
            await KafkaClient().init()

    @pytest.mark.asyncio
    async def test_init_starts_producer(self, kafka):
        """Test that init connects the producer."""
        client = KafkaClient(config={"brokers": "b1:9092, b2:9092", "clientId": "smoke"})

        await client.init()

        assert client.brokers == ["b1:9092", "b2:9092"]
        kafka.producer_class.assert_called_once_with(
            bootstrap_servers=["b1:9092", "b2:9092"], client_id="smoke"
        )
        kafka.producer.start.assert_awaited_once()
        kafka.consumer_class.assert_not_called()

    @pytest.mark.asyncio
    async def test_init_failure_wrapped(self, kafka):
        """Test that connection failures are reported."""
        kafka.producer.start.side_effect = KafkaConnectionError("unreachable")

        client = KafkaClient(config={"brokers": ["b:9092"]})
        with pytest.raises(ServiceClientError, match="Failed to initialize Kafka client"):
            await client.init()

        assert not client.is_initialized()

    @pytest.mark.asyncio
    async def test_consumer_failure_stops_producer(self, kafka):
        """Test that a failed consumer start releases the producer and the consumer."""
        consumer = make_consumer()
        consumer.start.side_effect = KafkaConnectionError("unreachable")
        kafka.consumer_class.side_effect = None
        kafka.consumer_class.return_value = consumer

        client = KafkaClient(config={"brokers": ["b:9092"], "topics": ["orders"]})
        with pytest.raises(ServiceClientError, match="Failed to subscribe to topics"):
            await client.init()
        await client.destroy()

        assert not client.is_initialized()
        kafka.producer.stop.assert_awaited_once()
        consumer.stop.assert_awaited_once()
        assert client._producer is None
        assert client._consumer is None

    @pytest.mark.asyncio
    async def test_configured_topics_subscribed(self, kafka):
        """Test that topics in the configuration are subscribed on init."""
        client = KafkaClient(config={"brokers": ["b:9092"], "topics": ["orders"], "groupId": "g"})

        await client.init()

        assert client.topics == ["orders"]
        assert kafka.consumer_class.call_args.kwargs["group_id"] == "g"
        client._consumer.subscribe.assert_called_once_with(topics=["orders"])

    @pytest.mark.asyncio
    async def test_send_message(self, kafka):
        """Test producing a message."""
        client = KafkaClient(config={"brokers": ["b:9092"]})
        await client.init()

        metadata = await client.send_message("orders", "hello", key="k1")

        assert (metadata.topic, metadata.partition, metadata.offset) == ("orders", 1, 7)
        kafka.producer.send_and_wait.assert_awaited_once_with(
            "orders", value=b"hello", key=b"k1"
        )

    @pytest.mark.asyncio
    async def test_send_requires_topic(self, kafka):
        """Test that a topic is needed to produce."""
        client = KafkaClient(config={"brokers": ["b:9092"]})
        await client.init()

        with pytest.raises(ValidationError, match="Topic is required"):
            await client.send_message("", "hello")

    @pytest.mark.asyncio
    async def test_send_failure_wrapped(self, kafka):
        """Test that produce failures are reported."""
        kafka.producer.send_and_wait.side_effect = KafkaConnectionError("down")
        client = KafkaClient(config={"brokers": ["b:9092"]})
        await client.init()

        with pytest.raises(ServiceClientError, match="Failed to send message to topic orders"):
            await client.send_message("orders", "hello")

    @pytest.mark.asyncio
    async def test_subscribe_accumulates_topics(self, kafka):
        """Test that subscriptions in one group accumulate."""
        client = KafkaClient(config={"brokers": ["b:9092"]})
        await client.init()

        await client.subscribe("orders", "g")
        await client.subscribe(["payments", "orders"], "g")

        assert client.topics == ["orders", "payments"]
        assert kafka.consumer_class.call_count == 1

    @pytest.mark.asyncio
    async def test_subscribe_new_group_replaces_consumer(self, kafka):
        """Test that changing group restarts the consumer."""
        client = KafkaClient(config={"brokers": ["b:9092"]})
        await client.init()
        await client.subscribe("orders", "g1")
        first = client._consumer

        await client.subscribe("payments", "g2")

        first.stop.assert_awaited_once()
        assert client.group_id == "g2"
        assert client.topics == ["payments"]

    @pytest.mark.asyncio
    async def test_subscribe_requires_topics(self, kafka):
        """Test that an empty subscription is rejected."""
        client = KafkaClient(config={"brokers": ["b:9092"]})
        await client.init()

        with pytest.raises(ValidationError):
            await client.subscribe([], "g")

    @pytest.mark.asyncio
    async def test_wait_for_message(self, kafka):
        """Test waiting for a matching message."""
        client = KafkaClient(config={"brokers": ["b:9092"], "pollInterval": 0.01})
        await client.init()
        await client.subscribe("orders", "g")
        client._consumer.getmany = AsyncMock(side_effect=[
            {},
            {"tp": [record(b"order-1", offset=1), record(b"order-2", key=b"k", offset=2)]},
        ])

        message = await client.wait_for_message(lambda m: m.value == "order-2", timeout_seconds=5)

        assert isinstance(message, KafkaMessage)
        assert message.key == "k"
        assert message.offset == 2
        assert message.headers == {"trace": b"t-1"}

    @pytest.mark.asyncio
    async def test_wait_for_message_timeout(self, kafka):
        """Test that no match yields None."""
        client = KafkaClient(config={"brokers": ["b:9092"], "pollInterval": 0.01})
        await client.init()
        await client.subscribe("orders", "g")

        assert await client.wait_for_message(lambda m: True, timeout_seconds=0.05) is None

    @pytest.mark.asyncio
    async def test_wait_requires_subscription(self, kafka):
        """Test that waiting needs a consumer."""
        client = KafkaClient(config={"brokers": ["b:9092"]})
        await client.init()

        with pytest.raises(ValidationError, match="subscribe"):
            await client.wait_for_message(lambda m: True)

    @pytest.mark.asyncio
    async def test_consume_messages(self, kafka):
        """Test delivering messages to a callback until the timeout."""
        client = KafkaClient(config={"brokers": ["b:9092"]})
        await client.init()
        await client.subscribe("orders", "g")
        batches = iter([{"tp": [record(b"a"), record(None)]}])
        client._consumer.getmany = AsyncMock(side_effect=lambda **kwargs: next(batches, {}))
        received = []

        async def callback(message):
            received.append(message.value)

        delivered = await client.consume_messages(callback, timeout_seconds=0.05)

        assert delivered == 1
        assert received == ["a"]

    @pytest.mark.asyncio
    async def test_destroy_disconnects(self, kafka):
        """Test that destroy stops producer and consumer."""
        client = KafkaClient(config={"brokers": ["b:9092"]})
        await client.init()
        await client.subscribe("orders", "g")
        consumer = client._consumer

        await client.destroy()

        consumer.stop.assert_awaited_once()
        kafka.producer.stop.assert_awaited_once()
        assert not client.is_initialized()
