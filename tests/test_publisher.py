"""
Tests for event publishers.

The pika transport is replaced with mocks; no broker is needed.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pika
import pika.exceptions
import pytest

from communication_lifecycle.config import Settings
from communication_lifecycle.errors import PublishFailedError
from communication_lifecycle.lifecycle import StatusChangedEvent
from communication_lifecycle.messaging import (
    InMemoryEventPublisher,
    RabbitMQEventPublisher,
    create_publisher,
)
from communication_lifecycle.messaging.publisher import connection_parameters

BLOCKING_CONNECTION = "communication_lifecycle.messaging.publisher.pika.BlockingConnection"


@pytest.fixture
def event() -> StatusChangedEvent:
    return StatusChangedEvent(
        communication_id=3,
        old_status="ReadyForRelease",
        new_status="Printed",
        event_type="IdCardPrinted",
        timestamp_utc=datetime(2026, 2, 2, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(rabbitmq_host="broker.test", publish_max_attempts=2)


@pytest.fixture
def publisher(settings) -> RabbitMQEventPublisher:
    return RabbitMQEventPublisher.from_settings(settings)


class TestRabbitMQEventPublisher:
    """Tests for RabbitMQEventPublisher."""

    def test_publish_declares_topology_and_sends_persistent_message(self, publisher, event):
        """Test first publish: connect, declare, confirm, publish."""
        with patch(BLOCKING_CONNECTION) as connection_cls:
            channel = connection_cls.return_value.channel.return_value

            publisher.publish(event)

        channel.exchange_declare.assert_called_once_with(
            exchange="communication-events", exchange_type="topic", durable=True
        )
        channel.queue_declare.assert_called_once_with(queue="communication-status-updates", durable=True)
        channel.queue_bind.assert_called_once_with(
            queue="communication-status-updates",
            exchange="communication-events",
            routing_key="status.changed",
        )
        channel.confirm_delivery.assert_called_once()

        kwargs = channel.basic_publish.call_args.kwargs
        assert kwargs["exchange"] == "communication-events"
        assert kwargs["routing_key"] == "status.changed"
        assert kwargs["mandatory"] is True
        assert StatusChangedEvent.from_json(kwargs["body"]) == event

        properties = kwargs["properties"]
        assert properties.delivery_mode in (2, pika.DeliveryMode.Persistent)
        assert properties.content_type == "application/json"
        assert properties.message_id == str(event.event_id)

    def test_connection_is_reused(self, publisher, event):
        """Test that an open connection serves later publishes."""
        with patch(BLOCKING_CONNECTION) as connection_cls:
            publisher.publish(event)
            publisher.publish(event)

        assert connection_cls.call_count == 1
        assert connection_cls.return_value.channel.return_value.basic_publish.call_count == 2

    def test_closed_connection_is_reopened(self, publisher, event):
        """Test transparent reconnect when the connection was closed."""
        with patch(BLOCKING_CONNECTION) as connection_cls:
            publisher.publish(event)
            connection_cls.return_value.is_open = False

            publisher.publish(event)

        assert connection_cls.call_count == 2

    def test_failed_attempt_is_retried_on_new_connection(self, publisher, event):
        """Test that a transport error resets the connection and retries."""
        with patch(BLOCKING_CONNECTION) as connection_cls:
            channel = connection_cls.return_value.channel.return_value
            channel.basic_publish.side_effect = [pika.exceptions.StreamLostError("lost"), None]

            publisher.publish(event)

        assert connection_cls.call_count == 2
        assert channel.basic_publish.call_count == 2

    def test_exhausted_attempts_raise_publish_failed(self, publisher, event):
        """Test PublishFailedError after max attempts."""
        with patch(BLOCKING_CONNECTION) as connection_cls:
            connection_cls.side_effect = pika.exceptions.AMQPConnectionError("refused")

            with pytest.raises(PublishFailedError) as exc_info:
                publisher.publish(event)

        assert connection_cls.call_count == 2
        assert exc_info.value.communication_id == 3

    def test_unroutable_message_is_a_failure(self, settings, event):
        """Test that a confirm failure is surfaced, not dropped."""
        publisher = RabbitMQEventPublisher.from_settings(settings.model_copy(update={"publish_max_attempts": 1}))
        with patch(BLOCKING_CONNECTION) as connection_cls:
            channel = connection_cls.return_value.channel.return_value
            channel.basic_publish.side_effect = pika.exceptions.UnroutableError([])

            with pytest.raises(PublishFailedError):
                publisher.publish(event)

    def test_close_releases_connection(self, publisher, event):
        """Test that close() closes the shared connection."""
        with patch(BLOCKING_CONNECTION) as connection_cls:
            publisher.publish(event)
            publisher.close()

        connection_cls.return_value.close.assert_called_once()

    def test_invalid_max_attempts(self, settings):
        """Test that at least one attempt is required."""
        with pytest.raises(ValueError):
            RabbitMQEventPublisher(connection_parameters(settings), max_attempts=0)

    def test_connection_parameters(self, settings):
        """Test that settings map onto pika parameters."""
        parameters = connection_parameters(settings)

        assert parameters.host == "broker.test"
        assert parameters.port == 5672
        assert parameters.virtual_host == "/"
        assert parameters.socket_timeout == settings.broker_socket_timeout
        assert parameters.blocked_connection_timeout == settings.broker_blocked_connection_timeout


class TestInMemoryEventPublisher:
    """Tests for InMemoryEventPublisher."""

    def test_records_events(self, event):
        """Test that published events are kept in order."""
        publisher = InMemoryEventPublisher()
        publisher.publish(event)

        assert publisher.events == [event]

    def test_unavailable_raises(self, event):
        """Test that an outage raises PublishFailedError."""
        publisher = InMemoryEventPublisher()
        publisher.available = False

        with pytest.raises(PublishFailedError):
            publisher.publish(event)
        assert publisher.events == []


class TestCreatePublisher:
    """Tests for the publisher factory."""

    def test_rabbitmq(self, settings):
        assert isinstance(create_publisher(settings), RabbitMQEventPublisher)

    def test_memory(self):
        assert isinstance(create_publisher(Settings(event_publisher="memory")), InMemoryEventPublisher)
