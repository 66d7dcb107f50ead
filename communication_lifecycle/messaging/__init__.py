"""
Broker messaging: event publishing, consuming and the outbox dispatcher.
"""

from .publisher import (
    EventPublisher,
    InMemoryEventPublisher,
    RabbitMQEventPublisher,
    create_publisher,
)
from .consumer import RabbitMQEventConsumer, log_event
from .outbox import OutboxDispatcher

__all__ = [
    "EventPublisher",
    "InMemoryEventPublisher",
    "OutboxDispatcher",
    "RabbitMQEventConsumer",
    "RabbitMQEventPublisher",
    "create_publisher",
    "log_event",
]
