"""In-memory namespace implementing both the management and messaging protocols.

Useful for local development and tests.  Each management call yields to the
event loop once before it is evaluated, so concurrent check-then-act
sequences interleave the same way they do against a remote endpoint.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from dataclasses import dataclass, field

import structlog

from bus_provisioning.entities import (
    QueueDescription,
    SubscriptionDescription,
    TopicDescription,
)
from bus_provisioning.errors import EntityKind, ErrorKind, error_for
from bus_provisioning.messaging import BrokeredMessage
from bus_provisioning.naming import subscription_path

logger = structlog.get_logger()


@dataclass
class _QueueState:
    description: QueueDescription
    messages: deque[BrokeredMessage] = field(default_factory=deque)
    available: asyncio.Event = field(default_factory=asyncio.Event)
    deleted: bool = False


@dataclass
class _SubscriptionState:
    description: SubscriptionDescription
    messages: deque[BrokeredMessage] = field(default_factory=deque)


@dataclass
class _TopicState:
    description: TopicDescription
    subscriptions: dict[str, _SubscriptionState] = field(default_factory=dict)
    deleted: bool = False


class InMemoryQueueConnection:
    """Connection bound to one incarnation of a queue.

    Once that incarnation is deleted, the connection fails with
    ``EntityNotFoundError`` even if a queue with the same path is recreated.
    """

    def __init__(self, namespace: InMemoryNamespace, path: str) -> None:
        self._namespace = namespace
        self._path = path
        self._state = namespace._queues.get(path)
        self.prefetch_count = 0
        self.closed = False

    @property
    def path(self) -> str:
        return self._path

    def _bound(self) -> _QueueState:
        # A deleted incarnation is reported even if the connection was closed since.
        if self._state is None and not self.closed:
            self._state = self._namespace._queues.get(self._path)
        if self._state is not None and self._state.deleted:
            raise error_for(ErrorKind.NOT_FOUND, EntityKind.QUEUE, self._path)
        if self.closed:
            msg = f"Connection to queue '{self._path}' is closed"
            raise RuntimeError(msg)
        if self._state is None:
            raise error_for(ErrorKind.NOT_FOUND, EntityKind.QUEUE, self._path)
        return self._state

    async def send(self, message: BrokeredMessage) -> None:
        state = self._bound()
        await asyncio.sleep(0)
        state.messages.append(message)
        state.available.set()

    async def receive(self, timeout: float | None = None) -> BrokeredMessage | None:
        """Pop the next message; wait up to *timeout* seconds when empty."""
        state = self._bound()
        if not state.messages and timeout:
            state.available.clear()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(state.available.wait(), timeout)
            state = self._bound()
        if not state.messages:
            return None
        return state.messages.popleft()

    async def close(self) -> None:
        self.closed = True


class InMemoryTopicConnection:
    """Fans each sent message out to every subscription of the topic."""

    def __init__(self, namespace: InMemoryNamespace, path: str) -> None:
        self._namespace = namespace
        self._path = path
        self._state = namespace._topics.get(path)
        self.closed = False

    @property
    def path(self) -> str:
        return self._path

    async def send(self, message: BrokeredMessage) -> None:
        if self.closed:
            msg = f"Connection to topic '{self._path}' is closed"
            raise RuntimeError(msg)
        if self._state is None:
            self._state = self._namespace._topics.get(self._path)
        if self._state is None or self._state.deleted:
            raise error_for(ErrorKind.NOT_FOUND, EntityKind.TOPIC, self._path)
        await asyncio.sleep(0)
        for sub in self._state.subscriptions.values():
            sub.messages.append(message)

    async def close(self) -> None:
        self.closed = True


class InMemoryNamespace:
    """A broker namespace held in process memory."""

    def __init__(self) -> None:
        self._queues: dict[str, _QueueState] = {}
        self._topics: dict[str, _TopicState] = {}

    # -- Inspection ------------------------------------------------------------

    @property
    def queues(self) -> list[str]:
        return sorted(self._queues)

    @property
    def topics(self) -> list[str]:
        return sorted(self._topics)

    def subscriptions(self, topic_path: str) -> list[str]:
        state = self._topics.get(topic_path)
        return sorted(state.subscriptions) if state else []

    def message_count(self, path: str) -> int:
        state = self._queues.get(path)
        return len(state.messages) if state else 0

    def subscription_message_count(self, topic_path: str, name: str) -> int:
        topic = self._topics.get(topic_path)
        if topic is None or name not in topic.subscriptions:
            return 0
        return len(topic.subscriptions[name].messages)

    # -- Queues ----------------------------------------------------------------

    async def queue_exists(self, path: str) -> bool:
        await asyncio.sleep(0)
        return path in self._queues

    async def create_queue(self, description: QueueDescription) -> QueueDescription:
        await asyncio.sleep(0)
        if description.path in self._queues:
            raise error_for(ErrorKind.ALREADY_EXISTS, EntityKind.QUEUE, description.path)
        self._queues[description.path] = _QueueState(description)
        logger.debug("memory.queue_created", path=description.path)
        return description

    async def get_queue(self, path: str) -> QueueDescription:
        await asyncio.sleep(0)
        state = self._queues.get(path)
        if state is None:
            raise error_for(ErrorKind.NOT_FOUND, EntityKind.QUEUE, path)
        return state.description

    async def delete_queue(self, path: str) -> None:
        await asyncio.sleep(0)
        state = self._queues.pop(path, None)
        if state is None:
            raise error_for(ErrorKind.NOT_FOUND, EntityKind.QUEUE, path)
        state.deleted = True
        state.messages.clear()
        state.available.set()
        logger.debug("memory.queue_deleted", path=path)

    # -- Topics ----------------------------------------------------------------

    async def topic_exists(self, path: str) -> bool:
        await asyncio.sleep(0)
        return path in self._topics

    async def create_topic(self, description: TopicDescription) -> TopicDescription:
        await asyncio.sleep(0)
        if description.path in self._topics:
            raise error_for(ErrorKind.ALREADY_EXISTS, EntityKind.TOPIC, description.path)
        self._topics[description.path] = _TopicState(description)
        logger.debug("memory.topic_created", path=description.path)
        return description

    async def get_topic(self, path: str) -> TopicDescription:
        await asyncio.sleep(0)
        state = self._topics.get(path)
        if state is None:
            raise error_for(ErrorKind.NOT_FOUND, EntityKind.TOPIC, path)
        return state.description

    async def delete_topic(self, path: str) -> None:
        await asyncio.sleep(0)
        state = self._topics.pop(path, None)
        if state is None:
            raise error_for(ErrorKind.NOT_FOUND, EntityKind.TOPIC, path)
        state.deleted = True
        state.subscriptions.clear()
        logger.debug("memory.topic_deleted", path=path)

    # -- Subscriptions ---------------------------------------------------------

    async def subscription_exists(self, topic_path: str, name: str) -> bool:
        await asyncio.sleep(0)
        topic = self._topics.get(topic_path)
        return topic is not None and name in topic.subscriptions

    async def create_subscription(
        self, description: SubscriptionDescription
    ) -> SubscriptionDescription:
        await asyncio.sleep(0)
        topic = self._topics.get(description.topic_path)
        if topic is None:
            raise error_for(ErrorKind.NOT_FOUND, EntityKind.TOPIC, description.topic_path)
        if description.name in topic.subscriptions:
            raise error_for(
                ErrorKind.ALREADY_EXISTS, EntityKind.SUBSCRIPTION, description.path
            )
        topic.subscriptions[description.name] = _SubscriptionState(description)
        logger.debug("memory.subscription_created", path=description.path)
        return description

    async def delete_subscription(self, topic_path: str, name: str) -> None:
        await asyncio.sleep(0)
        topic = self._topics.get(topic_path)
        if topic is None or topic.subscriptions.pop(name, None) is None:
            raise error_for(
                ErrorKind.NOT_FOUND,
                EntityKind.SUBSCRIPTION,
                subscription_path(topic_path, name),
            )
        logger.debug("memory.subscription_deleted", topic_path=topic_path, name=name)

    # -- Messaging -------------------------------------------------------------

    def create_queue_connection(self, path: str) -> InMemoryQueueConnection:
        return InMemoryQueueConnection(self, path)

    def create_topic_connection(self, path: str) -> InMemoryTopicConnection:
        return InMemoryTopicConnection(self, path)
