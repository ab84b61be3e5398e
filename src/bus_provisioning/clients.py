"""ClientFactory — queue/topic client handles built on the provisioner."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Generic, TypeVar

import structlog

from bus_provisioning.config.models import ClientConfig
from bus_provisioning.entities import QueueDescription
from bus_provisioning.messaging import (
    BrokeredMessage,
    MessagingFactory,
    QueueConnection,
    TopicConnection,
)
from bus_provisioning.provisioner import EntityProvisioner, Topic

C = TypeVar("C")


class ConnectionCell(Generic[C]):
    """Replaceable connection reference with a single writer.

    Readers call :meth:`get` and always see a whole connection, either the
    one before or the one after a :meth:`swap`.
    """

    def __init__(self, connection: C) -> None:
        self._connection = connection
        self._lock = threading.Lock()

    def get(self) -> C:
        return self._connection

    def swap(self, connection: C) -> C:
        """Install *connection* and return the one it replaced."""
        with self._lock:
            previous = self._connection
            self._connection = connection
        return previous


class QueueClient:
    """Caller-visible queue handle whose connection can be rebuilt in place.

    The handle itself is never replaced; :meth:`drain` only swaps the
    connection behind it.  Operations already awaiting the old connection
    finish (or fail) against the old connection.
    """

    def __init__(
        self,
        description: QueueDescription,
        prefetch_count: int,
        messaging_factory: MessagingFactory,
        provisioner: EntityProvisioner,
        logger: Any | None = None,
    ) -> None:
        self._description = description
        self._prefetch_count = prefetch_count
        self._messaging_factory = messaging_factory
        self._provisioner = provisioner
        self._log = logger if logger is not None else structlog.get_logger()
        self._drain_lock = asyncio.Lock()
        self._cell: ConnectionCell[QueueConnection] = ConnectionCell(self._open())

    def _open(self) -> QueueConnection:
        connection = self._messaging_factory.create_queue_connection(self.path)
        connection.prefetch_count = self._prefetch_count
        return connection

    @property
    def path(self) -> str:
        return self._description.path

    @property
    def description(self) -> QueueDescription:
        return self._description

    @property
    def prefetch_count(self) -> int:
        return self._cell.get().prefetch_count

    @property
    def connection(self) -> QueueConnection:
        return self._cell.get()

    async def send(self, message: BrokeredMessage | bytes) -> None:
        if isinstance(message, bytes):
            message = BrokeredMessage(body=message)
        await self._cell.get().send(message)

    async def receive(self, timeout: float | None = None) -> BrokeredMessage | None:
        return await self._cell.get().receive(timeout)

    async def drain(self) -> QueueClient:
        """Destroy all queued messages by recreating the queue, then reconnect.

        Runs remove → ensure → reconnect and swaps the new connection in.
        The description is replaced by the one the ensure step returned.
        Returns ``self``.  Concurrent drains of one handle run one at a time,
        and :meth:`close` waits for a running drain.
        """
        async with self._drain_lock:
            self._log.info("queue_client.draining", path=self.path)
            await self._provisioner.remove_queue(self.path)
            self._description = await self._provisioner.ensure_queue(self._description)
            previous = self._cell.swap(self._open())
            await previous.close()
            self._log.info(
                "queue_client.drained",
                path=self.path,
                prefetch_count=self._prefetch_count,
            )
        return self

    async def close(self) -> None:
        """Close the current connection once any running drain has finished."""
        async with self._drain_lock:
            await self._cell.get().close()

    async def __aenter__(self) -> QueueClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()


class TopicClient:
    """Send handle for an already-ensured topic."""

    def __init__(self, topic: Topic, connection: TopicConnection) -> None:
        self._topic = topic
        self._connection = connection

    @property
    def path(self) -> str:
        return self._topic.path

    @property
    def topic(self) -> Topic:
        return self._topic

    async def send(self, message: BrokeredMessage | bytes) -> None:
        if isinstance(message, bytes):
            message = BrokeredMessage(body=message)
        await self._connection.send(message)

    async def close(self) -> None:
        await self._connection.close()

    async def __aenter__(self) -> TopicClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()


class ClientFactory:
    """Builds send/receive handles for queues and topics."""

    def __init__(
        self,
        provisioner: EntityProvisioner,
        messaging_factory: MessagingFactory,
        config: ClientConfig | None = None,
        logger: Any | None = None,
    ) -> None:
        self._provisioner = provisioner
        self._messaging_factory = messaging_factory
        self._config = config or ClientConfig()
        self._log = logger if logger is not None else structlog.get_logger()

    def create_queue_client(
        self, description: QueueDescription, prefetch_count: int | None = None
    ) -> QueueClient:
        """Open a connection to ``description.path`` and wrap it with drain support.

        No management round-trip is made; ensure the queue first (or use
        :meth:`open_queue_client`).
        """
        prefetch = (
            self._config.prefetch_count if prefetch_count is None else prefetch_count
        )
        if prefetch < 0:
            msg = f"prefetch_count must be >= 0, got {prefetch}"
            raise ValueError(msg)
        client = QueueClient(
            description,
            prefetch,
            self._messaging_factory,
            self._provisioner,
            logger=self._log,
        )
        self._log.debug(
            "queue_client.created", path=description.path, prefetch_count=prefetch
        )
        return client

    async def open_queue_client(
        self, queue: str | QueueDescription, prefetch_count: int | None = None
    ) -> QueueClient:
        """Ensure the queue, then create a client for it."""
        description = await self._provisioner.ensure_queue(queue)
        return self.create_queue_client(description, prefetch_count)

    def create_topic_client(self, topic: Topic) -> TopicClient:
        """Wrap an already-ensured topic.  No check/create round-trip is made."""
        connection = self._messaging_factory.create_topic_connection(topic.path)
        self._log.debug("topic_client.created", path=topic.path)
        return TopicClient(topic, connection)
