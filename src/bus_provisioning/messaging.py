"""Messaging connection protocols consumed by the client factory.

Only the boundary is defined here; the send/receive data path itself
belongs to the transport that implements these protocols.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(slots=True)
class BrokeredMessage:
    """Transport-agnostic message envelope."""

    body: bytes
    message_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    properties: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class QueueConnection(Protocol):
    """Send/receive connection to one queue."""

    prefetch_count: int

    @property
    def path(self) -> str: ...

    async def send(self, message: BrokeredMessage) -> None: ...

    async def receive(self, timeout: float | None = None) -> BrokeredMessage | None: ...

    async def close(self) -> None: ...


@runtime_checkable
class TopicConnection(Protocol):
    """Send-only connection to one topic."""

    @property
    def path(self) -> str: ...

    async def send(self, message: BrokeredMessage) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class MessagingFactory(Protocol):
    """Opens connections.  Construction is synchronous; no round-trip is made."""

    def create_queue_connection(self, path: str) -> QueueConnection: ...

    def create_topic_connection(self, path: str) -> TopicConnection: ...
