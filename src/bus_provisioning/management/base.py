"""Management endpoint protocol — the capability set this layer consumes."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from bus_provisioning.entities import (
    QueueDescription,
    SubscriptionDescription,
    TopicDescription,
)


@runtime_checkable
class ManagementEndpoint(Protocol):
    """Remote broker management API.

    Every method is one round-trip.  Implementations report failures as
    :class:`~bus_provisioning.errors.ManagementError` subclasses:
    ``EntityAlreadyExistsError`` on duplicate creates,
    ``EntityNotFoundError`` on get/delete of an absent entity.
    """

    async def queue_exists(self, path: str) -> bool: ...

    async def create_queue(self, description: QueueDescription) -> QueueDescription: ...

    async def get_queue(self, path: str) -> QueueDescription: ...

    async def delete_queue(self, path: str) -> None: ...

    async def topic_exists(self, path: str) -> bool: ...

    async def create_topic(self, description: TopicDescription) -> TopicDescription: ...

    async def get_topic(self, path: str) -> TopicDescription: ...

    async def delete_topic(self, path: str) -> None: ...

    async def subscription_exists(self, topic_path: str, name: str) -> bool: ...

    async def create_subscription(
        self, description: SubscriptionDescription
    ) -> SubscriptionDescription: ...

    async def delete_subscription(self, topic_path: str, name: str) -> None: ...
