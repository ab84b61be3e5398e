"""ManagementFacade — uniform, logged, typed wrapper over a management endpoint."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, TypeVar

import structlog

from bus_provisioning.entities import (
    Origin,
    QueueDescription,
    SubscriptionDescription,
    TopicDescription,
)
from bus_provisioning.errors import (
    EntityKind,
    ManagementError,
    ManagementTimeoutError,
    RemoteFaultError,
)
from bus_provisioning.management.base import ManagementEndpoint
from bus_provisioning.naming import subscription_path

T = TypeVar("T")


def _translate(exc: Exception, kind: EntityKind, path: str) -> ManagementError:
    if isinstance(exc, ManagementError):
        return exc
    if isinstance(exc, TimeoutError):
        return ManagementTimeoutError(
            f"{kind} '{path}': timeout", entity_kind=kind, path=path
        )
    return RemoteFaultError(
        f"{kind} '{path}': {type(exc).__name__}: {exc}", entity_kind=kind, path=path
    )


class ManagementFacade:
    """One awaitable per remote management call, with begin/end debug events.

    Failures always surface as ``ManagementError`` subclasses.  Nothing is
    retried here.
    """

    def __init__(self, endpoint: ManagementEndpoint, logger: Any | None = None) -> None:
        self._endpoint = endpoint
        self._log = logger if logger is not None else structlog.get_logger()

    @property
    def endpoint(self) -> ManagementEndpoint:
        return self._endpoint

    async def _call(
        self, kind: EntityKind, operation: str, path: str, call: Awaitable[T]
    ) -> T:
        tags = {"entity_kind": str(kind), "operation": operation, "path": path}
        self._log.debug(f"begin {kind} {operation} @ '{path}'", **tags)
        try:
            result = await call
        except Exception as exc:
            error = _translate(exc, kind, path)
            self._log.debug(
                f"failed {kind} {operation} @ '{path}'",
                error_kind=str(error.kind),
                **tags,
            )
            if error is exc:
                raise
            raise error from exc
        self._log.debug(f"end {kind} {operation} @ '{path}'", **tags)
        return result

    # -- Queues ----------------------------------------------------------------

    async def queue_exists(self, path: str) -> bool:
        return await self._call(
            EntityKind.QUEUE, "exists", path, self._endpoint.queue_exists(path)
        )

    async def create_queue(self, description: QueueDescription) -> QueueDescription:
        created = await self._call(
            EntityKind.QUEUE,
            "create",
            description.path,
            self._endpoint.create_queue(description),
        )
        return created.with_origin(Origin.CREATED)

    async def get_queue(self, path: str) -> QueueDescription:
        fetched = await self._call(
            EntityKind.QUEUE, "get", path, self._endpoint.get_queue(path)
        )
        return fetched.with_origin(Origin.FETCHED)

    async def delete_queue(self, path: str) -> None:
        await self._call(
            EntityKind.QUEUE, "delete", path, self._endpoint.delete_queue(path)
        )

    # -- Topics ----------------------------------------------------------------

    async def topic_exists(self, path: str) -> bool:
        return await self._call(
            EntityKind.TOPIC, "exists", path, self._endpoint.topic_exists(path)
        )

    async def create_topic(self, description: TopicDescription) -> TopicDescription:
        created = await self._call(
            EntityKind.TOPIC,
            "create",
            description.path,
            self._endpoint.create_topic(description),
        )
        return created.with_origin(Origin.CREATED)

    async def get_topic(self, path: str) -> TopicDescription:
        fetched = await self._call(
            EntityKind.TOPIC, "get", path, self._endpoint.get_topic(path)
        )
        return fetched.with_origin(Origin.FETCHED)

    async def delete_topic(self, path: str) -> None:
        await self._call(
            EntityKind.TOPIC, "delete", path, self._endpoint.delete_topic(path)
        )

    # -- Subscriptions ---------------------------------------------------------

    async def subscription_exists(self, topic_path: str, name: str) -> bool:
        return await self._call(
            EntityKind.SUBSCRIPTION,
            "exists",
            subscription_path(topic_path, name),
            self._endpoint.subscription_exists(topic_path, name),
        )

    async def create_subscription(
        self, description: SubscriptionDescription
    ) -> SubscriptionDescription:
        created = await self._call(
            EntityKind.SUBSCRIPTION,
            "create",
            description.path,
            self._endpoint.create_subscription(description),
        )
        return created.with_origin(Origin.CREATED)

    async def delete_subscription(self, topic_path: str, name: str) -> None:
        await self._call(
            EntityKind.SUBSCRIPTION,
            "delete",
            subscription_path(topic_path, name),
            self._endpoint.delete_subscription(topic_path, name),
        )
