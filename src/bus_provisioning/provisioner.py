"""EntityProvisioner — idempotent ensure/remove over the management façade.

``ensure`` is check-then-act: an existence check followed by either a get
or a create.  The two calls are not atomic, so two callers racing on the
same absent path can both decide to create; the loser receives
``EntityAlreadyExistsError`` unchanged.  There is no fallback to ``get``.

``remove`` is check-then-delete, with ``EntityNotFoundError`` from the
delete call treated as success (a concurrent remover got there first).

``ensure_subscription`` is a plain create without an existence check and
lets ``EntityAlreadyExistsError`` propagate.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from types import TracebackType
from typing import Any

import structlog

from bus_provisioning.entities import (
    QueueDescription,
    SubscriptionDescription,
    TopicDescription,
)
from bus_provisioning.errors import ErrorKind, ManagementError
from bus_provisioning.management.facade import ManagementFacade
from bus_provisioning.messaging import MessagingFactory, TopicConnection
from bus_provisioning.suppression import recover_if

_ignore_not_found = recover_if(ErrorKind.NOT_FOUND)


class CallState(StrEnum):
    """States of a single ensure/remove call."""

    CHECKING = "checking"
    FETCHING = "fetching"
    CREATING = "creating"
    DELETING = "deleting"
    NO_OP = "no_op"
    RESOLVED = "resolved"
    FAILED = "failed"


class _CallTrace:
    """Records the state a call passes through and logs its terminal state."""

    def __init__(self, log: Any, event: str, **tags: Any) -> None:
        self._log = log
        self._event = event
        self._tags = tags
        self.branch: CallState | None = None
        self.state = CallState.CHECKING

    def enter(self, state: CallState) -> None:
        self.branch = state
        self.state = state
        self._log.debug(self._event, state=str(state), **self._tags)

    def __enter__(self) -> _CallTrace:
        self._log.debug(self._event, state=str(self.state), **self._tags)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        branch = str(self.branch) if self.branch else None
        if exc is None:
            self.state = CallState.RESOLVED
            self._log.info(self._event, state=str(self.state), branch=branch, **self._tags)
            return
        self.state = CallState.FAILED
        error_kind = str(exc.kind) if isinstance(exc, ManagementError) else None
        self._log.warning(
            self._event,
            state=str(self.state),
            branch=branch,
            error_kind=error_kind,
            error=str(exc),
            **self._tags,
        )


@dataclass(slots=True)
class Topic:
    """An ensured topic plus the references downstream send logic needs."""

    description: TopicDescription
    management: ManagementFacade
    messaging_factory: MessagingFactory | None = None

    @property
    def path(self) -> str:
        return self.description.path

    @property
    def created(self) -> bool:
        return self.description.created

    def create_connection(self) -> TopicConnection:
        if self.messaging_factory is None:
            msg = f"Topic '{self.path}' has no messaging factory to open connections"
            raise RuntimeError(msg)
        return self.messaging_factory.create_topic_connection(self.path)


def _as_queue(queue: str | QueueDescription) -> QueueDescription:
    return queue if isinstance(queue, QueueDescription) else QueueDescription(path=queue)


def _as_topic(topic: str | TopicDescription) -> TopicDescription:
    return topic if isinstance(topic, TopicDescription) else TopicDescription(path=topic)


class EntityProvisioner:
    """Ensures entities exist (or are absent) before clients use them."""

    def __init__(
        self,
        management: ManagementFacade,
        messaging_factory: MessagingFactory | None = None,
        logger: Any | None = None,
    ) -> None:
        self._management = management
        self._messaging_factory = messaging_factory
        self._log = logger if logger is not None else structlog.get_logger()

    @property
    def management(self) -> ManagementFacade:
        return self._management

    def _trace(self, event: str, **tags: Any) -> _CallTrace:
        return _CallTrace(self._log, event, **tags)

    # -- Queues ----------------------------------------------------------------

    async def ensure_queue(self, queue: str | QueueDescription) -> QueueDescription:
        """Return the queue's description, creating the queue if it is absent."""
        description = _as_queue(queue)
        path = description.path
        with self._trace("queue.ensure", path=path) as trace:
            if await self._management.queue_exists(path):
                trace.enter(CallState.FETCHING)
                return await self._management.get_queue(path)
            trace.enter(CallState.CREATING)
            return await self._management.create_queue(description)

    async def remove_queue(self, queue: str | QueueDescription) -> None:
        path = _as_queue(queue).path
        with self._trace("queue.remove", path=path) as trace:
            if await self._management.queue_exists(path):
                trace.enter(CallState.DELETING)
                await _ignore_not_found(self._management.delete_queue(path))
            else:
                trace.enter(CallState.NO_OP)

    # -- Topics ----------------------------------------------------------------

    async def ensure_topic(self, topic: str | TopicDescription) -> Topic:
        """Ensure the topic exists and wrap it for downstream send logic."""
        description = _as_topic(topic)
        path = description.path
        with self._trace("topic.ensure", path=path) as trace:
            if await self._management.topic_exists(path):
                trace.enter(CallState.FETCHING)
                result = await self._management.get_topic(path)
            else:
                trace.enter(CallState.CREATING)
                result = await self._management.create_topic(description)
        return Topic(result, self._management, self._messaging_factory)

    async def remove_topic(self, topic: str | TopicDescription | Topic) -> None:
        path = topic.path if isinstance(topic, Topic) else _as_topic(topic).path
        with self._trace("topic.remove", path=path) as trace:
            if await self._management.topic_exists(path):
                trace.enter(CallState.DELETING)
                await _ignore_not_found(self._management.delete_topic(path))
            else:
                trace.enter(CallState.NO_OP)

    # -- Subscriptions ---------------------------------------------------------

    async def ensure_subscription(self, description: SubscriptionDescription) -> None:
        """Create the subscription.  Unlike queues and topics there is no existence check."""
        with self._trace("subscription.ensure", path=description.path) as trace:
            trace.enter(CallState.CREATING)
            await self._management.create_subscription(description)

    async def remove_subscription(
        self, subscription: str | SubscriptionDescription, name: str | None = None
    ) -> None:
        """Remove a subscription given its description or ``(topic_path, name)``."""
        if isinstance(subscription, SubscriptionDescription):
            topic_path, sub_name = subscription.topic_path, subscription.name
        else:
            if name is None:
                msg = "remove_subscription needs a subscription name with a topic path"
                raise ValueError(msg)
            topic_path, sub_name = subscription, name

        with self._trace(
            "subscription.remove", topic_path=topic_path, name=sub_name
        ) as trace:
            if await self._management.subscription_exists(topic_path, sub_name):
                trace.enter(CallState.DELETING)
                await _ignore_not_found(
                    self._management.delete_subscription(topic_path, sub_name)
                )
            else:
                trace.enter(CallState.NO_OP)
