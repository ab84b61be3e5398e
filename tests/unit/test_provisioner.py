"""Unit tests for EntityProvisioner — ensure/remove protocols."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from structlog.testing import capture_logs

from bus_provisioning.entities import (
    Origin,
    QueueDescription,
    SubscriptionDescription,
    TopicDescription,
)
from bus_provisioning.errors import (
    EntityAlreadyExistsError,
    EntityKind,
    EntityNotFoundError,
    ErrorKind,
    ManagementTimeoutError,
    RemoteFaultError,
    error_for,
)
from bus_provisioning.management.facade import ManagementFacade
from bus_provisioning.management.memory import InMemoryNamespace
from bus_provisioning.provisioner import CallState, EntityProvisioner, Topic


@pytest.fixture
def namespace() -> InMemoryNamespace:
    return InMemoryNamespace()


@pytest.fixture
def provisioner(namespace: InMemoryNamespace) -> EntityProvisioner:
    return EntityProvisioner(ManagementFacade(namespace), namespace)


def _mock_endpoint(**calls: object) -> MagicMock:
    endpoint = MagicMock()
    for name, value in calls.items():
        mock = AsyncMock()
        if isinstance(value, BaseException):
            mock.side_effect = value
        else:
            mock.return_value = value
        setattr(endpoint, name, mock)
    return endpoint


@pytest.mark.asyncio
class TestEnsureQueue:
    async def test_creates_absent_queue(self, provisioner, namespace):
        result = await provisioner.ensure_queue("orders")

        assert result.path == "orders"
        assert result.created is True
        assert namespace.queues == ["orders"]

    async def test_second_call_fetches(self, provisioner):
        first = await provisioner.ensure_queue("orders")
        second = await provisioner.ensure_queue("orders")

        assert first.origin == Origin.CREATED
        assert second.origin == Origin.FETCHED
        assert second.path == first.path

    async def test_description_settings_are_used_on_create(self, provisioner):
        result = await provisioner.ensure_queue(
            QueueDescription(path="sessions", requires_session=True)
        )
        assert result.requires_session is True

    async def test_fetch_returns_remote_settings(self, provisioner):
        await provisioner.ensure_queue(
            QueueDescription(path="orders", max_delivery_count=3)
        )
        again = await provisioner.ensure_queue(
            QueueDescription(path="orders", max_delivery_count=99)
        )
        assert again.max_delivery_count == 3

    async def test_existence_check_failure_is_fatal(self):
        endpoint = _mock_endpoint(
            queue_exists=error_for(ErrorKind.TIMEOUT, EntityKind.QUEUE, "orders"),
            create_queue=QueueDescription(path="orders"),
            get_queue=QueueDescription(path="orders"),
        )
        provisioner = EntityProvisioner(ManagementFacade(endpoint))

        with pytest.raises(ManagementTimeoutError):
            await provisioner.ensure_queue("orders")
        endpoint.create_queue.assert_not_awaited()
        endpoint.get_queue.assert_not_awaited()

    async def test_create_conflict_does_not_fall_back_to_get(self):
        endpoint = _mock_endpoint(
            queue_exists=False,
            create_queue=error_for(
                ErrorKind.ALREADY_EXISTS, EntityKind.QUEUE, "orders"
            ),
            get_queue=QueueDescription(path="orders"),
        )
        provisioner = EntityProvisioner(ManagementFacade(endpoint))

        with pytest.raises(EntityAlreadyExistsError):
            await provisioner.ensure_queue("orders")
        endpoint.get_queue.assert_not_awaited()

    async def test_get_failure_does_not_fall_back_to_create(self):
        endpoint = _mock_endpoint(
            queue_exists=True,
            get_queue=error_for(ErrorKind.NOT_FOUND, EntityKind.QUEUE, "orders"),
            create_queue=QueueDescription(path="orders"),
        )
        provisioner = EntityProvisioner(ManagementFacade(endpoint))

        with pytest.raises(EntityNotFoundError):
            await provisioner.ensure_queue("orders")
        endpoint.create_queue.assert_not_awaited()

    async def test_concurrent_ensure_creates_exactly_once(self, provisioner, namespace):
        outcomes = await asyncio.gather(
            provisioner.ensure_queue("new-path"),
            provisioner.ensure_queue("new-path"),
            return_exceptions=True,
        )

        successes = [o for o in outcomes if isinstance(o, QueueDescription)]
        failures = [o for o in outcomes if isinstance(o, BaseException)]
        assert len(successes) >= 1
        assert sum(1 for o in successes if o.created) == 1
        for other in outcomes:
            if isinstance(other, QueueDescription) and not other.created:
                assert other.origin == Origin.FETCHED
        assert all(isinstance(f, EntityAlreadyExistsError) for f in failures)
        assert namespace.queues == ["new-path"]

    async def test_logs_resolved_state_with_branch(self, provisioner):
        with capture_logs() as logs:
            await provisioner.ensure_queue("orders")

        ensure_events = [e for e in logs if e["event"] == "queue.ensure"]
        states = [e["state"] for e in ensure_events]
        assert states == [CallState.CHECKING, CallState.CREATING, CallState.RESOLVED]
        assert ensure_events[-1]["branch"] == CallState.CREATING
        assert ensure_events[-1]["log_level"] == "info"

    async def test_logs_failed_state(self):
        endpoint = _mock_endpoint(queue_exists=RuntimeError("socket closed"))
        provisioner = EntityProvisioner(ManagementFacade(endpoint))

        with capture_logs() as logs, pytest.raises(RemoteFaultError):
            await provisioner.ensure_queue("orders")

        final = [e for e in logs if e["event"] == "queue.ensure"][-1]
        assert final["state"] == CallState.FAILED
        assert final["error_kind"] == ErrorKind.REMOTE_FAULT
        assert final["log_level"] == "warning"


@pytest.mark.asyncio
class TestRemoveQueue:
    async def test_remove_absent_is_noop(self, provisioner, namespace):
        await provisioner.remove_queue("never-existed")
        assert namespace.queues == []

    async def test_remove_existing(self, provisioner, namespace):
        await provisioner.ensure_queue("orders")
        await provisioner.remove_queue(QueueDescription(path="orders"))
        assert namespace.queues == []

    async def test_not_found_on_delete_is_suppressed(self):
        endpoint = _mock_endpoint(
            queue_exists=True,
            delete_queue=error_for(ErrorKind.NOT_FOUND, EntityKind.QUEUE, "orders"),
        )
        provisioner = EntityProvisioner(ManagementFacade(endpoint))

        await provisioner.remove_queue("orders")

        endpoint.delete_queue.assert_awaited_once_with("orders")

    async def test_other_delete_failures_propagate(self):
        endpoint = _mock_endpoint(
            queue_exists=True,
            delete_queue=error_for(ErrorKind.TIMEOUT, EntityKind.QUEUE, "orders"),
        )
        provisioner = EntityProvisioner(ManagementFacade(endpoint))

        with pytest.raises(ManagementTimeoutError):
            await provisioner.remove_queue("orders")

    async def test_absent_queue_skips_delete(self):
        endpoint = _mock_endpoint(queue_exists=False, delete_queue=None)
        provisioner = EntityProvisioner(ManagementFacade(endpoint))

        await provisioner.remove_queue("orders")

        endpoint.delete_queue.assert_not_awaited()

    async def test_concurrent_removers_both_succeed(self, provisioner, namespace):
        await provisioner.ensure_queue("orders")

        await asyncio.gather(
            provisioner.remove_queue("orders"),
            provisioner.remove_queue("orders"),
        )

        assert namespace.queues == []


@pytest.mark.asyncio
class TestTopics:
    async def test_ensure_topic_returns_aggregate(self, provisioner, namespace):
        topic = await provisioner.ensure_topic("events")

        assert isinstance(topic, Topic)
        assert topic.path == "events"
        assert topic.created is True
        assert topic.management is provisioner.management
        assert topic.messaging_factory is namespace

    async def test_ensure_topic_fetches_existing(self, provisioner):
        await provisioner.ensure_topic(TopicDescription(path="events"))
        again = await provisioner.ensure_topic("events")
        assert again.description.origin == Origin.FETCHED

    async def test_topic_without_factory_cannot_open_connections(self, namespace):
        provisioner = EntityProvisioner(ManagementFacade(namespace))
        topic = await provisioner.ensure_topic("events")

        with pytest.raises(RuntimeError, match="no messaging factory"):
            topic.create_connection()

    async def test_remove_topic_accepts_aggregate(self, provisioner, namespace):
        topic = await provisioner.ensure_topic("events")
        await provisioner.remove_topic(topic)
        assert namespace.topics == []

    async def test_remove_absent_topic_is_noop(self, provisioner):
        await provisioner.remove_topic("nothing-here")

    async def test_topic_delete_not_found_is_suppressed(self):
        endpoint = _mock_endpoint(
            topic_exists=True,
            delete_topic=error_for(ErrorKind.NOT_FOUND, EntityKind.TOPIC, "events"),
        )
        provisioner = EntityProvisioner(ManagementFacade(endpoint))

        await provisioner.remove_topic("events")


@pytest.mark.asyncio
class TestSubscriptions:
    async def test_ensure_subscription_creates(self, provisioner, namespace):
        await provisioner.ensure_topic("events")
        desc = SubscriptionDescription(topic_path="events", name="audit")

        assert await provisioner.ensure_subscription(desc) is None
        assert namespace.subscriptions("events") == ["audit"]

    async def test_ensure_subscription_twice_fails(self, provisioner):
        await provisioner.ensure_topic("events")
        desc = SubscriptionDescription(topic_path="events", name="audit")

        await provisioner.ensure_subscription(desc)
        with pytest.raises(EntityAlreadyExistsError):
            await provisioner.ensure_subscription(desc)

    async def test_ensure_subscription_skips_existence_check(self):
        desc = SubscriptionDescription(topic_path="events", name="audit")
        endpoint = _mock_endpoint(subscription_exists=True, create_subscription=desc)
        provisioner = EntityProvisioner(ManagementFacade(endpoint))

        await provisioner.ensure_subscription(desc)

        endpoint.subscription_exists.assert_not_awaited()
        endpoint.create_subscription.assert_awaited_once_with(desc)

    async def test_remove_subscription_by_description(self, provisioner, namespace):
        await provisioner.ensure_topic("events")
        desc = SubscriptionDescription(topic_path="events", name="audit")
        await provisioner.ensure_subscription(desc)

        await provisioner.remove_subscription(desc)

        assert namespace.subscriptions("events") == []

    async def test_remove_subscription_by_key(self, provisioner, namespace):
        await provisioner.ensure_topic("events")
        await provisioner.ensure_subscription(
            SubscriptionDescription(topic_path="events", name="audit")
        )

        await provisioner.remove_subscription("events", "audit")

        assert namespace.subscriptions("events") == []

    async def test_remove_subscription_requires_name(self, provisioner):
        with pytest.raises(ValueError, match="subscription name"):
            await provisioner.remove_subscription("events")

    async def test_remove_absent_subscription_is_noop(self, provisioner):
        await provisioner.remove_subscription("events", "ghost")

    async def test_subscription_delete_not_found_is_suppressed(self):
        endpoint = _mock_endpoint(
            subscription_exists=True,
            delete_subscription=error_for(
                ErrorKind.NOT_FOUND, EntityKind.SUBSCRIPTION, "events/subscriptions/a"
            ),
        )
        provisioner = EntityProvisioner(ManagementFacade(endpoint))

        await provisioner.remove_subscription("events", "a")

        endpoint.delete_subscription.assert_awaited_once_with("events", "a")
