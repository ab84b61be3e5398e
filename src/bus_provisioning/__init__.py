"""Idempotent provisioning of broker queues, topics and subscriptions."""

from bus_provisioning.clients import ClientFactory, QueueClient, TopicClient
from bus_provisioning.entities import (
    Origin,
    QueueDescription,
    SubscriptionDescription,
    TopicDescription,
)
from bus_provisioning.errors import (
    EntityAlreadyExistsError,
    EntityNotFoundError,
    ErrorKind,
    ManagementError,
    ManagementTimeoutError,
    RemoteFaultError,
)
from bus_provisioning.management.facade import ManagementFacade
from bus_provisioning.provisioner import EntityProvisioner, Topic
from bus_provisioning.suppression import recover_if, suppress

__all__ = [
    "ClientFactory",
    "EntityAlreadyExistsError",
    "EntityNotFoundError",
    "EntityProvisioner",
    "ErrorKind",
    "ManagementError",
    "ManagementFacade",
    "ManagementTimeoutError",
    "Origin",
    "QueueClient",
    "QueueDescription",
    "RemoteFaultError",
    "SubscriptionDescription",
    "Topic",
    "TopicClient",
    "TopicDescription",
    "recover_if",
    "suppress",
]
