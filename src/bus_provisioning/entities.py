"""Immutable entity descriptions for queues, topics and subscriptions."""

from __future__ import annotations

from datetime import timedelta
from enum import StrEnum
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bus_provisioning.errors import EntityKind
from bus_provisioning.naming import (
    subscription_path,
    validate_entity_path,
    validate_subscription_name,
)


class Origin(StrEnum):
    """Where a description value came from."""

    DECLARED = "declared"  # built locally, not yet seen by the endpoint
    CREATED = "created"
    FETCHED = "fetched"


class EntityDescription(BaseModel):
    """Common base — a frozen, settings-only value object.

    ``origin`` is local bookkeeping stamped by the management façade; it is
    never sent to the endpoint.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    entity_kind: ClassVar[EntityKind]

    origin: Origin = Origin.DECLARED

    @property
    def created(self) -> bool:
        return self.origin == Origin.CREATED

    def with_origin(self, origin: Origin) -> Self:
        return self.model_copy(update={"origin": origin})

    def settings(self) -> dict[str, Any]:
        """Broker settings as JSON-compatible data."""
        return self.model_dump(mode="json", exclude={"origin"})


class QueueDescription(EntityDescription):
    """Queue path plus broker settings."""

    entity_kind: ClassVar[EntityKind] = EntityKind.QUEUE

    path: str
    lock_duration: timedelta = timedelta(seconds=60)
    max_size_in_megabytes: int = Field(default=1024, ge=1)
    requires_duplicate_detection: bool = False
    requires_session: bool = False
    default_message_time_to_live: timedelta | None = None
    dead_lettering_on_message_expiration: bool = False
    duplicate_detection_history_time_window: timedelta = timedelta(minutes=10)
    max_delivery_count: int = Field(default=10, ge=1)
    enable_batched_operations: bool = True

    @field_validator("path")
    @classmethod
    def check_path(cls, v: str) -> str:
        return validate_entity_path(v)


class TopicDescription(EntityDescription):
    """Topic path plus broker settings."""

    entity_kind: ClassVar[EntityKind] = EntityKind.TOPIC

    path: str
    max_size_in_megabytes: int = Field(default=1024, ge=1)
    requires_duplicate_detection: bool = False
    default_message_time_to_live: timedelta | None = None
    duplicate_detection_history_time_window: timedelta = timedelta(minutes=10)
    enable_batched_operations: bool = True

    @field_validator("path")
    @classmethod
    def check_path(cls, v: str) -> str:
        return validate_entity_path(v)


class SubscriptionDescription(EntityDescription):
    """Subscription keyed on its parent topic path and its own name."""

    entity_kind: ClassVar[EntityKind] = EntityKind.SUBSCRIPTION

    topic_path: str
    name: str
    lock_duration: timedelta = timedelta(seconds=60)
    requires_session: bool = False
    default_message_time_to_live: timedelta | None = None
    dead_lettering_on_message_expiration: bool = False
    max_delivery_count: int = Field(default=10, ge=1)
    enable_batched_operations: bool = True

    @field_validator("topic_path")
    @classmethod
    def check_topic_path(cls, v: str) -> str:
        return validate_entity_path(v)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return validate_subscription_name(v)

    @property
    def path(self) -> str:
        return subscription_path(self.topic_path, self.name)
