"""Typed failures raised by management calls.

Every failure that crosses the management boundary is a ``ManagementError``
carrying an ``ErrorKind``.  Callers match on the kind (or the subclass);
suppression combinators in :mod:`bus_provisioning.suppression` match on
the kind only.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Failure taxonomy for remote management operations."""

    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    REMOTE_FAULT = "remote_fault"


class EntityKind(StrEnum):
    """Broker-managed entity kinds."""

    QUEUE = "queue"
    TOPIC = "topic"
    SUBSCRIPTION = "subscription"


class ManagementError(Exception):
    """Base class for failures reported by the management endpoint."""

    kind: ErrorKind = ErrorKind.REMOTE_FAULT

    def __init__(
        self,
        message: str,
        *,
        entity_kind: EntityKind | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.entity_kind = entity_kind
        self.path = path


class EntityAlreadyExistsError(ManagementError):
    """A create call targeted an entity that already exists."""

    kind = ErrorKind.ALREADY_EXISTS


class EntityNotFoundError(ManagementError):
    """A get/delete call targeted an entity that does not exist."""

    kind = ErrorKind.NOT_FOUND


class ManagementTimeoutError(ManagementError):
    """The endpoint did not answer within its own timeout."""

    kind = ErrorKind.TIMEOUT


class RemoteFaultError(ManagementError):
    """Any other failure reported by (or while talking to) the endpoint."""

    kind = ErrorKind.REMOTE_FAULT


_BY_KIND: dict[ErrorKind, type[ManagementError]] = {
    ErrorKind.ALREADY_EXISTS: EntityAlreadyExistsError,
    ErrorKind.NOT_FOUND: EntityNotFoundError,
    ErrorKind.TIMEOUT: ManagementTimeoutError,
    ErrorKind.REMOTE_FAULT: RemoteFaultError,
}


def error_for(
    kind: ErrorKind,
    entity_kind: EntityKind,
    path: str,
    detail: str | None = None,
) -> ManagementError:
    """Build the exception matching *kind* with a uniform message."""
    msg = f"{entity_kind} '{path}': {kind}"
    if detail:
        msg += f" ({detail})"
    return _BY_KIND[kind](msg, entity_kind=entity_kind, path=path)
