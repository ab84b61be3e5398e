"""Failure suppression combinators.

A suppression converts one specific failure kind into a successful,
no-value outcome and leaves every other outcome untouched::

    await suppress(facade.delete_queue(path), ErrorKind.NOT_FOUND)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

from bus_provisioning.errors import ErrorKind, ManagementError

T = TypeVar("T")
V = TypeVar("V")

SuppressionPolicy = Callable[[ErrorKind], bool]


def only(kind: ErrorKind) -> SuppressionPolicy:
    """Policy that suppresses exactly *kind*."""

    def _policy(candidate: ErrorKind) -> bool:
        return candidate == kind

    return _policy


def recover_if(
    kind: ErrorKind, value: V | None = None
) -> Callable[[Awaitable[T]], Awaitable[T | V | None]]:
    """Return a wrapper that resolves to *value* when the awaited call fails with *kind*."""
    policy = only(kind)

    async def _recover(awaitable: Awaitable[T]) -> T | V | None:
        try:
            return await awaitable
        except ManagementError as exc:
            if not policy(exc.kind):
                raise
            return value

    return _recover


async def suppress(awaitable: Awaitable[T], kind: ErrorKind) -> T | None:
    """Await *awaitable*, turning a failure of exactly *kind* into ``None``."""
    return await recover_if(kind)(awaitable)
