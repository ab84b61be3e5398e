"""Entity path conventions."""

from __future__ import annotations

import random
import re
import string

MAX_PATH_LENGTH = 260
MAX_SUBSCRIPTION_NAME_LENGTH = 50

_PATH_PATTERN = re.compile(r"^[A-Za-z0-9._\-]+(/[A-Za-z0-9._\-]+)*$")
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._\-]+$")


def validate_entity_path(path: str) -> str:
    """Validate a queue or topic path and return it unchanged.

    Paths are made of letters, digits, ``.``, ``-`` and ``_`` segments
    separated by single slashes, e.g. ``orders`` or ``billing/invoices``.
    """
    if not path or len(path) > MAX_PATH_LENGTH:
        msg = f"Entity path must be 1-{MAX_PATH_LENGTH} characters, got {len(path)}"
        raise ValueError(msg)
    if not _PATH_PATTERN.match(path):
        msg = (
            f"Entity path '{path}' may only contain letters, digits, "
            f"'.', '-', '_' and single '/' separators"
        )
        raise ValueError(msg)
    return path


def validate_subscription_name(name: str) -> str:
    """Validate a subscription name (no path separators allowed)."""
    if not name or len(name) > MAX_SUBSCRIPTION_NAME_LENGTH:
        msg = (
            f"Subscription name must be 1-{MAX_SUBSCRIPTION_NAME_LENGTH} "
            f"characters, got {len(name)}"
        )
        raise ValueError(msg)
    if not _NAME_PATTERN.match(name):
        msg = (
            f"Subscription name '{name}' may only contain letters, digits, "
            f"'.', '-' and '_'"
        )
        raise ValueError(msg)
    return name


def subscription_path(topic_path: str, name: str) -> str:
    """Build the addressable path of a subscription: ``<topic>/subscriptions/<name>``."""
    return f"{topic_path}/subscriptions/{name}"


def random_entity_name(length: int = 20) -> str:
    """Return a random lowercase name, handy for throwaway queues."""
    return "".join(random.choices(string.ascii_lowercase, k=length))
