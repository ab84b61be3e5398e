"""Typer CLI for ensuring and removing broker entities."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console
from rich.table import Table

from bus_provisioning.config.loader import load_provisioning_config
from bus_provisioning.config.models import ProvisioningConfig
from bus_provisioning.entities import (
    EntityDescription,
    QueueDescription,
    SubscriptionDescription,
    TopicDescription,
)
from bus_provisioning.errors import ManagementError
from bus_provisioning.management.facade import ManagementFacade
from bus_provisioning.management.http import HttpManagementEndpoint
from bus_provisioning.naming import random_entity_name
from bus_provisioning.observability.logging import configure_logging
from bus_provisioning.provisioner import EntityProvisioner

T = TypeVar("T")

console = Console()
app = typer.Typer(name="busprov", help="Broker entity provisioning CLI")
ensure_app = typer.Typer(name="ensure", help="Make sure an entity exists")
remove_app = typer.Typer(name="remove", help="Make sure an entity is absent")
app.add_typer(ensure_app)
app.add_typer(remove_app)

ConfigOption = typer.Option(None, "--config", "-c", help="Provisioning YAML")


def _load(config_path: str | None) -> ProvisioningConfig:
    if config_path is not None and not Path(config_path).exists():
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1)
    config = load_provisioning_config(config_path)
    configure_logging(config.logging)
    return config


def _run(
    config_path: str | None,
    operation: Callable[[EntityProvisioner], Awaitable[T]],
) -> T:
    """Build a provisioner against the configured endpoint and run *operation*."""
    config = _load(config_path)

    async def _main() -> T:
        async with HttpManagementEndpoint(config.management) as endpoint:
            await endpoint.wait_until_ready()
            provisioner = EntityProvisioner(ManagementFacade(endpoint))
            return await operation(provisioner)

    try:
        return asyncio.run(_main())
    except ManagementError as exc:
        console.print(f"[red]{exc.kind}:[/red] {exc}")
        raise typer.Exit(1) from exc


def _print_description(title: str, description: EntityDescription) -> None:
    table = Table(title=title)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("origin", str(description.origin))
    for key, value in description.settings().items():
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def validate(config_path: str | None = ConfigOption) -> None:
    """Validate a provisioning configuration file."""
    try:
        config = _load(config_path)
    except typer.Exit:
        raise
    except Exception as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print("[green]Valid[/green]")
    console.print(f"  endpoint: {config.management.endpoint_url}")
    console.print(f"  timeout:  {config.management.timeout_seconds}s")
    console.print(f"  prefetch: {config.client.prefetch_count}")
    console.print(f"  config:   {config_path or '(defaults)'}")


@ensure_app.command("queue")
def ensure_queue(
    path: str = typer.Argument(..., help="Queue path"),
    requires_session: bool = typer.Option(False, "--requires-session"),
    max_delivery_count: int = typer.Option(10, "--max-delivery-count"),
    config_path: str | None = ConfigOption,
) -> None:
    """Fetch the queue, creating it if it does not exist."""
    description = QueueDescription(
        path=path,
        requires_session=requires_session,
        max_delivery_count=max_delivery_count,
    )
    result = _run(config_path, lambda p: p.ensure_queue(description))
    _print_description(f"Queue {result.path}", result)


@ensure_app.command("topic")
def ensure_topic(
    path: str = typer.Argument(..., help="Topic path"),
    config_path: str | None = ConfigOption,
) -> None:
    """Fetch the topic, creating it if it does not exist."""
    topic = _run(config_path, lambda p: p.ensure_topic(TopicDescription(path=path)))
    _print_description(f"Topic {topic.path}", topic.description)


@ensure_app.command("subscription")
def ensure_subscription(
    topic_path: str = typer.Argument(..., help="Parent topic path"),
    name: str | None = typer.Argument(
        None, help="Subscription name (random if omitted)"
    ),
    config_path: str | None = ConfigOption,
) -> None:
    """Create the subscription (fails if it already exists)."""
    description = SubscriptionDescription(
        topic_path=topic_path, name=name or random_entity_name()
    )
    _run(config_path, lambda p: p.ensure_subscription(description))
    console.print(f"[green]Subscription created:[/green] {description.path}")


@remove_app.command("queue")
def remove_queue(
    path: str = typer.Argument(..., help="Queue path"),
    config_path: str | None = ConfigOption,
) -> None:
    """Delete the queue if it exists."""
    _run(config_path, lambda p: p.remove_queue(path))
    console.print(f"[green]Queue absent:[/green] {path}")


@remove_app.command("topic")
def remove_topic(
    path: str = typer.Argument(..., help="Topic path"),
    config_path: str | None = ConfigOption,
) -> None:
    """Delete the topic if it exists."""
    _run(config_path, lambda p: p.remove_topic(path))
    console.print(f"[green]Topic absent:[/green] {path}")


@remove_app.command("subscription")
def remove_subscription(
    topic_path: str = typer.Argument(..., help="Parent topic path"),
    name: str = typer.Argument(..., help="Subscription name"),
    config_path: str | None = ConfigOption,
) -> None:
    """Delete the subscription if it exists."""
    _run(config_path, lambda p: p.remove_subscription(topic_path, name))
    console.print(f"[green]Subscription absent:[/green] {topic_path}/{name}")


if __name__ == "__main__":
    app()
