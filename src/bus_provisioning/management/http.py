"""REST adapter for a remote broker management endpoint.

Resources::

    /queues/{path}
    /topics/{path}
    /topics/{topic_path}/subscriptions/{name}

``GET`` answers 200 with the description or 404, ``PUT`` (sent with
``If-None-Match: *``) answers 201 or 409, ``DELETE`` answers 200/204 or 404.
"""

from __future__ import annotations

from typing import Any, TypeVar

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from bus_provisioning.config.models import ManagementConfig
from bus_provisioning.entities import (
    EntityDescription,
    QueueDescription,
    SubscriptionDescription,
    TopicDescription,
)
from bus_provisioning.errors import (
    EntityKind,
    EntityNotFoundError,
    ErrorKind,
    error_for,
)
from bus_provisioning.naming import subscription_path

logger = structlog.get_logger()

D = TypeVar("D", bound=EntityDescription)

_STATUS_KINDS: dict[int, ErrorKind] = {
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.ALREADY_EXISTS,
    408: ErrorKind.TIMEOUT,
    504: ErrorKind.TIMEOUT,
}


def _subscription_url(topic_path: str, name: str) -> str:
    return f"/topics/{topic_path}/subscriptions/{name}"


class HttpManagementEndpoint:
    """Thin async wrapper around the management REST API."""

    def __init__(
        self,
        config: ManagementConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or ManagementConfig()
        headers = {"Accept": "application/json"}
        if self._config.auth_token is not None:
            headers["Authorization"] = (
                f"Bearer {self._config.auth_token.get_secret_value()}"
            )
        self._client = httpx.AsyncClient(
            base_url=self._config.endpoint_url,
            timeout=self._config.timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpManagementEndpoint:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Health ----------------------------------------------------------------

    async def wait_until_ready(self) -> None:
        """Block until the management API answers its root resource."""

        @retry(
            retry=retry_if_exception_type(httpx.HTTPError),
            stop=stop_after_attempt(self._config.ready_max_attempts),
            wait=wait_exponential(multiplier=self._config.ready_wait_seconds, max=30),
            reraise=True,
        )
        async def _probe() -> None:
            resp = await self._client.get("/")
            resp.raise_for_status()

        await _probe()
        logger.info("management.ready", url=self._config.endpoint_url)

    # -- Plumbing --------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        kind: EntityKind,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise error_for(ErrorKind.TIMEOUT, kind, path, str(exc)) from exc
        except httpx.HTTPError as exc:
            raise error_for(ErrorKind.REMOTE_FAULT, kind, path, str(exc)) from exc
        if resp.is_error:
            error_kind = _STATUS_KINDS.get(resp.status_code, ErrorKind.REMOTE_FAULT)
            raise error_for(
                error_kind, kind, path, f"{resp.status_code} {resp.text}".strip()
            )
        return resp

    async def _exists(self, url: str, kind: EntityKind, path: str) -> bool:
        try:
            await self._request("GET", url, kind, path)
        except EntityNotFoundError:
            return False
        return True

    async def _create(self, url: str, description: D) -> D:
        resp = await self._request(
            "PUT",
            url,
            description.entity_kind,
            description.path,
            json=description.settings(),
            headers={"If-None-Match": "*"},
        )
        if not resp.content:
            return description
        return type(description).model_validate(resp.json())

    async def _get(self, url: str, model: type[D], kind: EntityKind, path: str) -> D:
        resp = await self._request("GET", url, kind, path)
        return model.model_validate(resp.json())

    async def _delete(self, url: str, kind: EntityKind, path: str) -> None:
        await self._request("DELETE", url, kind, path)

    # -- Queues ----------------------------------------------------------------

    async def queue_exists(self, path: str) -> bool:
        return await self._exists(f"/queues/{path}", EntityKind.QUEUE, path)

    async def create_queue(self, description: QueueDescription) -> QueueDescription:
        return await self._create(f"/queues/{description.path}", description)

    async def get_queue(self, path: str) -> QueueDescription:
        return await self._get(
            f"/queues/{path}", QueueDescription, EntityKind.QUEUE, path
        )

    async def delete_queue(self, path: str) -> None:
        await self._delete(f"/queues/{path}", EntityKind.QUEUE, path)

    # -- Topics ----------------------------------------------------------------

    async def topic_exists(self, path: str) -> bool:
        return await self._exists(f"/topics/{path}", EntityKind.TOPIC, path)

    async def create_topic(self, description: TopicDescription) -> TopicDescription:
        return await self._create(f"/topics/{description.path}", description)

    async def get_topic(self, path: str) -> TopicDescription:
        return await self._get(
            f"/topics/{path}", TopicDescription, EntityKind.TOPIC, path
        )

    async def delete_topic(self, path: str) -> None:
        await self._delete(f"/topics/{path}", EntityKind.TOPIC, path)

    # -- Subscriptions ---------------------------------------------------------

    async def subscription_exists(self, topic_path: str, name: str) -> bool:
        return await self._exists(
            _subscription_url(topic_path, name),
            EntityKind.SUBSCRIPTION,
            subscription_path(topic_path, name),
        )

    async def create_subscription(
        self, description: SubscriptionDescription
    ) -> SubscriptionDescription:
        return await self._create(
            _subscription_url(description.topic_path, description.name), description
        )

    async def delete_subscription(self, topic_path: str, name: str) -> None:
        await self._delete(
            _subscription_url(topic_path, name),
            EntityKind.SUBSCRIPTION,
            subscription_path(topic_path, name),
        )
