"""HTTP entity backend."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from ..config import BackendConfig
from ..errors import ErrorKind
from ..utils.retry import sleep_before_retry
from .base import ContactPayload, CreateResult, EntityBackend, EventPayload, Identity

logger = logging.getLogger(__name__)

DATE_FIELDS = {"date", "birthday", "timestamp"}


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"error": response.text}
    return body if isinstance(body, dict) else {"error": str(body)}


def classify_response(response: httpx.Response) -> CreateResult:
    """Turn a non-success response into a classified ``CreateResult``."""
    body = _json_body(response)
    message = body.get("error") or body.get("message") or response.reason_phrase
    status = response.status_code

    if status in (401, 403):
        return CreateResult.failed(
            message or "Not authenticated", ErrorKind.AUTH_REQUIRED
        )
    if status == 429:
        return CreateResult.failed(
            "Too many requests. Please wait a moment and try again.",
            ErrorKind.RATE_LIMIT,
        )
    if status in (400, 422) and body.get("field") in DATE_FIELDS:
        return CreateResult.failed(message or "Invalid date", ErrorKind.INVALID_DATE)
    if status >= 500:
        return CreateResult.failed(message or "Server error", ErrorKind.NETWORK)
    return CreateResult.failed(message or f"Request failed ({status})")


class HttpEntityBackend(EntityBackend):
    """Create entities through a JSON HTTP API.

    ``POST {base_url}/contacts`` and ``POST {base_url}/events`` with the
    caller's bearer token and an ``Idempotency-Key`` header. Server errors and
    transport failures are retried with backoff up to ``max_attempts``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_attempts: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self._client = client

    @classmethod
    def from_config(cls, config: BackendConfig) -> "HttpEntityBackend":
        if not config.base_url:
            raise ValueError("backend.base_url is not configured")
        return cls(
            config.base_url,
            timeout=config.timeout_seconds,
            max_attempts=config.max_attempts,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(
        self, path: str, identity: Identity, payload: BaseModel, idempotency_key: str
    ) -> CreateResult:
        headers = {"Idempotency-Key": idempotency_key}
        if identity.token:
            headers["Authorization"] = f"Bearer {identity.token}"
        body = payload.model_dump()

        result = CreateResult.failed("Request was not attempted", ErrorKind.NETWORK)
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._get_client().post(
                    path, json=body, headers=headers
                )
            except httpx.TransportError as exc:
                logger.warning(f"POST {path} attempt {attempt} failed: {exc}")
                result = CreateResult.failed(
                    "Network error. Please check your connection and try again.",
                    ErrorKind.NETWORK,
                )
            else:
                if response.is_success:
                    data = _json_body(response)
                    entity_id = data.get("id")
                    if not entity_id:
                        return CreateResult.failed("Response did not include an id")
                    return CreateResult.ok(str(entity_id))
                result = classify_response(response)
                logger.warning(
                    f"POST {path} attempt {attempt} returned {response.status_code}"
                )

            if result.kind != ErrorKind.NETWORK or attempt == self.max_attempts:
                return result
            await sleep_before_retry(attempt)
        return result

    async def create_contact(
        self, identity: Identity, payload: ContactPayload, idempotency_key: str
    ) -> CreateResult:
        return await self._post("/contacts", identity, payload, idempotency_key)

    async def create_event(
        self, identity: Identity, payload: EventPayload, idempotency_key: str
    ) -> CreateResult:
        return await self._post("/events", identity, payload, idempotency_key)
