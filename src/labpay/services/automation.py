"""Outbound client for the automation webhook (Make.com scenario)."""

from typing import Any

import httpx

from labpay.config import Settings
from labpay.models.errors import (
    ConfigurationError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)
from labpay.models.settlement import SettlementPayload
from labpay.services.ssm_service import resolve_secret
from labpay.utils.logging import get_logger

logger = get_logger(__name__)

SECRET_HEADER = "X-Bridge-Secret"
EVENT_ID_HEADER = "X-Event-Id"


class AutomationClient:
    """POST settlement payloads to the automation endpoint.

    Only a 2xx response counts as delivered. The shared secret lets the
    receiver authenticate the forwarder; the event ID header lets it
    deduplicate on its side as well. The endpoint and secret are resolved
    on first use.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Build the HTTP client on first use.

        Raises:
            ConfigurationError: MAKE_WEBHOOK_URL or the shared secret is missing.
        """
        if self._client is None:
            if not self._settings.make_webhook_url:
                raise ConfigurationError("Missing required configuration: MAKE_WEBHOOK_URL")
            secret = resolve_secret(self._settings, "make_forwarding_secret")
            self._client = httpx.Client(
                headers={SECRET_HEADER: secret},
                timeout=self._settings.automation_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def forward(self, payload: SettlementPayload) -> None:
        """Deliver one payload.

        Raises:
            ConfigurationError: Endpoint or secret not configured.
            UpstreamUnavailableError: Network or transport failure.
            UpstreamRejectedError: Non-2xx response (carries status_code).
        """
        client = self._get_client()
        headers: dict[str, Any] = {
            "Content-Type": "application/json",
            EVENT_ID_HEADER: payload.event_id,
        }
        try:
            response = client.post(
                self._settings.make_webhook_url or "",
                content=payload.model_dump_json(),
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(
                f"Automation endpoint unreachable: {type(e).__name__}: {e}"
            ) from e

        if not response.is_success:
            raise UpstreamRejectedError(
                f"Automation endpoint returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        logger.debug("Automation accepted event %s (%d)", payload.event_id, response.status_code)
