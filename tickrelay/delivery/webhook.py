"""Async webhook client used to push batches downstream."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Mapping, Optional

import httpx

from tickrelay.core.errors import DeliveryError

LOGGER = logging.getLogger(__name__)


class WebhookClient:
    """Thin wrapper over :class:`httpx.AsyncClient`.

    Parameters
    ----------
    timeout:
        Per-request timeout in seconds (connect + read + write).
    shared_secret:
        Sent as ``secret_header`` on every request when set.
    client:
        Optional pre-configured :class:`httpx.AsyncClient` (e.g. for tests).

    There is no retry: a failed call raises :class:`DeliveryError` and the
    caller drops the batch.
    """

    def __init__(
        self,
        *,
        timeout: float = 8.0,
        shared_secret: Optional[str] = None,
        secret_header: str = "X-Relay-Secret",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout
        self._headers: Dict[str, str] = {"Content-Type": "application/json"}
        if shared_secret:
            self._headers[secret_header] = shared_secret

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""

        await self._client.aclose()

    async def post(self, url: str, payload: Mapping[str, Any]) -> float:
        """POST ``payload`` as JSON and return the round-trip latency in ms."""

        start = time.perf_counter()
        try:
            response = await self._client.post(url, json=payload, headers=self._headers, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Webhook request failed: {exc!r}", url=url) from exc
        latency_ms = (time.perf_counter() - start) * 1_000.0
        if not response.is_success:
            raise DeliveryError(
                f"Webhook responded with HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        return latency_ms


__all__ = ["WebhookClient"]
