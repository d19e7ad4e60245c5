"""Minimal payment processor client.

Only checkout session retrieval is needed: the verification path confirms
payment state with the processor instead of trusting client input.
"""

from __future__ import annotations

from typing import Any

import httpx

from bidscreen.infrastructure.observability import get_logger

logger = get_logger(__name__)

STRIPE_API_BASE = "https://api.stripe.com"


class PaymentProcessorError(Exception):
    """Raised when the payment processor cannot be reached or rejects a call."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PaymentProcessor:
    async def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class StripeClient(PaymentProcessor):
    """Async client for the Stripe REST API using a secret key."""

    def __init__(
        self,
        secret_key: str,
        *,
        base_url: str = STRIPE_API_BASE,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "StripeClient":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                auth=(self.secret_key, ""),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.get(f"/v1/checkout/sessions/{session_id}")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Payment processor error: status=%d, session=%s",
                exc.response.status_code,
                session_id,
            )
            raise PaymentProcessorError(
                f"Checkout session lookup failed with {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Payment processor not reachable: %s", exc)
            raise PaymentProcessorError(f"Payment processor not reachable: {exc}") from exc
        return response.json()


__all__ = ["PaymentProcessor", "PaymentProcessorError", "StripeClient"]
