"""REST client for the hosted database and auth provider.

Talks to the PostgREST endpoint (``/rest/v1``) for the ``events``,
``auction_items`` and ``profiles`` tables and to the auth endpoint
(``/auth/v1``) to resolve the signed-in user.

Usage:
    client = SupabaseRestClient(url, anon_key, access_token=token)
    async with client:
        row = await client.fetch_event("k3j9x0ab")
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import httpx

from bidscreen.infrastructure.observability import Timer, get_logger
from bidscreen.infrastructure.observability.metrics import REMOTE_CALL_DURATION

from .base import AuthenticationRequired, RemoteStore, RemoteStoreError, Row

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0


class SupabaseRestClient(RemoteStore):
    """Async :class:`RemoteStore` over ``httpx.AsyncClient``.

    Attributes:
        base_url: Project URL, e.g. ``https://xyz.supabase.co``.
        api_key: Anon or service-role key sent as ``apikey``.
        access_token: User JWT; falls back to ``api_key`` for service calls.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "SupabaseRestClient":
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
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {self.access_token or self.api_key}",
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        client = await self._get_client()
        table = path.rsplit("/", 1)[-1]
        try:
            with Timer(REMOTE_CALL_DURATION, labels={"method": method, "table": table}):
                response = await client.request(
                    method, path, params=params, json=json, headers=headers
                )
        except httpx.HTTPError as exc:
            logger.warning("Remote %s %s failed: %s", method, path, exc)
            raise RemoteStoreError(f"{method} {path} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthenticationRequired(
                f"{method} {path} rejected with status {response.status_code}"
            )
        if response.status_code >= 400:
            logger.error(
                "Remote error: status=%d, %s %s: %s",
                response.status_code,
                method,
                path,
                response.text[:200],
            )
            raise RemoteStoreError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        return response.json()

    # -------------------- auth / profiles --------------------
    async def get_current_user(self) -> Row | None:
        if not self.access_token:
            return None
        try:
            return await self._request("GET", "/auth/v1/user")
        except AuthenticationRequired:
            return None

    async def get_profile(self, user_id: str) -> Row | None:
        rows = await self._request(
            "GET",
            "/rest/v1/profiles",
            params={"select": "*", "id": f"eq.{user_id}"},
        )
        return rows[0] if rows else None

    async def update_profile(self, user_id: str, fields: Row) -> None:
        await self._request(
            "PATCH",
            "/rest/v1/profiles",
            params={"id": f"eq.{user_id}"},
            json=fields,
            headers={"Prefer": "return=minimal"},
        )

    async def find_profile_by_customer(self, customer_id: str) -> Row | None:
        rows = await self._request(
            "GET",
            "/rest/v1/profiles",
            params={"select": "id", "stripe_customer_id": f"eq.{customer_id}"},
        )
        return rows[0] if rows else None

    # -------------------- events / items --------------------
    async def upsert_event(self, row: Row) -> None:
        await self._request(
            "POST",
            "/rest/v1/events",
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def upsert_items(self, rows: list[Row]) -> None:
        if not rows:
            return
        await self._request(
            "POST",
            "/rest/v1/auction_items",
            json=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def fetch_event(self, event_id: str) -> Row | None:
        rows = await self._request(
            "GET",
            "/rest/v1/events",
            params={"select": "*,auction_items(*)", "id": f"eq.{event_id}"},
        )
        return rows[0] if rows else None

    async def delete_items(
        self, event_id: str, *, keep_ids: Iterable[int] | None = None
    ) -> None:
        params = {"event_id": f"eq.{event_id}"}
        if keep_ids is not None:
            kept = ",".join(str(item_id) for item_id in keep_ids)
            if kept:
                params["id"] = f"not.in.({kept})"
        await self._request("DELETE", "/rest/v1/auction_items", params=params)

    async def delete_event(self, event_id: str) -> None:
        await self._request("DELETE", "/rest/v1/events", params={"id": f"eq.{event_id}"})

    async def list_events(self, owner_id: str) -> list[Row]:
        rows = await self._request(
            "GET",
            "/rest/v1/events",
            params={
                "select": "id,name,subtitle,status,updated_at",
                "owner_id": f"eq.{owner_id}",
                "order": "updated_at.desc",
            },
        )
        return list(rows or [])

    async def ping(self) -> bool:
        try:
            await self._request("GET", "/rest/v1/events", params={"select": "id", "limit": "1"})
        except AuthenticationRequired:
            return True
        except RemoteStoreError as exc:
            logger.debug("Remote store not reachable: %s", exc)
            return False
        return True


__all__ = ["DEFAULT_TIMEOUT", "SupabaseRestClient"]
