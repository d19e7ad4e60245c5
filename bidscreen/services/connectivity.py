"""Background connectivity probe feeding the storage adapter.

Plays the part of the browser's online/offline events for long-running
processes: every interval it pings the remote store and reports the
result to :meth:`StorageAdapter.set_online`, which drains the offline
queue when the link comes back.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Literal

from bidscreen.domain.models import utc_timestamp
from bidscreen.infrastructure.observability import get_logger
from bidscreen.infrastructure.remote import AuthenticationRequired, RemoteStore, RemoteStoreError

from .storage import StorageAdapter

MonitorStatus = Literal["idle", "running", "stopping"]


@dataclass
class ConnectivityState:
    status: MonitorStatus = "idle"
    online: bool | None = None
    last_checked_at: str | None = None
    last_error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class ConnectivityMonitor:
    """Periodically probe the remote store and report transitions."""

    def __init__(
        self,
        storage: StorageAdapter,
        remote: RemoteStore,
        *,
        interval_seconds: float = 15.0,
    ) -> None:
        self._storage = storage
        self._remote = remote
        self._interval_seconds = interval_seconds
        self._logger = get_logger(__name__)

        self._state = ConnectivityState()
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> ConnectivityState:
        return self._state

    async def start(self) -> ConnectivityState:
        async with self._lock:
            self._stop_event.clear()
            if self._task is None or self._task.done():
                self._task = asyncio.create_task(self._run_loop())
            self._state.status = "running"
            return self._state

    async def stop(self) -> ConnectivityState:
        async with self._lock:
            self._stop_event.set()
            self._state.status = "stopping"

        if self._task is not None:
            await self._task

        async with self._lock:
            self._state.status = "idle"
            self._task = None
            return self._state

    async def probe_once(self) -> bool:
        """Ping the remote store once and forward the result."""

        try:
            online = await self._remote.ping()
            self._state.last_error = None
        except (RemoteStoreError, AuthenticationRequired) as exc:
            online = False
            self._state.last_error = str(exc)
        self._state.online = online
        self._state.last_checked_at = utc_timestamp()
        await self._storage.set_online(online)
        return online

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.probe_once()
            except Exception as exc:
                self._logger.exception("Connectivity probe failed")
                self._state.last_error = str(exc)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval_seconds)
            except asyncio.TimeoutError:
                continue


__all__ = ["ConnectivityMonitor", "ConnectivityState"]
