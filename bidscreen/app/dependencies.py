"""Service wiring shared by the FastAPI app and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated

from fastapi import Depends

from bidscreen.app.config import Settings, load_settings
from bidscreen.infrastructure.db import LocalStore
from bidscreen.infrastructure.observability import get_logger
from bidscreen.infrastructure.payments import PaymentProcessor, StripeClient
from bidscreen.infrastructure.remote import (
    ChangeFeed,
    ChangeFeedFactory,
    RealtimeFeed,
    RemoteStore,
    SupabaseRestClient,
)
from bidscreen.services import (
    AccountService,
    CheckoutVerifier,
    LocalBroadcastHub,
    OfflineQueue,
    ReconnectPolicy,
    StorageAdapter,
    SubscriptionReconciler,
    SyncChannel,
)
from bidscreen.services.dto import EventPublisher, noop_event_publisher

logger = get_logger(__name__)

__all__ = [
    "ContainerDep",
    "ServiceContainer",
    "StorageAdapterDep",
    "build_container",
    "get_container",
    "get_storage_adapter",
    "has_container",
    "reset_container",
    "set_container",
]


@dataclass
class ServiceContainer:
    """Explicitly constructed service handles for one process."""

    settings: Settings
    local_store: LocalStore
    storage: StorageAdapter
    accounts: AccountService
    broadcast: LocalBroadcastHub
    remote: RemoteStore | None = None
    payments: PaymentProcessor | None = None
    feed_factory: ChangeFeedFactory | None = None
    event_publisher: EventPublisher = noop_event_publisher
    _channels: dict[str, SyncChannel] = field(default_factory=dict)

    def sync_channel(self, event_id: str) -> SyncChannel | None:
        """Return the shared realtime channel for ``event_id`` (remote setups only)."""

        if self.remote is None or self.feed_factory is None:
            return None
        channel = self._channels.get(event_id)
        if channel is None:
            channel = SyncChannel(
                event_id,
                remote=self.remote,
                feed_factory=self.feed_factory,
                policy=ReconnectPolicy(
                    max_attempts=self.settings.sync.max_reconnect_attempts,
                    base_delay=self.settings.sync.base_delay_seconds,
                    max_delay=self.settings.sync.max_delay_seconds,
                ),
                event_publisher=self.event_publisher,
            )
            self._channels[event_id] = channel
        return channel

    def reconciler(self) -> SubscriptionReconciler:
        if self.remote is None:
            raise RuntimeError("Subscription reconciliation needs a configured remote store")
        return SubscriptionReconciler(self.remote)

    def checkout_verifier(self) -> CheckoutVerifier:
        if self.remote is None or self.payments is None:
            raise RuntimeError("Checkout verification needs the remote store and payment keys")
        return CheckoutVerifier(self.payments, self.remote)

    async def close(self) -> None:
        for channel in list(self._channels.values()):
            await channel.unsubscribe()
        self._channels.clear()
        if self.remote is not None:
            await self.remote.close()
        if self.payments is not None:
            await self.payments.close()


def build_container(
    settings: Settings | None = None,
    *,
    remote: RemoteStore | None = None,
    payments: PaymentProcessor | None = None,
    feed_factory: ChangeFeedFactory | None = None,
    event_publisher: EventPublisher = noop_event_publisher,
    service_role: bool = False,
) -> ServiceContainer:
    """Construct every service from settings; injected handles win over settings."""

    settings = settings or load_settings()
    local_store = LocalStore.from_sqlite_path(
        settings.db_path, max_bytes=settings.local_store_max_bytes
    )

    if remote is None and settings.remote_configured:
        api_key = (
            settings.supabase_service_role_key
            if service_role and settings.supabase_service_role_key
            else settings.supabase_anon_key
        )
        remote = SupabaseRestClient(
            settings.supabase_url or "",
            api_key or "",
            access_token=settings.supabase_access_token,
        )
    if feed_factory is None and remote is not None and settings.remote_configured:
        url = settings.supabase_url or ""
        key = settings.supabase_anon_key or ""
        token = settings.supabase_access_token

        def feed_factory(event_id: str) -> ChangeFeed:
            return RealtimeFeed(url, key, event_id, access_token=token)

    if payments is None and settings.stripe_secret_key:
        payments = StripeClient(settings.stripe_secret_key)

    accounts = AccountService(remote, premium_enabled=settings.premium_features_enabled)
    storage = StorageAdapter(
        local_store,
        remote=remote,
        accounts=accounts,
        queue=OfflineQueue(local_store, max_replay_attempts=settings.max_replay_attempts),
        event_publisher=event_publisher,
    )
    return ServiceContainer(
        settings=settings,
        local_store=local_store,
        storage=storage,
        accounts=accounts,
        broadcast=LocalBroadcastHub(),
        remote=remote,
        payments=payments,
        feed_factory=feed_factory,
        event_publisher=event_publisher,
    )


_container: ServiceContainer | None = None


def set_container(container: ServiceContainer) -> None:
    global _container
    _container = container


def has_container() -> bool:
    return _container is not None


def reset_container() -> None:
    global _container
    _container = None


def get_container() -> ServiceContainer:
    global _container
    if _container is None:
        _container = build_container()
    return _container


def get_storage_adapter(
    container: ServiceContainer = Depends(get_container),
) -> StorageAdapter:
    return container.storage


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]
StorageAdapterDep = Annotated[StorageAdapter, Depends(get_storage_adapter)]
