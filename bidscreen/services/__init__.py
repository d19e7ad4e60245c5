"""Service layer for Bidscreen."""

from .accounts import AccountService
from .broadcast import LocalBroadcastHub, channel_name
from .connectivity import ConnectivityMonitor
from .control import AuctionControlService, FeatureLockedError, ItemLimitReached
from .dto import EventPayload, EventPublisher, noop_event_publisher
from .offline_queue import OfflineQueue, OfflineQueueEntry
from .storage import (
    EventSummary,
    QueueDrainResult,
    SaveResult,
    StorageAdapter,
    StorageMode,
)
from .subscriptions import (
    CheckoutVerifier,
    PaymentNotConfirmed,
    ReconcileOutcome,
    SubscriptionReconciler,
)
from .sync_channel import ConnectionState, ListenerToken, ReconnectPolicy, SyncChannel

__all__ = [
    "AccountService",
    "AuctionControlService",
    "CheckoutVerifier",
    "ConnectionState",
    "ConnectivityMonitor",
    "EventPayload",
    "EventPublisher",
    "EventSummary",
    "FeatureLockedError",
    "ItemLimitReached",
    "ListenerToken",
    "LocalBroadcastHub",
    "OfflineQueue",
    "OfflineQueueEntry",
    "PaymentNotConfirmed",
    "QueueDrainResult",
    "ReconcileOutcome",
    "ReconnectPolicy",
    "SaveResult",
    "StorageAdapter",
    "StorageMode",
    "SubscriptionReconciler",
    "SyncChannel",
    "channel_name",
    "noop_event_publisher",
]
