"""Control surface for one auction: items, bids and display settings.

The service keeps the working item list in memory. Once the display is
launched every mutation is persisted through the storage adapter and the
fresh snapshot is pushed to same-device displays over the broadcast hub.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from bidscreen.domain.models import (
    FREE_ITEM_LIMIT,
    AuctionEvent,
    AuctionItem,
    Branding,
    Capability,
    StorageRecord,
    ValidationError,
    generate_event_id,
    next_item_id,
    utc_timestamp,
)
from bidscreen.infrastructure.observability import get_logger, log_context

from .accounts import AccountService
from .broadcast import LocalBroadcastHub
from .storage import SaveResult, StorageAdapter

logger = get_logger(__name__)


class FeatureLockedError(Exception):
    """Raised when a setting needs a capability the account does not have."""

    def __init__(self, capability: Capability) -> None:
        super().__init__(f"'{capability.value}' requires a premium plan")
        self.capability = capability


class ItemLimitReached(Exception):
    """Raised when a free account tries to add more than the allowed items."""

    def __init__(self, limit: int = FREE_ITEM_LIMIT) -> None:
        super().__init__(f"Free plan is limited to {limit} items")
        self.limit = limit


class AuctionControlService:
    def __init__(
        self,
        storage: StorageAdapter,
        *,
        accounts: AccountService | None = None,
        broadcast: LocalBroadcastHub | None = None,
        event: AuctionEvent | None = None,
        items: list[AuctionItem] | None = None,
    ) -> None:
        self._storage = storage
        self._accounts = accounts
        self._broadcast = broadcast
        self._event = event or AuctionEvent(id="")
        self._items: list[AuctionItem] = list(items or [])
        self._launched = bool(self._event.id)

    @property
    def event(self) -> AuctionEvent:
        return self._event

    @property
    def items(self) -> list[AuctionItem]:
        return list(self._items)

    @property
    def event_id(self) -> str | None:
        return self._event.id or None

    @property
    def launched(self) -> bool:
        return self._launched

    def record(self) -> StorageRecord:
        return StorageRecord(
            event=self._event, items=list(self._items), updated_at=self._event.updated_at
        )

    # -------------------- items --------------------
    async def add_item(
        self, name: str, starting_bid: Any = 0, description: str = ""
    ) -> AuctionItem:
        item = AuctionItem(
            id=next_item_id(existing.id for existing in self._items),
            name=(name or "").strip(),
            description=(description or "").strip(),
            starting_bid=starting_bid,
            current_bid=starting_bid,
            created_at=utc_timestamp(),
        )
        item.validate()
        if len(self._items) >= FREE_ITEM_LIMIT and not await self._has(
            Capability.UNLIMITED_ITEMS
        ):
            raise ItemLimitReached()
        self._items.append(item)
        await self._persist()
        return item

    async def update_bid(self, item_id: int, amount: Any) -> AuctionItem:
        index = self._index_of(item_id)
        updated = self._items[index].with_bid(amount)
        self._items[index] = updated
        await self._persist()
        return updated

    async def remove_item(self, item_id: int) -> AuctionItem:
        removed = self._items.pop(self._index_of(item_id))
        await self._persist()
        return removed

    async def set_item_visibility(
        self, item_id: int, *, hidden: bool | None = None, revealed: bool | None = None
    ) -> AuctionItem:
        index = self._index_of(item_id)
        item = self._items[index]
        updated = replace(
            item,
            is_hidden=item.is_hidden if hidden is None else hidden,
            is_revealed=item.is_revealed if revealed is None else revealed,
        )
        self._items[index] = updated
        await self._persist()
        return updated

    # -------------------- event settings --------------------
    async def update_event(
        self,
        *,
        name: str | None = None,
        subtitle: str | None = None,
        branding: Branding | None = None,
        hide_watermark: bool | None = None,
        allow_public_bidding: bool | None = None,
        silent_mode: bool | None = None,
    ) -> AuctionEvent:
        if branding is not None:
            await self._require(Capability.CUSTOM_BRANDING)
        if hide_watermark:
            await self._require(Capability.HIDE_WATERMARK)
        if allow_public_bidding:
            await self._require(Capability.PUBLIC_BIDDING)
        if silent_mode:
            await self._require(Capability.SILENT_MODE)

        updated = replace(
            self._event,
            name=self._event.name if name is None else name.strip(),
            subtitle=self._event.subtitle if subtitle is None else subtitle.strip(),
            branding=self._event.branding if branding is None else branding,
            hide_watermark=self._event.hide_watermark
            if hide_watermark is None
            else hide_watermark,
            allow_public_bidding=self._event.allow_public_bidding
            if allow_public_bidding is None
            else allow_public_bidding,
            silent_mode=self._event.silent_mode if silent_mode is None else silent_mode,
        )
        if not updated.name:
            raise ValidationError("Event name is required")
        self._event = updated
        await self._persist()
        return updated

    # -------------------- display lifecycle --------------------
    async def launch(self) -> SaveResult:
        """Assign an event id if needed, persist, and mark it the active display."""

        if not self._event.id:
            self._event = replace(self._event, id=generate_event_id())
        self._launched = True
        result = await self._persist()
        assert result is not None
        self._storage.set_active_display(self._event.id)
        logger.info("Launched display %s (%s)", self._event.id, result.mode)
        return result

    async def resume(self, event_id: str | None = None) -> StorageRecord | None:
        """Reload a previously launched event, by default the active display."""

        target = event_id or self._storage.active_display()
        if not target:
            return None
        record = await self._storage.load_event(target)
        if record is None:
            return None
        self._event = record.event
        self._items = list(record.items)
        self._launched = True
        self._storage.set_active_display(target)
        return record

    # -------------------- internals --------------------
    async def _persist(self) -> SaveResult | None:
        if not self._launched:
            return None
        record = self.record().touch()
        self._event = record.event
        with log_context(event_id=record.event_id):
            result = await self._storage.save_event(record.event_id, record)
            if self._broadcast is not None:
                await self._broadcast.publish(record.event_id, record.snapshot())
        return result

    def _index_of(self, item_id: int) -> int:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        raise KeyError(f"No item with id {item_id}")

    async def _has(self, capability: Capability) -> bool:
        if self._accounts is None:
            return False
        return await self._accounts.has_capability(capability)

    async def _require(self, capability: Capability) -> None:
        if not await self._has(capability):
            raise FeatureLockedError(capability)


__all__ = [
    "AuctionControlService",
    "FeatureLockedError",
    "ItemLimitReached",
]
