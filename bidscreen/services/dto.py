"""
Centralized DTOs and event publishing types for Bidscreen services.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict

# --- Event Publishing Types ---
EventPayload = dict[str, object]
EventPublisher = Callable[[EventPayload], Awaitable[None]]


async def noop_event_publisher(_: EventPayload) -> None:
    """Default no-op event publisher for services that don't need events."""
    pass


# --- Event DTOs ---
class EventSummaryDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    subtitle: str = ""
    status: str | None = None
    updated_at: str | None = None


# --- Offline queue DTOs ---
class QueueEntryDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: str
    event_id: str
    timestamp: str
    attempts: int = 0


class QueueStatusDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_online: bool
    queue_length: int
    entries: list[QueueEntryDTO] = []


# --- Checkout DTOs ---
class CheckoutVerifyRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str


class CheckoutVerifyResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool
    plan: str
    user_id: str


__all__ = [
    "CheckoutVerifyRequest",
    "CheckoutVerifyResponse",
    "EventPayload",
    "EventPublisher",
    "EventSummaryDTO",
    "QueueEntryDTO",
    "QueueStatusDTO",
    "noop_event_publisher",
]
