# crcfind/ports/feed.py
from __future__ import annotations

from typing import Awaitable, Callable, Protocol
from ..domain.models import RawEventRecord
from ..domain.value_types import Address

OnEvent = Callable[[RawEventRecord], Awaitable[None]]


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        """Stop delivery. Idempotent; no callback fires after it returns."""


class EventFeed(Protocol):
    """Port for the push stream of newly indexed events."""

    async def subscribe(self, address: Address | None, on_event: OnEvent) -> Subscription:
        """Open a live feed (all events when `address` is None) and return its handle."""
