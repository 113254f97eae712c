# crcfind/ports/storage.py
from __future__ import annotations

from typing import Iterable, Protocol
from ..domain.models import Event


class EventSink(Protocol):
    """Port for persisting materialized events (e.g., Parquet)."""

    async def write_events(self, events: Iterable[Event]) -> str:
        """Persist `events` and return the written location."""
