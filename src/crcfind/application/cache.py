from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Callable, TypeVar

from crcfind.domain.histogram import count_types, merge_counts
from crcfind.domain.models import Event, PageResult
from crcfind.domain.value_types import EventKey, EventType

log = logging.getLogger(__name__)

T = TypeVar("T")


def newest_first(ev: Event) -> tuple[int, int, int]:
    return ev.block_number, ev.transaction_index, ev.log_index


class EventCache:
    """
    Pages of one logical event stream, newest page first.

    Every write goes through `commit()`: it serializes writers and rejects
    updates tagged with a superseded generation. `begin_stream()` bumps the
    generation and clears everything.

    Invariants: `Event.key` is unique across all pages; the histogram equals
    the sum of per-page counts.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.generation = 0
        self._pages: list[PageResult] = []
        self._keys: set[EventKey] = set()
        self._histogram: dict[EventType, int] = {}
        self._pending: list[Event] = []     # live events that arrived before the first page

    # ---------- reads -----------------------------------------------------------

    @property
    def pages(self) -> tuple[PageResult, ...]:
        return tuple(self._pages)

    @property
    def events(self) -> list[Event]:
        return [ev for page in self._pages for ev in page.events]

    @property
    def event_types_amount(self) -> dict[EventType, int]:
        return dict(self._histogram)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    # ---------- writes ----------------------------------------------------------

    def begin_stream(self) -> int:
        self.generation += 1
        self._pages.clear()
        self._keys.clear()
        self._histogram.clear()
        self._pending.clear()
        return self.generation

    async def commit(self, generation: int, mutate: Callable[[], T]) -> T | None:
        async with self._lock:
            if generation != self.generation:
                log.debug("dropping update for superseded stream %d (current %d)", generation, self.generation)
                return None
            return mutate()

    async def append_page(self, page: PageResult, generation: int) -> PageResult | None:
        """Append a fetched page, newest event first; events already cached are dropped (first seen wins)."""
        def mutate() -> PageResult:
            fresh: list[Event] = []
            for ev in sorted(page.events, key=newest_first, reverse=True):
                if ev.key not in self._keys:
                    self._keys.add(ev.key)
                    fresh.append(ev)
            if len(fresh) != len(page.events):
                log.debug("page overlap: %d duplicate events dropped", len(page.events) - len(fresh))
            stored = replace(page, events=tuple(fresh), event_types_amount=count_types(fresh))
            self._pages.append(stored)
            self._histogram = merge_counts(self._histogram, stored.event_types_amount)
            if len(self._pages) == 1 and self._pending:
                pending, self._pending = self._pending, []
                for ev in pending:
                    self._prepend(ev)
            return self._pages[-1]

        return await self.commit(generation, mutate)

    async def prepend_live(self, event: Event, generation: int) -> bool:
        """Put a pushed event at the top of the newest page. False when already known."""
        def mutate() -> bool:
            if event.key in self._keys or any(p.key == event.key for p in self._pending):
                return False
            if not self._pages:
                self._pending.append(event)
                return True
            self._prepend(event)
            return True

        return bool(await self.commit(generation, mutate))

    def _prepend(self, event: Event) -> None:
        if event.key in self._keys:
            return
        first = self._pages[0]
        self._pages[0] = replace(
            first,
            events=(event,) + first.events,
            event_types_amount=merge_counts(first.event_types_amount, {event.event: 1}),
        )
        self._keys.add(event.key)
        self._histogram = merge_counts(self._histogram, {event.event: 1})
