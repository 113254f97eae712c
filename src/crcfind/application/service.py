from __future__ import annotations

import logging
from typing import Collection

from crcfind.application.cache import EventCache
from crcfind.application.pagination import EventPaginator
from crcfind.application.reconcile import Listener, LiveReconciler
from crcfind.config import RangeConfig
from crcfind.domain.event_types import ALL_EVENTS
from crcfind.domain.grouping import ProcessedEvent, process_events
from crcfind.domain.models import Event, PageResult, ResolvedQuery
from crcfind.domain.search import BROWSE, resolve_search
from crcfind.domain.value_types import EventType
from crcfind.errors import SubscriptionError
from crcfind.ports.feed import EventFeed
from crcfind.ports.indexer import IndexerClient

log = logging.getLogger(__name__)


class EventStream:
    """
    Engine API consumed by tables, graphs and filters.

    One logical stream at a time: `open(search)` starts a new generation,
    drops the cached pages, closes the old live subscription and opens a new
    one when the search allows watching. Pages are then pulled with
    `fetch_next_page()`.
    """

    def __init__(
        self,
        indexer: IndexerClient,
        feed: EventFeed | None = None,
        config: RangeConfig | None = None,
        *,
        watch: bool = True,
        on_live_event: Listener | None = None,
    ) -> None:
        self.indexer = indexer
        self.config = config or RangeConfig()
        self.watch = watch and feed is not None
        self.cache = EventCache()
        self.reconciler = LiveReconciler(feed, self.cache, listener=on_live_event) if feed is not None else None
        self.search: str | None = None
        self.query: ResolvedQuery = BROWSE
        self._paginator: EventPaginator | None = None
        self._resolved_start: dict[str | None, int] = {}

    # ---------- lifecycle -------------------------------------------------------

    async def open(self, search: str | None = None, *, initial_block: int | None = None) -> int:
        """Start a stream for `search`; returns its generation."""
        search = (search or "").strip() or None
        query = resolve_search(search)
        generation = self.cache.begin_stream()
        self._paginator = None
        if self.reconciler is not None:
            self.reconciler.close()
        self.search, self.query = search, query

        if initial_block is None:
            initial_block = self._resolved_start.get(search)
        if initial_block is None:
            head = await self.indexer.latest_block()
            if self.cache.generation != generation:
                return generation
            initial_block = max(0, head - self.config.default_block_range)

        self._paginator = EventPaginator(self.indexer, self.cache, query, initial_block, self.config,
                                         generation=generation)
        log.info("stream %d opened: mode=%s start_block=%d", generation, query.mode, initial_block)

        if self.watch and query.watch and self.reconciler is not None:
            try:
                await self.reconciler.open(query.address, generation)
            except SubscriptionError as e:
                log.error("failed to set up event subscription: %s", e)
        return generation

    async def set_search(self, search: str | None) -> int:
        return await self.open(search)

    async def refresh(self) -> int:
        """Reopen the current search from the last resolved start block."""
        return await self.open(self.search)

    def close(self) -> None:
        self.cache.begin_stream()
        self._paginator = None
        if self.reconciler is not None:
            self.reconciler.close()

    # ---------- paging ----------------------------------------------------------

    async def fetch_next_page(self) -> PageResult | None:
        pager = self._paginator
        if pager is None:
            return None
        page = await pager.fetch_next_page()
        if page is not None and pager.is_current():
            self._resolved_start[self.search] = page.final_start_block
        return page

    @property
    def has_more_events(self) -> bool:
        return self._paginator is not None and self._paginator.has_more_events

    @property
    def is_loading(self) -> bool:
        return self._paginator is not None and self._paginator.is_loading

    @property
    def is_loading_more(self) -> bool:
        return self._paginator is not None and self._paginator.is_loading_more

    @property
    def resolved_start_block(self) -> int | None:
        return self._paginator.resolved_start_block if self._paginator is not None else None

    # ---------- views -----------------------------------------------------------

    @property
    def events(self) -> list[Event]:
        return self.cache.events

    @property
    def event_types_amount(self) -> dict[EventType, int]:
        return self.cache.event_types_amount

    def processed(self, selected: Collection[EventType] = ALL_EVENTS) -> list[ProcessedEvent]:
        return process_events(self.events, frozenset(selected))
