from __future__ import annotations

import logging

from crcfind.application.cache import EventCache
from crcfind.application.discovery import discover_page
from crcfind.config import RangeConfig
from crcfind.domain.models import PageResult, RangeWindow, ResolvedQuery
from crcfind.errors import CrcFindError
from crcfind.ports.indexer import IndexerClient

log = logging.getLogger(__name__)


class EventPaginator:
    """Page-by-page cursor over the discovery search for one stream generation."""

    def __init__(
        self,
        indexer: IndexerClient,
        cache: EventCache,
        query: ResolvedQuery,
        initial_block: int,
        config: RangeConfig,
        *,
        generation: int,
    ) -> None:
        self.indexer = indexer
        self.cache = cache
        self.query = query
        self.config = config
        self.generation = generation
        self.seed = RangeWindow(max(0, initial_block), None, config.clamp(config.default_block_range))
        self.resolved_start_block: int | None = None
        self.pages_fetched = 0
        self._cursor: RangeWindow | None = self.seed
        self._in_flight = False

    def is_current(self) -> bool:
        return self.cache.generation == self.generation

    @property
    def cursor(self) -> RangeWindow | None:
        return self._cursor

    @property
    def has_more_events(self) -> bool:
        return self._cursor is not None

    @property
    def is_loading(self) -> bool:
        return self._in_flight and self.pages_fetched == 0

    @property
    def is_loading_more(self) -> bool:
        return self._in_flight and self.pages_fetched > 0

    async def fetch_next_page(self) -> PageResult | None:
        """
        Resolve and commit the page under the current cursor.

        No-op (returns None) while another fetch is in flight, once history is
        exhausted, or when the stream was superseded. On error the cursor is
        left in place so the same page can be fetched again.
        """
        if self._in_flight or self._cursor is None or not self.is_current():
            return None

        cursor = self._cursor
        self._in_flight = True
        try:
            page = await discover_page(self.indexer, self.query, cursor, self.config,
                                       is_current=self.is_current)
            if page is None:
                log.info("discarding page for superseded stream (generation %d)", self.generation)
                return None
            committed = await self.cache.append_page(page, self.generation)
        except CrcFindError as e:
            log.warning("page fetch failed at [%s, %s]: %s", cursor.start_block, cursor.end_block, e)
            raise
        finally:
            self._in_flight = False

        if committed is None:
            return None
        self._cursor = committed.next_cursor
        self.pages_fetched += 1
        self.resolved_start_block = committed.final_start_block
        log.debug("page %d committed: %d events, start=%d, more=%s", self.pages_fetched,
                  len(committed.events), committed.final_start_block, self.has_more_events)
        return committed
