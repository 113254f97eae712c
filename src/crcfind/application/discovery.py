from __future__ import annotations

import logging
from typing import Callable

from crcfind.config import RangeConfig
from crcfind.domain.histogram import count_types
from crcfind.domain.models import PageResult, RangeWindow, ResolvedQuery
from crcfind.domain.normalize import normalize_page
from crcfind.ports.indexer import IndexerClient

log = logging.getLogger(__name__)


def _always() -> bool:
    return True


async def discover_page(
    indexer: IndexerClient,
    query: ResolvedQuery,
    window: RangeWindow,
    config: RangeConfig,
    *,
    is_current: Callable[[], bool] = _always,
) -> PageResult | None:
    """
    Find the nearest non-empty block window at or below `window.start_block`.

    An empty window is widened backward from the original anchor: the first
    widening keeps the size, later ones multiply it by `range_multiplier`
    (capped at `max_block_range`), and each new window ends where the last one
    started. Gives up with an empty page after `max_retry_count` attempts or at
    genesis. Transport and normalization errors propagate.

    Returns None when `is_current()` turns False mid-search; the caller drops
    the result.
    """
    if query.is_filtered:
        # filtered queries are global: one round trip, no cursor
        if not is_current():
            return None
        records = await indexer.query_events(query, window.start_block, window.end_block)
        if not is_current():
            return None
        events = normalize_page(records)
        return PageResult(tuple(events), count_types(events), window.range_size, window.start_block, None)

    anchor = window.start_block
    start, end = window.start_block, window.end_block
    range_size = config.clamp(window.range_size)
    attempt = 0

    while True:
        if attempt >= config.max_retry_count:
            log.debug("retry budget exhausted at [%s, %s]", start, end)
            return PageResult.empty(range_size, start)
        if not is_current():
            return None

        records = await indexer.query_events(query, start, end)
        if not is_current():
            return None
        events = normalize_page(records)
        log.debug("%s - %s - %d", start, end, len(events))

        if events:
            next_start = max(0, start - range_size)
            cursor = RangeWindow(next_start, start, range_size) if next_start > 0 else None
            return PageResult(tuple(events), count_types(events), range_size, start, cursor)

        next_range = min(range_size if attempt == 0 else range_size * config.range_multiplier,
                         config.max_block_range)
        next_start = max(0, anchor - next_range)
        if next_start <= 0:
            log.debug("reached genesis with no events below %s", anchor)
            return PageResult.empty(next_range, next_start)

        log.debug("expanded range to %d blocks (try %d)", next_range, attempt)
        start, end, range_size = next_start, start, next_range
        attempt += 1
