from __future__ import annotations

import pytest

from crcfind.application.discovery import discover_page
from crcfind.config import RangeConfig
from crcfind.domain.models import RangeWindow
from crcfind.domain.search import BROWSE, resolve_search
from crcfind.errors import NormalizationError, TransportError

pytestmark = pytest.mark.asyncio

CFG2 = RangeConfig(default_block_range=1000, range_multiplier=2, max_retry_count=5)


def seed(block: int, size: int = 1000) -> RangeWindow:
    return RangeWindow(block, None, size)


async def test_empty_recent_history_scenario(make_indexer, make_raw):
    hits = [make_raw(f"0x{i}", 0, 997_000 + i) for i in range(3)]
    indexer = make_indexer({(996_000, 998_000): hits})

    page = await discover_page(indexer, BROWSE, seed(1_000_000), CFG2)

    assert indexer.calls == [
        ("browse", 1_000_000, None),
        ("browse", 999_000, 1_000_000),
        ("browse", 998_000, 999_000),
        ("browse", 996_000, 998_000),
    ]
    assert len(page.events) == 3
    assert page.final_start_block == 996_000
    assert page.final_range_size == 4000
    assert page.next_cursor == RangeWindow(992_000, 996_000, 4000)
    assert page.event_types_amount == {"CrcV2_Trust": 3}


async def test_backward_anchoring(make_indexer):
    indexer = make_indexer()
    cfg = RangeConfig(default_block_range=100, range_multiplier=2, max_retry_count=3)

    page = await discover_page(indexer, BROWSE, seed(10_000, 100), cfg)

    assert indexer.starts == [10_000, 9_900, 9_800]
    assert all(s <= 10_000 for s in indexer.starts)
    assert page.events == ()
    assert page.next_cursor is None


async def test_windows_are_contiguous_and_grow_from_anchor(make_indexer):
    indexer = make_indexer()
    cfg = RangeConfig(default_block_range=10, range_multiplier=7, max_retry_count=5)

    await discover_page(indexer, BROWSE, seed(1_000_000, 10), cfg)

    assert [(s, e) for _, s, e in indexer.calls] == [
        (1_000_000, None),
        (999_990, 1_000_000),
        (999_930, 999_990),
        (999_510, 999_930),
        (996_570, 999_510),
    ]


async def test_terminates_within_retry_budget(make_indexer):
    indexer = make_indexer()
    page = await discover_page(indexer, BROWSE, seed(50_000_000), RangeConfig(max_retry_count=4))
    assert len(indexer.calls) == 4
    assert page.events == ()
    assert page.next_cursor is None


async def test_stops_at_genesis(make_indexer):
    indexer = make_indexer()
    page = await discover_page(indexer, BROWSE, seed(2500), CFG2)
    # [2500, head], [1500, 2500], [500, 1500]; the next window would start at 0
    assert indexer.starts == [2500, 1500, 500]
    assert page.events == ()
    assert page.final_start_block == 0
    assert page.next_cursor is None


async def test_range_growth_is_capped(make_indexer):
    indexer = make_indexer()
    cfg = RangeConfig(default_block_range=1000, max_block_range=3000, range_multiplier=10, max_retry_count=4)
    await discover_page(indexer, BROWSE, seed(100_000), cfg)
    assert indexer.starts == [100_000, 99_000, 97_000, 97_000]


async def test_hit_near_genesis_has_no_cursor(make_indexer, make_raw):
    indexer = make_indexer({(800, None): [make_raw("0xa", 0, 900)]})
    page = await discover_page(indexer, BROWSE, seed(800), CFG2)
    assert page.final_start_block == 800
    assert page.next_cursor is None


async def test_transport_error_propagates_without_retry(make_indexer):
    indexer = make_indexer()
    indexer.fail_with = TransportError("boom")
    with pytest.raises(TransportError):
        await discover_page(indexer, BROWSE, seed(1_000_000), CFG2)
    assert len(indexer.calls) == 1


async def test_normalization_error_fails_the_page(make_indexer, make_raw):
    indexer = make_indexer({(1_000_000, None): [make_raw("0xa", 0, 1), make_raw("0xb", 0, 1, logIndex="x")]})
    with pytest.raises(NormalizationError):
        await discover_page(indexer, BROWSE, seed(1_000_000), CFG2)


async def test_filtered_query_is_a_single_global_call(make_indexer, make_raw):
    tx = "0x" + "cd" * 32
    indexer = make_indexer({("filtered", None): [make_raw(tx, 0, 5), make_raw(tx, 1, 5)]})
    page = await discover_page(indexer, resolve_search(tx), seed(1_000_000), CFG2)
    assert len(indexer.calls) == 1
    assert len(page.events) == 2
    assert page.next_cursor is None


async def test_filtered_query_with_no_match_is_empty(make_indexer):
    indexer = make_indexer()
    page = await discover_page(indexer, resolve_search("123"), seed(1_000_000), CFG2)
    assert len(indexer.calls) == 1
    assert page.events == ()


async def test_superseded_search_stops_and_discards(make_indexer):
    indexer = make_indexer()
    live = iter([True, True, True, False])
    page = await discover_page(indexer, BROWSE, seed(1_000_000), CFG2, is_current=lambda: next(live, False))
    assert page is None
    assert len(indexer.calls) == 2
