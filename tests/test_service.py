from __future__ import annotations

import asyncio

import pytest

from crcfind.application.service import EventStream
from crcfind.config import RangeConfig
from crcfind.domain.event_types import ALL_EVENTS

pytestmark = pytest.mark.asyncio

A = "0x1111111111111111111111111111111111111111"
B = "0x2222222222222222222222222222222222222222"
CFG = RangeConfig(default_block_range=1000, range_multiplier=2)


async def test_open_seeds_from_head(make_indexer, feed):
    indexer = make_indexer(head=50_000)
    stream = EventStream(indexer, feed, CFG)
    await stream.open()
    assert stream.has_more_events
    await stream.fetch_next_page()
    assert indexer.calls[0] == ("browse", 49_000, None)


async def test_filter_switch_leaves_one_subscription(make_indexer, make_raw, feed):
    indexer = make_indexer(head=50_000)
    stream = EventStream(indexer, feed, CFG)
    await stream.open(A)
    sub_a = feed.active[0]
    assert sub_a.address.lower() == A

    await stream.set_search(B)
    assert [s.address.lower() for s in feed.active] == [B]
    assert sub_a.closed

    # a late delivery on A's callback must not reach B's cache
    await sub_a.on_event(make_raw("0xa", 0, 49_999))
    assert stream.events == []
    await feed.push(make_raw("0xb", 0, 49_999))
    await stream.fetch_next_page()
    assert [e.key for e in stream.events] == ["0xb-0"]


async def test_filter_switch_resets_histogram(make_indexer, make_raw, feed):
    indexer = make_indexer({(49_000, None): [make_raw("0x1", 0, 49_500)]}, head=50_000)
    stream = EventStream(indexer, feed, CFG)
    await stream.open()
    await stream.fetch_next_page()
    assert stream.event_types_amount == {"CrcV2_Trust": 1}

    await stream.set_search(A)
    assert stream.event_types_amount == {}
    assert stream.events == []


async def test_hash_search_does_not_watch(make_indexer, feed):
    stream = EventStream(make_indexer(), feed, CFG)
    await stream.open("0x" + "ef" * 32)
    assert feed.subscriptions == []
    await stream.fetch_next_page()
    assert not stream.has_more_events


async def test_watch_disabled_never_subscribes(make_indexer, feed):
    stream = EventStream(make_indexer(), feed, CFG, watch=False)
    await stream.open()
    assert feed.subscriptions == []


async def test_refresh_reseeds_from_resolved_start(make_indexer, make_raw, feed):
    indexer = make_indexer({
        (48_000, 49_000): [make_raw("0x1", 0, 48_500)],
        (47_000, 48_000): [make_raw("0x2", 0, 47_500)],
    }, head=50_000)
    stream = EventStream(indexer, feed, CFG)
    await stream.open()
    await stream.fetch_next_page()
    await stream.fetch_next_page()
    assert stream.resolved_start_block == 47_000

    indexer.calls.clear()
    await stream.refresh()
    await stream.fetch_next_page()
    assert indexer.calls[0] == ("browse", 47_000, None)


async def test_switch_during_fetch_discards_old_page(make_indexer, make_raw, feed):
    indexer = make_indexer({(49_000, None): [make_raw("0x1", 0, 49_500)]}, head=50_000)
    stream = EventStream(indexer, feed, CFG)
    await stream.open()
    indexer.gate = asyncio.Event()
    fetch = asyncio.create_task(stream.fetch_next_page())
    await asyncio.sleep(0)
    assert stream.is_loading

    indexer.gate.set()
    await stream.set_search(A)
    assert await fetch is None
    assert stream.events == []
    assert not stream.is_loading


async def test_processed_view_and_close(make_indexer, make_raw, feed):
    indexer = make_indexer({(49_000, None): [
        make_raw("0x1", 0, 49_500, event="CrcV2_TransferSingle"),
        make_raw("0x1", 1, 49_500, event="CrcV2_TransferSummary"),
    ]}, head=50_000)
    stream = EventStream(indexer, feed, CFG)
    await stream.open()
    await stream.fetch_next_page()
    rows = stream.processed(ALL_EVENTS)
    assert len(rows) == 1 and rows[0].is_expandable

    stream.close()
    assert feed.active == []
    assert stream.events == []
    assert not stream.has_more_events


async def test_events_are_newest_first_for_ascending_indexer_output(make_indexer, make_raw, feed):
    indexer = make_indexer({(49_000, None): [make_raw("0x1", 0, 49_100), make_raw("0x2", 0, 49_900)]}, head=50_000)
    stream = EventStream(indexer, feed, CFG)
    await stream.open()
    await stream.fetch_next_page()
    await feed.push(make_raw("0x3", 0, 50_001))

    assert [(e.key, e.block_number) for e in stream.events] == [
        ("0x3-0", 50_001), ("0x2-0", 49_900), ("0x1-0", 49_100)]
