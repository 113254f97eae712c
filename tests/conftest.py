from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from crcfind.domain.models import RawEventRecord, ResolvedQuery


def raw_event(tx: str, log_index: int, block: int, event: str = "CrcV2_Trust", **values: Any) -> RawEventRecord:
    vals = {
        "blockNumber": hex(block),
        "timestamp": hex(1_700_000_000 + block),
        "logIndex": hex(log_index),
        "transactionIndex": hex(0),
        "transactionHash": tx,
    }
    vals.update(values)
    return RawEventRecord.from_json({"event": event, "values": vals})


class FakeIndexer:
    """Serves records by exact (start, end) window; anything else is empty."""

    def __init__(self, windows: dict[tuple[int, int | None], list[RawEventRecord]] | None = None,
                 head: int = 1_000_000) -> None:
        self.windows = dict(windows or {})
        self.head = head
        self.calls: list[tuple[str, int, int | None]] = []
        self.fail_with: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def query_events(self, query: ResolvedQuery, start_block: int, end_block: int | None) -> list[RawEventRecord]:
        self.calls.append((query.mode, start_block, end_block))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        if query.is_filtered:
            return list(self.windows.get(("filtered", None), []))  # type: ignore[arg-type]
        return list(self.windows.get((start_block, end_block), []))

    async def latest_block(self) -> int:
        return self.head

    @property
    def starts(self) -> list[int]:
        return [s for _, s, _ in self.calls]


class FakeSubscription:
    def __init__(self, feed: "FakeFeed", address: str | None, on_event: Callable) -> None:
        self.feed = feed
        self.address = address
        self.on_event = on_event
        self.closed = False

    def unsubscribe(self) -> None:
        self.closed = True


class FakeFeed:
    def __init__(self) -> None:
        self.subscriptions: list[FakeSubscription] = []
        self.gate: asyncio.Event | None = None

    async def subscribe(self, address, on_event) -> FakeSubscription:
        if self.gate is not None:
            await self.gate.wait()
        sub = FakeSubscription(self, address, on_event)
        self.subscriptions.append(sub)
        return sub

    @property
    def active(self) -> list[FakeSubscription]:
        return [s for s in self.subscriptions if not s.closed]

    async def push(self, raw: RawEventRecord) -> None:
        for sub in self.active:
            await sub.on_event(raw)


@pytest.fixture
def make_raw():
    return raw_event


@pytest.fixture
def make_indexer():
    return FakeIndexer


@pytest.fixture
def indexer():
    return FakeIndexer()


@pytest.fixture
def feed():
    return FakeFeed()
