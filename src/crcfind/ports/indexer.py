# crcfind/ports/indexer.py
from __future__ import annotations

from typing import Protocol
from ..domain.models import RawEventRecord, ResolvedQuery


class IndexerClient(Protocol):
    """Port for the range-bounded events indexer (circles_events JSON-RPC)."""

    async def query_events(
        self,
        query: ResolvedQuery,
        start_block: int,
        end_block: int | None,
    ) -> list[RawEventRecord]:
        """Return raw records for [start_block, end_block] (end None = head) under `query`."""

    async def latest_block(self) -> int:
        """Return the chain head block number."""
