from __future__ import annotations
import asyncio, json, os, pyarrow as pa, pyarrow.parquet as pq
from typing import Iterable

from ..domain.models import Event
from ..ports.storage import EventSink

EVENTS_SCHEMA = pa.schema([
    pa.field("key",               pa.large_string()),
    pa.field("event",             pa.large_string()),
    pa.field("block_number",      pa.int64()),
    pa.field("timestamp",         pa.int64()),
    pa.field("transaction_index", pa.int32()),
    pa.field("log_index",         pa.int32()),
    pa.field("transaction_hash",  pa.large_string()),
    pa.field("values_json",       pa.large_string()),   # type-specific fields
])


def events_to_table(events: Iterable[Event]) -> pa.Table:
    evs = list(events)
    arrays = {
        "key":               pa.array([e.key for e in evs],               type=pa.large_string()),
        "event":             pa.array([e.event for e in evs],             type=pa.large_string()),
        "block_number":      pa.array([e.block_number for e in evs],      type=pa.int64()),
        "timestamp":         pa.array([e.timestamp for e in evs],         type=pa.int64()),
        "transaction_index": pa.array([e.transaction_index for e in evs], type=pa.int32()),
        "log_index":         pa.array([e.log_index for e in evs],         type=pa.int32()),
        "transaction_hash":  pa.array([e.transaction_hash for e in evs],  type=pa.large_string()),
        "values_json":       pa.array([json.dumps(dict(e.values), sort_keys=True, default=str) for e in evs],
                                      type=pa.large_string()),
    }
    table = pa.Table.from_pydict(arrays, schema=EVENTS_SCHEMA)
    if len(table) == 0:
        return table
    return table.sort_by([("block_number", "descending"),
                          ("transaction_index", "descending"),
                          ("log_index", "descending")])


class ParquetEventSink(EventSink):
    def __init__(self, path: str, codec: str = "zstd") -> None:
        self.path = path
        self.codec = codec
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    def _write(self, table: pa.Table) -> None:
        tmp = self.path + ".tmp"
        pq.write_table(table, tmp, compression=self.codec)
        os.replace(tmp, self.path)

    async def write_events(self, events: Iterable[Event]) -> str:
        table = events_to_table(events)
        await asyncio.to_thread(self._write, table)
        return self.path
