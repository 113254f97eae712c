from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping
from .value_types import Address, EventKey, EventType, SearchMode, TxHash


@dataclass(slots=True, frozen=True)
class RawEventRecord:
    """Indexer-native shape: an event type tag plus hex-encoded values."""
    event: EventType
    values: Mapping[str, Any]

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "RawEventRecord":
        return cls(event=EventType(str(obj.get("event") or "")),
                   values=MappingProxyType(dict(obj.get("values") or {})))


@dataclass(slots=True, frozen=True)
class Event:
    event: EventType
    block_number: int
    timestamp: int
    log_index: int
    transaction_index: int
    transaction_hash: TxHash
    key: EventKey
    values: Mapping[str, Any] = field(default_factory=dict)   # type-specific fields

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def as_dict(self) -> dict[str, Any]:
        """Flat projection for display/export: type-specific values at top level."""
        out = dict(self.values)
        out.update(
            event=self.event,
            blockNumber=self.block_number,
            timestamp=self.timestamp,
            logIndex=self.log_index,
            transactionIndex=self.transaction_index,
            transactionHash=self.transaction_hash,
            key=self.key,
        )
        return out


@dataclass(slots=True, frozen=True)
class RangeWindow:
    start_block: int
    end_block: int | None          # None -> up to chain head
    range_size: int

    def span(self) -> int | None:
        return None if self.end_block is None else self.end_block - self.start_block + 1


@dataclass(slots=True, frozen=True)
class PageResult:
    events: tuple[Event, ...]
    event_types_amount: Mapping[EventType, int]
    final_range_size: int
    final_start_block: int
    next_cursor: RangeWindow | None = None

    @classmethod
    def empty(cls, range_size: int, start_block: int) -> "PageResult":
        return cls(events=(), event_types_amount={}, final_range_size=range_size,
                   final_start_block=start_block, next_cursor=None)


@dataclass(slots=True, frozen=True)
class FilterPredicate:
    column: str                    # "transactionHash" | "blockNumber"
    values: tuple[Any, ...]
    filter_type: str = "In"

    def to_json(self) -> dict[str, Any]:
        return {"Type": "FilterPredicate", "FilterType": self.filter_type,
                "Column": self.column, "Value": list(self.values)}


@dataclass(slots=True, frozen=True)
class ResolvedQuery:
    mode: SearchMode
    address: Address | None = None
    filters: tuple[FilterPredicate, ...] = ()

    @property
    def is_filtered(self) -> bool:
        return bool(self.filters)

    @property
    def watch(self) -> bool:
        """Live subscriptions only exist for browse and address streams."""
        return self.mode in ("browse", "address")

    def params(self, start_block: int, end_block: int | None) -> list[Any]:
        if self.filters:
            # the indexer ignores the block range when filters are present
            return [None, 0, None, None, [f.to_json() for f in self.filters]]
        return [self.address, start_block, end_block]
