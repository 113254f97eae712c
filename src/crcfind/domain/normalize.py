from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from crcfind.domain.models import Event, RawEventRecord
from crcfind.domain.value_types import EventKey, EventType, TxHash
from crcfind.errors import NormalizationError


HEX_QUANTITY_RE = re.compile(r"^0x[0-9a-fA-F]+$")

# hex-encoded quantities decoded onto the canonical record
QUANTITY_FIELDS = {
    "blockNumber":      "block_number",
    "timestamp":        "timestamp",
    "logIndex":         "log_index",
    "transactionIndex": "transaction_index",
}
CORE_FIELDS = frozenset(QUANTITY_FIELDS) | {"transactionHash"}


def event_key(transaction_hash: TxHash, log_index: int) -> EventKey:
    return EventKey(f"{transaction_hash}-{log_index}")


def _hex_quantity(values: Mapping[str, Any], name: str, event: str) -> int:
    v = values.get(name)
    if v is None:
        raise NormalizationError(f"{event}: missing required field {name!r}")
    if not isinstance(v, str) or not HEX_QUANTITY_RE.fullmatch(v):
        raise NormalizationError(f"{event}: field {name!r} is not a hex quantity: {v!r}")
    return int(v, 16)


def _tx_hash(values: Mapping[str, Any], event: str) -> TxHash:
    v = values.get("transactionHash")
    if not isinstance(v, str) or not v:
        raise NormalizationError(f"{event}: missing required field 'transactionHash'")
    s = v.lower()
    return TxHash(s if s.startswith("0x") else "0x" + s)


def normalize_event(raw: RawEventRecord | Mapping[str, Any]) -> Event:
    """Decode one indexer record into a canonical Event.

    Raises NormalizationError when a required field is absent or a quantity is
    not hex; callers treat that as a failure of the whole batch.
    """
    if not isinstance(raw, RawEventRecord):
        raw = RawEventRecord.from_json(raw)
    if not raw.event:
        raise NormalizationError("record has no event type")

    vals = raw.values
    decoded = {attr: _hex_quantity(vals, name, raw.event) for name, attr in QUANTITY_FIELDS.items()}
    tx_hash = _tx_hash(vals, raw.event)
    extra = {k: v for k, v in vals.items() if k not in CORE_FIELDS}

    return Event(
        event=EventType(raw.event),
        transaction_hash=tx_hash,
        key=event_key(tx_hash, decoded["log_index"]),
        values=MappingProxyType(extra),
        **decoded,
    )


def normalize_page(records: Iterable[RawEventRecord | Mapping[str, Any]]) -> list[Event]:
    """All-or-nothing: the first bad record fails the page."""
    return [normalize_event(r) for r in records]
