from __future__ import annotations

import logging

from eth_utils import is_address, is_hex, to_checksum_address

from crcfind.domain.models import FilterPredicate, ResolvedQuery
from crcfind.domain.value_types import Address

log = logging.getLogger(__name__)

BROWSE = ResolvedQuery(mode="browse")


def _is_tx_hash(s: str) -> bool:
    return s.startswith("0x") and len(s) == 66 and is_hex(s)


def resolve_search(search: str | None) -> ResolvedQuery:
    """Map a free-text search term onto an indexer query shape.

    Unrecognized input degrades to browse mode.
    """
    s = (search or "").strip()
    if not s:
        return BROWSE
    if is_address(s):
        return ResolvedQuery(mode="address", address=Address(to_checksum_address(s)))
    if _is_tx_hash(s):
        return ResolvedQuery(
            mode="transaction",
            filters=(FilterPredicate(column="transactionHash", values=(s.lower(),)),),
        )
    if s.isascii() and s.isdigit():
        return ResolvedQuery(
            mode="block",
            filters=(FilterPredicate(column="blockNumber", values=(int(s, 10),)),),
        )
    log.warning("unrecognized search %r; falling back to browse mode", s)
    return BROWSE
