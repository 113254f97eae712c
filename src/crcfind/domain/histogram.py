from __future__ import annotations
from typing import Iterable, Mapping

from .models import Event
from .value_types import EventType


def count_types(events: Iterable[Event]) -> dict[EventType, int]:
    out: dict[EventType, int] = {}
    for ev in events:
        out[ev.event] = out.get(ev.event, 0) + 1
    return out


def merge_counts(existing: Mapping[EventType, int], local: Mapping[EventType, int]) -> dict[EventType, int]:
    """Additive merge; counts only ever grow."""
    out = dict(existing)
    for t, n in local.items():
        if n < 0:
            raise ValueError(f"negative count for {t}: {n}")
        out[t] = out.get(t, 0) + n
    return out


def merge_all(pages: Iterable[Mapping[EventType, int]]) -> dict[EventType, int]:
    out: dict[EventType, int] = {}
    for local in pages:
        out = merge_counts(out, local)
    return out
