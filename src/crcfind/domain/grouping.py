from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Iterable, Sequence

from eth_utils import is_address

from .event_types import ALL_EVENTS, SUMMARY_EVENTS
from .models import Event
from .value_types import EventType, Role

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

AVATAR_FIELDS = (
    "from", "to", "canSendTo", "user", "avatar", "truster", "trustee",
    "operator", "human", "organization", "group", "inviter", "invited", "account",
    # safe
    "fallbackHandler", "initializer", "owner", "initiator", "safeAddress", "proxy", "singleton",
)
SENDER_FIELDS   = frozenset({"from", "truster", "inviter"})
RECEIVER_FIELDS = frozenset({"to", "trustee", "invited"})


@dataclass(slots=True, frozen=True)
class ProcessedEvent:
    event: Event
    is_expandable: bool = False
    sub_events: tuple[Event, ...] = ()


@dataclass(slots=True, frozen=True)
class Participant:
    address: str
    role: Role


def process_events(events: Iterable[Event], selected: Collection[EventType]) -> list[ProcessedEvent]:
    """
    Keep events of the selected types and group them by transaction.
    A transaction carrying a transfer-summary event collapses into one
    expandable row with the remaining events of that transaction beneath it;
    other transactions yield one row per event. Transaction order follows
    first appearance in `events`.
    """
    by_tx: dict[str, list[Event]] = {}
    for ev in events:
        if ev.event in selected:
            by_tx.setdefault(ev.transaction_hash, []).append(ev)

    out: list[ProcessedEvent] = []
    for group in by_tx.values():
        summary = next((e for e in group if e.event in SUMMARY_EVENTS), None)
        if summary is not None:
            subs = tuple(e for e in group if e is not summary)
            out.append(ProcessedEvent(summary, is_expandable=True, sub_events=subs))
        else:
            out.extend(ProcessedEvent(e) for e in group)
    return out


def toggle_event_type(
    selected: frozenset[EventType],
    event_type: EventType,
    universe: Sequence[EventType] = ALL_EVENTS,
) -> frozenset[EventType]:
    """Filter toggle: all -> only this one; only this one -> all; else flip it."""
    everything = frozenset(universe)
    if selected >= everything:
        return frozenset({event_type})
    if selected == {event_type}:
        return everything
    return selected - {event_type} if event_type in selected else selected | {event_type}


def transaction_participants(events: Iterable[Event]) -> list[Participant]:
    roles: dict[str, set[str]] = {}
    for ev in events:
        for name in AVATAR_FIELDS:
            addr = ev.get(name)
            if not isinstance(addr, str) or not is_address(addr) or addr.lower() == ZERO_ADDRESS:
                continue
            if name in SENDER_FIELDS:
                role = "sender"
            elif name in RECEIVER_FIELDS:
                role = "receiver"
            else:
                role = "intermediate"
            roles.setdefault(addr, set()).add(role)

    out: list[Participant] = []
    for addr, rs in roles.items():
        primary: Role = "sender" if "sender" in rs else "receiver" if "receiver" in rs else "intermediate"
        out.append(Participant(addr, primary))
    return out
