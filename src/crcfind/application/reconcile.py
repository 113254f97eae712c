from __future__ import annotations

import logging
from typing import Callable

from crcfind.application.cache import EventCache
from crcfind.domain.models import Event, RawEventRecord
from crcfind.domain.normalize import normalize_event
from crcfind.domain.value_types import Address
from crcfind.errors import NormalizationError
from crcfind.ports.feed import EventFeed, Subscription

log = logging.getLogger(__name__)

Listener = Callable[[Event], None]


class LiveReconciler:
    """Merges pushed events into the newest cached page, at most once per key."""

    def __init__(self, feed: EventFeed, cache: EventCache, *, listener: Listener | None = None) -> None:
        self.feed = feed
        self.cache = cache
        self.listener = listener
        self._handle: Subscription | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    async def apply(self, raw: RawEventRecord, generation: int) -> bool:
        """Returns True when the event was new to the stream."""
        try:
            ev = normalize_event(raw)
        except NormalizationError as e:
            log.warning("dropping malformed live event: %s", e)
            return False
        added = await self.cache.prepend_live(ev, generation)
        if added:
            log.debug("live event %s (%s)", ev.key, ev.event)
            if self.listener is not None:
                self.listener(ev)
        return added

    async def open(self, address: Address | None, generation: int) -> Subscription | None:
        """
        Replace the current subscription with one bound to `generation`.

        If the stream is superseded while the feed is still connecting, the new
        subscription is closed on arrival and None is returned.
        """
        self.close()

        async def on_event(raw: RawEventRecord) -> None:
            if self.cache.generation != generation:
                return
            await self.apply(raw, generation)

        handle = await self.feed.subscribe(address, on_event)
        if self.cache.generation != generation:
            log.info("subscription for superseded stream %d closed on arrival", generation)
            handle.unsubscribe()
            return None
        self.close()
        self._handle = handle
        return handle

    def close(self) -> None:
        if self._handle is not None:
            handle, self._handle = self._handle, None
            handle.unsubscribe()
