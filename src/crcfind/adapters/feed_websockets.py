from __future__ import annotations
import asyncio, contextlib, json, logging
from typing import Any, Callable

import websockets
from websockets.exceptions import WebSocketException

from ..domain.models import RawEventRecord
from ..domain.value_types import Address
from ..errors import SubscriptionError
from ..ports.feed import EventFeed, OnEvent, Subscription

log = logging.getLogger(__name__)


def build_subscribe_payload(address: Address | None, req_id: int = 1) -> dict[str, Any]:
    # the circles subscription takes its filter as a JSON-encoded string
    flt = json.dumps({"address": address}) if address else "{}"
    return {"jsonrpc": "2.0", "id": req_id, "method": "eth_subscribe", "params": ["circles", flt]}


def parse_notification(message: str | bytes) -> list[RawEventRecord]:
    """Raw records carried by one eth_subscription notification; [] for anything else."""
    data = json.loads(message)
    if not isinstance(data, dict) or data.get("method") != "eth_subscription":
        return []
    result = (data.get("params") or {}).get("result")
    if isinstance(result, dict):
        result = [result]
    if not isinstance(result, list):
        return []
    return [RawEventRecord.from_json(r) for r in result if isinstance(r, dict)]


class WebsocketSubscription(Subscription):
    def __init__(self) -> None:
        self.task: asyncio.Task[None] | None = None
        self.closed = False

    def unsubscribe(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.task is not None and not self.task.done():
            self.task.cancel()

    def _finished(self, task: asyncio.Task[None]) -> None:
        self.closed = True
        if not task.cancelled() and task.exception() is not None:
            log.error("circles subscription ended: %r", task.exception())


class WebsocketEventFeed(EventFeed):
    """
    Live events over a websocket `eth_subscribe("circles", ...)`.

    subscribe() returns once the server confirmed the subscription; after that
    the connection is re-established with exponential backoff if it drops.
    """
    def __init__(
        self,
        ws_url: str,
        *,
        ping_interval: float = 20.0,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
        confirm_timeout_s: float = 15.0,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.ws_url = ws_url
        self.ping_interval = ping_interval
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.confirm_timeout_s = confirm_timeout_s
        self._connect = connect

    async def subscribe(self, address: Address | None, on_event: OnEvent) -> Subscription:
        sub = WebsocketSubscription()
        ready: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        sub.task = asyncio.create_task(self._run(sub, address, on_event, ready))
        sub.task.add_done_callback(sub._finished)
        try:
            sub_id = await asyncio.wait_for(asyncio.shield(ready), timeout=self.confirm_timeout_s)
        except asyncio.TimeoutError as e:
            sub.unsubscribe()
            raise SubscriptionError(f"eth_subscribe not confirmed within {self.confirm_timeout_s}s") from e
        except BaseException:
            sub.unsubscribe()
            raise
        log.info("subscribed to circles events (address=%s, id=%s)", address, sub_id)
        return sub

    async def _confirm(self, ws: Any, address: Address | None) -> str:
        await ws.send(json.dumps(build_subscribe_payload(address)))
        while True:
            resp = json.loads(await ws.recv())
            if not isinstance(resp, dict) or resp.get("id") != 1:
                continue        # notifications ahead of the confirmation are skipped
            if "error" in resp:
                raise SubscriptionError(f"eth_subscribe rejected: {resp['error']}")
            return str(resp.get("result"))

    async def _run(self, sub: WebsocketSubscription, address: Address | None, on_event: OnEvent,
                   ready: asyncio.Future[str]) -> None:
        delay = self.reconnect_delay
        while not sub.closed:
            try:
                async with self._connect(self.ws_url, ping_interval=self.ping_interval) as ws:
                    sub_id = await self._confirm(ws, address)
                    if not ready.done():
                        ready.set_result(sub_id)
                    delay = self.reconnect_delay
                    try:
                        async for message in ws:
                            await self._dispatch(sub, message, on_event)
                    except asyncio.CancelledError:
                        with contextlib.suppress(Exception):
                            await ws.send(json.dumps({"jsonrpc": "2.0", "id": 2,
                                                      "method": "eth_unsubscribe", "params": [sub_id]}))
                        raise
            except asyncio.CancelledError:
                raise
            except (WebSocketException, OSError, SubscriptionError, ValueError) as e:
                if not ready.done():
                    ready.set_exception(e if isinstance(e, SubscriptionError)
                                        else SubscriptionError(f"{type(e).__name__}: {e}"))
                    return
                if sub.closed:
                    return
                log.warning("circles subscription dropped (%s); reconnecting in %.1fs", e, delay)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_reconnect_delay)

    async def _dispatch(self, sub: WebsocketSubscription, message: str | bytes, on_event: OnEvent) -> None:
        try:
            records = parse_notification(message)
        except json.JSONDecodeError as e:
            log.warning("invalid JSON on circles subscription: %s", e)
            return
        for rec in records:
            if sub.closed:
                return
            try:
                await on_event(rec)
            except Exception:
                log.exception("circles event handler failed")
