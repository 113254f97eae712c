from __future__ import annotations
import itertools, logging, httpx
from typing import Any
from ..domain.models import RawEventRecord, ResolvedQuery
from ..errors import NormalizationError, TransportError
from ..ports.indexer import IndexerClient

log = logging.getLogger(__name__)


class HttpxIndexer(IndexerClient):
    def __init__(
        self,
        rpc_url: str,
        timeout_s: int = 20,
        max_conn: int = 16,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._ids = itertools.count(1)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max(1, max_conn//2)),
        )

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            r = await self.client.post(self.rpc_url, json=payload)
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(f"{method}: HTTP {e.response.status_code}", code=e.response.status_code) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method}: {type(e).__name__}: {e}") from e
        except ValueError as e:  # body is not JSON
            raise TransportError(f"{method}: invalid JSON response") from e

        if not isinstance(data, dict):
            raise TransportError(f"{method}: unexpected response shape {type(data).__name__}")
        if "error" in data:
            err = data["error"]
            if isinstance(err, dict):
                raise TransportError(f"{method} RPC error: {err.get('message')}", code=err.get("code"))
            raise TransportError(f"{method} RPC error: {err}")
        if "result" not in data:
            raise TransportError(f"{method}: RPC response missing result")
        return data["result"]

    async def latest_block(self) -> int:
        res = await self._call("eth_blockNumber", [])
        try:
            return int(res, 16)
        except (TypeError, ValueError) as e:
            raise TransportError(f"eth_blockNumber: bad result {res!r}") from e

    async def query_events(self, query: ResolvedQuery, start_block: int, end_block: int | None) -> list[RawEventRecord]:
        res = await self._call("circles_events", query.params(start_block, end_block))
        if not isinstance(res, list):
            raise TransportError(f"circles_events: expected a list, got {type(res).__name__}")
        bad = next((rec for rec in res if not isinstance(rec, dict)), None)
        if bad is not None:
            raise NormalizationError(f"circles_events: record is not an object: {bad!r}")
        out = [RawEventRecord.from_json(rec) for rec in res]
        log.debug("circles_events %s [%s, %s] -> %d records", query.mode, start_block, end_block, len(out))
        return out

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
