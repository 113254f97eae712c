import asyncio, logging
import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .adapters.feed_websockets import WebsocketEventFeed
from .adapters.indexer_httpx import HttpxIndexer
from .adapters.parquet_sink import ParquetEventSink
from .application.service import EventStream
from .config import (
    DEFAULT_BLOCK_RANGE, INDEXER_URL_ENV, MAX_BLOCK_RANGE, MAX_RETRY_COUNT,
    MIN_BLOCK_RANGE, RANGE_MULTIPLIER, WS_URL_ENV, RangeConfig,
)
from .domain.event_types import ALL_EVENTS, label_for
from .domain.grouping import ProcessedEvent
from .domain.models import Event
from .errors import CrcFindError

console = Console()


def _setup_logging(verbose: int) -> None:
    level = logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]",
                        handlers=[RichHandler(console=console, show_path=False)])


def _events_table(rows: list[ProcessedEvent], title: str) -> Table:
    table = Table(title=title, expand=True)
    table.add_column("block", justify="right")
    table.add_column("event")
    table.add_column("tx")
    table.add_column("from → to")
    table.add_column("sub", justify="right")
    for row in rows:
        ev = row.event
        parties = " → ".join(str(ev.get(f)) for f in ("from", "to") if ev.get(f))
        table.add_row(f"{ev.block_number:,}", label_for(ev.event), f"{ev.transaction_hash[:10]}…",
                      parties, str(len(row.sub_events)) if row.is_expandable else "")
    return table


def _histogram_table(counts: dict[str, int]) -> Table:
    table = Table(title="event types")
    table.add_column("type")
    table.add_column("count", justify="right")
    for t, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
        table.add_row(label_for(t), str(n))
    return table


def _run(coro):
    try:
        return asyncio.run(coro)
    except CrcFindError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("--rpc", "rpc_url", envvar=INDEXER_URL_ENV, required=True, help="Circles indexer RPC URL")
@click.option("--timeout", "timeout_s", type=int, default=20, show_default=True, help="HTTP timeout (s)")
@click.option("--range", "default_block_range", type=int, default=DEFAULT_BLOCK_RANGE, show_default=True,
              help="Initial window size in blocks")
@click.option("--min-range", "min_block_range", type=int, default=MIN_BLOCK_RANGE, show_default=True)
@click.option("--max-range", "max_block_range", type=int, default=MAX_BLOCK_RANGE, show_default=True)
@click.option("--multiplier", "range_multiplier", type=int, default=RANGE_MULTIPLIER, show_default=True,
              help="Window growth factor for empty ranges")
@click.option("--retries", "max_retry_count", type=int, default=MAX_RETRY_COUNT, show_default=True,
              help="Maximum window widenings per page")
@click.option("-v", "--verbose", count=True)
@click.pass_context
def cli(ctx, rpc_url, timeout_s, default_block_range, min_block_range, max_block_range,
        range_multiplier, max_retry_count, verbose):
    """Browse Circles activity events with adaptive range discovery."""
    _setup_logging(verbose)
    try:
        config = RangeConfig(default_block_range=default_block_range, min_block_range=min_block_range,
                             max_block_range=max_block_range, range_multiplier=range_multiplier,
                             max_retry_count=max_retry_count)
    except CrcFindError as e:
        raise click.BadParameter(str(e))
    ctx.obj = {"rpc_url": rpc_url, "timeout_s": timeout_s, "config": config}


@cli.command("head")
@click.pass_obj
def head_cmd(obj):
    """Print the latest block number."""
    async def main():
        indexer = HttpxIndexer(obj["rpc_url"], timeout_s=obj["timeout_s"])
        try:
            console.print(f"{await indexer.latest_block():,}")
        finally:
            await indexer.aclose()
    _run(main())


@cli.command("events")
@click.option("--search", default="", help="Address, transaction hash or block number")
@click.option("--pages", type=int, default=1, show_default=True, help="Pages to fetch")
@click.option("--from-block", type=int, default=None, help="Anchor block (default: head - range)")
@click.option("--type", "types", multiple=True, help="Only show these event types; repeat to OR")
@click.option("--parquet-out", type=str, default="", help="Optional path to write events (Parquet)")
@click.pass_obj
def events_cmd(obj, search, pages, from_block, types, parquet_out):
    """Fetch pages of events for a search and print them with the type histogram."""
    unknown = [t for t in types if t not in ALL_EVENTS]
    if unknown:
        raise click.BadParameter(f"unknown event type(s): {', '.join(unknown)}", param_hint="--type")

    async def main():
        indexer = HttpxIndexer(obj["rpc_url"], timeout_s=obj["timeout_s"])
        stream = EventStream(indexer, config=obj["config"], watch=False)
        try:
            await stream.open(search, initial_block=from_block)
            with console.status("[bold]discovering events[/]"):
                for _ in range(pages):
                    if not stream.has_more_events:
                        break
                    await stream.fetch_next_page()
            rows = stream.processed(types or ALL_EVENTS)
            console.print(_events_table(rows, f"{len(stream.events)} events • from block {stream.resolved_start_block}"))
            console.print(_histogram_table(stream.event_types_amount))
            if not stream.has_more_events:
                console.print("[dim]no more events[/]")
            if parquet_out:
                path = await ParquetEventSink(parquet_out).write_events(stream.events)
                console.print(f"💾 wrote {len(stream.events)} events → {path}")
        finally:
            stream.close()
            await indexer.aclose()
    _run(main())


@cli.command("watch")
@click.option("--search", default="", help="Address to watch (empty: everything)")
@click.option("--ws", "ws_url", envvar=WS_URL_ENV, required=True, help="Circles websocket URL")
@click.pass_obj
def watch_cmd(obj, search, ws_url):
    """Load the most recent page, then print live events until interrupted."""
    def on_live(ev: Event) -> None:
        console.print(f"[green]+[/] {ev.block_number:,}  {label_for(ev.event):<28} {ev.key}")

    async def main():
        indexer = HttpxIndexer(obj["rpc_url"], timeout_s=obj["timeout_s"])
        stream = EventStream(indexer, WebsocketEventFeed(ws_url), obj["config"], on_live_event=on_live)
        try:
            await stream.open(search)
            if not stream.query.watch:
                raise click.UsageError("only addresses (or an empty search) can be watched")
            await stream.fetch_next_page()
            console.print(_events_table(stream.processed(), f"{len(stream.events)} recent events"))
            console.print("[bold]watching[/] (ctrl-c to stop)")
            while True:
                await asyncio.sleep(3600)
        finally:
            stream.close()
            await indexer.aclose()

    try:
        _run(main())
    except KeyboardInterrupt:
        console.print("[bold]stopped[/]")


if __name__ == "__main__":
    cli()
