import asyncio
import logging
import signal
from pathlib import Path

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler

from logtap.abi_events import make_registry_from_abi
from logtap.clients.poller import HeadPoller, LogPoller
from logtap.clients.rpc import RPC, BlockSource
from logtap.core.config import RangeFetchConfig, SubscribeConfig
from logtap.core.errors import LogtapError
from logtap.decoding.registries import (
    make_erc20_registry,
    make_erc721_registry,
    make_weth_registry,
)
from logtap.decoding.registry_builder import make_registry, merge_registries
from logtap.decoding.specs import EventRegistry
from logtap.fetching.range_fetcher import RangeFetcher
from logtap.presentation.console import ConsoleSink
from logtap.storage.manifest import LiveManifest
from logtap.storage.shards import ParquetEventSink
from logtap.subscription.multiplexer import HeadMultiplexer, SubscriptionMultiplexer
from logtap.subscription.stream import HeadSubscription, LogSubscription

console = Console()
logger = logging.getLogger("logtap")

STANDARDS = {
    "erc20": make_erc20_registry,
    "erc721": make_erc721_registry,
    "weth": make_weth_registry,
}


def _install_signal_handlers(event: asyncio.Event) -> None:
    """SIGINT/SIGTERM set `event` instead of raising KeyboardInterrupt."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, event.set)
        except (NotImplementedError, RuntimeError) as e:
            logger.debug("signal handler for %s not installed: %s", sig.name, e)


def _build_registry(abi: str | None, events: tuple[str, ...], standards: tuple[str, ...]) -> EventRegistry:
    parts: list[EventRegistry] = [STANDARDS[s]() for s in standards]
    if abi:
        parts.append(make_registry_from_abi(Path(abi)))
    if events:
        parts.append(make_registry(events))
    if not parts:
        parts.append(make_erc20_registry())
    return merge_registries(*parts)


def _run(coro) -> object:
    """Run a coroutine, mapping logtap errors to click errors."""
    try:
        return asyncio.run(coro)
    except (LogtapError, httpx.HTTPError) as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("-v", "--verbose", count=True, help="-v for INFO, -vv for DEBUG")
def cli(verbose: int) -> None:
    """logtap: decode live contract events, follow new blocks and scan block ranges."""
    level = logging.WARNING - 10 * min(verbose, 2)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@cli.command("subscribe-logs")
@click.option("--rpc", required=True, envvar=["ETH_WS_URL", "ETH_RPC_URL"], help="RPC endpoint URL")
@click.option("--contract", required=True, help="Emitter contract address")
@click.option("--abi", type=click.Path(exists=True, dir_okay=False), default=None, help="Contract ABI JSON file")
@click.option("--event", "events", multiple=True, help="Event signature, e.g. 'Transfer(address indexed from, ...)'")
@click.option("--standard", "standards", multiple=True, type=click.Choice(sorted(STANDARDS)), help="Built-in event set")
@click.option("--poll-interval", type=float, default=2.0, show_default=True, help="Seconds between head polls")
@click.option("--timeout", type=int, default=20, show_default=True, help="HTTP timeout in seconds")
@click.option("--parquet-out", type=str, default="", help="Optional directory for Parquet shards of decoded events")
@click.option("--rows-per-shard", type=int, default=250_000, show_default=True)
def subscribe_logs_cmd(
    rpc: str,
    contract: str,
    abi: str | None,
    events: tuple[str, ...],
    standards: tuple[str, ...],
    poll_interval: float,
    timeout: int,
    parquet_out: str,
    rows_per_shard: int,
) -> None:
    """Follow a contract's logs and print every decoded event until Ctrl-C."""
    try:
        registry = _build_registry(abi, events, standards)
    except (LogtapError, ValueError) as e:
        raise click.ClickException(f"invalid event schema: {e}") from e

    config = SubscribeConfig(rpc_url=rpc, address=contract, poll_interval_s=poll_interval, timeout_s=timeout)
    console_sink = ConsoleSink(console)
    parquet = ParquetEventSink(parquet_out, rows_per_shard=rows_per_shard) if parquet_out else None

    class _Fanout:
        def emit(self, obj: object) -> None:
            console_sink.emit(obj)
            if parquet is not None:
                parquet.emit(obj)

    async def run() -> None:
        shutdown = asyncio.Event()
        _install_signal_handlers(shutdown)
        client = RPC(config.rpc_url, timeout_s=config.timeout_s)
        subscription = LogSubscription(config.queue_size)
        poller = LogPoller(
            client,
            subscription,
            address=config.address,
            topic0s=config.topic0s,
            interval_s=config.poll_interval_s,
        )
        console.print(f"Subscribed to logs of contract {config.address} via {config.rpc_url}")
        console.print(f"Listening for {len(registry)} known event(s)...\n")
        mux = SubscriptionMultiplexer(subscription, registry, _Fanout(), shutdown=shutdown)
        poller_task = poller.start()
        try:
            reason = await mux.run()
            console.print(f"[bold]stopped[/]: {reason.value}")
        finally:
            subscription.unsubscribe()
            await asyncio.gather(poller_task, return_exceptions=True)
            await client.aclose()
            if parquet is not None:
                parquet.close()
            s = mux.stats
            console.print(
                f"[bold]summary[/]: [green]decoded[/]={s.decoded}  "
                f"[yellow]unknown[/]={s.unknown}  [red]malformed[/]={s.malformed}"
            )

    _run(run())


@cli.command("subscribe-blocks")
@click.option("--rpc", required=True, envvar=["ETH_WS_URL", "ETH_RPC_URL"], help="RPC endpoint URL")
@click.option("--poll-interval", type=float, default=2.0, show_default=True, help="Seconds between head polls")
@click.option("--timeout", type=int, default=20, show_default=True, help="HTTP timeout in seconds")
def subscribe_blocks_cmd(rpc: str, poll_interval: float, timeout: int) -> None:
    """Print every new block header until Ctrl-C."""

    async def run() -> None:
        shutdown = asyncio.Event()
        _install_signal_handlers(shutdown)
        client = RPC(rpc, timeout_s=timeout)
        subscription = HeadSubscription()
        poller = HeadPoller(client, subscription, interval_s=poll_interval)
        console.print(f"Subscribed to new blocks via {rpc}")
        mux = HeadMultiplexer(subscription, ConsoleSink(console), shutdown=shutdown)
        poller_task = poller.start()
        try:
            reason = await mux.run()
            console.print(f"[bold]stopped[/]: {reason.value}")
        finally:
            subscription.unsubscribe()
            await asyncio.gather(poller_task, return_exceptions=True)
            await client.aclose()
            console.print(f"[bold]summary[/]: heads={mux.stats.heads}")

    _run(run())


@cli.command("fetch-blocks")
@click.option("--rpc", required=True, envvar="ETH_RPC_URL", help="RPC endpoint URL")
@click.option("--from-block", type=int, required=True)
@click.option("--to-block", type=int, required=True)
@click.option("--rate-limit-ms", type=int, default=200, show_default=True, help="Minimum spacing between requests")
@click.option("--max-retries", type=int, default=3, show_default=True, help="Attempts per block")
@click.option("--timeout", type=float, default=10.0, show_default=True, help="Per-attempt deadline in seconds")
@click.option("--backoff", type=float, default=0.5, show_default=True, help="Linear backoff step in seconds")
@click.option("--manifest", "manifest_path", type=str, default="", help="JSONL manifest of per-block results")
def fetch_blocks_cmd(
    rpc: str,
    from_block: int,
    to_block: int,
    rate_limit_ms: int,
    max_retries: int,
    timeout: float,
    backoff: float,
    manifest_path: str,
) -> None:
    """Fetch every block in [from, to] with rate limiting and bounded retries."""
    try:
        config = RangeFetchConfig(
            per_item_timeout_s=timeout,
            rate_interval_s=rate_limit_ms / 1000,
            max_retries=max_retries,
            base_backoff_s=backoff,
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    async def run() -> None:
        cancel = asyncio.Event()
        _install_signal_handlers(cancel)
        client = RPC(rpc, timeout_s=max(1, int(timeout)))
        manifest = LiveManifest(manifest_path) if manifest_path else None
        console.print(f"\n=== Fetching Block Range [{from_block}, {to_block}] ===")
        console.print(f"Rate Limit: {rate_limit_ms}ms per request\n")
        fetcher = RangeFetcher(
            BlockSource(client),
            config,
            sink=ConsoleSink(console),
            manifest=manifest,
            cancel=cancel,
        )
        try:
            await fetcher.fetch_range(from_block, to_block)
        finally:
            await client.aclose()

    _run(run())


@cli.command("block")
@click.option("--rpc", required=True, envvar="ETH_RPC_URL", help="RPC endpoint URL")
@click.option("--number", type=int, default=None, help="Block number (default: latest)")
@click.option("--max-retries", type=int, default=3, show_default=True)
@click.option("--timeout", type=float, default=10.0, show_default=True)
def block_cmd(rpc: str, number: int | None, max_retries: int, timeout: float) -> None:
    """Show chain id and one block header, fetched with retry."""

    async def run() -> None:
        client = RPC(rpc, timeout_s=max(1, int(timeout)))
        try:
            console.print(f"Connected, chain id: {await client.chain_id()}")
            height = number if number is not None else await client.latest_block()
            fetcher = RangeFetcher(
                BlockSource(client),
                RangeFetchConfig(per_item_timeout_s=timeout, rate_interval_s=0, max_retries=max_retries),
            )
            outcome = await fetcher.fetch_one(height)
        finally:
            await client.aclose()
        if not outcome.ok:
            raise click.ClickException(str(outcome.error))
        ConsoleSink(console).emit(outcome)

    _run(run())


@cli.command("tx")
@click.option("--rpc", required=True, envvar="ETH_RPC_URL", help="RPC endpoint URL")
@click.option("--hash", "tx_hash", required=True, help="Transaction hash (0x...)")
@click.option("--timeout", type=int, default=30, show_default=True, help="HTTP timeout in seconds")
def tx_cmd(rpc: str, tx_hash: str, timeout: int) -> None:
    """Show a transaction and, once mined, its receipt."""

    async def run() -> None:
        client = RPC(rpc, timeout_s=timeout)
        try:
            console.print(f"Connected, chain id: {await client.chain_id()}")
            try:
                tx = await client.get_transaction(tx_hash)
            except LookupError as e:
                raise click.ClickException(str(e)) from e
            sink = ConsoleSink(console)
            sink.emit(tx)
            receipt = await client.get_receipt(tx_hash)
            if receipt is None:
                console.print("[yellow]no receipt yet (transaction pending)[/]")
            else:
                sink.emit(receipt)
        finally:
            await client.aclose()

    _run(run())


if __name__ == "__main__":
    cli()
