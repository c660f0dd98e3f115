"""Command-line interface for the block header watcher."""

import asyncio
import sys
from typing import Optional
import click
import structlog

from eth_head_watcher.core.rpc_client import EthWebSocketClient
from eth_head_watcher.core.watcher import HeaderWatcher
from eth_head_watcher.exceptions import ConfigError, WatcherError
from eth_head_watcher.models.config import load_config
from eth_head_watcher.utils.logging import setup_logging

logger = structlog.get_logger(__name__)


@click.group()
@click.option('--env-file', '-e', type=click.Path(exists=True, dir_okay=False),
              help='Path to a dotenv file (default: ./.env when present)')
@click.option('--log-level', '-l', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level (overrides WATCHER_LOG_LEVEL)')
@click.pass_context
def cli(ctx, env_file: Optional[str], log_level: Optional[str]):
    """Ethereum block header watcher CLI."""
    ctx.ensure_object(dict)
    if ctx.invoked_subcommand == "version":
        return

    try:
        config = load_config(env_file)
    except ConfigError as e:
        setup_logging()
        logger.error("Error loading configuration", error=str(e))
        sys.exit(1)

    if log_level:
        config.log_level = log_level

    setup_logging(config)
    ctx.obj['config'] = config


@cli.command()
@click.pass_context
def watch(ctx):
    """Subscribe to new block headers and log each block number."""
    config = ctx.obj['config']
    watcher = HeaderWatcher(config)

    try:
        asyncio.run(watcher.watch())
    except KeyboardInterrupt:
        click.echo("\n🛑 Watcher interrupted by user")
    except WatcherError:
        # Already logged by the watcher at the point of failure.
        sys.exit(1)


@cli.command()
@click.pass_context
def check(ctx):
    """Test the connection to the RPC endpoint."""
    config = ctx.obj['config']
    client = EthWebSocketClient(config)

    async def _check() -> bool:
        try:
            return await client.test_connection()
        finally:
            await client.close()

    click.echo(f"🔍 Testing RPC connection to {config.endpoint_host}...")
    if asyncio.run(_check()):
        click.echo("✅ RPC connection successful")
    else:
        click.echo("❌ RPC connection failed", err=True)
        sys.exit(1)


@cli.command()
def version():
    """Show version information."""
    from eth_head_watcher import __version__, __description__

    click.echo(f"Ethereum Block Header Watcher v{__version__}")
    click.echo(__description__)


if __name__ == '__main__':
    cli()
