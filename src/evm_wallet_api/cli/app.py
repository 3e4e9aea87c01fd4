"""CLI for the EVM Wallet API - run the server or poke at wallets from the terminal."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from evm_wallet_api.config import ServiceConfig, config_from_env, load_config
from evm_wallet_api.errors import WalletError

app = typer.Typer(
    name="evm-wallet",
    help="EVM wallet toolkit: keys, fees, balances, and the HTTP API.",
    no_args_is_help=True,
)
wallet_app = typer.Typer(help="Create and inspect wallets.", no_args_is_help=True)
fees_app = typer.Typer(help="Inspect fee quotes.", no_args_is_help=True)
app.add_typer(wallet_app, name="wallet")
app.add_typer(fees_app, name="fees")

console = Console()

_config_path: Optional[Path] = None


def _version_callback(value: bool):
    if value:
        from evm_wallet_api import __version__
        console.print(f"evm-wallet {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
        envvar="EVM_WALLET_LOG_LEVEL",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML config file",
        envvar="EVM_WALLET_CONFIG",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """EVM wallet toolkit: keys, fees, balances, and the HTTP API."""
    global _config_path
    _config_path = config
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _run(coro):
    """Run an async function synchronously."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_running():
            import concurrent.futures
            with concurrent.futures.ThreadPoolExecutor() as pool:
                return pool.submit(asyncio.run, coro).result()
        return loop.run_until_complete(coro)
    except RuntimeError:
        return asyncio.run(coro)


def _load_config() -> ServiceConfig:
    if _config_path is None:
        return config_from_env()
    if not _config_path.exists():
        console.print(f"[red]Config file not found: {_config_path}[/red]")
        raise typer.Exit(1)
    return load_config(_config_path)


def _fail(err: WalletError) -> None:
    console.print(f"[red]{err.kind.value}: {err.message}[/red]")
    raise typer.Exit(1)


# ------------------------------------------------------------------
# Server
# ------------------------------------------------------------------


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on"),
):
    """Start the HTTP API."""
    from evm_wallet_api.api.server import run_server

    config = _load_config()
    bind_host = host or config.server.host
    bind_port = port or config.server.port
    console.print(Panel(
        f"Listening on [cyan]http://{bind_host}:{bind_port}[/cyan]\n"
        f"Default RPC: [dim]{config.rpc.default_endpoint}[/dim]",
        title="EVM Wallet API",
    ))
    run_server(config, host=bind_host, port=bind_port)


# ------------------------------------------------------------------
# Wallets
# ------------------------------------------------------------------


def _print_wallet(record, title: str) -> None:
    lines = [
        f"Address:     [cyan]{record.address}[/cyan]",
        f"Public key:  [dim]{record.public_key}[/dim]",
        f"Private key: [yellow]{record.private_key}[/yellow]",
    ]
    if record.mnemonic:
        lines.append(f"Mnemonic:    {record.mnemonic}")
    console.print(Panel("\n".join(lines), title=title))
    console.print("[dim]Store the private key somewhere safe. It is not saved anywhere.[/dim]")


@wallet_app.command("new")
def wallet_new():
    """Generate a fresh random wallet."""
    from evm_wallet_api.wallet import keys

    try:
        wallet = keys.generate_random()
    except WalletError as e:
        _fail(e)
    _print_wallet(wallet.record, "New Wallet")


@wallet_app.command("address")
def wallet_address(
    private_key: str = typer.Argument(help="Hex private key (with or without 0x)"),
):
    """Show the address for a private key."""
    from evm_wallet_api.wallet import keys

    try:
        address = keys.address_from_private_key(private_key)
    except WalletError as e:
        _fail(e)
    console.print(f"[cyan]{address}[/cyan]")


@wallet_app.command("mnemonic")
def wallet_mnemonic(
    words: int = typer.Option(24, "--words", "-w", help="Word count (12, 15, 18, 21 or 24)"),
):
    """Generate a BIP-39 mnemonic phrase."""
    from evm_wallet_api.wallet import keys

    try:
        phrase = keys.generate_mnemonic(words)
    except WalletError as e:
        _fail(e)
    console.print(Panel(phrase, title=f"{words}-word Mnemonic"))


@wallet_app.command("from-mnemonic")
def wallet_from_mnemonic(
    phrase: str = typer.Argument(help="Mnemonic phrase (quote it)"),
):
    """Derive a wallet from a mnemonic phrase."""
    from evm_wallet_api.wallet import keys

    try:
        wallet = keys.from_mnemonic(phrase)
    except WalletError as e:
        _fail(e)
    _print_wallet(wallet.record, "Wallet from Mnemonic")


# ------------------------------------------------------------------
# Fees & balances
# ------------------------------------------------------------------


@fees_app.command("quote")
def fees_quote(
    network: Optional[str] = typer.Option(None, "--network", "-n", help="Network name or RPC URL"),
):
    """Show the fee quote the service would use for a transaction."""
    from evm_wallet_api.units import format_units
    from evm_wallet_api.wallet.service import WalletService

    service = WalletService(_load_config())

    async def _quote():
        target = service.resolve_endpoint(network)
        try:
            return target, await service.fee_oracle.resolve_fee(target.url, target.network)
        finally:
            await service.close()

    try:
        target, quote = _run(_quote())
    except WalletError as e:
        _fail(e)

    table = Table(title=f"Fee Quote ({target.network.name if target.network else target.url})")
    table.add_column("Field", style="cyan")
    table.add_column("Wei", justify="right")
    table.add_column("Gwei", justify="right")
    for label, value in (
        ("gas price", quote.gas_price),
        ("max fee per gas", quote.max_fee_per_gas),
        ("max priority fee", quote.max_priority_fee_per_gas),
    ):
        table.add_row(label, str(value), format_units(value, 9))
    console.print(table)
    console.print(
        f"[dim]price source: {quote.source.value}, "
        f"priority source: {quote.priority_source.value}[/dim]"
    )


@app.command()
def balance(
    address: str = typer.Argument(help="Account address (0x...)"),
    network: Optional[str] = typer.Option(None, "--network", "-n", help="Network name or RPC URL"),
    token: Optional[str] = typer.Option(None, "--token", "-t", help="ERC20 contract address"),
):
    """Show the native (or ERC20) balance of an address."""
    from evm_wallet_api.units import ETHER_DECIMALS, format_units
    from evm_wallet_api.wallet.service import WalletService

    service = WalletService(_load_config())

    async def _balance():
        target = service.resolve_endpoint(network)
        try:
            if token is None:
                raw = await service.reader.native_balance(address, target.url, target.network)
                symbol = target.network.native_symbol if target.network else "native"
                return raw, ETHER_DECIMALS, symbol
            raw = await service.reader.token_balance(address, token, target.url, target.network)
            decimals = await service.reader.token_decimals(token, target.url, target.network)
            return raw, decimals, "tokens"
        finally:
            await service.close()

    try:
        raw, decimals, symbol = _run(_balance())
    except WalletError as e:
        _fail(e)

    console.print(f"[bold]{format_units(raw, decimals)}[/bold] {symbol} [dim]({raw} base units)[/dim]")


if __name__ == "__main__":
    app()
