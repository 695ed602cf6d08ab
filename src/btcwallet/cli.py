"""
Command-line interface for the Bitcoin wallet client.

Exit codes: 0 success, 1 configuration error, 2 indexer error,
3 insufficient funds, 4 unexpected error.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from loguru import logger

from btcwallet.address import AddressType
from btcwallet.config import load_config
from btcwallet.constants import DEFAULT_AMOUNT, DEFAULT_DESTINATION, DEFAULT_FEE, DEFAULT_MESSAGE
from btcwallet.errors import WalletError, exit_code_for
from btcwallet.indexer import IndexerClient
from btcwallet.keys import WalletKey, generate_wallet
from btcwallet.network import NetworkType, get_network_params
from btcwallet.orchestrator import RunResult, run_wallet
from btcwallet.signing import sign_message

app = typer.Typer(
    name="btc-wallet",
    help="Bitcoin testnet wallet - sign, build and broadcast transactions",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def fail(error: BaseException) -> NoReturn:
    """Print a one-line diagnostic and exit with the error's status code."""
    if not isinstance(error, WalletError):
        logger.opt(exception=error).debug("Unexpected error")
    message = " ".join(str(error).split()) or type(error).__name__
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(exit_code_for(error))


def print_result(result: RunResult, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    typer.echo(f"Address:    {result.address} ({result.network})")
    typer.echo(f"Signature:  {result.signature}")
    typer.echo(f"UTXOs:      {result.unspent_count} ({result.balance:,} sats)")
    if result.txid:
        status = "broadcast" if result.broadcast else "not broadcast"
        typer.echo(f"Txid:       {result.txid} ({status})")
        if result.fee is not None:
            typer.echo(f"Fee:        {result.fee:,} sats")
    if result.raw_tx and not result.broadcast:
        typer.echo(f"Raw tx:     {result.raw_tx}")
    if result.reason:
        typer.echo(f"Note:       {result.reason}")


@app.command()
def run(
    destination: Annotated[
        str, typer.Option("--to", "-t", help="Destination address")
    ] = DEFAULT_DESTINATION,
    amount: Annotated[int, typer.Option("--amount", "-a", help="Amount in sats")] = DEFAULT_AMOUNT,
    fee: Annotated[int, typer.Option("--fee", help="Flat fee in sats")] = DEFAULT_FEE,
    message: Annotated[
        str, typer.Option("--message", "-m", help="Message to sign")
    ] = DEFAULT_MESSAGE.decode(),
    broadcast: Annotated[
        bool | None,
        typer.Option(
            "--broadcast/--no-broadcast",
            help="Submit the signed transaction (spends funds) [default: BTC_BROADCAST]",
            show_default=False,
        ),
    ] = None,
    confirmed_only: Annotated[
        bool, typer.Option("--confirmed-only", help="Ignore unconfirmed UTXOs")
    ] = False,
    network: Annotated[
        NetworkType | None, typer.Option("--network", "-n", help="Bitcoin network")
    ] = None,
    config_file: Annotated[
        Path | None, typer.Option("--config", "-c", help="YAML node configuration file")
    ] = None,
    env_file: Annotated[Path, typer.Option("--env-file", help="dotenv file")] = Path(".env"),
    as_json: Annotated[bool, typer.Option("--json", help="Print result as JSON")] = False,
    log_level: Annotated[
        str | None, typer.Option("--log-level", "-l", help="[default: LOG_LEVEL or INFO]")
    ] = None,
) -> None:
    """Sign a message, fetch UTXOs and build a payment (broadcast is opt-in)."""
    setup_logging(log_level or "INFO")

    try:
        config = load_config(config_file, env_file, btc_network=network)
        if log_level is None:
            setup_logging(config.log_level)
        logger.debug(f"Configuration: {config!r}")
        result = run_wallet(
            config,
            destination=destination,
            amount=amount,
            fee=fee,
            message=message.encode("utf-8"),
            broadcast=config.broadcast if broadcast is None else broadcast,
            confirmed_only=confirmed_only,
        )
    except Exception as e:
        fail(e)

    print_result(result, as_json)


@app.command()
def generate(
    network: Annotated[
        NetworkType, typer.Option("--network", "-n", help="Bitcoin network")
    ] = NetworkType.TESTNET,
    address_type: Annotated[
        AddressType, typer.Option("--type", help="Address type")
    ] = AddressType.P2WPKH,
) -> None:
    """Generate a new key pair and print the private key and address."""
    setup_logging("WARNING")

    try:
        key, address = generate_wallet(get_network_params(network), address_type)
    except Exception as e:
        fail(e)

    with key:
        typer.echo(f"Private key (hex): {key.to_hex()}")
        typer.echo(f"Public key:        {key.public_key.hex()}")
        typer.echo(f"Address ({address.kind.value}): {address}")
    typer.echo("Anyone with this private key can spend its coins. Store it securely.")


@app.command("sign-message")
def sign_message_command(
    message: Annotated[str, typer.Argument(help="Message to sign")],
    private_key: Annotated[
        str, typer.Option("--private-key", envvar="BTC_PRIVATE_KEY", help="64 hex chars")
    ] = "",
) -> None:
    """Sign SHA256d(message) and print the DER signature hex."""
    setup_logging("WARNING")

    if not private_key:
        typer.echo("error: private key required (--private-key or BTC_PRIVATE_KEY)", err=True)
        raise typer.Exit(1)

    try:
        with WalletKey.from_hex(private_key) as key:
            signature = sign_message(key, message.encode("utf-8"))
    except Exception as e:
        fail(e)

    typer.echo(signature)


@app.command()
def unspent(
    address: Annotated[str, typer.Argument(help="Address to query")],
    config_file: Annotated[
        Path | None, typer.Option("--config", "-c", help="YAML node configuration file")
    ] = None,
    env_file: Annotated[Path, typer.Option("--env-file", help="dotenv file")] = Path(".env"),
    log_level: Annotated[
        str | None, typer.Option("--log-level", "-l", help="[default: LOG_LEVEL or INFO]")
    ] = None,
) -> None:
    """List the unspent outputs the indexer reports for an address."""
    setup_logging(log_level or "INFO")

    try:
        config = load_config(config_file, env_file)
        if log_level is None:
            setup_logging(config.log_level)
        with IndexerClient.from_config(config.node) as indexer:
            utxos = indexer.list_unspent(address)
    except Exception as e:
        fail(e)

    for utxo in utxos:
        status = "confirmed" if utxo.confirmed else "unconfirmed"
        typer.echo(f"{utxo.outpoint}  {utxo.value:>12,} sats  {status}")
    typer.echo(f"{len(utxos)} UTXO(s), {sum(u.value for u in utxos):,} sats total")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
