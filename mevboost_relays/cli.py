"""Command-line interface for MEV-Boost relay data queries.

Usage:
    mevboost-relays payloads-delivered 7761220
    mevboost-relays block-bids --block-hash 0xabc...
    mevboost-relays --format json --output-dir out winning-bid-timestamp 7761220
"""

import argparse
import sys
from pathlib import Path

from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import asyncio

from pydantic import BaseModel, ValidationError
from rich.console import Console
from rich.markup import escape

from mevboost_relays.helpers.config import (
    get_relay_concurrency,
    get_relay_registry,
    get_relay_timeout,
)
from mevboost_relays.output import (
    BLOCK_BID_COLUMNS,
    PAYLOAD_COLUMNS,
    REGISTRATION_COLUMNS,
    VANILLA_SLOT_COLUMNS,
    WINNING_BID_COLUMNS,
    OutputFormat,
    block_bid_rows,
    payload_rows,
    registration_rows,
    render_rows,
    render_skipped,
    vanilla_slot_rows,
    winning_bid_rows,
    write_json,
)
from mevboost_relays.relays.aggregate import RelayAggregator
from mevboost_relays.relays.client import RelayClient
from mevboost_relays.relays.correlate import RelayCorrelator
from mevboost_relays.relays.errors import RelayError
from mevboost_relays.relays.models import (
    BuilderBlocksReceivedQuery,
    PayloadDeliveredQuery,
)


class CommandOutput(BaseModel):
    """Rows produced by one command, with where and how to show them."""

    operation: str
    key: str | int
    title: str
    columns: list[tuple[str, str]]
    rows: list[dict[str, Any]]


async def payloads_delivered(
    args: argparse.Namespace,
    correlator: RelayCorrelator,
    relays: list[str] | None,
) -> CommandOutput:
    results = await correlator.aggregator.get_payload_delivered_bidtraces_on_all_relays(
        PayloadDeliveredQuery(slot=args.slot), relays=relays
    )
    return CommandOutput(
        operation="payloads-delivered",
        key=args.slot,
        title=f"Payloads delivered for slot {args.slot:,}",
        columns=PAYLOAD_COLUMNS,
        rows=payload_rows(results),
    )


async def block_bids(
    args: argparse.Namespace,
    correlator: RelayCorrelator,
    relays: list[str] | None,
) -> CommandOutput:
    query = BuilderBlocksReceivedQuery(slot=args.slot, block_hash=args.block_hash)
    results = await correlator.aggregator.get_builder_blocks_received_on_all_relays(
        query, relays=relays
    )
    key = args.slot if args.slot is not None else args.block_hash
    return CommandOutput(
        operation="block-bids",
        key=key,
        title=f"Builder bids for {key}",
        columns=BLOCK_BID_COLUMNS,
        rows=block_bid_rows(results),
    )


async def winning_bid_timestamp(
    args: argparse.Namespace,
    correlator: RelayCorrelator,
    relays: list[str] | None,
) -> CommandOutput:
    timestamps = await correlator.get_winning_bid_timestamp(args.slot, relays=relays)
    return CommandOutput(
        operation="winning-bid-timestamp",
        key=args.slot,
        title=f"Winning bid timestamp for slot {args.slot:,}",
        columns=WINNING_BID_COLUMNS,
        rows=winning_bid_rows(timestamps),
    )


async def vanilla_slots(
    args: argparse.Namespace,
    correlator: RelayCorrelator,
    relays: list[str] | None,
) -> CommandOutput:
    slots = await correlator.get_vanilla_slots_for_current_and_next_epoch(relays=relays)
    return CommandOutput(
        operation="vanilla-slots",
        key="current",
        title="Vanilla slots for the current and next epoch",
        columns=VANILLA_SLOT_COLUMNS,
        rows=vanilla_slot_rows(slots),
    )


async def validator_registration(
    args: argparse.Namespace,
    correlator: RelayCorrelator,
    relays: list[str] | None,
) -> CommandOutput:
    results = await correlator.aggregator.get_validator_registration_on_all_relays(
        args.pubkey, relays=relays
    )
    return CommandOutput(
        operation="validator-registration",
        key=args.pubkey,
        title=f"Registrations of validator {args.pubkey}",
        columns=REGISTRATION_COLUMNS,
        rows=registration_rows(results),
    )


Command = Callable[
    [argparse.Namespace, RelayCorrelator, list[str] | None], Awaitable[CommandOutput]
]

COMMANDS: dict[str, Command] = {
    "payloads-delivered": payloads_delivered,
    "block-bids": block_bids,
    "winning-bid-timestamp": winning_bid_timestamp,
    "vanilla-slots": vanilla_slots,
    "validator-registration": validator_registration,
}


async def main(
    args: argparse.Namespace,
    console: Console | None = None,
    err_console: Console | None = None,
    client: RelayClient | None = None,
) -> int:
    """Run one command and print its results.

    Args:
        args: Parsed command-line arguments
        console: Console receiving results (stdout)
        err_console: Console receiving diagnostics (stderr)
        client: Client to use instead of one built from configuration

    Returns:
        int: Process exit code
    """
    console = console or Console()
    err_console = err_console or Console(stderr=True)
    relays = [name.strip() for name in args.relays.split(",")] if args.relays else None
    skipped: dict[str, RelayError] = {}

    try:
        if client is None:
            client = RelayClient(
                get_relay_registry(), timeout=get_relay_timeout(args.timeout)
            )
        async with client:
            aggregator = RelayAggregator(
                client,
                concurrency=get_relay_concurrency(args.concurrency),
                on_relay_error=skipped.__setitem__,
            )
            output = await COMMANDS[args.command](
                args, RelayCorrelator(aggregator), relays
            )
    except ValidationError as e:
        err_console.print(f"[red]Invalid query: {escape(str(e))}[/red]")
        return 1
    except ValueError as e:
        err_console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        return 1
    except RelayError as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        render_skipped(err_console, skipped)
        return 1

    output_format = OutputFormat(args.format)
    render_rows(
        console,
        output.rows,
        output_format,
        title=output.title,
        columns=output.columns,
    )
    if output_format is OutputFormat.JSON and args.output_dir is not None:
        path = write_json(args.output_dir, output.operation, output.key, output.rows)
        err_console.print(f"[green]✓ Results saved to {escape(str(path))}[/green]")
    render_skipped(err_console, skipped)
    return 0


def slot_number(value: str) -> int:
    """Parse a slot argument, rejecting negative numbers."""
    try:
        slot = int(value)
    except ValueError:
        msg = f"invalid slot: {value!r}"
        raise argparse.ArgumentTypeError(msg) from None
    if slot < 0:
        msg = f"slot must not be negative: {slot}"
        raise argparse.ArgumentTypeError(msg)
    return slot


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mevboost-relays",
        description="Query MEV-Boost relay data APIs across relays",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Payloads delivered for a slot on every relay
  mevboost-relays payloads-delivered 7761220

  # Builder bids for a block hash on two relays, as CSV
  mevboost-relays --relays ultrasound,flashbots --format csv block-bids --block-hash 0xabc

  # Winning bid timestamp saved to out/winning-bid-timestamp/7761220.json
  mevboost-relays --format json --output-dir out winning-bid-timestamp 7761220

Environment:
  MEVBOOST_RELAYS    JSON object of relay name to endpoint, replaces the built-in relays
  RELAY_TIMEOUT      Request timeout in seconds
  RELAY_CONCURRENCY  Number of relays queried in parallel
  LOG_LEVEL          Diagnostic log level
        """,
    )
    parser.add_argument(
        "--relays",
        help="Comma-separated relay names to query (default: all configured relays)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Request timeout in seconds (default: RELAY_TIMEOUT or 30)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Relays queried in parallel (default: RELAY_CONCURRENCY or 5)",
    )
    parser.add_argument(
        "--format",
        choices=[output_format.value for output_format in OutputFormat],
        default=OutputFormat.HUMAN.value,
        help="Output format (default: human)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="With --format json, also save results under DIR/<command>/<slot-or-hash>.json",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    payloads = subparsers.add_parser(
        "payloads-delivered", help="Payloads delivered to the proposer of a slot"
    )
    payloads.add_argument("slot", type=slot_number)

    bids = subparsers.add_parser("block-bids", help="Builder block bids received")
    target = bids.add_mutually_exclusive_group(required=True)
    target.add_argument("--slot", type=slot_number)
    target.add_argument("--block-hash")

    winning = subparsers.add_parser(
        "winning-bid-timestamp", help="Submission time of the winning bid of a slot"
    )
    winning.add_argument("slot", type=slot_number)

    subparsers.add_parser(
        "vanilla-slots",
        help="Slots of the current and next epoch without a registered relay",
    )

    registration = subparsers.add_parser(
        "validator-registration", help="Check a validator registration on every relay"
    )
    registration.add_argument("pubkey")

    return parser


def cli(argv: Sequence[str] | None = None) -> None:
    """Command-line interface entry point."""
    args = build_parser().parse_args(argv)
    sys.exit(asyncio.run(main(args)))


if __name__ == "__main__":
    cli()
