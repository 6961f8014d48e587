"""Render relay query results as human tables, CSV or JSON."""

import csv
from enum import StrEnum
import io
import json
from pathlib import Path

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mevboost_relays.helpers.parsers import ms_to_datetime, wei_to_eth
from mevboost_relays.relays.errors import RelayError
from mevboost_relays.relays.models import (
    BuilderBlockBidtrace,
    PayloadBidtrace,
    ValidatorEntry,
)

Row = dict[str, Any]


class OutputFormat(StrEnum):
    """Output formats of the command-line interface."""

    HUMAN = "human"
    CSV = "csv"
    JSON = "json"


# (row key, column header) pairs shown in human tables
PAYLOAD_COLUMNS = [
    ("relay", "Relay"),
    ("slot", "Slot"),
    ("block_number", "Block"),
    ("block_hash", "Block hash"),
    ("builder_pubkey", "Builder"),
    ("value_eth", "Value (ETH)"),
    ("num_tx", "Txs"),
]

BLOCK_BID_COLUMNS = [
    ("relay", "Relay"),
    ("slot", "Slot"),
    ("block_hash", "Block hash"),
    ("builder_pubkey", "Builder"),
    ("value_eth", "Value (ETH)"),
    ("submitted_at", "Submitted at (UTC)"),
    ("optimistic_submission", "Optimistic"),
]

WINNING_BID_COLUMNS = [
    ("relay", "Relay"),
    ("timestamp_ms", "Timestamp (ms)"),
    ("submitted_at", "Submitted at (UTC)"),
]

VANILLA_SLOT_COLUMNS = [("slot", "Slot")]

REGISTRATION_COLUMNS = [
    ("relay", "Relay"),
    ("registered", "Registered"),
    ("fee_recipient", "Fee recipient"),
    ("gas_limit", "Gas limit"),
    ("timestamp", "Registered at (UTC)"),
]


def _bidtrace_row(relay_name: str, bidtrace: PayloadBidtrace) -> Row:
    row: Row = {"relay": relay_name, **bidtrace.model_dump(mode="json")}
    row["value_eth"] = wei_to_eth(bidtrace.value)
    return row


def payload_rows(results: Mapping[str, Sequence[PayloadBidtrace]]) -> list[Row]:
    """Flatten delivered payloads per relay into rows."""
    return [
        _bidtrace_row(relay_name, payload)
        for relay_name, payloads in results.items()
        for payload in payloads
    ]


def block_bid_rows(results: Mapping[str, Sequence[BuilderBlockBidtrace]]) -> list[Row]:
    """Flatten builder bids per relay into rows."""
    rows = []
    for relay_name, bids in results.items():
        for bid in bids:
            row = _bidtrace_row(relay_name, bid)
            row["submitted_at"] = ms_to_datetime(bid.timestamp_ms).isoformat()
            rows.append(row)
    return rows


def winning_bid_rows(timestamps: Iterable[tuple[str, int]]) -> list[Row]:
    return [
        {
            "relay": relay_name,
            "timestamp_ms": timestamp_ms,
            "submitted_at": ms_to_datetime(timestamp_ms).isoformat(),
        }
        for relay_name, timestamp_ms in timestamps
    ]


def vanilla_slot_rows(slots: Iterable[int]) -> list[Row]:
    return [{"slot": slot} for slot in sorted(slots)]


def registration_rows(results: Mapping[str, ValidatorEntry | None]) -> list[Row]:
    """Flatten validator registrations per relay into rows.

    Relays that confirmed no registration get a row with empty entry fields.
    """
    rows = []
    for relay_name, entry in results.items():
        row: Row = {
            "relay": relay_name,
            "registered": entry is not None,
            "pubkey": None,
            "fee_recipient": None,
            "gas_limit": None,
            "timestamp": None,
            "signature": None,
        }
        if entry is not None:
            row.update(entry.message.model_dump(mode="json"))
            row["signature"] = entry.signature
        rows.append(row)
    return rows


def _format_cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.6f}"
    return str(value)


def render_rows(
    console: Console,
    rows: list[Row],
    output_format: OutputFormat,
    *,
    title: str,
    columns: list[tuple[str, str]],
) -> None:
    """Print rows in the selected format.

    Args:
        console: Rich console to print to
        rows: Flat result records
        output_format: human table, CSV or JSON
        title: Table title for human output
        columns: (row key, header) pairs shown in human output
    """
    if output_format is OutputFormat.JSON:
        console.out(json.dumps(rows, indent=2), highlight=False)
        return

    if output_format is OutputFormat.CSV:
        buffer = io.StringIO()
        fieldnames = list(rows[0]) if rows else [key for key, _ in columns]
        writer = csv.DictWriter(buffer, fieldnames=fieldnames, lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
        console.out(buffer.getvalue(), end="", highlight=False)
        return

    if not rows:
        console.print(f"[yellow]{title}: no results[/yellow]")
        return

    table = Table(title=title)
    for _, header in columns:
        table.add_column(header, overflow="fold")
    for row in rows:
        table.add_row(*(_format_cell(row.get(key)) for key, _ in columns))
    console.print(table)


def render_skipped(console: Console, skipped: Mapping[str, RelayError]) -> None:
    """List relays left out of a result and why."""
    if not skipped:
        return
    console.print(
        f"[yellow]Skipped {len(skipped)} relay(s), results may be incomplete:[/yellow]"
    )
    for relay_name, error in skipped.items():
        console.print(f"[yellow]  ✗ {escape(relay_name)}: {escape(str(error))}[/yellow]")


def write_json(output_dir: Path, operation: str, key: str | int, rows: list[Row]) -> Path:
    """Save rows to ``<output_dir>/<operation>/<key>.json``.

    Returns:
        Path: Written file
    """
    output_path = Path(output_dir) / operation / f"{key}.json"
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        json.dump(rows, f, indent=2)

    return output_path


__all__ = [
    "BLOCK_BID_COLUMNS",
    "PAYLOAD_COLUMNS",
    "REGISTRATION_COLUMNS",
    "VANILLA_SLOT_COLUMNS",
    "WINNING_BID_COLUMNS",
    "OutputFormat",
    "block_bid_rows",
    "payload_rows",
    "registration_rows",
    "render_rows",
    "render_skipped",
    "vanilla_slot_rows",
    "winning_bid_rows",
    "write_json",
]
