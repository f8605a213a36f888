"""
Command-line interface for the order tax engine.

Provides subcommands for computing order taxes from JSON or CSV files and
for listing the zones and active rates of a rule snapshot.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import pandas as pd
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from order_tax.adjustments import Adjustment, AdjustmentLedger, AdjustmentType
from order_tax.exceptions import TaxEngineError
from order_tax.jurisdiction import Jurisdiction
from order_tax.money import Money
from order_tax.orders import CustomerProfile, LineItem, Order, Store, TaxableType
from order_tax.rates import TaxRuleSnapshot, load_rates_csv
from order_tax.registry import BatchResult, TaxTypeRegistry

console = Console()

DEFAULT_TAX_TYPES = ["european_union_vat", "us_sales_tax"]

_TRUE_VALUES = {"1", "true", "yes", "y"}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_snapshot(args: argparse.Namespace) -> TaxRuleSnapshot:
    as_of = date.fromisoformat(args.as_of) if args.as_of else date.today()
    if args.rates:
        return load_rates_csv(args.rates, as_of)
    return TaxRuleSnapshot.default(as_of)


def _load_orders_json(path: str) -> list[Order]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = [data]
    return [Order.from_dict(entry) for entry in data]


def _load_orders_csv(path: str) -> list[Order]:
    """
    Load orders from a CSV file with one row per line item.

    Expected columns: order_id, currency, store_address, customer_address,
                      quantity, unit_price
    Optional: store_registrations (``;`` separated), prices_include_tax,
              line_item_id, title, taxable_type, discount
    """
    frame = pd.read_csv(path, dtype=str, keep_default_na=False)
    orders: list[Order] = []
    for order_id, rows in frame.groupby("order_id", sort=False):
        first = rows.iloc[0]
        currency = first["currency"].strip().upper()
        store = Store(
            name=first.get("store_name", "") or "",
            address=Jurisdiction.parse(first["store_address"]),
            registrations=frozenset(
                Jurisdiction.parse(code)
                for code in (first.get("store_registrations", "") or "").split(";")
                if code.strip()
            ),
            prices_include_tax=(
                (first.get("prices_include_tax", "") or "").strip().lower() in _TRUE_VALUES
            ),
        )
        items: list[LineItem] = []
        for i, row in enumerate(rows.itertuples(index=False)):
            row = row._asdict()
            ledger = AdjustmentLedger()
            discount = (row.get("discount") or "").strip()
            if discount:
                ledger = ledger.add(
                    Adjustment(
                        type=AdjustmentType.PROMOTION,
                        label="Discount",
                        amount=Money(discount, currency),
                    )
                )
            taxable_type = (row.get("taxable_type") or "").strip()
            items.append(
                LineItem(
                    quantity=int(row["quantity"]),
                    unit_price=Money(row["unit_price"], currency),
                    adjustments=ledger,
                    line_item_id=row.get("line_item_id") or str(i + 1),
                    title=row.get("title") or "",
                    taxable_type=TaxableType(taxable_type) if taxable_type else None,
                )
            )
        orders.append(
            Order(
                store=store,
                customer_profile=CustomerProfile(
                    Jurisdiction.parse(first["customer_address"])
                ),
                currency=currency,
                line_items=tuple(items),
                order_id=str(order_id),
            )
        )
    return orders


def _build_registry(
    args: argparse.Namespace, snapshot: TaxRuleSnapshot
) -> TaxTypeRegistry:
    tax_types = args.tax_type or [t for t in DEFAULT_TAX_TYPES if snapshot.has_tax_type(t)]
    config: dict[str, dict] = {}
    for tax_type_id in tax_types:
        plugin = tax_type_id if tax_type_id in DEFAULT_TAX_TYPES else "custom"
        config[tax_type_id] = {
            "plugin": plugin,
            "configuration": {"display_inclusive": args.display_inclusive},
        }
    return TaxTypeRegistry.from_config(config, snapshot)


def _print_order(order: Order, registry: TaxTypeRegistry) -> None:
    table = Table(
        title=f"Order {order.order_id or '-'}",
        box=box.ROUNDED,
        show_lines=True,
    )
    table.add_column("Item", style="dim")
    table.add_column("Qty", justify="right")
    table.add_column("Unit price", justify="right")
    table.add_column("Adjustments")
    table.add_column("Total", justify="right", style="bold")

    plugins = [registry.get(t).plugin for t in registry.tax_type_ids]
    display = next((p for p in plugins if p is not None), None)

    for item in order.line_items:
        unit_price = display.display_unit_price(item) if display else item.unit_price
        adjustments = "\n".join(
            f"{a.label}: {a.amount.amount:,.2f}"
            + (f" ({a.percentage:.2%})" if a.percentage is not None else "")
            + (" incl." if a.included else "")
            for a in item.adjustments.combined()
        )
        table.add_row(
            item.title or item.line_item_id or "-",
            str(item.quantity),
            f"{unit_price.round().amount:,.2f}",
            adjustments or "-",
            f"{item.total().round().amount:,.2f}",
        )
    console.print(table)

    included_tax = sum(
        (a.amount.amount for a in order.collect_adjustments() if a.is_tax and a.included),
        Decimal("0"),
    )
    console.print(
        Panel(
            f"[bold]Subtotal:[/bold] {order.subtotal().round()}\n"
            f"[bold]Tax added:[/bold] {order.tax_total().round()}\n"
            f"[bold]Tax included:[/bold] {included_tax:,.2f} {order.currency}\n"
            f"[bold]Total:[/bold] {order.total(registry.rounding_mode)}",
            title="Order Summary",
            border_style="blue",
        )
    )


# -----------------------------------------------------------------------
# Subcommand: calculate
# -----------------------------------------------------------------------


def cmd_calculate(args: argparse.Namespace) -> None:
    """Compute taxes for orders from a JSON or CSV file."""
    if not args.order and not args.file:
        console.print("[red]Provide --order (JSON) or --file (CSV)[/red]")
        sys.exit(1)

    source = args.order or args.file
    if not Path(source).exists():
        console.print(f"[red]File not found: {source}[/red]")
        sys.exit(1)

    try:
        snapshot = _load_snapshot(args)
        registry = _build_registry(args, snapshot)
        orders = _load_orders_json(args.order) if args.order else _load_orders_csv(args.file)
    except (TaxEngineError, KeyError, ValueError, InvalidOperation) as e:
        console.print(f"[red]Cannot load input: {e}[/red]")
        sys.exit(1)

    batch: BatchResult = registry.process_batch(orders)
    for result in batch.results:
        if result.succeeded:
            _print_order(result.order, registry)

    summary = "\n".join(
        f"[bold]Tax ({currency}):[/bold] {amount:,.2f}"
        for currency, amount in sorted(batch.tax_by_currency.items())
    )
    console.print(
        Panel(
            f"[bold]Orders:[/bold] {batch.order_count}\n"
            f"[bold]Failed:[/bold] {batch.failed_count}\n" + summary,
            title="Batch Summary",
            border_style="green" if not batch.failed_count else "yellow",
        )
    )
    for error in batch.errors:
        console.print(f"[yellow]Warning: {error}[/yellow]")


# -----------------------------------------------------------------------
# Subcommand: zones
# -----------------------------------------------------------------------


def cmd_zones(args: argparse.Namespace) -> None:
    """List zones and the rate active on the snapshot date."""
    try:
        snapshot = _load_snapshot(args)
    except TaxEngineError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    tax_types = args.tax_type or snapshot.tax_type_ids
    for tax_type_id in tax_types:
        try:
            zones = snapshot.zones_for(tax_type_id)
        except TaxEngineError as e:
            console.print(f"[red]{e}[/red]")
            continue

        table = Table(
            title=f"{tax_type_id} as of {snapshot.as_of.isoformat()}",
            box=box.ROUNDED,
        )
        table.add_column("Zone", style="bold")
        table.add_column("Name")
        table.add_column("Territories")
        table.add_column("Rate", justify="right")
        table.add_column("Label")

        for zone in zones:
            try:
                rate = f"{zone.active_rate(snapshot.as_of).percentage:.3%}"
            except TaxEngineError:
                rate = "[red]none[/red]"
            table.add_row(
                zone.zone_id,
                zone.label,
                ", ".join(t.code for t in zone.territories),
                rate,
                zone.display_label,
            )
        console.print(table)


# -----------------------------------------------------------------------
# Argument parser
# -----------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="order-tax",
        description="Order Tax Engine - tax adjustments for multi-line orders",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--rates", help="CSV rate table (default: built-in zones)")
    common.add_argument("--as-of", help="Evaluation date, YYYY-MM-DD (default: today)")
    common.add_argument(
        "--tax-type",
        action="append",
        help="Tax type id to use; repeat for several",
    )

    calc_p = subparsers.add_parser(
        "calculate", parents=[common], help="Compute order taxes"
    )
    calc_p.add_argument("--order", help="JSON file with one order or a list")
    calc_p.add_argument("--file", "-f", help="CSV file, one row per line item")
    calc_p.add_argument(
        "--display-inclusive",
        action="store_true",
        help="Show unit prices with tax included",
    )
    calc_p.set_defaults(func=cmd_calculate)

    zones_p = subparsers.add_parser(
        "zones", parents=[common], help="List tax zones and active rates"
    )
    zones_p.set_defaults(func=cmd_zones)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    _configure_logging(args.verbose)
    args.func(args)
