"""Console rendering of trades and totals."""

from __future__ import annotations

import json
import logging
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from .models import ActorRole, Totals, TradeRecord
from .permissions import allowed_actions
from .todos import active_todo

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    "REQUESTED": "dim",
    "APPROVAL_REQUIRED": "blue",
    "AWAITING_PAYMENT": "yellow",
    "PAYMENT_CONFIRMED": "green",
    "SHIPPING_ARRANGED": "blue",
    "COMPLETED": "green",
    "CANCELED": "red",
}


def format_yen(value: int) -> str:
    return f"¥{value:,}"


class Reporter:
    """
    Handles result display for the CLI.

    This class is responsible for:
    - Rendering trade lists with the viewer's active todo
    - Rendering a single trade's statement
    - Rendering quote totals
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def display_totals(self, totals: Totals) -> None:
        table = Table(title="Quote", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Amount", justify="right")

        table.add_row("Quantity", str(totals.quantity))
        table.add_row("Fees", format_yen(totals.fees_total))
        table.add_row("Subtotal", format_yen(totals.subtotal))
        table.add_row("Taxable", format_yen(totals.taxable_subtotal))
        table.add_row("Tax", format_yen(totals.tax))
        table.add_row("[bold]Total[/bold]", f"[bold]{format_yen(totals.total)}[/bold]")

        self.console.print(table)

    def display_trades(self, trades: List[TradeRecord], user_id: str) -> None:
        """
        Display trades as seen by one user.

        Args:
            trades: Records with todos attached for the user
            user_id: Viewing user
        """
        if not trades:
            self.console.print("[yellow]No trades to display[/yellow]")
            return

        table = Table(title=f"Trades for {user_id}", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Role")
        table.add_column("Counterparty")
        table.add_column("Status")
        table.add_column("Total", justify="right")
        table.add_column("Todo")

        for trade in trades:
            role = ActorRole.BUYER if trade.buyer_user_id == user_id else ActorRole.SELLER
            counterparty = trade.seller_name if role == ActorRole.BUYER else trade.buyer_name
            style = STATUS_STYLES.get(trade.status.value, "white")
            todo = active_todo(trade.todos)

            table.add_row(
                trade.id,
                role.value.lower(),
                counterparty or "-",
                f"[{style}]{trade.status.value}[/{style}]",
                format_yen(trade.total_amount),
                todo.description if todo else "-",
            )

        self.console.print(table)

    def display_trade(self, trade: TradeRecord, role: Optional[ActorRole] = None) -> None:
        """Display one trade's statement lines, totals and next actions."""
        style = STATUS_STYLES.get(trade.status.value, "white")
        self.console.print(f"\n[bold]{trade.id}[/bold]  [{style}]{trade.status.value}[/{style}]")
        self.console.print(f"  Seller: {trade.seller_name or trade.seller_user_id}")
        self.console.print(f"  Buyer:  {trade.buyer_name or trade.buyer_user_id}")

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Line")
        table.add_column("Item")
        table.add_column("Qty", justify="right")
        table.add_column("Unit", justify="right")
        table.add_column("Amount", justify="right")
        table.add_column("Tax")

        for item in trade.items:
            amount = item.amount
            if item.quantity is not None and item.unit_price is not None:
                amount = item.quantity * item.unit_price
            table.add_row(
                item.line_id,
                item.item_name,
                "-" if item.quantity is None else str(item.quantity),
                "-" if item.unit_price is None else format_yen(item.unit_price),
                "-" if amount is None else format_yen(amount),
                "taxable" if item.is_taxable else "exempt",
            )

        self.console.print(table)
        self.console.print(f"  Total: [bold]{format_yen(trade.total_amount)}[/bold]")

        todo = active_todo(trade.todos)
        if todo:
            self.console.print(f"  Todo:  {todo.description}")
        if role is not None:
            actions = ", ".join(a.value for a in allowed_actions(role, trade.status)) or "none"
            self.console.print(f"  Next actions for {role.value.lower()}: {actions}")

    def dump_json(self, trade: TradeRecord) -> str:
        """Serialize a record in its camelCase wire form."""
        data = trade.model_dump(mode="json", by_alias=True)
        logger.debug(f"Serialized {trade.id}")
        return json.dumps(data, ensure_ascii=False, indent=2)
