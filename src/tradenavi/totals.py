"""Totals calculation for trade statements.

Tax is truncated (floor) to whole yen. All arithmetic runs on integers and
Decimal so repeated calls never drift.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Iterable, Optional

from .exceptions import InvalidInput
from .models import ExtraFees, StatementItem, Totals, TradeRecord

logger = logging.getLogger(__name__)


def item_amount(item: StatementItem) -> int:
    """
    Resolve the amount of a single statement line.

    Args:
        item: Statement line

    Returns:
        quantity x unit_price when both are present, else the flat amount

    Raises:
        InvalidInput: If the quantity is negative or the line carries no price
    """
    if item.quantity is not None and item.quantity < 0:
        raise InvalidInput(
            f"Quantity cannot be negative (line {item.line_id}): {item.quantity}",
            field="quantity",
        )

    if item.quantity is not None and item.unit_price is not None:
        return item.quantity * item.unit_price

    if item.amount is not None:
        return item.amount

    raise InvalidInput(
        f"Line {item.line_id} has neither quantity x unit price nor an amount",
        field="amount",
    )


def _validate_fees(fees: ExtraFees) -> None:
    for name, value in fees.model_dump().items():
        if value < 0:
            raise InvalidInput(f"Fee {name} cannot be negative: {value}", field=name)


def compute_totals(
    items: Iterable[StatementItem],
    tax_rate,
    fees: Optional[ExtraFees] = None,
) -> Totals:
    """
    Compute subtotal, tax and total for a set of statement items.

    Only taxable items (and the extra fees) form the tax base; non-taxable
    items are added to the subtotal untaxed.

    Args:
        items: Statement lines
        tax_rate: Rate as Decimal, str, int or float (e.g. 0.10)
        fees: Optional extra fees (shipping, handling, cardboard, nail sheet, insurance)

    Returns:
        Totals

    Raises:
        InvalidInput: If the tax rate, a quantity or a fee is negative
    """
    try:
        rate = tax_rate if isinstance(tax_rate, Decimal) else Decimal(str(tax_rate))
    except InvalidOperation:
        raise InvalidInput(f"Tax rate is not a number: {tax_rate!r}", field="tax_rate")

    if not rate.is_finite():
        raise InvalidInput(f"Tax rate must be finite: {tax_rate!r}", field="tax_rate")

    if rate < 0:
        raise InvalidInput(f"Tax rate cannot be negative: {rate}", field="tax_rate")

    fees = fees or ExtraFees()
    _validate_fees(fees)

    item_total = 0
    taxable_items = 0
    quantity = 0

    for item in items:
        amount = item_amount(item)
        item_total += amount
        if item.is_taxable:
            taxable_items += amount
        if item.quantity is not None:
            quantity += item.quantity

    fees_total = fees.total()
    subtotal = item_total + fees_total
    taxable_subtotal = taxable_items + fees_total
    tax = int((Decimal(taxable_subtotal) * rate).to_integral_value(rounding=ROUND_FLOOR))

    return Totals(
        subtotal=subtotal,
        taxable_subtotal=taxable_subtotal,
        fees_total=fees_total,
        tax=tax,
        total=subtotal + tax,
        quantity=quantity,
    )


def apply_totals(record: TradeRecord) -> TradeRecord:
    """Return a copy of the record with quantity and total_amount recomputed."""
    totals = compute_totals(record.items, record.tax_rate, record.fees)

    if record.total_amount and record.total_amount != totals.total:
        logger.debug(
            f"Recomputed total for {record.id}: {record.total_amount} -> {totals.total}"
        )

    return record.model_copy(update={
        "quantity": totals.quantity,
        "total_amount": totals.total,
    })
