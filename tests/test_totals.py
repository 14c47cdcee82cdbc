"""Tests for the totals calculator."""

from decimal import Decimal

import pytest

from tradenavi.exceptions import InvalidInput
from tradenavi.models import ExtraFees, StatementItem
from tradenavi.totals import compute_totals, item_amount


def line(line_id, quantity=None, unit_price=None, amount=None, taxable=True):
    return StatementItem(
        line_id=line_id,
        quantity=quantity,
        unit_price=unit_price,
        amount=amount,
        is_taxable=taxable,
    )


def test_single_taxable_line():
    """Test 10 machines at 80,000 with 10% tax."""
    totals = compute_totals([line("a", quantity=10, unit_price=80000)], Decimal("0.10"))

    assert totals.subtotal == 800000
    assert totals.taxable_subtotal == 800000
    assert totals.tax == 80000
    assert totals.total == 880000
    assert totals.quantity == 10


def test_non_taxable_line_is_not_taxed():
    """Test that exempt lines join the subtotal but not the tax base."""
    items = [
        line("a", quantity=2, unit_price=15000),
        line("b", amount=3000, taxable=False),
    ]
    totals = compute_totals(items, Decimal("0.10"))

    assert totals.subtotal == 33000
    assert totals.taxable_subtotal == 30000
    assert totals.tax == 3000
    assert totals.total == 36000


def test_tax_is_floored():
    """Test that fractional tax is truncated toward zero."""
    totals = compute_totals([line("a", amount=999)], Decimal("0.10"))

    # 99.9 -> 99
    assert totals.tax == 99
    assert totals.total == 1098


def test_float_rate_does_not_drift():
    """Test that a float rate behaves like its decimal spelling."""
    items = [line("a", quantity=3, unit_price=33333)]

    assert compute_totals(items, 0.1) == compute_totals(items, Decimal("0.1"))
    assert compute_totals(items, "0.10").tax == 9999


def test_fees_are_taxable():
    """Test that extra fees are added to the taxable subtotal."""
    fees = ExtraFees(shipping=5000, handling=1000, cardboard=500, nail_sheet=300, insurance=200)
    totals = compute_totals([line("a", amount=10000)], Decimal("0.10"), fees)

    assert totals.fees_total == 7000
    assert totals.subtotal == 17000
    assert totals.taxable_subtotal == 17000
    assert totals.tax == 1700
    assert totals.total == 18700


def test_zero_rate():
    """Test that a zero rate produces no tax."""
    totals = compute_totals([line("a", amount=12345)], 0)

    assert totals.tax == 0
    assert totals.total == 12345


def test_empty_items():
    """Test that an empty statement totals to zero."""
    totals = compute_totals([], Decimal("0.10"))

    assert totals.total == 0
    assert totals.quantity == 0


def test_quantity_times_price_wins_over_amount():
    """Test that quantity x unit price takes precedence over a flat amount."""
    assert item_amount(line("a", quantity=2, unit_price=100, amount=999)) == 200


def test_amount_only_line():
    """Test that a flat-amount line resolves to its amount."""
    assert item_amount(line("a", amount=4200)) == 4200


def test_line_without_price_rejected():
    """Test that a line with neither price nor amount is rejected."""
    with pytest.raises(InvalidInput):
        item_amount(line("a", quantity=1))


def test_negative_quantity_rejected():
    """Test that negative quantities are rejected."""
    with pytest.raises(InvalidInput) as exc_info:
        compute_totals([line("a", quantity=-1, unit_price=1000)], Decimal("0.10"))

    assert exc_info.value.field == "quantity"


def test_negative_rate_rejected():
    """Test that negative tax rates are rejected."""
    with pytest.raises(InvalidInput):
        compute_totals([line("a", amount=1000)], Decimal("-0.10"))


def test_non_numeric_rate_rejected():
    """Test that a non-numeric tax rate is rejected."""
    with pytest.raises(InvalidInput):
        compute_totals([line("a", amount=1000)], "ten percent")


@pytest.mark.parametrize("rate", ["NaN", "sNaN", "Infinity", Decimal("-Infinity"), float("nan")])
def test_non_finite_rate_rejected(rate):
    """Test that NaN and infinite tax rates are rejected as input errors."""
    with pytest.raises(InvalidInput) as exc_info:
        compute_totals([line("a", quantity=1, unit_price=100)], rate)

    assert exc_info.value.field == "tax_rate"


def test_negative_fee_rejected():
    """Test that negative fees are rejected."""
    with pytest.raises(InvalidInput) as exc_info:
        compute_totals([line("a", amount=1000)], Decimal("0.10"), ExtraFees(shipping=-1))

    assert exc_info.value.field == "shipping"


def test_deterministic():
    """Test that repeated calls give identical results."""
    items = [line("a", quantity=7, unit_price=12345), line("b", amount=777, taxable=False)]

    first = compute_totals(items, Decimal("0.08"))
    for _ in range(5):
        assert compute_totals(items, Decimal("0.08")) == first
