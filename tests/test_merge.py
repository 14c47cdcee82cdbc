"""Tests for draft merging."""

import pytest

from tradenavi.exceptions import InvalidInput
from tradenavi.merge import diff, merge
from tradenavi.models import ShippingInfo, StatementItem, TradeDraft, TradeStatus


@pytest.fixture
def new_items():
    return [
        StatementItem(line_id='a', item_name='CR Example', quantity=5, unit_price=80000),
        StatementItem(line_id='b', item_name='Recycling fee', amount=2000, is_taxable=False),
    ]


def test_item_edit_applies_while_editable(make_record, new_items):
    record = make_record(TradeStatus.APPROVAL_REQUIRED)

    merged = merge(record, TradeDraft(items=new_items))

    assert merged.items == new_items
    # 400,000 taxed + 2,000 exempt
    assert merged.total_amount == 442000
    assert merged.quantity == 5
    assert merged.status == TradeStatus.APPROVAL_REQUIRED


def test_stale_item_edit_is_discarded(make_record, new_items, shipping):
    """Test that item edits after shipping was arranged are dropped."""
    record = make_record(TradeStatus.SHIPPING_ARRANGED, shipping=shipping)

    merged = merge(record, TradeDraft(items=new_items))

    assert merged == record
    assert merged.total_amount == 880000


def test_canonical_status_wins(make_record):
    """Test that a draft can never move the status."""
    record = make_record(TradeStatus.AWAITING_PAYMENT)

    merged = merge(record, {'status': 'COMPLETED', 'totalAmount': 1})

    assert merged.status == TradeStatus.AWAITING_PAYMENT
    assert merged.total_amount == 880000


def test_shipping_attached_from_draft(make_record, shipping):
    record = make_record(TradeStatus.PAYMENT_CONFIRMED)

    merged = merge(record, {'shipping': shipping.model_dump(by_alias=True)})

    assert merged.shipping == shipping
    assert merged.has_shipping()


def test_shipping_kept_once_arranged(make_record, shipping):
    record = make_record(TradeStatus.SHIPPING_ARRANGED, shipping=shipping)
    other = ShippingInfo(address='Osaka 4-5-6', contact_person='Sato')

    merged = merge(record, TradeDraft(shipping=other))

    assert merged.shipping == shipping


def test_empty_shipping_draft_ignored(make_record, shipping):
    record = make_record(TradeStatus.APPROVAL_REQUIRED, shipping=shipping)

    merged = merge(record, TradeDraft(shipping=ShippingInfo()))

    assert merged.shipping == shipping


def test_terminal_record_untouched(make_record, new_items):
    record = make_record(TradeStatus.CANCELED)

    merged = merge(record, TradeDraft(items=new_items))

    assert merged == record


def test_merge_is_idempotent(make_record, new_items, shipping):
    record = make_record(TradeStatus.REQUESTED)
    draft = TradeDraft(items=new_items, shipping=shipping)

    once = merge(record, draft)
    twice = merge(once, draft)

    assert once == twice


def test_empty_draft_items_rejected(make_record):
    record = make_record(TradeStatus.REQUESTED)

    with pytest.raises(InvalidInput):
        merge(record, {'items': []})


def test_duplicate_draft_line_ids_rejected(make_record):
    record = make_record(TradeStatus.REQUESTED)
    draft = {'items': [{'lineId': 'a', 'amount': 1}, {'lineId': 'a', 'amount': 2}]}

    with pytest.raises(InvalidInput):
        merge(record, draft)


def test_malformed_draft_rejected(make_record):
    record = make_record(TradeStatus.REQUESTED)

    with pytest.raises(InvalidInput):
        merge(record, {'items': [{'amount': 'lots'}]})


def test_diff_lists_changed_fields(make_record, new_items, shipping):
    record = make_record(TradeStatus.REQUESTED)

    assert diff(record, TradeDraft(items=new_items, shipping=shipping)) == ['items', 'shipping']
    assert diff(record, TradeDraft(items=list(record.items))) == []


@pytest.mark.parametrize('stale_items', [
    [],
    [{'lineId': 'a', 'amount': 1}, {'lineId': 'a', 'amount': 2}],
])
def test_stale_invalid_items_do_not_block_shipping(make_record, stale_items):
    """Test that discarded item edits are not validated and shipping still applies."""
    record = make_record(TradeStatus.SHIPPING_ARRANGED)
    draft = {'items': stale_items, 'shipping': {'address': 'Tokyo'}}

    merged = merge(record, draft)

    assert merged.items == record.items
    assert merged.total_amount == 880000
    assert merged.shipping.address == 'Tokyo'
    assert diff(record, draft) == ['shipping']


def test_invalid_items_ignored_on_terminal_record(make_record):
    record = make_record(TradeStatus.COMPLETED)

    assert merge(record, {'items': []}) == record
