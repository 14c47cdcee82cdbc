"""Tests for raw payload normalization."""

from decimal import Decimal

import pytest

from tradenavi.exceptions import InvalidInput, UnsupportedOrigin
from tradenavi.models import OriginKind, TradeStatus
from tradenavi.normalizer import is_accepted_inquiry, normalize, qualified_id


def test_navi_conditions_shape(navi_raw):
    record = normalize(navi_raw, OriginKind.DIRECT_NAVI)

    assert record.id == 'navi-101'
    assert record.origin_kind == OriginKind.DIRECT_NAVI
    assert record.status == TradeStatus.APPROVAL_REQUIRED
    assert record.seller_name == 'Kanto Machines'
    assert record.buyer_name == 'Hokuriku Amusement'

    assert len(record.items) == 1
    item = record.items[0]
    assert item.item_name == 'CR Example 7'
    assert item.maker == 'Sanyo'
    assert item.quantity == 10
    assert item.unit_price == 80000
    assert item.is_taxable

    assert record.fees.shipping == 5000
    assert record.fees.cardboard == 1000
    assert record.tax_rate == Decimal('0.1')


def test_navi_totals_are_recomputed(navi_raw):
    """Test that a raw total is never copied verbatim."""
    navi_raw['totalAmount'] = 1
    record = normalize(navi_raw, OriginKind.DIRECT_NAVI)

    # 800,000 + 6,000 fees, 10% tax floored
    assert record.total_amount == 886600
    assert record.quantity == 10


def test_navi_shipping_aliases(navi_raw):
    record = normalize(navi_raw, OriginKind.DIRECT_NAVI)

    assert record.shipping.postal_code == '920-0000'
    assert record.shipping.phone == '076-000-0000'
    assert record.shipping.contact_person == 'Tanaka'
    assert record.has_shipping()


def test_navi_items_shape():
    raw = {
        'id': 'abc',
        'sellerUserId': 's',
        'buyerUserId': 'b',
        'status': 'requested',
        'items': [
            {'lineId': 'a', 'quantity': 2, 'unitPrice': 15000},
            {'lineId': 'b', 'amount': 3000, 'isTaxable': False},
        ],
        'fees': {'shipping': 5000},
    }
    record = normalize(raw, OriginKind.DIRECT_NAVI)

    assert record.id == 'navi-abc'
    assert record.status == TradeStatus.REQUESTED
    assert record.tax_rate == Decimal('0.10')
    # 30,000 + 5,000 taxable, 3,000 exempt
    assert record.total_amount == 41500


def test_navi_default_tax_rate():
    raw = {
        'id': 1,
        'sellerUserId': 's',
        'buyerUserId': 'b',
        'status': 'requested',
        'items': [{'lineId': 'a', 'amount': 1000}],
    }
    record = normalize(raw, OriginKind.DIRECT_NAVI, default_tax_rate=Decimal('0.08'))

    assert record.tax_rate == Decimal('0.08')
    assert record.total_amount == 1080


def test_navi_without_items_rejected():
    raw = {'id': 1, 'sellerUserId': 's', 'buyerUserId': 'b', 'status': 'requested'}

    with pytest.raises(InvalidInput):
        normalize(raw, OriginKind.DIRECT_NAVI)


def test_navi_duplicate_line_ids_rejected():
    raw = {
        'id': 1,
        'sellerUserId': 's',
        'buyerUserId': 'b',
        'status': 'requested',
        'items': [{'lineId': 'a', 'amount': 1}, {'lineId': 'a', 'amount': 2}],
    }

    with pytest.raises(InvalidInput):
        normalize(raw, OriginKind.DIRECT_NAVI)


def test_navi_missing_party_rejected(navi_raw):
    del navi_raw['buyerUserId']

    with pytest.raises(InvalidInput):
        normalize(navi_raw, OriginKind.DIRECT_NAVI)


def test_navi_unknown_status_rejected(navi_raw):
    navi_raw['status'] = 'archived'

    with pytest.raises(InvalidInput):
        normalize(navi_raw, OriginKind.DIRECT_NAVI)


def test_accepted_inquiry(inquiry_raw):
    """Test that an accepted inquiry becomes one untaxed line awaiting approval."""
    record = normalize(inquiry_raw, OriginKind.ONLINE_INQUIRY)

    assert record.id == 'inquiry-7'
    assert record.status == TradeStatus.APPROVAL_REQUIRED
    assert len(record.items) == 1

    item = record.items[0]
    assert item.line_id == 'inquiry-7-main'
    assert item.item_name == 'Slot Example'
    assert item.amount == 330000
    assert not item.is_taxable

    assert record.total_amount == 330000
    assert record.quantity == 3
    assert record.seller_name == 'Kansai Trading'


def test_inquiry_not_accepted_rejected(inquiry_raw):
    inquiry_raw['status'] = 'NEGOTIATING'

    with pytest.raises(InvalidInput):
        normalize(inquiry_raw, OriginKind.ONLINE_INQUIRY)


def test_inquiry_negative_total_rejected(inquiry_raw):
    inquiry_raw['totalAmount'] = -1

    with pytest.raises(InvalidInput):
        normalize(inquiry_raw, OriginKind.ONLINE_INQUIRY)


def test_ids_are_unique_across_origins(navi_raw, inquiry_raw):
    """Test that equal raw ids from both origins never collide."""
    inquiry_raw['id'] = navi_raw['id']

    navi = normalize(navi_raw, OriginKind.DIRECT_NAVI)
    inquiry = normalize(inquiry_raw, OriginKind.ONLINE_INQUIRY)

    assert navi.id != inquiry.id


def test_unsupported_origin(navi_raw):
    with pytest.raises(UnsupportedOrigin):
        normalize(navi_raw, 'FAX')


def test_qualified_id_is_stable():
    assert qualified_id(5, OriginKind.DIRECT_NAVI) == 'navi-5'
    assert qualified_id('navi-5', OriginKind.DIRECT_NAVI) == 'navi-5'
    assert qualified_id(5, OriginKind.ONLINE_INQUIRY) == 'inquiry-5'


def test_is_accepted_inquiry():
    assert is_accepted_inquiry({'status': 'ACCEPTED'})
    assert is_accepted_inquiry({'status': ' accepted '})
    assert not is_accepted_inquiry({'status': 'OPEN'})
    assert not is_accepted_inquiry({})
