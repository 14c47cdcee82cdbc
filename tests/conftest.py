"""Shared fixtures for the reconciler tests."""

from datetime import datetime
from decimal import Decimal

import pytz
import pytest

from tradenavi.models import (
    OriginKind,
    ShippingInfo,
    StatementItem,
    TradeRecord,
    TradeStatus,
)
from tradenavi.totals import apply_totals

TOKYO = pytz.timezone('Asia/Tokyo')


@pytest.fixture
def now():
    """Fixed transition timestamp."""
    return TOKYO.localize(datetime(2024, 6, 1, 12, 0, 0))


@pytest.fixture
def shipping():
    return ShippingInfo(
        company_name='Hokuriku Amusement',
        postal_code='920-0000',
        address='Kanazawa 1-2-3',
        phone='076-000-0000',
        contact_person='Tanaka',
    )


@pytest.fixture
def make_record():
    """Factory for canonical records with totals applied."""
    def _make(status=TradeStatus.REQUESTED, shipping=None, items=None, **overrides):
        if items is None:
            items = [StatementItem(line_id='a', item_name='CR Example', quantity=10, unit_price=80000)]
        fields = dict(
            id='navi-1',
            origin_kind=OriginKind.DIRECT_NAVI,
            seller_user_id='seller-1',
            buyer_user_id='buyer-1',
            seller_name='Kanto Machines',
            buyer_name='Hokuriku Amusement',
            items=items,
            tax_rate=Decimal('0.10'),
            status=status,
            created_at=TOKYO.localize(datetime(2024, 5, 1, 10, 0, 0)),
            updated_at=TOKYO.localize(datetime(2024, 5, 1, 10, 0, 0)),
            shipping=shipping,
        )
        fields.update(overrides)
        return apply_totals(TradeRecord(**fields))

    return _make


@pytest.fixture
def navi_raw():
    """Raw direct navi payload in its conditions shape."""
    return {
        'id': 101,
        'sellerUserId': 'seller-1',
        'buyerUserId': 'buyer-1',
        'sellerCompanyName': 'Kanto Machines',
        'buyerCompanyName': 'Hokuriku Amusement',
        'status': 'sent_to_buyer',
        'createdAt': '2024-05-01T10:00:00+09:00',
        'updatedAt': '2024-05-02T10:00:00+09:00',
        'conditions': {
            'productName': 'CR Example 7',
            'makerName': 'Sanyo',
            'quantity': 10,
            'unitPrice': 80000,
            'taxRate': 0.1,
            'shippingFee': 5000,
            'cardboardFee': {'label': 'Cardboard', 'amount': 1000},
        },
        'shipping': {
            'zip': '920-0000',
            'address': 'Kanazawa 1-2-3',
            'tel': '076-000-0000',
            'personName': 'Tanaka',
        },
    }


@pytest.fixture
def inquiry_raw():
    """Raw accepted online inquiry payload."""
    return {
        'id': 7,
        'sellerUserId': 'seller-2',
        'buyerUserId': 'buyer-1',
        'status': 'ACCEPTED',
        'productName': 'Slot Example',
        'makerName': 'Daito',
        'quantity': 3,
        'totalAmount': 330000,
        'sellerCompanyName': 'Kansai Trading',
        'createdAt': '2024-05-02T15:00:00+09:00',
        'updatedAt': '2024-05-05T11:00:00+09:00',
    }
