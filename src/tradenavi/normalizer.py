"""Normalization of raw source payloads into canonical trade records.

Two raw shapes exist: direct navi requests and accepted online inquiries.
They are only ever looked at here; everything downstream works on TradeRecord.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Union

from pydantic import AliasChoices, Field, ValidationError, field_validator

from .exceptions import InvalidInput, UnsupportedOrigin
from .models import (
    CamelModel,
    DEFAULT_TAX_RATE,
    ExtraFees,
    OriginKind,
    ShippingInfo,
    StatementItem,
    TradeRecord,
    to_decimal,
)
from .status_machine import ONLINE_INQUIRY_STATUSES, derive_status
from .totals import apply_totals

logger = logging.getLogger(__name__)

ORIGIN_PREFIXES = {
    OriginKind.DIRECT_NAVI: "navi",
    OriginKind.ONLINE_INQUIRY: "inquiry",
}


class RawFee(CamelModel):
    label: str = ""
    amount: Optional[int] = None


class RawShipping(CamelModel):
    company_name: str = ""
    postal_code: str = Field(default="", validation_alias=AliasChoices("postalCode", "postal_code", "zip"))
    address: str = ""
    phone: str = Field(default="", validation_alias=AliasChoices("phone", "tel"))
    contact_person: str = Field(
        default="",
        validation_alias=AliasChoices("contactPerson", "contact_person", "personName"),
    )


class RawNaviConditions(CamelModel):
    unit_price: Optional[int] = None
    quantity: Optional[int] = None
    product_name: str = ""
    maker_name: str = ""
    tax_rate: Optional[Decimal] = None
    shipping_fee: Optional[int] = None
    handling_fee: Optional[int] = None
    cardboard_fee: Optional[RawFee] = None
    nail_sheet_fee: Optional[RawFee] = None
    insurance_fee: Optional[RawFee] = None

    @field_validator("tax_rate", mode="before")
    @classmethod
    def coerce_tax_rate(cls, v):
        return to_decimal(v)


class DirectNaviRaw(CamelModel):
    """A negotiated trade request as stored by the navi source."""
    id: Union[int, str]
    seller_user_id: str
    buyer_user_id: str
    seller_name: str = Field(default="", validation_alias=AliasChoices("sellerName", "sellerCompanyName"))
    buyer_name: str = Field(default="", validation_alias=AliasChoices("buyerName", "buyerCompanyName"))
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    contract_date: Optional[datetime] = None
    payment_amount: Optional[int] = None
    payment_confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    items: Optional[List[StatementItem]] = None
    conditions: Optional[RawNaviConditions] = None
    tax_rate: Optional[Decimal] = None
    fees: Optional[ExtraFees] = None
    shipping: Optional[RawShipping] = None

    @field_validator("id")
    @classmethod
    def id_as_str(cls, v) -> str:
        return str(v)

    @field_validator("tax_rate", mode="before")
    @classmethod
    def coerce_tax_rate(cls, v):
        return to_decimal(v)


class OnlineInquiryRaw(CamelModel):
    """A marketplace inquiry thread."""
    id: Union[int, str]
    listing_id: Optional[str] = None
    seller_user_id: str
    buyer_user_id: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    maker_name: Optional[str] = None
    machine_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("machineName", "productName"),
    )
    quantity: int = 1
    total_amount: int
    buyer_company_name: Optional[str] = None
    seller_company_name: Optional[str] = None
    shipping_address: Optional[str] = None
    contact_person: Optional[str] = None

    @field_validator("total_amount")
    @classmethod
    def total_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("totalAmount cannot be negative")
        return v


def qualified_id(raw_id: Any, origin_kind: OriginKind) -> str:
    """Build the source-qualified trade id (unique across both origins)."""
    prefix = ORIGIN_PREFIXES[OriginKind(origin_kind)]
    raw = str(raw_id)
    if raw.startswith(f"{prefix}-"):
        return raw
    return f"{prefix}-{raw}"


def _fee_amount(fee: Optional[RawFee]) -> int:
    if fee is None or fee.amount is None:
        return 0
    return fee.amount


def _items_from_conditions(conditions: RawNaviConditions) -> List[StatementItem]:
    return [
        StatementItem(
            line_id="main-item",
            item_name=conditions.product_name or "Machine",
            maker=conditions.maker_name or None,
            quantity=conditions.quantity or 1,
            unit_price=conditions.unit_price,
            is_taxable=True,
        )
    ]


def _fees_from_conditions(conditions: RawNaviConditions) -> ExtraFees:
    return ExtraFees(
        shipping=conditions.shipping_fee or 0,
        handling=conditions.handling_fee or 0,
        cardboard=_fee_amount(conditions.cardboard_fee),
        nail_sheet=_fee_amount(conditions.nail_sheet_fee),
        insurance=_fee_amount(conditions.insurance_fee),
    )


def _check_items(trade_id: str, items: List[StatementItem]) -> None:
    if not items:
        raise InvalidInput(f"Trade {trade_id} has no statement items", field="items")

    seen = set()
    for item in items:
        if item.line_id in seen:
            raise InvalidInput(
                f"Duplicate line id {item.line_id!r} in trade {trade_id}",
                field="items",
            )
        seen.add(item.line_id)


def _normalize_navi(raw: Mapping[str, Any], default_tax_rate: Decimal) -> TradeRecord:
    parsed = DirectNaviRaw.model_validate(raw)
    trade_id = qualified_id(parsed.id, OriginKind.DIRECT_NAVI)
    conditions = parsed.conditions

    if parsed.items is not None:
        items = list(parsed.items)
    elif conditions is not None:
        items = _items_from_conditions(conditions)
    else:
        items = []
    _check_items(trade_id, items)

    if parsed.fees is not None:
        fees = parsed.fees
    elif conditions is not None:
        fees = _fees_from_conditions(conditions)
    else:
        fees = ExtraFees()

    tax_rate = parsed.tax_rate
    if tax_rate is None and conditions is not None:
        tax_rate = conditions.tax_rate
    if tax_rate is None:
        tax_rate = default_tax_rate

    shipping = None
    if parsed.shipping is not None:
        shipping = ShippingInfo(**parsed.shipping.model_dump())
        if shipping.is_empty():
            shipping = None

    return TradeRecord(
        id=trade_id,
        origin_kind=OriginKind.DIRECT_NAVI,
        seller_user_id=parsed.seller_user_id,
        buyer_user_id=parsed.buyer_user_id,
        seller_name=parsed.seller_name,
        buyer_name=parsed.buyer_name,
        items=items,
        tax_rate=tax_rate,
        fees=fees,
        status=derive_status(parsed.status, OriginKind.DIRECT_NAVI),
        created_at=parsed.created_at,
        updated_at=parsed.updated_at,
        contract_date=parsed.contract_date,
        payment_amount=parsed.payment_amount,
        payment_confirmed_at=parsed.payment_confirmed_at,
        completed_at=parsed.completed_at,
        canceled_at=parsed.canceled_at,
        shipping=shipping,
    )


def _normalize_inquiry(raw: Mapping[str, Any], default_tax_rate: Decimal) -> TradeRecord:
    parsed = OnlineInquiryRaw.model_validate(raw)
    trade_id = qualified_id(parsed.id, OriginKind.ONLINE_INQUIRY)

    # Raises for anything that is not an accepted inquiry
    status = derive_status(parsed.status, OriginKind.ONLINE_INQUIRY)

    # Tax was settled in the inquiry thread: one flat, untaxed line
    item = StatementItem(
        line_id=f"{trade_id}-main",
        item_name=parsed.machine_name or "Machine",
        maker=parsed.maker_name,
        quantity=parsed.quantity,
        amount=parsed.total_amount,
        is_taxable=False,
    )

    shipping = None
    if parsed.shipping_address or parsed.contact_person:
        shipping = ShippingInfo(
            company_name=parsed.buyer_company_name or "",
            address=parsed.shipping_address or "",
            contact_person=parsed.contact_person or "",
        )

    return TradeRecord(
        id=trade_id,
        origin_kind=OriginKind.ONLINE_INQUIRY,
        seller_user_id=parsed.seller_user_id,
        buyer_user_id=parsed.buyer_user_id,
        seller_name=parsed.seller_company_name or "",
        buyer_name=parsed.buyer_company_name or "",
        items=[item],
        tax_rate=default_tax_rate,
        status=status,
        created_at=parsed.created_at,
        updated_at=parsed.updated_at,
        shipping=shipping,
    )


def normalize(
    raw: Mapping[str, Any],
    origin_kind: OriginKind,
    default_tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> TradeRecord:
    """
    Map a raw payload from either origin into a canonical TradeRecord.

    Totals are always recomputed; a raw total is never copied verbatim.
    No deduplication happens here.

    Args:
        raw: Raw payload (camelCase keys)
        origin_kind: DIRECT_NAVI or ONLINE_INQUIRY
        default_tax_rate: Rate used when the raw payload carries none

    Returns:
        Canonical TradeRecord with totals applied

    Raises:
        UnsupportedOrigin: If origin_kind is not a known origin
        InvalidInput: If the payload does not match the origin's raw shape
    """
    try:
        origin = OriginKind(origin_kind)
    except ValueError:
        logger.error(f"Unsupported origin kind: {origin_kind!r}")
        raise UnsupportedOrigin(f"Unsupported origin kind: {origin_kind!r}")

    try:
        if origin == OriginKind.DIRECT_NAVI:
            record = _normalize_navi(raw, default_tax_rate)
        else:
            record = _normalize_inquiry(raw, default_tax_rate)
    except ValidationError as e:
        raise InvalidInput(f"Malformed {origin.value} payload: {e}") from e

    record = apply_totals(record)
    logger.debug(f"Normalized {record.id} ({origin.value}) status={record.status.value}")
    return record


def is_accepted_inquiry(raw: Mapping[str, Any]) -> bool:
    """True for inquiry payloads that have become trades."""
    return str(raw.get("status", "")).strip().upper() in ONLINE_INQUIRY_STATUSES
