"""Pydantic models for the canonical trade record and its parts."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_TAX_RATE = Decimal("0.10")


class OriginKind(str, Enum):
    """Raw source a trade was normalized from."""
    DIRECT_NAVI = "DIRECT_NAVI"
    ONLINE_INQUIRY = "ONLINE_INQUIRY"


class TradeStatus(str, Enum):
    """Canonical workflow states."""
    REQUESTED = "REQUESTED"
    APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    SHIPPING_ARRANGED = "SHIPPING_ARRANGED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


TERMINAL_STATUSES = frozenset({TradeStatus.COMPLETED, TradeStatus.CANCELED})


class ActorRole(str, Enum):
    """Role of a user relative to a specific trade."""
    BUYER = "BUYER"
    SELLER = "SELLER"


class Action(str, Enum):
    """Actions an actor can request on a trade."""
    SEND_REQUEST = "SEND_REQUEST"
    APPROVE = "APPROVE"
    MARK_PAID = "MARK_PAID"
    ARRANGE_SHIPPING = "ARRANGE_SHIPPING"
    MARK_COMPLETED = "MARK_COMPLETED"
    CANCEL = "CANCEL"


def to_decimal(value):
    # floats go through str() so 0.1 stays 0.1
    if isinstance(value, float):
        return Decimal(str(value))
    return value


class CamelModel(BaseModel):
    """Base model accepting both snake_case names and camelCase wire keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class StatementItem(CamelModel):
    """One priced line (or flat fee) of a trade statement."""
    line_id: str
    item_name: str = ""
    maker: Optional[str] = None
    quantity: Optional[int] = None
    unit_price: Optional[int] = None
    amount: Optional[int] = None
    is_taxable: bool = True
    note: Optional[str] = None


class ShippingInfo(CamelModel):
    """Delivery destination attached once the buyer side is known."""
    company_name: str = ""
    postal_code: str = ""
    address: str = ""
    phone: str = ""
    contact_person: str = ""

    def is_empty(self) -> bool:
        return not any([
            self.company_name.strip(),
            self.postal_code.strip(),
            self.address.strip(),
            self.phone.strip(),
            self.contact_person.strip(),
        ])


class ExtraFees(CamelModel):
    """Per-trade fees added on top of the statement items (yen)."""
    shipping: int = 0
    handling: int = 0
    cardboard: int = 0
    nail_sheet: int = 0
    insurance: int = 0

    def total(self) -> int:
        return self.shipping + self.handling + self.cardboard + self.nail_sheet + self.insurance


class Totals(CamelModel):
    """Result of the totals calculation."""
    subtotal: int
    taxable_subtotal: int
    fees_total: int
    tax: int
    total: int
    quantity: int


class TodoItem(CamelModel):
    """A role-specific pending action derived from the trade status."""
    kind: str
    title: str
    description: str
    assignee: ActorRole
    active: bool


class TradeRecord(CamelModel):
    """
    Canonical, origin-agnostic trade.

    ``quantity`` and ``total_amount`` are recomputed by the totals calculator;
    ``todos`` is derived per requesting actor and never persisted.
    ``payment_amount`` snapshots the total the buyer approved.
    """
    id: str
    origin_kind: OriginKind
    seller_user_id: str
    buyer_user_id: str
    seller_name: str = ""
    buyer_name: str = ""

    items: List[StatementItem] = Field(default_factory=list)
    tax_rate: Decimal = DEFAULT_TAX_RATE
    fees: ExtraFees = Field(default_factory=ExtraFees)
    quantity: int = 0
    total_amount: int = 0

    status: TradeStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    contract_date: Optional[datetime] = None
    payment_amount: Optional[int] = None
    payment_confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    shipping: Optional[ShippingInfo] = None
    todos: List[TodoItem] = Field(default_factory=list)

    @field_validator("tax_rate", mode="before")
    @classmethod
    def coerce_tax_rate(cls, v):
        return to_decimal(v)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def has_shipping(self) -> bool:
        return self.shipping is not None and not self.shipping.is_empty()

    def without_todos(self) -> "TradeRecord":
        """Copy suitable for persisting (derived todos stripped)."""
        return self.model_copy(update={"todos": []})


class TradeDraft(CamelModel):
    """Locally held edits; only shipping and items are ever merged, other keys are dropped."""

    shipping: Optional[ShippingInfo] = None
    items: Optional[List[StatementItem]] = None
