"""One-direction status graph for trades.

Edges are static data keyed by ``(from, to)``. Anything not listed is an
illegal transition; the machine never clamps to a nearby state.
"""

import logging
from datetime import datetime
from typing import Dict, NamedTuple, Optional, Tuple

from .exceptions import IllegalTransition, InvalidInput, UnsupportedOrigin
from .models import (
    Action,
    OriginKind,
    TERMINAL_STATUSES,
    TradeRecord,
    TradeStatus,
)

logger = logging.getLogger(__name__)


class Transition(NamedTuple):
    """Metadata for one edge of the status graph."""
    notes: str
    stamp: Optional[str] = None
    requires_shipping: bool = False
    snapshot_total: bool = False


_FORWARD_EDGES: Dict[Tuple[TradeStatus, TradeStatus], Transition] = {
    (TradeStatus.REQUESTED, TradeStatus.APPROVAL_REQUIRED): Transition(
        "Seller sends the request; the buyer must accept or reject.",
    ),
    (TradeStatus.APPROVAL_REQUIRED, TradeStatus.AWAITING_PAYMENT): Transition(
        "Buyer approves the conditions; the contract date is fixed.",
        stamp="contract_date",
        snapshot_total=True,
    ),
    (TradeStatus.AWAITING_PAYMENT, TradeStatus.PAYMENT_CONFIRMED): Transition(
        "Seller attests the payment was received.",
        stamp="payment_confirmed_at",
    ),
    (TradeStatus.PAYMENT_CONFIRMED, TradeStatus.SHIPPING_ARRANGED): Transition(
        "Seller arranges delivery to the attached shipping address.",
        requires_shipping=True,
    ),
    (TradeStatus.SHIPPING_ARRANGED, TradeStatus.COMPLETED): Transition(
        "Delivery and inspection confirmed out of band.",
        stamp="completed_at",
    ),
}

_CANCEL_EDGES: Dict[Tuple[TradeStatus, TradeStatus], Transition] = {
    (status, TradeStatus.CANCELED): Transition(
        "Either party aborts the trade.",
        stamp="canceled_at",
    )
    for status in TradeStatus
    if status not in TERMINAL_STATUSES
}

TRANSITIONS: Dict[Tuple[TradeStatus, TradeStatus], Transition] = {
    **_FORWARD_EDGES,
    **_CANCEL_EDGES,
}

ACTION_TARGETS: Dict[Action, TradeStatus] = {
    Action.SEND_REQUEST: TradeStatus.APPROVAL_REQUIRED,
    Action.APPROVE: TradeStatus.AWAITING_PAYMENT,
    Action.MARK_PAID: TradeStatus.PAYMENT_CONFIRMED,
    Action.ARRANGE_SHIPPING: TradeStatus.SHIPPING_ARRANGED,
    Action.MARK_COMPLETED: TradeStatus.COMPLETED,
    Action.CANCEL: TradeStatus.CANCELED,
}

# Raw vocabulary of direct navi requests (matched case-insensitively)
DIRECT_NAVI_STATUSES: Dict[str, TradeStatus] = {
    "requested": TradeStatus.REQUESTED,
    "sent_to_buyer": TradeStatus.APPROVAL_REQUIRED,
    "approval_required": TradeStatus.APPROVAL_REQUIRED,
    "buyer_approved": TradeStatus.AWAITING_PAYMENT,
    "awaiting_payment": TradeStatus.AWAITING_PAYMENT,
    "payment_required": TradeStatus.AWAITING_PAYMENT,
    "payment_confirmed": TradeStatus.PAYMENT_CONFIRMED,
    "confirm_required": TradeStatus.PAYMENT_CONFIRMED,
    "shipping_arranged": TradeStatus.SHIPPING_ARRANGED,
    "shipped": TradeStatus.SHIPPING_ARRANGED,
    "completed": TradeStatus.COMPLETED,
    "buyer_rejected": TradeStatus.CANCELED,
    "canceled": TradeStatus.CANCELED,
    "cancelled": TradeStatus.CANCELED,
}

# An accepted inquiry already negotiated its terms in the thread
ONLINE_INQUIRY_STATUSES: Dict[str, TradeStatus] = {
    "ACCEPTED": TradeStatus.APPROVAL_REQUIRED,
}


def derive_status(raw_status: str, origin_kind: OriginKind) -> TradeStatus:
    """
    Map a source-specific raw status onto the canonical status.

    Args:
        raw_status: Status string as stored by the raw source
        origin_kind: Origin whose vocabulary applies

    Returns:
        Canonical TradeStatus

    Raises:
        InvalidInput: If the raw status is not part of the origin's vocabulary
        UnsupportedOrigin: If the origin is unknown
    """
    try:
        origin_kind = OriginKind(origin_kind)
    except ValueError:
        raise UnsupportedOrigin(f"Unsupported origin kind: {origin_kind!r}")

    value = (raw_status or "").strip()

    if origin_kind == OriginKind.DIRECT_NAVI:
        status = DIRECT_NAVI_STATUSES.get(value.lower())
    else:
        status = ONLINE_INQUIRY_STATUSES.get(value.upper())

    if status is None:
        raise InvalidInput(
            f"Unknown {origin_kind.value} status: {raw_status!r}",
            field="status",
        )
    return status


def is_terminal(status: TradeStatus) -> bool:
    return status in TERMINAL_STATUSES


def target_for(action: Action) -> TradeStatus:
    """Status an action moves a trade into."""
    return ACTION_TARGETS[action]


def find_transition(current: TradeStatus, target: TradeStatus) -> Optional[Transition]:
    return TRANSITIONS.get((current, target))


def can_transition(current: TradeStatus, target: TradeStatus) -> bool:
    return (current, target) in TRANSITIONS


def transition(record: TradeRecord, target: TradeStatus, now: datetime) -> TradeRecord:
    """
    Move a record to a new status.

    Args:
        record: Current canonical record
        target: Requested status
        now: Timestamp recorded on the record

    Returns:
        New record with the status, updated_at and edge stamps applied

    Raises:
        IllegalTransition: If the edge does not exist or its precondition fails
    """
    current = record.status
    edge = find_transition(current, target)

    if edge is None:
        if is_terminal(current):
            message = f"Trade {record.id} is {current.value}; no further transitions allowed"
        else:
            message = f"No transition from {current.value} to {target.value}"
        raise IllegalTransition(message, current=current, target=target)

    if edge.requires_shipping and not record.has_shipping():
        raise IllegalTransition(
            f"Trade {record.id} needs shipping info before {target.value}",
            current=current,
            target=target,
        )

    if target != TradeStatus.CANCELED and not record.items:
        raise IllegalTransition(
            f"Trade {record.id} has no statement items",
            current=current,
            target=target,
        )

    update = {"status": target, "updated_at": now}
    if edge.stamp and getattr(record, edge.stamp) is None:
        update[edge.stamp] = now
    if edge.snapshot_total and record.payment_amount is None:
        update["payment_amount"] = record.total_amount

    logger.info(f"Trade {record.id}: {current.value} -> {target.value}")
    return record.model_copy(update=update)
