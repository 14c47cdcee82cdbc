"""Todo generation from the canonical status.

The table is keyed by status only; the viewer's role just picks which of the
two fixed descriptions is shown.
"""

from typing import Dict, List, NamedTuple, Optional, Tuple

from .models import ActorRole, TodoItem, TradeStatus

APPLICATION_SENT = "application_sent"
APPLICATION_APPROVED = "application_approved"
PAYMENT_CONFIRMED = "payment_confirmed"
TRADE_COMPLETED = "trade_completed"
TRADE_CANCELED = "trade_canceled"

TODO_KINDS = (
    APPLICATION_SENT,
    APPLICATION_APPROVED,
    PAYMENT_CONFIRMED,
    TRADE_COMPLETED,
    TRADE_CANCELED,
)


class TodoDef(NamedTuple):
    kind: str
    title: str
    assignee: ActorRole
    buyer: str
    seller: str


_STEPS: Dict[TradeStatus, TodoDef] = {
    TradeStatus.REQUESTED: TodoDef(
        APPLICATION_SENT,
        "Request pending",
        ActorRole.SELLER,
        buyer="The seller is preparing a trade request.",
        seller="Review the statement and send the request to the buyer.",
    ),
    TradeStatus.APPROVAL_REQUIRED: TodoDef(
        APPLICATION_SENT,
        "Awaiting approval",
        ActorRole.BUYER,
        buyer="A request has arrived and is awaiting your approval.",
        seller="Request sent. Awaiting buyer approval.",
    ),
    TradeStatus.AWAITING_PAYMENT: TodoDef(
        APPLICATION_APPROVED,
        "Awaiting payment",
        ActorRole.SELLER,
        buyer="Please transfer the payment before the shipping date.",
        seller="Confirm once the buyer's payment has been received.",
    ),
    TradeStatus.PAYMENT_CONFIRMED: TodoDef(
        PAYMENT_CONFIRMED,
        "Arrange shipping",
        ActorRole.SELLER,
        buyer="Payment confirmed. The seller is arranging shipment.",
        seller="Payment confirmed. Attach shipping info and arrange shipment.",
    ),
    TradeStatus.SHIPPING_ARRANGED: TodoDef(
        PAYMENT_CONFIRMED,
        "Awaiting completion",
        ActorRole.BUYER,
        buyer="Inspect the delivered machines and mark the trade complete.",
        seller="Shipment arranged. Awaiting delivery and inspection.",
    ),
    TradeStatus.COMPLETED: TodoDef(
        TRADE_COMPLETED,
        "Completed",
        ActorRole.BUYER,
        buyer="The trade is complete.",
        seller="The trade is complete.",
    ),
    TradeStatus.CANCELED: TodoDef(
        TRADE_CANCELED,
        "Canceled",
        ActorRole.BUYER,
        buyer="This trade was canceled.",
        seller="This trade was canceled.",
    ),
}

# Statuses whose todo is listed as history before the current one
_HISTORY: Dict[TradeStatus, Tuple[TradeStatus, ...]] = {
    TradeStatus.REQUESTED: (),
    TradeStatus.APPROVAL_REQUIRED: (),
    TradeStatus.AWAITING_PAYMENT: (TradeStatus.APPROVAL_REQUIRED,),
    TradeStatus.PAYMENT_CONFIRMED: (
        TradeStatus.APPROVAL_REQUIRED,
        TradeStatus.AWAITING_PAYMENT,
    ),
    # Shipping continues the payment_confirmed step
    TradeStatus.SHIPPING_ARRANGED: (
        TradeStatus.APPROVAL_REQUIRED,
        TradeStatus.AWAITING_PAYMENT,
    ),
    TradeStatus.COMPLETED: (
        TradeStatus.APPROVAL_REQUIRED,
        TradeStatus.AWAITING_PAYMENT,
        TradeStatus.PAYMENT_CONFIRMED,
    ),
    # The status before cancellation is not kept
    TradeStatus.CANCELED: (),
}

_ACTIVE = {
    TradeStatus.REQUESTED,
    TradeStatus.APPROVAL_REQUIRED,
    TradeStatus.AWAITING_PAYMENT,
    TradeStatus.PAYMENT_CONFIRMED,
    TradeStatus.SHIPPING_ARRANGED,
}


def _build(definition: TodoDef, role: ActorRole, active: bool) -> TodoItem:
    return TodoItem(
        kind=definition.kind,
        title=definition.title,
        description=definition.buyer if role == ActorRole.BUYER else definition.seller,
        assignee=definition.assignee,
        active=active,
    )


def generate_todos(status: TradeStatus, actor_role: ActorRole) -> List[TodoItem]:
    """
    Build the ordered todo list for a status as seen by one role.

    Completed steps come first (inactive); non-terminal statuses end with
    exactly one active todo, terminal ones have none.

    Args:
        status: Canonical status
        actor_role: Viewer role selecting the description

    Returns:
        Ordered list of TodoItem
    """
    todos = [_build(_STEPS[past], actor_role, active=False) for past in _HISTORY[status]]
    todos.append(_build(_STEPS[status], actor_role, active=status in _ACTIVE))
    return todos


def active_todo(todos: List[TodoItem]) -> Optional[TodoItem]:
    """Return the single active todo, if any."""
    return next((todo for todo in todos if todo.active), None)
