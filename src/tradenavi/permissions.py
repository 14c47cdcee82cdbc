"""Permission gate: which role may perform which action at which status."""

from typing import Dict, FrozenSet, List, Tuple

from .models import Action, ActorRole, TERMINAL_STATUSES, TradeStatus

BOTH_ROLES = frozenset({ActorRole.BUYER, ActorRole.SELLER})

PERMISSIONS: Dict[Tuple[Action, TradeStatus], FrozenSet[ActorRole]] = {
    (Action.SEND_REQUEST, TradeStatus.REQUESTED): frozenset({ActorRole.SELLER}),
    (Action.APPROVE, TradeStatus.APPROVAL_REQUIRED): frozenset({ActorRole.BUYER}),
    (Action.MARK_PAID, TradeStatus.AWAITING_PAYMENT): frozenset({ActorRole.SELLER}),
    (Action.ARRANGE_SHIPPING, TradeStatus.PAYMENT_CONFIRMED): frozenset({ActorRole.SELLER}),
    (Action.MARK_COMPLETED, TradeStatus.SHIPPING_ARRANGED): BOTH_ROLES,
}

PERMISSIONS.update({
    (Action.CANCEL, status): BOTH_ROLES
    for status in TradeStatus
    if status not in TERMINAL_STATUSES
})


def is_allowed(actor_role: ActorRole, status: TradeStatus, action: Action) -> bool:
    """
    Check whether a role may perform an action at the given status.

    Pure lookup; anything outside the permission table is denied.

    Args:
        actor_role: BUYER or SELLER relative to the trade
        status: Current canonical status
        action: Requested action

    Returns:
        True if allowed
    """
    return actor_role in PERMISSIONS.get((action, status), frozenset())


def is_possible(status: TradeStatus, action: Action) -> bool:
    """True if some role may perform the action at this status."""
    return bool(PERMISSIONS.get((action, status)))


def allowed_actions(actor_role: ActorRole, status: TradeStatus) -> List[Action]:
    """Actions the role may perform now, in declaration order."""
    return [action for action in Action if is_allowed(actor_role, status, action)]
