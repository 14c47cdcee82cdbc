"""Merge locally held drafts into the latest canonical record.

Drafts are best-effort caches: only shipping and item edits are read, and
the canonical status always wins.
"""

import logging
from typing import Any, List, Mapping, Union

from pydantic import ValidationError

from .exceptions import InvalidInput
from .models import TradeDraft, TradeRecord, TradeStatus
from .totals import apply_totals

logger = logging.getLogger(__name__)

# Statuses in which statement items may still change
ITEM_EDITABLE_STATUSES = frozenset({
    TradeStatus.REQUESTED,
    TradeStatus.APPROVAL_REQUIRED,
    TradeStatus.AWAITING_PAYMENT,
    TradeStatus.PAYMENT_CONFIRMED,
})


def _as_draft(draft: Union[TradeDraft, Mapping[str, Any]]) -> TradeDraft:
    if isinstance(draft, TradeDraft):
        return draft
    try:
        return TradeDraft.model_validate(dict(draft))
    except ValidationError as e:
        raise InvalidInput(f"Malformed draft: {e}") from e


def _check_draft_items(trade_id: str, draft: TradeDraft) -> None:
    if draft.items is None:
        return
    if not draft.items:
        raise InvalidInput(f"Draft for {trade_id} would empty the statement", field="items")
    line_ids = [item.line_id for item in draft.items]
    if len(set(line_ids)) != len(line_ids):
        raise InvalidInput(f"Draft for {trade_id} has duplicate line ids", field="items")


def _resolve(canonical: TradeRecord, draft: TradeDraft) -> dict:
    """Compute the field updates a merge would apply."""
    update = {}

    if canonical.is_terminal:
        if draft.items is not None or draft.shipping is not None:
            logger.info(f"Ignoring draft for {canonical.id}: trade is {canonical.status.value}")
        return update

    items_editable = canonical.status in ITEM_EDITABLE_STATUSES

    if draft.items is not None and list(draft.items) != list(canonical.items):
        if items_editable:
            _check_draft_items(canonical.id, draft)
            update["items"] = list(draft.items)
        else:
            logger.warning(
                f"Discarding stale item edits for {canonical.id}: "
                f"status is already {canonical.status.value}"
            )

    if draft.shipping is not None and not draft.shipping.is_empty():
        if draft.shipping != canonical.shipping:
            if items_editable or not canonical.has_shipping():
                update["shipping"] = draft.shipping
            else:
                logger.info(f"Keeping recorded shipping for {canonical.id}")

    return update


def diff(canonical: TradeRecord, draft: Union[TradeDraft, Mapping[str, Any]]) -> List[str]:
    """
    List the fields a merge of this draft would change.

    Args:
        canonical: Latest canonical record
        draft: Draft edits

    Returns:
        Field names (subset of ``items``, ``shipping``)
    """
    parsed = _as_draft(draft)
    return sorted(_resolve(canonical, parsed))


def merge(canonical: TradeRecord, draft: Union[TradeDraft, Mapping[str, Any]]) -> TradeRecord:
    """
    Reconcile a draft against the canonical record.

    - Item edits apply only before SHIPPING_ARRANGED; stale edits are dropped.
    - Shipping applies while items are editable, afterwards only if the
      canonical record has none yet. Terminal records are never touched.
    - Totals are recomputed when items change.

    Idempotent: merging the same draft twice gives the same record.

    Args:
        canonical: Latest canonical record
        draft: Draft edits (TradeDraft or a mapping; unknown keys ignored)

    Returns:
        Merged TradeRecord

    Raises:
        InvalidInput: If the draft is malformed, or its items would be
            applied but are empty or duplicated
    """
    parsed = _as_draft(draft)

    update = _resolve(canonical, parsed)
    if not update:
        return canonical

    merged = canonical.model_copy(update=update)
    if "items" in update:
        merged = apply_totals(merged)

    logger.debug(f"Merged draft into {canonical.id}: {sorted(update)}")
    return merged
