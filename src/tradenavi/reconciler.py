"""Reconciliation facade: list trades for an actor and apply actions to them."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Union

import pytz

from .exceptions import (
    Conflict,
    Forbidden,
    IllegalTransition,
    InvalidInput,
    TradeNotFound,
    UnsupportedOrigin,
)
from .merge import merge
from .models import (
    Action,
    ActorRole,
    DEFAULT_TAX_RATE,
    ExtraFees,
    OriginKind,
    StatementItem,
    Totals,
    TradeDraft,
    TradeRecord,
)
from .normalizer import is_accepted_inquiry, normalize
from .permissions import is_allowed, is_possible
from .status_machine import target_for, transition
from .store import StoredTrade, TradeStore, WriteOutcome
from .todos import generate_todos
from .totals import compute_totals

logger = logging.getLogger(__name__)

RawFetcher = Callable[[str], Iterable[Mapping[str, Any]]]

DEFAULT_MAX_WRITE_RETRIES = 3


class IdentityResolver(Protocol):
    def resolve_role(self, user_id: str, record: TradeRecord) -> Optional[ActorRole]:
        ...


class PartyIdentityResolver:
    """Resolves the role from the buyer/seller user ids on the record."""

    def resolve_role(self, user_id: str, record: TradeRecord) -> Optional[ActorRole]:
        if user_id and user_id == record.buyer_user_id:
            return ActorRole.BUYER
        if user_id and user_id == record.seller_user_id:
            return ActorRole.SELLER
        return None


def _sort_key(record: TradeRecord) -> float:
    stamp = record.updated_at or record.created_at
    if stamp is None:
        return 0.0
    if stamp.tzinfo is None:
        stamp = pytz.utc.localize(stamp)
    return stamp.timestamp()


class TradeReconciler:
    """
    Composes normalizer, status machine, permission gate, todos and merge
    around an external record store.

    Status changes run as read-validate-write units against the store's
    version check and are retried on conflict up to ``max_write_retries``.
    """

    def __init__(
        self,
        store: TradeStore,
        identity: Optional[IdentityResolver] = None,
        navi_fetcher: Optional[RawFetcher] = None,
        inquiry_fetcher: Optional[RawFetcher] = None,
        max_write_retries: int = DEFAULT_MAX_WRITE_RETRIES,
        default_tax_rate: Decimal = DEFAULT_TAX_RATE,
        timezone: str = "Asia/Tokyo",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the reconciler.

        Args:
            store: Record store with optimistic versioning
            identity: Resolves a user's role on a trade (defaults to party ids)
            navi_fetcher: Yields raw direct navi payloads for a user
            inquiry_fetcher: Yields raw online inquiry payloads for a user
            max_write_retries: Attempts before a write conflict is surfaced
            default_tax_rate: Tax rate when neither raw payload nor caller gives one
            timezone: Timezone for transition timestamps
            clock: Override for the current time (tests)
        """
        self.store = store
        self.identity = identity or PartyIdentityResolver()
        self.navi_fetcher = navi_fetcher
        self.inquiry_fetcher = inquiry_fetcher
        self.max_write_retries = max(1, max_write_retries)
        self.default_tax_rate = default_tax_rate
        self.timezone = pytz.timezone(timezone)
        self._clock = clock

    @classmethod
    def from_config(cls, config: Dict[str, Any], store: TradeStore, **kwargs) -> "TradeReconciler":
        """Build a reconciler from a validated configuration dictionary."""
        return cls(
            store,
            max_write_retries=config["reconciler"]["max_write_retries"],
            default_tax_rate=Decimal(str(config["trades"]["default_tax_rate"])),
            timezone=config["trades"]["timezone"],
            **kwargs,
        )

    def now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        return datetime.now(self.timezone)

    # Reads

    def _normalize_payload(self, payload: Union[TradeRecord, Mapping[str, Any]]) -> TradeRecord:
        if isinstance(payload, TradeRecord):
            return payload
        origin = payload.get("originKind")
        if origin is None:
            raise UnsupportedOrigin(f"Stored payload {payload.get('id')!r} carries no originKind")
        return normalize(payload, origin, self.default_tax_rate)

    def _load(self, trade_id: str) -> StoredTrade:
        entry = self.store.get_by_id(trade_id)
        if entry is None:
            raise TradeNotFound(f"Trade not found: {trade_id}")
        return StoredTrade(entry.version, self._normalize_payload(entry.payload))

    def _collect_raw(
        self,
        fetcher: Optional[RawFetcher],
        origin: OriginKind,
        user_id: str,
        records: Dict[str, TradeRecord],
    ) -> None:
        if fetcher is None:
            return

        for raw in fetcher(user_id):
            if origin == OriginKind.ONLINE_INQUIRY and not is_accepted_inquiry(raw):
                logger.debug(f"Skipping inquiry {raw.get('id')} with status {raw.get('status')}")
                continue
            try:
                record = normalize(raw, origin, self.default_tax_rate)
            except InvalidInput as e:
                logger.warning(f"Skipping malformed {origin.value} record {raw.get('id')}: {e}")
                continue
            records[record.id] = record

    def list_trades(self, actor_user_id: str) -> List[TradeRecord]:
        """
        List the trades the actor is a party to, with todos for that actor.

        Raw fetcher records come first; store entries override them by id.

        Args:
            actor_user_id: Requesting user

        Returns:
            Trades sorted by most recent update first

        Raises:
            UnsupportedOrigin: If a raw record carries an unknown origin
        """
        records: Dict[str, TradeRecord] = {}

        self._collect_raw(self.navi_fetcher, OriginKind.DIRECT_NAVI, actor_user_id, records)
        self._collect_raw(self.inquiry_fetcher, OriginKind.ONLINE_INQUIRY, actor_user_id, records)

        for role in ActorRole:
            for entry in self.store.list_by_owner(actor_user_id, role):
                try:
                    record = self._normalize_payload(entry.payload)
                except InvalidInput as e:
                    logger.warning(f"Skipping malformed stored record: {e}")
                    continue
                records[record.id] = record

        trades = []
        for record in records.values():
            role = self.identity.resolve_role(actor_user_id, record)
            if role is None:
                continue
            trades.append(self.with_todos(record, role))

        trades.sort(key=_sort_key, reverse=True)
        logger.info(f"Listed {len(trades)} trades for {actor_user_id}")
        return trades

    def with_todos(self, record: TradeRecord, role: ActorRole) -> TradeRecord:
        """Attach the role's todo list to a record."""
        return record.model_copy(update={"todos": generate_todos(record.status, role)})

    # Writes

    def _write(self, trade_id: str, record: TradeRecord, version: int) -> bool:
        outcome = self.store.write(trade_id, record.without_todos(), version)
        return outcome == WriteOutcome.OK

    def apply_action(self, trade_id: str, actor_user_id: str, action: Action) -> TradeRecord:
        """
        Apply an action to a trade as the given user.

        Args:
            trade_id: Source-qualified trade id
            actor_user_id: Acting user
            action: Requested action

        Returns:
            Updated record with the actor's todos attached

        Raises:
            TradeNotFound: If the store has no such trade
            Forbidden: If the actor may not perform the action now
            IllegalTransition: If no one could perform the action at this status,
                or the transition's precondition fails
            Conflict: If concurrent writes keep winning the race
        """
        action = Action(action)

        for attempt in range(1, self.max_write_retries + 1):
            version, record = self._load(trade_id)

            role = self.identity.resolve_role(actor_user_id, record)
            if role is None:
                raise Forbidden(f"User {actor_user_id} is not a party to trade {trade_id}")

            if not is_allowed(role, record.status, action):
                if not is_possible(record.status, action):
                    raise IllegalTransition(
                        f"{action.value} is not possible while trade {trade_id} "
                        f"is {record.status.value}",
                        current=record.status,
                        target=target_for(action),
                    )
                raise Forbidden(
                    f"{role.value} may not {action.value} trade {trade_id} "
                    f"while it is {record.status.value}"
                )

            updated = transition(record, target_for(action), self.now())

            if self._write(trade_id, updated, version):
                logger.info(f"{actor_user_id} ({role.value}) applied {action.value} to {trade_id}")
                return self.with_todos(updated, role)

            logger.warning(
                f"Write conflict applying {action.value} to {trade_id} "
                f"(attempt {attempt}/{self.max_write_retries})"
            )

        raise Conflict(
            f"Trade {trade_id} kept changing; gave up after {self.max_write_retries} attempts",
            attempts=self.max_write_retries,
        )

    def merge_draft(self, trade_id: str, draft: Union[TradeDraft, Mapping[str, Any]]) -> TradeRecord:
        """
        Merge a locally held draft into the stored trade.

        Args:
            trade_id: Source-qualified trade id
            draft: Draft edits (shipping and/or items)

        Returns:
            Merged canonical record

        Raises:
            TradeNotFound: If the store has no such trade
            InvalidInput: If the draft is malformed
            Conflict: If concurrent writes keep winning the race
        """
        for attempt in range(1, self.max_write_retries + 1):
            version, record = self._load(trade_id)
            merged = merge(record, draft)

            if merged == record:
                return merged

            if self._write(trade_id, merged, version):
                logger.info(f"Merged draft into {trade_id}")
                return merged

            logger.warning(
                f"Write conflict merging draft into {trade_id} "
                f"(attempt {attempt}/{self.max_write_retries})"
            )

        raise Conflict(
            f"Trade {trade_id} kept changing; gave up after {self.max_write_retries} attempts",
            attempts=self.max_write_retries,
        )

    def compute_totals(
        self,
        items: Iterable[StatementItem],
        tax_rate=None,
        fees: Optional[ExtraFees] = None,
    ) -> Totals:
        """Preview totals for a quote; falls back to the configured tax rate."""
        rate = self.default_tax_rate if tax_rate is None else tax_rate
        return compute_totals(items, rate, fees)
