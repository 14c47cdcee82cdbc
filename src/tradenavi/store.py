"""Record store contract and a thread-safe in-memory implementation."""

import copy
import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Protocol, Union

from .models import ActorRole, OriginKind, TradeRecord
from .normalizer import qualified_id

logger = logging.getLogger(__name__)

Payload = Union[TradeRecord, Dict[str, Any]]


class WriteOutcome(str, Enum):
    OK = "ok"
    CONFLICT = "conflict"


class StoredTrade(NamedTuple):
    """
    A versioned store entry.

    ``payload`` is a canonical TradeRecord once the engine has written it,
    otherwise the raw source mapping tagged with ``originKind``.
    """
    version: int
    payload: Payload


class TradeStore(Protocol):
    def get_by_id(self, trade_id: str) -> Optional[StoredTrade]:
        ...

    def list_by_owner(self, user_id: str, role: ActorRole) -> List[StoredTrade]:
        ...

    def write(self, trade_id: str, record: TradeRecord, expected_version: int) -> WriteOutcome:
        ...


def _party_id(payload: Payload, role: ActorRole) -> Optional[str]:
    if isinstance(payload, TradeRecord):
        return payload.buyer_user_id if role == ActorRole.BUYER else payload.seller_user_id
    key = "buyerUserId" if role == ActorRole.BUYER else "sellerUserId"
    return payload.get(key)


class InMemoryTradeStore:
    """
    Versioned in-memory store with optimistic concurrency.

    Every successful write bumps the entry version; a write whose
    expected version is stale is rejected with CONFLICT.
    """

    def __init__(self):
        self._entries: Dict[str, StoredTrade] = {}
        self._lock = threading.Lock()

    def put_raw(self, raw: Mapping[str, Any], origin_kind: OriginKind) -> str:
        """
        Seed a raw source payload.

        Args:
            raw: Raw payload (camelCase keys, must include ``id``)
            origin_kind: Origin the payload came from

        Returns:
            Source-qualified trade id the entry is stored under
        """
        origin = OriginKind(origin_kind)
        payload = dict(copy.deepcopy(raw))
        payload["originKind"] = origin.value
        trade_id = qualified_id(payload["id"], origin)

        with self._lock:
            previous = self._entries.get(trade_id)
            version = previous.version + 1 if previous else 1
            self._entries[trade_id] = StoredTrade(version, payload)

        logger.debug(f"Seeded {trade_id} at version {version}")
        return trade_id

    def get_by_id(self, trade_id: str) -> Optional[StoredTrade]:
        with self._lock:
            entry = self._entries.get(trade_id)
        if entry is None:
            return None
        if isinstance(entry.payload, dict):
            return StoredTrade(entry.version, copy.deepcopy(entry.payload))
        return entry

    def list_by_owner(self, user_id: str, role: ActorRole) -> List[StoredTrade]:
        with self._lock:
            entries = list(self._entries.values())
        return [
            StoredTrade(e.version, copy.deepcopy(e.payload) if isinstance(e.payload, dict) else e.payload)
            for e in entries
            if _party_id(e.payload, role) == user_id
        ]

    def write(self, trade_id: str, record: TradeRecord, expected_version: int) -> WriteOutcome:
        with self._lock:
            current = self._entries.get(trade_id)
            current_version = current.version if current else 0

            if current_version != expected_version:
                logger.info(
                    f"Write conflict on {trade_id}: expected v{expected_version}, "
                    f"found v{current_version}"
                )
                return WriteOutcome.CONFLICT

            self._entries[trade_id] = StoredTrade(current_version + 1, record)

        logger.debug(f"Wrote {trade_id} at version {current_version + 1}")
        return WriteOutcome.OK

    def trade_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)
