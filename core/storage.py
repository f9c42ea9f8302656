import copy
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

TABLES = ("subscriptions", "claims", "vendors", "wallet_entries", "wallets", "idempotency_index")

CLAIM_SEARCH_FIELDS = ("subscription_id", "plan_name", "service_category", "issue_description")


class UnitOfWork:
    """Staged writes against the storage, applied together on commit.

    Reads see the unit's own staged writes first, then committed data.
    Every record handed out is a copy; nothing reaches the store until
    commit, so an exception inside a transaction leaves it untouched.
    """

    def __init__(self, storage: "InMemoryStorage"):
        self._storage = storage
        self._staged: dict[tuple[str, str], Any] = {}

    def get(self, table: str, key: str) -> Any:
        if (table, key) in self._staged:
            return copy.deepcopy(self._staged[(table, key)])
        return self._storage.get(table, key)

    def put(self, table: str, key: str, record: Any) -> None:
        if table not in TABLES:
            raise KeyError(f"Unknown table {table}")
        self._staged[(table, key)] = copy.deepcopy(record)

    def commit(self) -> None:
        with self._storage._write_lock:
            for (table, key), record in self._staged.items():
                getattr(self._storage, table)[key] = record
        self._staged.clear()


class InMemoryStorage:
    def __init__(self):
        self.subscriptions: dict[str, dict] = {}
        self.claims: dict[str, dict] = {}
        self.vendors: dict[str, dict] = {}
        self.wallet_entries: dict[str, dict] = {}
        self.wallets: dict[str, dict] = {}
        self.idempotency_index: dict[str, str] = {}
        self.reconciliation_flags: list[dict] = []
        self._write_lock = threading.RLock()
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # Transactions

    def _lock_for(self, key: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(key, threading.RLock())

    @contextmanager
    def transaction(self, key: str) -> Iterator[UnitOfWork]:
        """Serialize read-modify-write cycles on one logical record group."""
        with self._lock_for(key):
            unit = UnitOfWork(self)
            yield unit
            unit.commit()

    # Generic access

    def get(self, table: str, key: str) -> Any:
        record = getattr(self, table).get(key)
        return copy.deepcopy(record) if record is not None else None

    # Subscriptions

    def find_subscription(self, identifier: str, user_id: Optional[str] = None) -> Optional[dict]:
        """Resolve a subscription by business id first, then by internal id."""
        candidates = [
            s for s in self.subscriptions.values()
            if user_id is None or s["user_id"] == user_id
        ]
        for field in ("subscription_id", "id"):
            for record in candidates:
                if record[field] == identifier:
                    return copy.deepcopy(record)
        return None

    # Claims

    def query_claims(
        self,
        filters: Optional[dict[str, Any]] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        descending: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> tuple[list[dict], int]:
        matches = [c for c in self.claims.values() if _matches(c, filters or {})]
        if search:
            needle = search.lower()
            matches = [
                c for c in matches
                if any(needle in _text(c.get(f)).lower() for f in CLAIM_SEARCH_FIELDS)
            ]
        matches.sort(key=lambda c: _sort_key(c.get(sort_by)), reverse=descending)
        total = len(matches)
        page = matches[offset:offset + limit] if limit is not None else matches[offset:]
        return [copy.deepcopy(c) for c in page], total

    def count_claims(self, **filters: Any) -> int:
        return sum(1 for c in self.claims.values() if _matches(c, filters))

    # Wallet

    def entries_for_vendor(self, vendor_id: str) -> list[dict]:
        return [
            copy.deepcopy(e) for e in self.wallet_entries.values()
            if e["vendor_id"] == vendor_id
        ]

    # Reconciliation

    def flag_for_reconciliation(self, kind: str, reference: str, detail: str) -> dict:
        flag = {
            "id": str(uuid4()),
            "kind": kind,
            "reference": reference,
            "detail": detail,
            "created_at": datetime.now(timezone.utc),
            "resolved": False,
        }
        with self._write_lock:
            self.reconciliation_flags.append(flag)
        logger.warning("Flagged %s for reconciliation: %s (%s)", reference, kind, detail)
        return flag

    def open_reconciliation_flags(self, kind: Optional[str] = None) -> list[dict]:
        return [
            copy.deepcopy(f) for f in self.reconciliation_flags
            if not f["resolved"] and (kind is None or f["kind"] == kind)
        ]


def _matches(record: dict, filters: dict[str, Any]) -> bool:
    return all(record.get(k) == v for k, v in filters.items() if v is not None)


def _text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value or "")


def _sort_key(value: Any) -> tuple:
    # None sorts before everything else regardless of the value's type
    if value is None:
        return (0, "")
    if isinstance(value, datetime):
        return (1, value.timestamp())
    return (1, value)
