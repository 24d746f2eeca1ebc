"""Processed-event ledger for webhook deduplication.

Stripe delivers events at least once. An event ID is recorded here only
after the automation endpoint confirmed the forward, and remembered for the
signature tolerance window times a safety factor. Redeliveries inside that
window are acknowledged without forwarding again.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Protocol

from labpay.services.dynamodb import DynamoDBService
from labpay.utils.logging import get_logger

logger = get_logger(__name__)


class EventLedger(Protocol):
    """Bounded set of event IDs already forwarded downstream."""

    def is_processed(self, event_id: str) -> bool: ...

    def mark_processed(self, event_id: str) -> None: ...


class InMemoryEventLedger:
    """Process-local ledger with expiry and a size bound.

    Oldest entries are evicted first when max_entries is reached.
    """

    def __init__(
        self,
        retention_seconds: float,
        *,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._retention = retention_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()

    def _purge(self, now: float) -> None:
        while self._entries:
            event_id, expires_at = next(iter(self._entries.items()))
            if expires_at > now:
                break
            del self._entries[event_id]

    def is_processed(self, event_id: str) -> bool:
        with self._lock:
            self._purge(self._clock())
            return event_id in self._entries

    def mark_processed(self, event_id: str) -> None:
        with self._lock:
            now = self._clock()
            self._purge(now)
            self._entries.pop(event_id, None)
            self._entries[event_id] = now + self._retention
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class DynamoDBEventLedger:
    """Ledger shared across instances.

    Table: <prefix>-processed-events, partition key "event_id" (S), with
    DynamoDB TTL enabled on "expires_at". TTL deletion is lazy, so reads
    also compare expires_at against the clock.
    """

    TABLE = "processed-events"

    def __init__(
        self,
        db: DynamoDBService,
        retention_seconds: float,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db = db
        self._retention = retention_seconds
        self._clock = clock

    def is_processed(self, event_id: str) -> bool:
        item = self._db.get_item(self.TABLE, {"event_id": event_id}, consistent_read=True)
        if item is None:
            return False
        return int(item["expires_at"]) > self._clock()

    def mark_processed(self, event_id: str) -> None:
        now = self._clock()
        self._db.put_item(
            self.TABLE,
            {
                "event_id": event_id,
                "processed_at": int(now),
                "expires_at": int(now + self._retention),
            },
        )
        logger.debug("Recorded processed event %s", event_id)
