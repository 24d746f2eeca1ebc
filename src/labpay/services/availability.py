"""Seat availability and reservations.

check_available() is the cheap read-only gate on the CMS seat counter. On its
own it is racy: the counter is only decremented by automation after payment,
so two buyers can both pass the gate for the last seat. SeatReservations
closes that window by holding a seat atomically between the gate and the
end of the Checkout Session.

An unpaid hold lasts the Checkout Session lifetime plus the CMS cache TTL.
Committing a hold shortens it to committed_hold_seconds from the commit,
enough for automation to decrement the counter and for the cache to pick
the new value up. After that the CMS count alone reflects the sale. A
session that expires unpaid releases its hold early.
"""

import threading
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from labpay.models.errors import UpstreamUnavailableError
from labpay.models.listing import Listing
from labpay.models.reservation import ReservationToken
from labpay.services.dynamodb import DynamoDBService
from labpay.utils.logging import get_logger

logger = get_logger(__name__)


def check_available(listing: Listing) -> bool:
    """Return False only when the seat count is present and <= 0."""
    seats = listing.seats_remaining
    return seats is None or seats > 0


def new_token(listing_id: str) -> str:
    """Build a hold token. The listing ID is recoverable from the token."""
    return f"hold_{uuid.uuid4().hex}:{listing_id}"


def listing_id_from_token(token: str) -> str:
    return token.partition(":")[2]


def _as_datetime(epoch: float) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


def _committed_expiry(expires_at: float, now: float, window: float | None) -> float:
    """Expiry of a hold once paid. None keeps the expiry set at reserve time."""
    if window is None:
        return expires_at
    return min(expires_at, now + window)


class SeatReservations(Protocol):
    """Atomic seat holds for in-flight checkouts."""

    def reserve(self, listing_id: str, capacity: int) -> ReservationToken | None:
        """Hold one seat, or return None when all seats are held."""
        ...

    def release(self, token: str) -> bool:
        """Drop an uncommitted hold. Returns False if unknown or committed."""
        ...

    def commit(self, token: str) -> bool:
        """Mark a hold as paid and shorten it to the settlement window."""
        ...

    def held_count(self, listing_id: str) -> int:
        """Number of unexpired holds for a listing."""
        ...


@dataclass
class _Hold:
    listing_id: str
    expires_at: float
    committed: bool = False


class InMemorySeatLedger:
    """Seat holds for a single process, serialized per listing."""

    def __init__(
        self,
        hold_seconds: float,
        *,
        committed_hold_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._hold_seconds = hold_seconds
        self._committed_hold_seconds = committed_hold_seconds
        self._clock = clock
        self._holds: dict[str, _Hold] = {}
        self._listing_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._guard = threading.Lock()

    def _lock_for(self, listing_id: str) -> threading.Lock:
        with self._guard:
            return self._listing_locks[listing_id]

    def _active(self, listing_id: str, now: float) -> list[str]:
        expired = [
            token
            for token, hold in self._holds.items()
            if hold.listing_id == listing_id and hold.expires_at <= now
        ]
        for token in expired:
            del self._holds[token]
        return [token for token, hold in self._holds.items() if hold.listing_id == listing_id]

    def reserve(self, listing_id: str, capacity: int) -> ReservationToken | None:
        with self._lock_for(listing_id):
            now = self._clock()
            if len(self._active(listing_id, now)) >= capacity:
                logger.info("Seat hold denied: lab=%s capacity=%d", listing_id, capacity)
                return None

            token = new_token(listing_id)
            expires_at = now + self._hold_seconds
            self._holds[token] = _Hold(listing_id=listing_id, expires_at=expires_at)
            return ReservationToken(
                token=token,
                listing_id=listing_id,
                expires_at=_as_datetime(expires_at),
            )

    def release(self, token: str) -> bool:
        with self._lock_for(listing_id_from_token(token)):
            hold = self._holds.get(token)
            if hold is None or hold.committed:
                return False
            del self._holds[token]
            return True

    def commit(self, token: str) -> bool:
        with self._lock_for(listing_id_from_token(token)):
            hold = self._holds.get(token)
            if hold is None:
                return False
            if not hold.committed:
                hold.committed = True
                hold.expires_at = _committed_expiry(
                    hold.expires_at, self._clock(), self._committed_hold_seconds
                )
            return True

    def held_count(self, listing_id: str) -> int:
        with self._lock_for(listing_id):
            return len(self._active(listing_id, self._clock()))


class DynamoDBSeatLedger:
    """Seat holds shared across instances via a versioned DynamoDB item.

    One item per listing holds a map of token -> {expires_at, committed}.
    Every change is a compare-and-swap on the item's version attribute, so
    concurrent reservations for the same listing serialize.

    Table: <prefix>-seat-holds, partition key "listing_id" (S).
    """

    TABLE = "seat-holds"
    MAX_CAS_ATTEMPTS = 5

    def __init__(
        self,
        db: DynamoDBService,
        hold_seconds: float,
        *,
        committed_hold_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db = db
        self._hold_seconds = hold_seconds
        self._committed_hold_seconds = committed_hold_seconds
        self._clock = clock

    def _load(self, listing_id: str) -> tuple[dict[str, dict[str, Any]], int | None]:
        item = self._db.get_item(self.TABLE, {"listing_id": listing_id}, consistent_read=True)
        if item is None:
            return {}, None
        holds = {
            token: {
                "expires_at": int(hold["expires_at"]),
                "committed": bool(hold.get("committed", False)),
            }
            for token, hold in (item.get("holds") or {}).items()
        }
        return holds, int(item["version"])

    def _store(
        self,
        listing_id: str,
        holds: dict[str, dict[str, Any]],
        version: int | None,
    ) -> bool:
        item = {
            "listing_id": listing_id,
            "holds": holds,
            "version": (version or 0) + 1,
        }
        if version is None:
            return self._db.put_item(
                self.TABLE,
                item,
                condition_expression="attribute_not_exists(listing_id)",
            )
        return self._db.put_item(
            self.TABLE,
            item,
            condition_expression="#v = :expected",
            expression_attribute_values={":expected": version},
            expression_attribute_names={"#v": "version"},
        )

    def _mutate(
        self,
        listing_id: str,
        change: Callable[[dict[str, dict[str, Any]], float], tuple[bool, Any]],
    ) -> Any:
        """Apply change() to the unexpired holds and CAS the result back.

        change() edits the map in place and returns (write, result). When
        write is False the item is left untouched.
        """
        for _ in range(self.MAX_CAS_ATTEMPTS):
            holds, version = self._load(listing_id)
            now = self._clock()
            live = {t: h for t, h in holds.items() if h["expires_at"] > now}
            write, result = change(live, now)
            if not write:
                return result
            if self._store(listing_id, live, version):
                return result
            logger.debug("Seat hold CAS conflict for lab %s, retrying", listing_id)

        raise UpstreamUnavailableError("Seat reservation store is busy, please retry")

    def reserve(self, listing_id: str, capacity: int) -> ReservationToken | None:
        def change(live: dict[str, dict[str, Any]], now: float) -> tuple[bool, Any]:
            if len(live) >= capacity:
                return False, None
            token = new_token(listing_id)
            expires_at = int(now + self._hold_seconds)
            live[token] = {"expires_at": expires_at, "committed": False}
            return True, ReservationToken(
                token=token,
                listing_id=listing_id,
                expires_at=_as_datetime(expires_at),
            )

        reservation = self._mutate(listing_id, change)
        if reservation is None:
            logger.info("Seat hold denied: lab=%s capacity=%d", listing_id, capacity)
        return reservation

    def release(self, token: str) -> bool:
        def change(live: dict[str, dict[str, Any]], now: float) -> tuple[bool, Any]:
            hold = live.get(token)
            if hold is None or hold["committed"]:
                return False, False
            del live[token]
            return True, True

        return bool(self._mutate(listing_id_from_token(token), change))

    def commit(self, token: str) -> bool:
        def change(live: dict[str, dict[str, Any]], now: float) -> tuple[bool, Any]:
            hold = live.get(token)
            if hold is None:
                return False, False
            if hold["committed"]:
                return False, True
            hold["committed"] = True
            hold["expires_at"] = int(
                _committed_expiry(hold["expires_at"], now, self._committed_hold_seconds)
            )
            return True, True

        return bool(self._mutate(listing_id_from_token(token), change))

    def held_count(self, listing_id: str) -> int:
        holds, _ = self._load(listing_id)
        now = self._clock()
        return sum(1 for hold in holds.values() if hold["expires_at"] > now)
