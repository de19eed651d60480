"""
Hold Engine - Time-boxed exclusivity on a show or show request.

A hold is requested by one side (PENDING), then approved (ACTIVE), declined or
cancelled. An ACTIVE hold ends by expiring or being ended early. While a hold
is ACTIVE, competing OPEN/PENDING opportunities for the same artist and date are
FROZEN; they are UNFROZEN when the hold is released.

At most one PENDING or ACTIVE hold may exist per document. create_hold_request
checks first, and the uq_hold_requests_open_document index catches the race.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from psycopg2 import errors as pg_errors

from bookyr.config import config
from bookyr.db.connection import get_db_cursor
from bookyr.models import (
    HoldRequest, BookingOpportunity,
    PENDING, ACTIVE, EXPIRED, CANCELLED, DECLINED, OPEN,
    OPEN_HOLD_STATUSES, HOLD_STATE_FROZEN, HOLD_STATE_UNFROZEN,
)
from bookyr.bus.events import (
    bus, EVENT_HOLD_REQUESTED, EVENT_HOLD_APPROVED, EVENT_HOLD_DECLINED,
    EVENT_HOLD_CANCELLED, EVENT_HOLD_EXPIRED,
)
from bookyr.engine.booking import is_terminal, row_to_hold, row_to_opportunity
from bookyr.engine.permissions import Identity, is_party_to
from bookyr.logging_config import log_call

logger = logging.getLogger(__name__)

# (label, hours) in the order the request form offers them
HOLD_DURATION_PRESETS = (
    ('24 hours', 24),
    ('48 hours', 48),
    ('72 hours', 72),
    ('1 week', 168),
)

HOLD_ACTIONS = ('approve', 'decline', 'cancel')

URGENCY_CRITICAL = 'critical'
URGENCY_WARNING = 'warning'
URGENCY_GOOD = 'good'
URGENCY_EXPIRED = 'expired'

URGENCY_COLORS = {
    URGENCY_CRITICAL: 'red',
    URGENCY_WARNING: 'yellow',
    URGENCY_GOOD: 'green',
    URGENCY_EXPIRED: 'bright_black',
}


class HoldConflictError(ValueError):
    """A PENDING or ACTIVE hold already exists for the document."""

    def __init__(self, document_id: str):
        super().__init__(f"An active hold already exists for document {document_id}")
        self.document_id = document_id


class HoldPermissionError(ValueError):
    """The identity may not perform this hold action."""


class HoldNotFoundError(LookupError):
    pass


# =============================================================================
# VALIDATION + GATES (pure)
# =============================================================================

def validate_hold_request(hold: HoldRequest) -> None:
    """Raises ValueError for a hold request that must never reach the database."""
    if bool(hold.show_id) == bool(hold.show_request_id):
        raise ValueError("Must specify exactly one of show_id or show_request_id")
    if not hold.reason or not hold.reason.strip():
        raise ValueError("A reason is required to request a hold")
    if not hold.requested_by_id:
        raise ValueError("requested_by_id is required")
    max_hours = config.HOLD_MAX_DURATION_HOURS
    if not isinstance(hold.duration, int) or not 1 <= hold.duration <= max_hours:
        raise ValueError(f"Duration must be between 1 and {max_hours} hours")


def can_create_hold(identity: Identity, document, existing_hold: Optional[HoldRequest]) -> bool:
    """No open hold on the document, and identity is its artist or a member of its venue."""
    if existing_hold is not None and existing_hold.status in OPEN_HOLD_STATUSES:
        return False
    return is_party_to(identity, document)


def can_respond_to_hold(identity: Identity, hold: Optional[HoldRequest]) -> bool:
    return hold is not None and hold.status == PENDING and hold.requested_by_id != identity.user_id


def can_cancel_hold(identity: Identity, hold: Optional[HoldRequest]) -> bool:
    return hold is not None and hold.status == PENDING and hold.requested_by_id == identity.user_id


# =============================================================================
# COUNTDOWN + URGENCY (pure)
# =============================================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def time_remaining(expires_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[timedelta]:
    """Time left before expires_at, or None when there is none left."""
    if expires_at is None:
        return None
    remaining = expires_at - (now or _utcnow())
    return remaining if remaining > timedelta(0) else None


def get_hold_urgency(remaining: Optional[timedelta]) -> str:
    if remaining is None or remaining <= timedelta(0):
        return URGENCY_EXPIRED
    if remaining <= timedelta(hours=2):
        return URGENCY_CRITICAL
    if remaining <= timedelta(hours=6):
        return URGENCY_WARNING
    return URGENCY_GOOD


def format_time_remaining(remaining: Optional[timedelta]) -> str:
    """'5h 12m', '12m' or 'Expired'."""
    if remaining is None or remaining <= timedelta(0):
        return 'Expired'
    total_minutes = int(remaining.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


class HoldCountdown:
    """
    Remaining time on an ACTIVE hold, recomputed from expires_at on every tick.
    on_expired is called the first time a tick finds no time left, and never again.
    """

    def __init__(self, expires_at: datetime, on_expired: Optional[Callable[[], None]] = None):
        self.expires_at = expires_at
        self.on_expired = on_expired
        self.remaining: Optional[timedelta] = None
        self._fired = False

    @property
    def expired(self) -> bool:
        return self._fired

    @property
    def urgency(self) -> str:
        return get_hold_urgency(self.remaining)

    def tick(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        self.remaining = time_remaining(self.expires_at, now)
        if self.remaining is None and not self._fired:
            self._fired = True
            if self.on_expired:
                self.on_expired()
        return self.remaining


def should_clear_declined(hold: HoldRequest, now: Optional[datetime] = None) -> bool:
    """Declined holds drop off the hold panel a few seconds after the response."""
    if hold.status != DECLINED or hold.responded_at is None:
        return False
    delay = timedelta(seconds=config.HOLD_DECLINED_CLEAR_SECONDS)
    return (now or _utcnow()) >= hold.responded_at + delay


# =============================================================================
# PERSISTENCE
# =============================================================================

def _load_document(cur, document_id: str) -> Optional[BookingOpportunity]:
    cur.execute("""
        SELECT * FROM booking_opportunities
        WHERE id = %s AND deleted_at IS NULL
    """, (document_id,))
    row = cur.fetchone()
    return row_to_opportunity(row) if row else None


def _open_hold_for_document(cur, document_id: str) -> Optional[HoldRequest]:
    cur.execute("""
        SELECT * FROM hold_requests
        WHERE (show_id = %s OR show_request_id = %s) AND status = ANY(%s)
        ORDER BY created_at DESC
        LIMIT 1
    """, (document_id, document_id, list(OPEN_HOLD_STATUSES)))
    row = cur.fetchone()
    return row_to_hold(row) if row else None


def _lock_hold(cur, hold_id: str) -> HoldRequest:
    cur.execute("SELECT * FROM hold_requests WHERE id = %s FOR UPDATE", (hold_id,))
    row = cur.fetchone()
    if not row:
        raise HoldNotFoundError(f"Hold request {hold_id} not found")
    return row_to_hold(row)


def _set_hold_status(cur, hold_id: str, status: str, now: datetime,
                     responded_by_id: Optional[str] = None,
                     starts_at: Optional[datetime] = None,
                     expires_at: Optional[datetime] = None) -> HoldRequest:
    cur.execute("""
        UPDATE hold_requests
        SET status = %(status)s,
            responded_at = %(now)s,
            responded_by_id = COALESCE(%(responded_by_id)s, responded_by_id),
            starts_at = COALESCE(%(starts_at)s, starts_at),
            expires_at = COALESCE(%(expires_at)s, expires_at),
            updated_at = %(now)s
        WHERE id = %(id)s
        RETURNING *
    """, {
        'id': hold_id,
        'status': status,
        'now': now,
        'responded_by_id': responded_by_id,
        'starts_at': starts_at,
        'expires_at': expires_at,
    })
    return row_to_hold(cur.fetchone())


def freeze_competing_opportunities(cur, hold: HoldRequest, document: BookingOpportunity,
                                   now: datetime) -> List[str]:
    """
    Freeze the other OPEN/PENDING opportunities for the same artist on the same date.
    Returns the ids that were frozen.
    """
    cur.execute("""
        UPDATE booking_opportunities
        SET hold_state = %(frozen)s,
            frozen_by_hold_id = %(hold_id)s,
            frozen_at = %(now)s,
            updated_at = %(now)s
        WHERE artist_id = %(artist_id)s
          AND LEFT(proposed_date, 10) = LEFT(%(proposed_date)s, 10)
          AND id <> %(document_id)s
          AND status IN (%(open)s, %(pending)s)
          AND hold_state <> %(frozen)s
          AND deleted_at IS NULL
        RETURNING id
    """, {
        'frozen': HOLD_STATE_FROZEN,
        'hold_id': hold.id,
        'now': now,
        'artist_id': document.artist_id,
        'proposed_date': document.proposed_date,
        'document_id': document.id,
        'open': OPEN,
        'pending': PENDING,
    })
    frozen_ids = [row['id'] for row in cur.fetchall()]
    if frozen_ids:
        logger.info(f"Hold {hold.id} froze {len(frozen_ids)} competing opportunities")
    return frozen_ids


def unfreeze_opportunities(cur, hold_id: str, now: datetime) -> List[str]:
    """Release everything a hold froze. Returns the ids that were unfrozen."""
    cur.execute("""
        UPDATE booking_opportunities
        SET hold_state = %s, frozen_by_hold_id = NULL, unfrozen_at = %s, updated_at = %s
        WHERE frozen_by_hold_id = %s
        RETURNING id
    """, (HOLD_STATE_UNFROZEN, now, now, hold_id))
    unfrozen_ids = [row['id'] for row in cur.fetchall()]
    if unfrozen_ids:
        logger.info(f"Hold {hold_id} released {len(unfrozen_ids)} frozen opportunities")
    return unfrozen_ids


@log_call
def create_hold_request(hold: HoldRequest, identity: Identity) -> HoldRequest:
    """
    Request a hold on a show or show request.

    Raises:
        ValueError: bad duration / reason / document ids
        LookupError: document not found
        HoldPermissionError: identity is not a party to the document
        HoldConflictError: a PENDING or ACTIVE hold already exists
    """
    hold = replace(hold, requested_by_id=hold.requested_by_id or identity.user_id)
    validate_hold_request(hold)
    if hold.requested_by_id != identity.user_id:
        raise HoldPermissionError("Holds can only be requested on your own behalf")

    document_id = hold.document_id
    now = _utcnow()

    with get_db_cursor() as cur:
        document = _load_document(cur, document_id)
        if document is None:
            raise LookupError(f"Document {document_id} not found")

        existing = _open_hold_for_document(cur, document_id)
        if existing is not None:
            raise HoldConflictError(document_id)
        if not can_create_hold(identity, document, existing):
            raise HoldPermissionError("You can only request holds on your own shows or requests")

        try:
            cur.execute("""
                INSERT INTO hold_requests (
                    id, show_id, show_request_id, requested_by_id, duration, reason,
                    custom_message, status, requested_at, created_at, updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
            """, (
                str(uuid.uuid4()), hold.show_id, hold.show_request_id, hold.requested_by_id,
                hold.duration, hold.reason.strip(), hold.custom_message, PENDING, now, now, now,
            ))
        except pg_errors.UniqueViolation as e:
            raise HoldConflictError(document_id) from e

        created = row_to_hold(cur.fetchone())
        logger.info(f"Hold {created.id} requested on {document_id} for {created.duration}h by {created.requested_by_id}")

        bus.emit(EVENT_HOLD_REQUESTED, {'hold_id': created.id, 'document_id': document_id, 'hold': created})

        return created


def get_hold_request(hold_id: str) -> Optional[HoldRequest]:
    with get_db_cursor() as cur:
        cur.execute("SELECT * FROM hold_requests WHERE id = %s", (hold_id,))
        row = cur.fetchone()
        return row_to_hold(row) if row else None


def list_hold_requests(
    user_id: Optional[str] = None,
    show_id: Optional[str] = None,
    show_request_id: Optional[str] = None,
    statuses: Optional[Iterable[str]] = None,
) -> List[HoldRequest]:
    """Holds, newest first. user_id limits to holds the user requested or answered."""
    conditions = []
    params: List[Any] = []

    if user_id:
        conditions.append("(requested_by_id = %s OR responded_by_id = %s)")
        params.extend([user_id, user_id])

    if show_id:
        conditions.append("show_id = %s")
        params.append(show_id)

    if show_request_id:
        conditions.append("show_request_id = %s")
        params.append(show_request_id)

    if statuses:
        conditions.append("status = ANY(%s)")
        params.append(list(statuses))

    where_clause = " AND ".join(conditions) if conditions else "TRUE"

    with get_db_cursor() as cur:
        cur.execute(f"""
            SELECT * FROM hold_requests
            WHERE {where_clause}
            ORDER BY created_at DESC
        """, params)
        return [row_to_hold(row) for row in cur.fetchall()]


@log_call
def approve_hold(hold_id: str, identity: Identity) -> HoldRequest:
    """Counterparty grants the hold: ACTIVE for `duration` hours, competitors frozen."""
    now = _utcnow()
    with get_db_cursor() as cur:
        hold = _lock_hold(cur, hold_id)
        if not can_respond_to_hold(identity, hold):
            raise HoldPermissionError(f"Cannot approve hold {hold_id} (status {hold.status})")

        document = _load_document(cur, hold.document_id)
        if document is None:
            raise LookupError(f"Document {hold.document_id} not found")
        if not is_party_to(identity, document):
            raise HoldPermissionError("Only the other party to the booking can approve a hold")
        if is_terminal(document.status):
            raise HoldPermissionError(f"Cannot approve a hold on a {document.status} booking")

        updated = _set_hold_status(cur, hold_id, ACTIVE, now, responded_by_id=identity.user_id,
                                   starts_at=now, expires_at=now + timedelta(hours=hold.duration))
        frozen_ids = freeze_competing_opportunities(cur, updated, document, now)

        logger.info(f"Hold {hold_id} approved, expires {updated.expires_at.isoformat()}")
        bus.emit(EVENT_HOLD_APPROVED, {'hold_id': hold_id, 'hold': updated, 'frozen_ids': frozen_ids})
        return updated


@log_call
def decline_hold(hold_id: str, identity: Identity) -> HoldRequest:
    now = _utcnow()
    with get_db_cursor() as cur:
        hold = _lock_hold(cur, hold_id)
        if not can_respond_to_hold(identity, hold):
            raise HoldPermissionError(f"Cannot decline hold {hold_id} (status {hold.status})")

        document = _load_document(cur, hold.document_id)
        if document is None:
            raise LookupError(f"Document {hold.document_id} not found")
        if not is_party_to(identity, document):
            raise HoldPermissionError("Only the other party to the booking can decline a hold")

        updated = _set_hold_status(cur, hold_id, DECLINED, now, responded_by_id=identity.user_id)
        logger.info(f"Hold {hold_id} declined by {identity.user_id}")
        bus.emit(EVENT_HOLD_DECLINED, {'hold_id': hold_id, 'hold': updated})
        return updated


@log_call
def cancel_hold(hold_id: str, identity: Identity) -> HoldRequest:
    """Requester withdraws a PENDING hold."""
    now = _utcnow()
    with get_db_cursor() as cur:
        hold = _lock_hold(cur, hold_id)
        if not can_cancel_hold(identity, hold):
            raise HoldPermissionError(f"Cannot cancel hold {hold_id} (status {hold.status})")

        updated = _set_hold_status(cur, hold_id, CANCELLED, now)
        logger.info(f"Hold {hold_id} cancelled by requester")
        bus.emit(EVENT_HOLD_CANCELLED, {'hold_id': hold_id, 'hold': updated, 'unfrozen_ids': []})
        return updated


@log_call
def end_hold_early(hold_id: str, identity: Identity) -> HoldRequest:
    """Either party ends an ACTIVE hold before it runs out."""
    now = _utcnow()
    with get_db_cursor() as cur:
        hold = _lock_hold(cur, hold_id)
        if hold.status != ACTIVE:
            raise HoldPermissionError(f"Only ACTIVE holds can be ended early (hold {hold_id} is {hold.status})")

        document = _load_document(cur, hold.document_id)
        if document is not None and not is_party_to(identity, document):
            raise HoldPermissionError("Only a party to the booking can end a hold")

        updated = _set_hold_status(cur, hold_id, CANCELLED, now)
        unfrozen_ids = unfreeze_opportunities(cur, hold_id, now)

        logger.info(f"Hold {hold_id} ended early by {identity.user_id}")
        bus.emit(EVENT_HOLD_CANCELLED, {'hold_id': hold_id, 'hold': updated, 'unfrozen_ids': unfrozen_ids})
        return updated


def respond_to_hold(hold_id: str, action: str, identity: Identity) -> HoldRequest:
    """Dispatch for PUT /api/hold-requests/:id {action}."""
    handlers = {'approve': approve_hold, 'decline': decline_hold, 'cancel': cancel_hold}
    if action not in handlers:
        raise ValueError(f"action must be one of {HOLD_ACTIONS}, got {action!r}")
    return handlers[action](hold_id, identity)


@log_call
def process_expired_holds(now: Optional[datetime] = None) -> List[str]:
    """
    Expire every ACTIVE hold whose expires_at has passed and release what it froze.
    Returns the ids of the holds that expired.
    """
    now = now or _utcnow()
    with get_db_cursor() as cur:
        cur.execute("""
            UPDATE hold_requests
            SET status = %s, updated_at = %s
            WHERE status = %s AND expires_at <= %s
            RETURNING id
        """, (EXPIRED, now, ACTIVE, now))
        expired_ids = [row['id'] for row in cur.fetchall()]

        for hold_id in expired_ids:
            unfrozen_ids = unfreeze_opportunities(cur, hold_id, now)
            bus.emit(EVENT_HOLD_EXPIRED, {'hold_id': hold_id, 'unfrozen_ids': unfrozen_ids})

    if expired_ids:
        logger.info(f"Processed {len(expired_ids)} expired holds")
    return expired_ids


def get_hold_state_for_document(document_id: str) -> Dict[str, Any]:
    """
    Hold summary for one document:
    {'active_hold': HoldRequest or None, 'frozen_count': int}
    """
    with get_db_cursor() as cur:
        hold = _open_hold_for_document(cur, document_id)
        frozen_count = 0
        if hold is not None and hold.status == ACTIVE:
            cur.execute("""
                SELECT COUNT(*) AS n FROM booking_opportunities
                WHERE frozen_by_hold_id = %s
            """, (hold.id,))
            frozen_count = cur.fetchone()['n']

        return {'active_hold': hold, 'frozen_count': frozen_count}
