"""
Booking Engine - Opportunity lifecycle and persistence.

A BookingOpportunity moves OPEN -> PENDING -> CONFIRMED, with DECLINED,
CANCELLED and EXPIRED as side exits (CANCELLED is also reachable from
CONFIRMED). Nothing leaves DECLINED, CANCELLED or EXPIRED.

Every mutation runs in one transaction, appends to status_history and emits
a bus event. Callers re-fetch afterwards; there is no retry.
"""

import logging
import uuid
from dataclasses import asdict, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from psycopg2.extras import Json

from bookyr.db.connection import get_db_cursor
from bookyr.models import (
    BookingOpportunity, FinancialOffer, PerformanceDetails, VenueDetails, AdditionalValue, HoldRequest,
    OPEN, PENDING, CONFIRMED, DECLINED, CANCELLED, EXPIRED,
    OPPORTUNITY_STATUSES, INITIATED_BY, PERSPECTIVES, SOURCE_TYPES, OPEN_HOLD_STATUSES,
)
from bookyr.bus.events import (
    bus, EVENT_OPPORTUNITY_CREATED, EVENT_OPPORTUNITY_STATUS_CHANGED, EVENT_OPPORTUNITY_DELETED,
)
from bookyr.engine.timeline import parse_local_date
from bookyr.logging_config import log_call

logger = logging.getLogger(__name__)


class InvalidTransitionError(ValueError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move booking opportunity from {current} to {target}")
        self.current = current
        self.target = target


class OpportunityNotFoundError(LookupError):
    def __init__(self, opportunity_id: str):
        super().__init__(f"Booking opportunity {opportunity_id} not found")
        self.opportunity_id = opportunity_id


_TRANSITIONS = {
    OPEN: {PENDING, CONFIRMED, DECLINED, CANCELLED, EXPIRED},
    PENDING: {CONFIRMED, DECLINED, CANCELLED, EXPIRED},
    CONFIRMED: {CANCELLED},
    DECLINED: set(),
    CANCELLED: set(),
    EXPIRED: set(),
}

_VALUE_COLUMNS = ('financial_offer', 'performance_details', 'venue_details', 'additional_value')

# Editable terms; status and hold columns have their own code paths
_OPPORTUNITY_COLUMNS = {
    'title', 'description', 'proposed_date', 'message', 'expires_at',
    'financial_offer', 'performance_details', 'venue_details', 'additional_value',
}

_SELECT_OPPORTUNITY = """
    SELECT bo.*, a.name AS artist_name, v.name AS venue_name
    FROM booking_opportunities bo
    LEFT JOIN artists a ON a.id = bo.artist_id
    LEFT JOIN venues v ON v.id = bo.venue_id
"""


# =============================================================================
# STATE MACHINE (pure)
# =============================================================================

def can_transition(current: str, target: str) -> bool:
    return target in _TRANSITIONS.get(current, set())


def allowed_transitions(current: str) -> List[str]:
    """Statuses reachable from current, in canonical order."""
    reachable = _TRANSITIONS.get(current, set())
    return [s for s in OPPORTUNITY_STATUSES if s in reachable]


def is_terminal(status: str) -> bool:
    return not _TRANSITIONS.get(status)


def initial_status(initiated_by: str, direct: bool = False) -> str:
    """
    Starting status for a new opportunity.
    A direct offer waits on a single party (PENDING); anything else is open for bids.
    """
    if initiated_by not in INITIATED_BY:
        raise ValueError(f"initiated_by must be one of {INITIATED_BY}, got {initiated_by!r}")
    return PENDING if direct else OPEN


def apply_transition(
    opportunity: BookingOpportunity,
    target: str,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> BookingOpportunity:
    """
    Return a copy of opportunity moved to target, with timestamps, reasons and
    a status_history entry filled in. Raises InvalidTransitionError.
    """
    if target not in OPPORTUNITY_STATUSES:
        raise ValueError(f"Unknown status {target!r}")
    if not can_transition(opportunity.status, target):
        raise InvalidTransitionError(opportunity.status, target)

    now = now or datetime.now(timezone.utc)
    history = list(opportunity.status_history) + [{
        'status': target,
        'previous_status': opportunity.status,
        'timestamp': now.isoformat(),
        'reason': reason,
        'actor_id': actor_id,
    }]
    changes: Dict[str, Any] = {'status': target, 'status_history': history, 'updated_at': now}

    if target == CONFIRMED:
        changes['accepted_at'] = now
    elif target == DECLINED:
        changes['declined_at'] = now
        changes['declined_reason'] = reason
    elif target == CANCELLED:
        changes['cancelled_at'] = now
        changes['cancelled_reason'] = reason

    return replace(opportunity, **changes)


# =============================================================================
# ROW MAPPING
# =============================================================================

def row_to_opportunity(row: Dict[str, Any]) -> BookingOpportunity:
    data = dict(row)
    financial = data.pop('financial_offer', None) or {}
    performance = data.pop('performance_details', None) or {}
    venue = data.pop('venue_details', None) or {}
    additional = data.pop('additional_value', None) or {}
    data['status_history'] = data.get('status_history') or []
    return BookingOpportunity(
        financial_offer=FinancialOffer(**financial),
        performance_details=PerformanceDetails(**performance),
        venue_details=VenueDetails(**venue),
        additional_value=AdditionalValue(**additional),
        **data,
    )


def row_to_hold(row: Dict[str, Any]) -> HoldRequest:
    return HoldRequest(**row)


def _insert_params(opportunity: BookingOpportunity) -> Dict[str, Any]:
    params = {
        'id': opportunity.id,
        'artist_id': opportunity.artist_id,
        'venue_id': opportunity.venue_id,
        'title': opportunity.title,
        'description': opportunity.description,
        'proposed_date': opportunity.proposed_date,
        'initiated_by': opportunity.initiated_by,
        'initiated_by_id': opportunity.initiated_by_id,
        'status': opportunity.status,
        'message': opportunity.message,
        'source_type': opportunity.source_type,
        'source_id': opportunity.source_id,
        'status_history': Json(opportunity.status_history),
        'expires_at': opportunity.expires_at,
    }
    for column in _VALUE_COLUMNS:
        params[column] = Json(asdict(getattr(opportunity, column)))
    return params


def _validate_new_opportunity(opportunity: BookingOpportunity) -> None:
    missing = [name for name in ('artist_id', 'venue_id', 'proposed_date', 'initiated_by_id')
               if not getattr(opportunity, name)]
    if missing:
        raise ValueError(f"Missing required booking opportunity fields: {missing}")
    if opportunity.initiated_by not in INITIATED_BY:
        raise ValueError(f"initiated_by must be one of {INITIATED_BY}")
    if opportunity.status not in (OPEN, PENDING):
        raise ValueError(f"New booking opportunities start OPEN or PENDING, not {opportunity.status}")
    if opportunity.source_type not in SOURCE_TYPES:
        raise ValueError(f"Unknown source_type {opportunity.source_type!r}")
    # Raises ValueError on junk dates
    parse_local_date(opportunity.proposed_date)


# =============================================================================
# PERSISTENCE
# =============================================================================

@log_call
def create_opportunity(opportunity: BookingOpportunity) -> str:
    """
    Insert a new booking opportunity.
    Returns: opportunity_id
    """
    _validate_new_opportunity(opportunity)
    if not opportunity.id:
        opportunity = replace(opportunity, id=str(uuid.uuid4()))

    with get_db_cursor() as cur:
        cur.execute("""
            INSERT INTO booking_opportunities (
                id, artist_id, venue_id, title, description, proposed_date,
                initiated_by, initiated_by_id, status, financial_offer,
                performance_details, venue_details, additional_value, message,
                source_type, source_id, status_history, expires_at,
                created_at, updated_at
            ) VALUES (
                %(id)s, %(artist_id)s, %(venue_id)s, %(title)s, %(description)s,
                %(proposed_date)s, %(initiated_by)s, %(initiated_by_id)s, %(status)s,
                %(financial_offer)s, %(performance_details)s, %(venue_details)s,
                %(additional_value)s, %(message)s, %(source_type)s, %(source_id)s,
                %(status_history)s, %(expires_at)s, NOW(), NOW()
            ) RETURNING id
        """, _insert_params(opportunity))

        opportunity_id = cur.fetchone()['id']
        logger.info(f"Created booking opportunity {opportunity_id}: {opportunity.title} on {opportunity.proposed_date}")

        bus.emit(EVENT_OPPORTUNITY_CREATED, {'opportunity_id': opportunity_id, 'opportunity': opportunity})

        return opportunity_id


def get_opportunity(opportunity_id: str) -> Optional[BookingOpportunity]:
    """Get a booking opportunity by ID, with its open holds attached."""
    with get_db_cursor() as cur:
        cur.execute(_SELECT_OPPORTUNITY + """
            WHERE bo.id = %s AND bo.deleted_at IS NULL
        """, (opportunity_id,))

        row = cur.fetchone()
        if not row:
            logger.debug(f"get_opportunity: opportunity_id={opportunity_id} not found")
            return None

        opportunity = row_to_opportunity(row)
        return _attach_active_holds(cur, [opportunity])[0]


def list_opportunities(
    perspective: str,
    context_id: str,
    statuses: Optional[Iterable[str]] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    include_expired: bool = False,
) -> List[BookingOpportunity]:
    """
    Booking opportunities seen from an artist's or a venue's page, ordered by date.
    Date bounds compare on the YYYY-MM-DD prefix of proposed_date.
    """
    if perspective not in PERSPECTIVES:
        raise ValueError(f"perspective must be one of {PERSPECTIVES}")
    if not context_id:
        raise ValueError("Must specify perspective and contextId")

    column = 'artist_id' if perspective == 'ARTIST' else 'venue_id'
    conditions = ["bo.deleted_at IS NULL", f"bo.{column} = %(context_id)s"]
    params: Dict[str, Any] = {'context_id': context_id}

    if statuses:
        conditions.append("bo.status = ANY(%(statuses)s)")
        params['statuses'] = list(statuses)

    if not include_expired:
        conditions.append("bo.status <> 'EXPIRED'")

    if start_date:
        conditions.append("LEFT(bo.proposed_date, 10) >= %(start_date)s")
        params['start_date'] = start_date.isoformat()

    if end_date:
        conditions.append("LEFT(bo.proposed_date, 10) <= %(end_date)s")
        params['end_date'] = end_date.isoformat()

    where_clause = " AND ".join(conditions)

    with get_db_cursor() as cur:
        cur.execute(_SELECT_OPPORTUNITY + f"""
            WHERE {where_clause}
            ORDER BY bo.proposed_date ASC
        """, params)

        rows = cur.fetchall()
        logger.debug(f"list_opportunities: {len(rows)} results ({perspective}={context_id}, statuses={statuses})")
        opportunities = [row_to_opportunity(row) for row in rows]
        return _attach_active_holds(cur, opportunities)


def _attach_active_holds(cur, opportunities: List[BookingOpportunity]) -> List[BookingOpportunity]:
    """Fill active_holds with PENDING/ACTIVE holds on each opportunity."""
    if not opportunities:
        return opportunities

    ids = [o.id for o in opportunities]
    cur.execute("""
        SELECT * FROM hold_requests
        WHERE (show_id = ANY(%s) OR show_request_id = ANY(%s)) AND status = ANY(%s)
        ORDER BY created_at DESC
    """, (ids, ids, list(OPEN_HOLD_STATUSES)))

    holds_by_document: Dict[str, List[HoldRequest]] = {}
    for row in cur.fetchall():
        hold = row_to_hold(row)
        holds_by_document.setdefault(hold.document_id, []).append(hold)

    return [replace(o, active_holds=holds_by_document.get(o.id, [])) for o in opportunities]


@log_call
def transition_opportunity(
    opportunity_id: str,
    target: str,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> BookingOpportunity:
    """
    Move an opportunity to target status inside one transaction.
    Raises OpportunityNotFoundError or InvalidTransitionError; nothing is written on error.
    """
    with get_db_cursor() as cur:
        cur.execute(_SELECT_OPPORTUNITY + """
            WHERE bo.id = %s AND bo.deleted_at IS NULL
            FOR UPDATE OF bo
        """, (opportunity_id,))

        row = cur.fetchone()
        if not row:
            raise OpportunityNotFoundError(opportunity_id)

        current = row_to_opportunity(row)
        updated = apply_transition(current, target, reason=reason, actor_id=actor_id)

        cur.execute("""
            UPDATE booking_opportunities
            SET status = %(status)s,
                status_history = %(status_history)s,
                accepted_at = %(accepted_at)s,
                declined_at = %(declined_at)s,
                declined_reason = %(declined_reason)s,
                cancelled_at = %(cancelled_at)s,
                cancelled_reason = %(cancelled_reason)s,
                updated_at = NOW()
            WHERE id = %(id)s
        """, {
            'id': opportunity_id,
            'status': updated.status,
            'status_history': Json(updated.status_history),
            'accepted_at': updated.accepted_at,
            'declined_at': updated.declined_at,
            'declined_reason': updated.declined_reason,
            'cancelled_at': updated.cancelled_at,
            'cancelled_reason': updated.cancelled_reason,
        })

        logger.info(f"Opportunity {opportunity_id}: {current.status} -> {updated.status}")
        bus.emit(EVENT_OPPORTUNITY_STATUS_CHANGED, {
            'opportunity_id': opportunity_id,
            'previous_status': current.status,
            'status': updated.status,
            'reason': reason,
        })

        return updated


def accept_opportunity(opportunity_id: str, reason: Optional[str] = None,
                       actor_id: Optional[str] = None) -> BookingOpportunity:
    return transition_opportunity(opportunity_id, CONFIRMED, reason=reason, actor_id=actor_id)


def decline_opportunity(opportunity_id: str, reason: Optional[str] = None,
                        actor_id: Optional[str] = None) -> BookingOpportunity:
    return transition_opportunity(opportunity_id, DECLINED, reason=reason, actor_id=actor_id)


def cancel_opportunity(opportunity_id: str, reason: Optional[str] = None,
                       actor_id: Optional[str] = None) -> BookingOpportunity:
    return transition_opportunity(opportunity_id, CANCELLED, reason=reason, actor_id=actor_id)


def update_opportunity(opportunity_id: str, updates: Dict[str, Any]) -> bool:
    """
    Edit the terms of a live opportunity. Status changes go through transition_opportunity.
    Returns: True if updated, False if not found
    """
    if not updates:
        return False

    invalid = set(updates) - _OPPORTUNITY_COLUMNS
    if invalid:
        raise ValueError(f"Invalid booking opportunity fields: {invalid}")
    if 'proposed_date' in updates:
        parse_local_date(updates['proposed_date'])

    params = {}
    for key, value in updates.items():
        if key in _VALUE_COLUMNS:
            value = Json(asdict(value) if not isinstance(value, dict) else value)
        params[key] = value

    # Keys are validated against the allowlist above
    set_clause = ', '.join(f"{key} = %({key})s" for key in params)
    params['opportunity_id'] = opportunity_id

    with get_db_cursor() as cur:
        cur.execute(f"""
            UPDATE booking_opportunities
            SET {set_clause}, updated_at = NOW()
            WHERE id = %(opportunity_id)s AND deleted_at IS NULL
              AND status NOT IN ('DECLINED', 'CANCELLED', 'EXPIRED')
        """, params)

        if cur.rowcount > 0:
            logger.info(f"Updated booking opportunity {opportunity_id}: {list(updates.keys())}")
            return True
        return False


@log_call
def delete_opportunity(opportunity_id: str) -> bool:
    """
    Soft-delete an opportunity (rows are kept for audit).
    Returns: True if deleted, False if not found
    """
    with get_db_cursor() as cur:
        cur.execute("""
            UPDATE booking_opportunities
            SET deleted_at = NOW(), updated_at = NOW()
            WHERE id = %s AND deleted_at IS NULL
        """, (opportunity_id,))

        if cur.rowcount > 0:
            logger.info(f"Soft deleted booking opportunity {opportunity_id}")
            bus.emit(EVENT_OPPORTUNITY_DELETED, {'opportunity_id': opportunity_id})
            return True
        return False
