"""
Data Models
Dataclasses for all entities. These are pure Python objects, no database logic.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


# =============================================================================
# STATUS VOCABULARIES
# =============================================================================

OPEN = 'OPEN'
PENDING = 'PENDING'
CONFIRMED = 'CONFIRMED'
DECLINED = 'DECLINED'
CANCELLED = 'CANCELLED'
EXPIRED = 'EXPIRED'

OPPORTUNITY_STATUSES = (OPEN, PENDING, CONFIRMED, DECLINED, CANCELLED, EXPIRED)

# Hidden from the active timeline
TERMINAL_STATUSES = (CONFIRMED, DECLINED, CANCELLED, EXPIRED)

ACTIVE = 'ACTIVE'
HOLD_STATUSES = (PENDING, ACTIVE, EXPIRED, CANCELLED, DECLINED)
OPEN_HOLD_STATUSES = (PENDING, ACTIVE)

HOLD_STATE_NONE = 'NONE'
HOLD_STATE_FROZEN = 'FROZEN'
HOLD_STATE_UNFROZEN = 'UNFROZEN'

INITIATED_BY = ('ARTIST', 'VENUE')
PERSPECTIVES = ('ARTIST', 'VENUE')

SOURCE_SHOW_REQUEST = 'SHOW_REQUEST'
SOURCE_VENUE_OFFER = 'VENUE_OFFER'
SOURCE_SHOW_LINEUP = 'SHOW_LINEUP'
SOURCE_BOOKING_OPPORTUNITY = 'BOOKING_OPPORTUNITY'
SOURCE_TYPES = (SOURCE_SHOW_REQUEST, SOURCE_VENUE_OFFER, SOURCE_SHOW_LINEUP, SOURCE_BOOKING_OPPORTUNITY)

BILLING_POSITIONS = ('HEADLINER', 'CO_HEADLINER', 'SUPPORT', 'OPENER', 'LOCAL_SUPPORT')
AGE_RESTRICTIONS = ('ALL_AGES', 'EIGHTEEN_PLUS', 'TWENTY_ONE_PLUS')
ENTITY_TYPES = ('VENUE', 'ARTIST')


# =============================================================================
# BOOKING OPPORTUNITY VALUE OBJECTS
# =============================================================================

@dataclass
class FinancialOffer:
    """Money on the table. door_deal: {percentage, threshold}; ticket_price: {door, advance}"""
    guarantee: Optional[float] = None
    door_deal: Optional[Dict[str, Any]] = None
    ticket_price: Optional[Dict[str, Any]] = None
    merchandise_split: Optional[float] = None


@dataclass
class PerformanceDetails:
    billing_position: Optional[str] = None
    performance_order: Optional[int] = None
    set_length: Optional[int] = None
    other_acts: List[str] = field(default_factory=list)
    billing_notes: Optional[str] = None


@dataclass
class VenueDetails:
    """Venue logistics. schedule keys: load_in, soundcheck, doors_open, show_time, curfew"""
    capacity: Optional[int] = None
    age_restriction: Optional[str] = None
    equipment: Optional[Dict[str, Any]] = None
    schedule: Dict[str, Optional[str]] = field(default_factory=dict)


@dataclass
class AdditionalValue:
    promotion: Optional[Dict[str, Any]] = None
    lodging: Optional[Dict[str, Any]] = None
    additional_terms: Optional[str] = None


# =============================================================================
# CORE ENTITIES
# =============================================================================

@dataclass
class HoldRequest:
    """Time-boxed exclusivity lock on one show or show request"""
    id: Optional[str] = None
    show_id: Optional[str] = None
    show_request_id: Optional[str] = None
    requested_by_id: str = ''
    responded_by_id: Optional[str] = None
    duration: int = 24
    reason: str = ''
    custom_message: Optional[str] = None
    status: str = PENDING
    requested_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def document_id(self) -> Optional[str]:
        return self.show_id or self.show_request_id


@dataclass
class BookingOpportunity:
    """One proposed show between one artist and one venue"""
    id: Optional[str] = None
    artist_id: str = ''
    venue_id: str = ''
    title: str = ''
    description: Optional[str] = None
    proposed_date: str = ''
    initiated_by: str = 'ARTIST'
    initiated_by_id: str = ''
    status: str = OPEN
    financial_offer: FinancialOffer = field(default_factory=FinancialOffer)
    performance_details: PerformanceDetails = field(default_factory=PerformanceDetails)
    venue_details: VenueDetails = field(default_factory=VenueDetails)
    additional_value: AdditionalValue = field(default_factory=AdditionalValue)
    message: Optional[str] = None
    source_type: str = SOURCE_BOOKING_OPPORTUNITY
    source_id: str = 'new'
    status_history: List[Dict[str, Any]] = field(default_factory=list)
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    declined_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None
    hold_state: str = HOLD_STATE_NONE
    frozen_by_hold_id: Optional[str] = None
    frozen_at: Optional[datetime] = None
    unfrozen_at: Optional[datetime] = None
    active_holds: List[HoldRequest] = field(default_factory=list)
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    # Display-only names, populated from joins or API includes
    artist_name: Optional[str] = None
    venue_name: Optional[str] = None


@dataclass
class Favorite:
    id: Optional[str] = None
    user_id: str = ''
    entity_type: str = 'VENUE'
    entity_id: str = ''
    created_at: Optional[datetime] = None


@dataclass
class MediaEmbed:
    """YouTube / Spotify / SoundCloud / Bandcamp link shown on a profile"""
    id: Optional[str] = None
    entity_type: str = 'ARTIST'
    entity_id: str = ''
    url: str = ''
    title: str = ''
    description: Optional[str] = None
    is_featured: bool = False
    order: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# TIMELINE (derived, never persisted)
# =============================================================================

@dataclass
class TimelineEntry:
    type: str
    date: str
    data: BookingOpportunity


@dataclass
class MonthGroup:
    month_key: str
    month_label: str
    entries: List[TimelineEntry] = field(default_factory=list)
    count: int = 0


# =============================================================================
# LEGACY SOURCES (adapter inputs only)
# =============================================================================

@dataclass
class Show:
    """Confirmed show from the legacy shows table"""
    id: str = ''
    artist_id: str = ''
    venue_id: str = ''
    date: str = ''
    title: Optional[str] = None
    status: str = 'confirmed'
    artist_name: Optional[str] = None
    venue_name: Optional[str] = None
    city: Optional[str] = None
    guarantee: Optional[float] = None
    capacity: Optional[int] = None
    age_restriction: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class TourRequest:
    """Artist-initiated request for a date (or date range) in a region"""
    id: str = ''
    artist_id: str = ''
    artist_name: Optional[str] = None
    title: str = ''
    start_date: str = ''
    end_date: Optional[str] = None
    status: str = 'active'
    venue_id: Optional[str] = None
    venue_name: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class VenueBid:
    """Venue's bid on an artist's tour request"""
    id: str = ''
    show_request_id: str = ''
    venue_id: str = ''
    venue_name: Optional[str] = None
    artist_id: Optional[str] = None
    artist_name: Optional[str] = None
    proposed_date: str = ''
    guarantee: Optional[float] = None
    capacity: Optional[int] = None
    age_restriction: Optional[str] = None
    message: Optional[str] = None
    status: str = 'pending'
    location: Optional[str] = None
    billing_position: Optional[str] = None
    set_length: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class VenueOffer:
    """Venue-initiated offer to a specific artist"""
    id: str = ''
    venue_id: str = ''
    venue_name: Optional[str] = None
    artist_id: str = ''
    artist_name: Optional[str] = None
    title: str = ''
    description: Optional[str] = None
    proposed_date: str = ''
    amount: Optional[float] = None
    door_deal: Optional[Dict[str, Any]] = None
    ticket_price: Optional[Dict[str, Any]] = None
    merchandise_split: Optional[float] = None
    capacity: Optional[int] = None
    age_restriction: Optional[str] = None
    billing_position: Optional[str] = None
    set_length: Optional[int] = None
    additional_terms: Optional[str] = None
    message: Optional[str] = None
    status: str = 'pending'
    created_at: Optional[datetime] = None
