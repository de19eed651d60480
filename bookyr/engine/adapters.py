"""
Adapters - Normalize legacy sources and API payloads into BookingOpportunity.

Two boundaries live here:

1. Legacy sources (Show, TourRequest, VenueBid, VenueOffer) become
   BookingOpportunity so one timeline pipeline handles everything.
2. camelCase JSON from the marketplace API becomes snake_case dataclasses
   (and back, for request bodies).
"""

import dataclasses
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from bookyr.models import (
    BookingOpportunity, FinancialOffer, PerformanceDetails, VenueDetails, AdditionalValue,
    HoldRequest, Favorite, MediaEmbed, Show, TourRequest, VenueBid, VenueOffer,
    OPEN, PENDING, CONFIRMED, DECLINED, CANCELLED, EXPIRED,
    SOURCE_SHOW_REQUEST, SOURCE_VENUE_OFFER, SOURCE_SHOW_LINEUP,
)
from bookyr.engine.timeline import build_timeline, extract_date

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Offers and bids in these statuses never reach the timeline
DEAD_LEGACY_STATUSES = ('cancelled', 'declined', 'rejected', 'expired')

LEGACY_STATUS_MAP = {
    'active': OPEN,
    'open': OPEN,
    'pending': PENDING,
    'hold': PENDING,
    'accepted': CONFIRMED,
    'confirmed': CONFIRMED,
    'declined': DECLINED,
    'rejected': DECLINED,
    'cancelled': CANCELLED,
    'expired': EXPIRED,
}


def map_legacy_status(status: Optional[str], default: str = PENDING) -> str:
    return LEGACY_STATUS_MAP.get((status or '').lower(), default)


# =============================================================================
# LEGACY SOURCE -> BookingOpportunity
# =============================================================================

def show_to_opportunity(show: Show) -> BookingOpportunity:
    """A legacy show is a settled booking: CONFIRMED unless it was cancelled."""
    return BookingOpportunity(
        id=show.id,
        artist_id=show.artist_id,
        venue_id=show.venue_id,
        title=show.title or f"{show.artist_name or 'Unknown Artist'} at {show.venue_name or 'Unknown Venue'}",
        proposed_date=show.date,
        initiated_by='ARTIST',
        initiated_by_id=show.artist_id,
        status=map_legacy_status(show.status, default=CONFIRMED),
        financial_offer=FinancialOffer(guarantee=show.guarantee),
        venue_details=VenueDetails(capacity=show.capacity, age_restriction=show.age_restriction),
        source_type=SOURCE_SHOW_LINEUP,
        source_id=show.id,
        created_at=show.created_at,
        artist_name=show.artist_name,
        venue_name=show.venue_name,
    )


def tour_request_to_opportunity(request: TourRequest, venue_id: Optional[str] = None) -> BookingOpportunity:
    """
    An artist's request for a date, open for venue bids.
    venue_id fills in the venue when the request is shown on a venue's page.
    """
    return BookingOpportunity(
        id=request.id,
        artist_id=request.artist_id,
        venue_id=request.venue_id or venue_id or '',
        title=request.title,
        description=request.description,
        proposed_date=request.start_date,
        initiated_by='ARTIST',
        initiated_by_id=request.artist_id,
        status=map_legacy_status(request.status, default=OPEN),
        source_type=SOURCE_SHOW_REQUEST,
        source_id=request.id,
        created_at=request.created_at,
        artist_name=request.artist_name,
        venue_name=request.venue_name,
    )


def venue_bid_to_opportunity(bid: VenueBid) -> BookingOpportunity:
    return BookingOpportunity(
        id=f"venue-bid-{bid.id}",
        artist_id=bid.artist_id or 'unknown',
        venue_id=bid.venue_id,
        title='Bid on Artist Request',
        description=bid.message or f"Bid placed by {bid.venue_name or 'Unknown Venue'}",
        proposed_date=extract_date(bid.proposed_date),
        initiated_by='VENUE',
        initiated_by_id=bid.venue_id,
        status=map_legacy_status(bid.status),
        financial_offer=FinancialOffer(guarantee=bid.guarantee),
        performance_details=PerformanceDetails(billing_position=bid.billing_position, set_length=bid.set_length),
        venue_details=VenueDetails(capacity=bid.capacity, age_restriction=bid.age_restriction),
        message=bid.message,
        source_type=SOURCE_SHOW_REQUEST,
        source_id=bid.show_request_id,
        created_at=bid.created_at,
        artist_name=bid.artist_name or bid.location,
        venue_name=bid.venue_name,
    )


def venue_offer_to_opportunity(offer: VenueOffer) -> BookingOpportunity:
    return BookingOpportunity(
        id=f"venue-offer-{offer.id}",
        artist_id=offer.artist_id,
        venue_id=offer.venue_id,
        title=offer.title,
        description=offer.description or f"Offer from {offer.venue_name or 'Unknown Venue'}",
        proposed_date=extract_date(offer.proposed_date),
        initiated_by='VENUE',
        initiated_by_id=offer.venue_id,
        status=map_legacy_status(offer.status),
        financial_offer=FinancialOffer(
            guarantee=offer.amount,
            door_deal=offer.door_deal,
            ticket_price=offer.ticket_price,
            merchandise_split=offer.merchandise_split,
        ),
        performance_details=PerformanceDetails(billing_position=offer.billing_position, set_length=offer.set_length),
        venue_details=VenueDetails(capacity=offer.capacity, age_restriction=offer.age_restriction),
        additional_value=AdditionalValue(additional_terms=offer.additional_terms),
        message=offer.message,
        source_type=SOURCE_VENUE_OFFER,
        source_id=offer.id,
        created_at=offer.created_at,
        artist_name=offer.artist_name,
        venue_name=offer.venue_name,
    )


def normalize_legacy_sources(
    shows: Iterable[Show] = (),
    tour_requests: Iterable[TourRequest] = (),
    venue_offers: Iterable[VenueOffer] = (),
    venue_bids: Iterable[VenueBid] = (),
    artist_id: Optional[str] = None,
    venue_id: Optional[str] = None,
) -> List[BookingOpportunity]:
    """
    Merge the four legacy sources for an artist page (artist_id) or a venue
    page (venue_id only).

    - shows are always kept
    - offers and bids in a dead status are dropped
    - on an artist page, offers for other artists are dropped
    - bids only appear on a venue page, one per show request, and only the venue's own
    - tour requests only while status == 'active'
    """
    venue_page = bool(venue_id) and not artist_id
    opportunities = [show_to_opportunity(show) for show in shows]

    for offer in venue_offers:
        if offer.status.lower() in DEAD_LEGACY_STATUSES:
            logger.debug(f"Dropping venue offer {offer.id} with status {offer.status}")
            continue
        if artist_id and offer.artist_id != artist_id:
            continue
        opportunities.append(venue_offer_to_opportunity(offer))

    if venue_page:
        seen_requests = set()
        for bid in venue_bids:
            if bid.status.lower() in DEAD_LEGACY_STATUSES:
                continue
            if bid.venue_id != venue_id or bid.show_request_id in seen_requests:
                continue
            seen_requests.add(bid.show_request_id)
            opportunities.append(venue_bid_to_opportunity(bid))

    if artist_id or venue_page:
        for request in tour_requests:
            if request.status == 'active':
                opportunities.append(tour_request_to_opportunity(request, venue_id if venue_page else None))

    return opportunities


def build_legacy_timeline(
    shows: Iterable[Show] = (),
    tour_requests: Iterable[TourRequest] = (),
    venue_offers: Iterable[VenueOffer] = (),
    venue_bids: Iterable[VenueBid] = (),
    artist_id: Optional[str] = None,
    venue_id: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Legacy sources through the same timeline pipeline as booking opportunities."""
    if not artist_id and not venue_id:
        raise ValueError("Must specify artist_id or venue_id")

    opportunities = normalize_legacy_sources(shows, tour_requests, venue_offers, venue_bids,
                                             artist_id=artist_id, venue_id=venue_id)
    if artist_id:
        return build_timeline(opportunities, 'ARTIST', artist_id, today=today)
    return build_timeline(opportunities, 'VENUE', venue_id, today=today)


# =============================================================================
# API PAYLOADS (camelCase JSON <-> dataclasses)
# =============================================================================

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub('_', name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


def _from_payload(cls: Type[T], payload: Optional[Dict[str, Any]]) -> T:
    """Build a dataclass from camelCase keys, ignoring keys it does not declare."""
    known = {f.name for f in dataclasses.fields(cls)}
    values = {}
    for key, value in (payload or {}).items():
        name = camel_to_snake(key)
        if name not in known:
            continue
        if name.endswith('_at') and value is not None:
            value = parse_timestamp(value)
        values[name] = value
    return cls(**values)


def _to_payload(value: Any) -> Any:
    if dataclasses.is_dataclass(value):
        return {snake_to_camel(f.name): _to_payload(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {snake_to_camel(k) if isinstance(k, str) else k: _to_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_payload(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _nested_name(payload: Dict[str, Any], key: str) -> Optional[str]:
    nested = payload.get(key)
    return nested.get('name') if isinstance(nested, dict) else None


def _nested_dict(payload: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    """camelCase nested object -> snake_case keys, one level deep."""
    value = payload.get(key)
    if not isinstance(value, dict):
        return value
    return {camel_to_snake(k): v for k, v in value.items()}


def hold_from_api(payload: Dict[str, Any]) -> HoldRequest:
    return _from_payload(HoldRequest, payload)


def opportunity_from_api(payload: Dict[str, Any]) -> BookingOpportunity:
    """GET /api/booking-opportunities item -> BookingOpportunity."""
    opportunity = _from_payload(BookingOpportunity, {
        k: v for k, v in payload.items()
        if k not in ('financialOffer', 'performanceDetails', 'venueDetails', 'additionalValue', 'activeHolds')
    })

    financial = _from_payload(FinancialOffer, payload.get('financialOffer'))
    venue = _from_payload(VenueDetails, payload.get('venueDetails'))
    venue.schedule = _nested_dict(payload.get('venueDetails') or {}, 'schedule') or {}

    return dataclasses.replace(
        opportunity,
        financial_offer=financial,
        performance_details=_from_payload(PerformanceDetails, payload.get('performanceDetails')),
        venue_details=venue,
        additional_value=_from_payload(AdditionalValue, payload.get('additionalValue')),
        active_holds=[hold_from_api(h) for h in payload.get('activeHolds') or []],
        artist_name=opportunity.artist_name or _nested_name(payload, 'artist'),
        venue_name=opportunity.venue_name or _nested_name(payload, 'venue'),
    )


def opportunity_to_api(opportunity: BookingOpportunity) -> Dict[str, Any]:
    """Request body for POST/PUT /api/booking-opportunities."""
    body = _to_payload(opportunity)
    for key in ('activeHolds', 'artistName', 'venueName', 'createdAt', 'updatedAt', 'deletedAt'):
        body.pop(key, None)
    return body


def show_from_api(payload: Dict[str, Any]) -> Show:
    show = _from_payload(Show, payload)
    venue = payload.get('venue') if isinstance(payload.get('venue'), dict) else {}
    location = venue.get('location') if isinstance(venue.get('location'), dict) else {}
    return dataclasses.replace(
        show,
        artist_name=show.artist_name or _nested_name(payload, 'artist'),
        venue_name=show.venue_name or venue.get('name'),
        city=show.city or location.get('city'),
    )


def tour_request_from_api(payload: Dict[str, Any]) -> TourRequest:
    request = _from_payload(TourRequest, payload)
    if not request.start_date and payload.get('requestedDate'):
        request.start_date = payload['requestedDate']
    return dataclasses.replace(request, artist_name=request.artist_name or _nested_name(payload, 'artist'))


def venue_bid_from_api(payload: Dict[str, Any]) -> VenueBid:
    bid = _from_payload(VenueBid, payload)
    return dataclasses.replace(bid, venue_name=bid.venue_name or _nested_name(payload, 'venue'))


def venue_offer_from_api(payload: Dict[str, Any]) -> VenueOffer:
    offer = _from_payload(VenueOffer, payload)
    return dataclasses.replace(
        offer,
        artist_name=offer.artist_name or _nested_name(payload, 'artist'),
        venue_name=offer.venue_name or _nested_name(payload, 'venue'),
    )


def favorite_from_api(payload: Dict[str, Any]) -> Favorite:
    return _from_payload(Favorite, payload)


def embed_from_api(payload: Dict[str, Any]) -> MediaEmbed:
    return _from_payload(MediaEmbed, payload)


def to_api(value: Any) -> Any:
    """Any dataclass (or list/dict of them) -> camelCase JSON-ready structure."""
    return _to_payload(value)
