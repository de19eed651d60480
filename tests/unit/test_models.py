"""
Unit tests for data models (bookyr/models/__init__.py).
Pure Python — no DB, no mocking required.
"""

from bookyr.models import (
    BookingOpportunity, HoldRequest, Favorite, MediaEmbed, FinancialOffer, VenueDetails,
    OPPORTUNITY_STATUSES, HOLD_STATUSES, OPEN_HOLD_STATUSES, TERMINAL_STATUSES,
    HOLD_STATE_NONE,
)


def test_opportunity_defaults():
    o = BookingOpportunity()
    assert o.status == 'OPEN'
    assert o.initiated_by == 'ARTIST'
    assert o.source_type == 'BOOKING_OPPORTUNITY'
    assert o.source_id == 'new'
    assert o.hold_state == HOLD_STATE_NONE
    assert o.status_history == []
    assert o.active_holds == []


def test_opportunity_value_objects_are_not_shared():
    a, b = BookingOpportunity(), BookingOpportunity()
    a.financial_offer.guarantee = 500
    a.venue_details.schedule['doors_open'] = '19:00'
    assert b.financial_offer.guarantee is None
    assert b.venue_details.schedule == {}


def test_value_objects_default_to_empty():
    assert FinancialOffer().door_deal is None
    assert VenueDetails().schedule == {}


def test_hold_request_defaults():
    h = HoldRequest()
    assert h.status == 'PENDING'
    assert h.duration == 24
    assert h.expires_at is None


def test_hold_document_id_prefers_show():
    assert HoldRequest(show_id='s1').document_id == 's1'
    assert HoldRequest(show_request_id='r1').document_id == 'r1'
    assert HoldRequest().document_id is None


def test_favorite_and_embed_defaults():
    assert Favorite().entity_type == 'VENUE'
    embed = MediaEmbed()
    assert embed.is_featured is False
    assert embed.order == 0


def test_status_vocabularies():
    assert set(OPEN_HOLD_STATUSES) == {'PENDING', 'ACTIVE'}
    assert set(OPEN_HOLD_STATUSES) <= set(HOLD_STATUSES)
    assert 'OPEN' not in TERMINAL_STATUSES
    assert 'PENDING' not in TERMINAL_STATUSES
    assert set(TERMINAL_STATUSES) <= set(OPPORTUNITY_STATUSES)
