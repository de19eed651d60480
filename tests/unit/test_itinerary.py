"""
Unit tests for the itinerary reducer (bookyr/engine/itinerary.py).
Pure Python. Every test starts from INITIAL_STATE.
"""

import pytest

from bookyr.models import BookingOpportunity, TimelineEntry
from bookyr.engine.itinerary import (
    INITIAL_STATE,
    ItineraryStore,
    reduce,
    apply_optimistic_state,
    ToggleBidExpansion, ToggleShowExpansion, ToggleRequestExpansion,
    OpenBidForm, CloseBidForm, OpenShowDetail, CloseShowDetail,
    OpenDocumentModal, CloseDocumentModal, OpenUniversalOffer, CloseUniversalOffer,
    OpenTourRequestDetail, CloseTourRequestDetail,
    SetBidActionLoading, SetHoldActionLoading, SetDeleteLoading, SetDeleteShowLoading,
    DeclineBidOptimistic, DeleteRequestOptimistic, DeleteShowOptimistic,
    SetBidStatusOverride, ClearBidStatusOverride,
    SetHoldNote, SetActiveMonth, ResetOptimisticState, ResetAllState,
)


def run(*actions, state=INITIAL_STATE):
    for action in actions:
        state = reduce(state, action)
    return state


def entry(id, status='PENDING'):
    return TimelineEntry(type='booking-opportunity', date='2025-08-15',
                         data=BookingOpportunity(id=id, proposed_date='2025-08-15', status=status))


# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------

def test_toggle_expansion_twice_collapses():
    state = run(ToggleBidExpansion('req-1'))
    assert state.expanded_bids == {'req-1'}
    assert run(ToggleBidExpansion('req-1'), state=state).expanded_bids == frozenset()


def test_expansion_sets_are_independent():
    state = run(ToggleShowExpansion('s1'), ToggleRequestExpansion('r1'))
    assert state.expanded_shows == {'s1'}
    assert state.expanded_requests == {'r1'}
    assert state.expanded_bids == frozenset()


def test_reduce_never_mutates_previous_state():
    before = INITIAL_STATE
    after = reduce(before, ToggleBidExpansion('req-1'))
    assert before.expanded_bids == frozenset()
    assert after is not before


# ---------------------------------------------------------------------------
# Modals
# ---------------------------------------------------------------------------

def test_bid_form_open_close():
    state = run(OpenBidForm({'id': 'req-1'}))
    assert state.show_bid_form
    assert state.selected_tour_request == {'id': 'req-1'}
    state = run(CloseBidForm(), state=state)
    assert not state.show_bid_form
    assert state.selected_tour_request is None


def test_show_detail_open_close():
    state = run(OpenShowDetail('show-1'))
    assert state.show_detail_modal and state.selected_show_for_detail == 'show-1'
    assert run(CloseShowDetail(), state=state).selected_show_for_detail is None


def test_document_modal_holds_all_three_selections():
    state = run(OpenDocumentModal(show='s', bid='b', request='r'))
    assert state.show_document_modal
    assert (state.selected_document_show, state.selected_document_bid,
            state.selected_document_tour_request) == ('s', 'b', 'r')
    state = run(CloseDocumentModal(), state=state)
    assert not state.show_document_modal
    assert state.selected_document_bid is None


def test_universal_offer_modal():
    state = run(OpenUniversalOffer(artist={'id': 'a1', 'name': 'Hella'}, pre_selected_date='2025-08-15'))
    assert state.show_universal_offer_modal
    assert state.offer_target_artist == {'id': 'a1', 'name': 'Hella'}
    assert state.offer_pre_selected_date == '2025-08-15'
    state = run(CloseUniversalOffer(), state=state)
    assert state.offer_target_artist is None
    assert state.offer_pre_selected_date is None


def test_tour_request_detail_modal():
    state = run(OpenTourRequestDetail('req-1'))
    assert state.tour_request_detail_modal
    assert not run(CloseTourRequestDetail(), state=state).tour_request_detail_modal


# ---------------------------------------------------------------------------
# Loading flags
# ---------------------------------------------------------------------------

def test_loading_flags():
    state = run(SetBidActionLoading('bid-1', True), SetHoldActionLoading('bid-1', True),
                SetDeleteLoading('req-1'), SetDeleteShowLoading('show-1'))
    assert state.bid_actions == {'bid-1': True}
    assert state.hold_actions == {'bid-1': True}
    assert state.delete_loading == 'req-1'
    assert state.delete_show_loading == 'show-1'

    state = run(SetBidActionLoading('bid-1', False), SetDeleteLoading(None), state=state)
    assert state.bid_actions == {'bid-1': False}
    assert state.delete_loading is None


# ---------------------------------------------------------------------------
# Optimistic updates
# ---------------------------------------------------------------------------

def test_optimistic_actions_accumulate():
    state = run(DeclineBidOptimistic('bid-1'), DeleteRequestOptimistic('req-1'), DeleteShowOptimistic('show-1'))
    assert state.declined_bids == {'bid-1'}
    assert state.deleted_requests == {'req-1'}
    assert state.deleted_shows == {'show-1'}


def test_bid_status_override_set_and_clear():
    state = run(SetBidStatusOverride('bid-1', 'accepted'), SetBidStatusOverride('bid-2', 'hold'))
    assert state.bid_status_overrides == {'bid-1': 'accepted', 'bid-2': 'hold'}
    state = run(ClearBidStatusOverride('bid-1'), state=state)
    assert state.bid_status_overrides == {'bid-2': 'hold'}


def test_bid_status_override_rejects_unknown_status():
    with pytest.raises(ValueError):
        reduce(INITIAL_STATE, SetBidStatusOverride('bid-1', 'maybe'))


def test_form_state():
    state = run(SetHoldNote('bid-1', 'Checking with drummer'), SetActiveMonth('2025-09'))
    assert state.hold_notes == {'bid-1': 'Checking with drummer'}
    assert state.active_month_tab == '2025-09'


def test_reset_optimistic_keeps_ui_state():
    state = run(ToggleBidExpansion('req-1'), DeclineBidOptimistic('bid-1'),
                SetBidStatusOverride('bid-2', 'declined'), ResetOptimisticState())
    assert state.declined_bids == frozenset()
    assert state.bid_status_overrides == {}
    assert state.expanded_bids == {'req-1'}


def test_reset_all_returns_initial_state():
    state = run(ToggleBidExpansion('req-1'), OpenBidForm('x'), ResetAllState())
    assert state == INITIAL_STATE


def test_unknown_action_is_ignored():
    assert reduce(INITIAL_STATE, 'NOT_AN_ACTION') is INITIAL_STATE


# ---------------------------------------------------------------------------
# apply_optimistic_state
# ---------------------------------------------------------------------------

def test_apply_optimistic_state():
    entries = [entry('bid-1'), entry('bid-2'), entry('req-1', 'OPEN'), entry('show-1', 'CONFIRMED')]
    state = run(DeclineBidOptimistic('bid-1'), SetBidStatusOverride('bid-2', 'accepted'),
                DeleteRequestOptimistic('req-1'))

    visible = apply_optimistic_state(entries, state)
    assert [(e.data.id, e.data.status) for e in visible] == [
        ('bid-1', 'DECLINED'), ('bid-2', 'CONFIRMED'), ('show-1', 'CONFIRMED'),
    ]
    assert entries[0].data.status == 'PENDING'


# ---------------------------------------------------------------------------
# ItineraryStore
# ---------------------------------------------------------------------------

def test_store_dispatch():
    store = ItineraryStore()
    store.dispatch(ToggleShowExpansion('show-1'))
    assert store.state.expanded_shows == {'show-1'}


def test_store_context_change_clears_optimistic_state():
    store = ItineraryStore()
    store.set_context(artist_id='a1')
    store.dispatch(DeclineBidOptimistic('bid-1'))
    store.set_context(artist_id='a1')
    assert store.state.declined_bids == {'bid-1'}

    store.set_context(venue_id='v1')
    assert store.state.declined_bids == frozenset()


def test_store_reset():
    store = ItineraryStore()
    store.dispatch(SetActiveMonth('2025-09'))
    assert store.reset() == INITIAL_STATE
