"""
Itinerary State - Optimistic UI state for a tour itinerary view.

State is an immutable ItineraryState. Every change is a named action passed
through reduce(state, action), which returns a new state and never mutates the
old one. ItineraryStore holds the current state for one view and clears the
optimistic bits whenever the viewed artist or venue changes.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from bookyr.models import TimelineEntry, DECLINED
from bookyr.engine.adapters import map_legacy_status

BID_OVERRIDE_STATUSES = ('pending', 'accepted', 'hold', 'declined')


@dataclass(frozen=True)
class ItineraryState:
    # Expansion
    expanded_bids: FrozenSet[str] = frozenset()
    expanded_shows: FrozenSet[str] = frozenset()
    expanded_requests: FrozenSet[str] = frozenset()

    # Modals
    show_bid_form: bool = False
    show_detail_modal: bool = False
    tour_request_detail_modal: bool = False
    show_document_modal: bool = False
    show_universal_offer_modal: bool = False

    # Selected payloads
    selected_tour_request: Any = None
    selected_show_for_detail: Any = None
    selected_document_show: Any = None
    selected_document_bid: Any = None
    selected_document_tour_request: Any = None
    offer_target_artist: Optional[Dict[str, str]] = None
    offer_tour_request: Optional[Dict[str, str]] = None
    offer_pre_selected_date: Optional[str] = None
    offer_existing_bid: Any = None

    # Loading
    bid_actions: Dict[str, bool] = field(default_factory=dict)
    hold_actions: Dict[str, bool] = field(default_factory=dict)
    delete_loading: Optional[str] = None
    delete_show_loading: Optional[str] = None

    # Optimistic updates
    declined_bids: FrozenSet[str] = frozenset()
    deleted_requests: FrozenSet[str] = frozenset()
    deleted_shows: FrozenSet[str] = frozenset()
    bid_status_overrides: Dict[str, str] = field(default_factory=dict)
    recent_undo_actions: FrozenSet[str] = frozenset()

    # Form state
    hold_notes: Dict[str, str] = field(default_factory=dict)
    active_month_tab: str = ''


INITIAL_STATE = ItineraryState()


# =============================================================================
# ACTIONS
# =============================================================================

@dataclass(frozen=True)
class ToggleBidExpansion:
    request_id: str


@dataclass(frozen=True)
class ToggleShowExpansion:
    show_id: str


@dataclass(frozen=True)
class ToggleRequestExpansion:
    request_id: str


@dataclass(frozen=True)
class OpenBidForm:
    request: Any


@dataclass(frozen=True)
class CloseBidForm:
    pass


@dataclass(frozen=True)
class OpenShowDetail:
    show: Any


@dataclass(frozen=True)
class CloseShowDetail:
    pass


@dataclass(frozen=True)
class OpenDocumentModal:
    show: Any = None
    bid: Any = None
    request: Any = None


@dataclass(frozen=True)
class CloseDocumentModal:
    pass


@dataclass(frozen=True)
class OpenUniversalOffer:
    artist: Dict[str, str]
    tour_request: Optional[Dict[str, str]] = None
    pre_selected_date: Optional[str] = None
    existing_bid: Any = None


@dataclass(frozen=True)
class CloseUniversalOffer:
    pass


@dataclass(frozen=True)
class OpenTourRequestDetail:
    request: Any


@dataclass(frozen=True)
class CloseTourRequestDetail:
    pass


@dataclass(frozen=True)
class SetBidActionLoading:
    bid_id: str
    loading: bool


@dataclass(frozen=True)
class SetHoldActionLoading:
    bid_id: str
    loading: bool


@dataclass(frozen=True)
class SetDeleteLoading:
    request_id: Optional[str]


@dataclass(frozen=True)
class SetDeleteShowLoading:
    show_id: Optional[str]


@dataclass(frozen=True)
class DeclineBidOptimistic:
    bid_id: str


@dataclass(frozen=True)
class DeleteRequestOptimistic:
    request_id: str


@dataclass(frozen=True)
class DeleteShowOptimistic:
    show_id: str


@dataclass(frozen=True)
class SetBidStatusOverride:
    bid_id: str
    status: str


@dataclass(frozen=True)
class ClearBidStatusOverride:
    bid_id: str


@dataclass(frozen=True)
class SetHoldNote:
    bid_id: str
    note: str


@dataclass(frozen=True)
class SetActiveMonth:
    month_key: str


@dataclass(frozen=True)
class ResetOptimisticState:
    pass


@dataclass(frozen=True)
class ResetAllState:
    pass


# =============================================================================
# REDUCER
# =============================================================================

def _toggle(items: FrozenSet[str], key: str) -> FrozenSet[str]:
    return items - {key} if key in items else items | {key}


def _set_override(state: ItineraryState, action: SetBidStatusOverride) -> ItineraryState:
    if action.status not in BID_OVERRIDE_STATUSES:
        raise ValueError(f"Bid status override must be one of {BID_OVERRIDE_STATUSES}")
    return replace(state, bid_status_overrides={**state.bid_status_overrides, action.bid_id: action.status})


def _clear_override(state: ItineraryState, action: ClearBidStatusOverride) -> ItineraryState:
    overrides = {k: v for k, v in state.bid_status_overrides.items() if k != action.bid_id}
    return replace(state, bid_status_overrides=overrides)


_HANDLERS: Dict[type, Callable[[ItineraryState, Any], ItineraryState]] = {
    ToggleBidExpansion: lambda s, a: replace(s, expanded_bids=_toggle(s.expanded_bids, a.request_id)),
    ToggleShowExpansion: lambda s, a: replace(s, expanded_shows=_toggle(s.expanded_shows, a.show_id)),
    ToggleRequestExpansion: lambda s, a: replace(s, expanded_requests=_toggle(s.expanded_requests, a.request_id)),

    OpenBidForm: lambda s, a: replace(s, show_bid_form=True, selected_tour_request=a.request),
    CloseBidForm: lambda s, a: replace(s, show_bid_form=False, selected_tour_request=None),
    OpenShowDetail: lambda s, a: replace(s, show_detail_modal=True, selected_show_for_detail=a.show),
    CloseShowDetail: lambda s, a: replace(s, show_detail_modal=False, selected_show_for_detail=None),
    OpenDocumentModal: lambda s, a: replace(
        s, show_document_modal=True, selected_document_show=a.show,
        selected_document_bid=a.bid, selected_document_tour_request=a.request),
    CloseDocumentModal: lambda s, a: replace(
        s, show_document_modal=False, selected_document_show=None,
        selected_document_bid=None, selected_document_tour_request=None),
    OpenUniversalOffer: lambda s, a: replace(
        s, show_universal_offer_modal=True, offer_target_artist=a.artist,
        offer_tour_request=a.tour_request, offer_pre_selected_date=a.pre_selected_date,
        offer_existing_bid=a.existing_bid),
    CloseUniversalOffer: lambda s, a: replace(
        s, show_universal_offer_modal=False, offer_target_artist=None,
        offer_tour_request=None, offer_pre_selected_date=None, offer_existing_bid=None),
    OpenTourRequestDetail: lambda s, a: replace(s, tour_request_detail_modal=True, selected_tour_request=a.request),
    CloseTourRequestDetail: lambda s, a: replace(s, tour_request_detail_modal=False, selected_tour_request=None),

    SetBidActionLoading: lambda s, a: replace(s, bid_actions={**s.bid_actions, a.bid_id: a.loading}),
    SetHoldActionLoading: lambda s, a: replace(s, hold_actions={**s.hold_actions, a.bid_id: a.loading}),
    SetDeleteLoading: lambda s, a: replace(s, delete_loading=a.request_id),
    SetDeleteShowLoading: lambda s, a: replace(s, delete_show_loading=a.show_id),

    DeclineBidOptimistic: lambda s, a: replace(s, declined_bids=s.declined_bids | {a.bid_id}),
    DeleteRequestOptimistic: lambda s, a: replace(s, deleted_requests=s.deleted_requests | {a.request_id}),
    DeleteShowOptimistic: lambda s, a: replace(s, deleted_shows=s.deleted_shows | {a.show_id}),
    SetBidStatusOverride: _set_override,
    ClearBidStatusOverride: _clear_override,

    SetHoldNote: lambda s, a: replace(s, hold_notes={**s.hold_notes, a.bid_id: a.note}),
    SetActiveMonth: lambda s, a: replace(s, active_month_tab=a.month_key),

    ResetOptimisticState: lambda s, a: replace(
        s, declined_bids=frozenset(), deleted_requests=frozenset(), deleted_shows=frozenset(),
        bid_status_overrides={}, recent_undo_actions=frozenset()),
    ResetAllState: lambda s, a: INITIAL_STATE,
}


def reduce(state: ItineraryState, action: Any) -> ItineraryState:
    """Next state for action. Unknown actions leave state unchanged."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return state
    return handler(state, action)


def apply_optimistic_state(entries: List[TimelineEntry], state: ItineraryState) -> List[TimelineEntry]:
    """
    Timeline entries as the user should see them right now: optimistically
    deleted rows hidden, declined bids and status overrides applied.
    """
    hidden = state.deleted_requests | state.deleted_shows
    visible = []
    for entry in entries:
        opportunity = entry.data
        if opportunity.id in hidden:
            continue

        status = opportunity.status
        if opportunity.id in state.declined_bids:
            status = DECLINED
        elif opportunity.id in state.bid_status_overrides:
            status = map_legacy_status(state.bid_status_overrides[opportunity.id])

        if status != opportunity.status:
            entry = replace(entry, data=replace(opportunity, status=status))
        visible.append(entry)
    return visible


class ItineraryStore:
    """Current itinerary state for one artist or venue page."""

    def __init__(self, state: ItineraryState = INITIAL_STATE):
        self.state = state
        self._context: Optional[Tuple[Optional[str], Optional[str]]] = None

    def dispatch(self, action: Any) -> ItineraryState:
        self.state = reduce(self.state, action)
        return self.state

    def set_context(self, artist_id: Optional[str] = None, venue_id: Optional[str] = None) -> ItineraryState:
        """Switch the viewed artist/venue; optimistic state never carries across."""
        context = (artist_id, venue_id)
        if self._context is not None and context != self._context:
            self.dispatch(ResetOptimisticState())
        self._context = context
        return self.state

    def reset(self) -> ItineraryState:
        return self.dispatch(ResetAllState())
