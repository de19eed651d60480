"""
API Client - requests wrapper for the Book Yr Life REST API.

Identity travels as the auth-token cookie. The x-debug-user header is only
sent when ALLOW_DEBUG_IDENTITY is on (test harness).

Every non-2xx response raises ApiError (401 -> AuthenticationError,
403 -> PermissionDeniedError). No retries.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from bookyr.config import config
from bookyr.models import BookingOpportunity, HoldRequest, Favorite, MediaEmbed, Show, TourRequest, VenueOffer
from bookyr.engine import adapters

logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ApiError):
    """Session missing or expired; the user must sign in again."""


class PermissionDeniedError(ApiError):
    pass


def _entity_path(entity_type: str) -> str:
    if entity_type == 'ARTIST':
        return 'artists'
    if entity_type == 'VENUE':
        return 'venues'
    raise ValueError(f"entity_type must be ARTIST or VENUE, got {entity_type!r}")


class BookingApiClient:
    """One client per signed-in user."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session_token: Optional[str] = None,
        debug_user: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config.API_BASE_URL).rstrip('/')
        self.timeout = timeout or config.API_TIMEOUT_SECONDS
        self.session = session or requests.Session()

        token = session_token if session_token is not None else config.SESSION_TOKEN
        if token:
            self.session.cookies.set('auth-token', token)

        debug_user = debug_user or config.DEBUG_USER
        if debug_user and config.ALLOW_DEBUG_IDENTITY:
            logger.warning(f"Debug identity enabled: sending x-debug-user={debug_user}")
            self.session.headers['x-debug-user'] = debug_user

    # -------------------------------------------------------------------------
    # transport
    # -------------------------------------------------------------------------

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                 json: Any = None) -> Any:
        url = f"{self.base_url}{path}"
        params = {k: v for k, v in (params or {}).items() if v is not None}
        logger.debug(f"{method} {url} params={params}")

        try:
            response = self.session.request(method, url, params=params or None, json=json, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(f"Network error calling {path}: {e}") from e

        if not response.ok:
            message = self._error_message(response)
            logger.error(f"{method} {path} -> {response.status_code}: {message}")
            if response.status_code == 401:
                raise AuthenticationError(f"Not signed in or session expired: {message}", 401)
            if response.status_code == 403:
                raise PermissionDeniedError(message, 403)
            raise ApiError(message, response.status_code)

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_message(response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            return body.get('error') or body.get('message') or str(body)
        return str(body)

    @staticmethod
    def _unwrap(body: Any, key: str) -> Any:
        """Some endpoints wrap their payload ({'opportunities': [...]}), some do not."""
        if isinstance(body, dict) and key in body:
            return body[key]
        return body

    # -------------------------------------------------------------------------
    # hold requests
    # -------------------------------------------------------------------------

    def list_hold_requests(self, show_id: Optional[str] = None, show_request_id: Optional[str] = None,
                           statuses: Optional[Iterable[str]] = None) -> List[HoldRequest]:
        body = self._request('GET', '/api/hold-requests', params={
            'showId': show_id,
            'showRequestId': show_request_id,
            'status': ','.join(statuses) if statuses else None,
        })
        return [adapters.hold_from_api(item) for item in self._unwrap(body, 'holdRequests') or []]

    def create_hold_request(self, hold: HoldRequest) -> HoldRequest:
        body = self._request('POST', '/api/hold-requests', json={
            'showId': hold.show_id,
            'showRequestId': hold.show_request_id,
            'duration': hold.duration,
            'reason': hold.reason,
            'customMessage': hold.custom_message,
        })
        return adapters.hold_from_api(body)

    def get_hold_request(self, hold_id: str) -> HoldRequest:
        return adapters.hold_from_api(self._request('GET', f'/api/hold-requests/{hold_id}'))

    def respond_to_hold(self, hold_id: str, action: str) -> HoldRequest:
        """action: approve | decline | cancel"""
        if action not in ('approve', 'decline', 'cancel'):
            raise ValueError(f"Unknown hold action {action!r}")
        body = self._request('PUT', f'/api/hold-requests/{hold_id}', json={'action': action})
        return adapters.hold_from_api(self._unwrap(body, 'holdRequest'))

    # -------------------------------------------------------------------------
    # booking opportunities
    # -------------------------------------------------------------------------

    def list_booking_opportunities(self, perspective: str, context_id: str,
                                   statuses: Optional[Iterable[str]] = None,
                                   start_date: Optional[str] = None, end_date: Optional[str] = None,
                                   include_expired: bool = False) -> List[BookingOpportunity]:
        if perspective not in ('ARTIST', 'VENUE'):
            raise ValueError("Must specify perspective and contextId")
        context_param = 'artistId' if perspective == 'ARTIST' else 'venueId'
        body = self._request('GET', '/api/booking-opportunities', params={
            'perspective': perspective,
            context_param: context_id,
            'status': ','.join(statuses) if statuses else None,
            'startDate': start_date,
            'endDate': end_date,
            'includeExpired': 'true' if include_expired else None,
        })
        return [adapters.opportunity_from_api(item) for item in self._unwrap(body, 'opportunities') or []]

    def get_booking_opportunity(self, opportunity_id: str) -> BookingOpportunity:
        body = self._request('GET', '/api/booking-opportunities', params={'id': opportunity_id})
        return adapters.opportunity_from_api(self._unwrap(body, 'opportunity'))

    def create_booking_opportunity(self, opportunity: BookingOpportunity) -> BookingOpportunity:
        body = self._request('POST', '/api/booking-opportunities', json=adapters.opportunity_to_api(opportunity))
        return adapters.opportunity_from_api(self._unwrap(body, 'opportunity'))

    def update_booking_opportunity(self, opportunity_id: str, changes: Dict[str, Any]) -> BookingOpportunity:
        """changes use snake_case keys; they are sent camelCase."""
        body = self._request('PUT', '/api/booking-opportunities', params={'id': opportunity_id},
                             json=adapters.to_api(changes))
        return adapters.opportunity_from_api(self._unwrap(body, 'opportunity'))

    def delete_booking_opportunity(self, opportunity_id: str) -> None:
        self._request('DELETE', '/api/booking-opportunities', params={'id': opportunity_id})

    # -------------------------------------------------------------------------
    # legacy sources
    # -------------------------------------------------------------------------

    def list_show_requests(self, artist_id: Optional[str] = None, venue_id: Optional[str] = None) -> List[TourRequest]:
        body = self._request('GET', '/api/show-requests', params={'artistId': artist_id, 'venueId': venue_id})
        return [adapters.tour_request_from_api(item) for item in self._unwrap(body, 'requests') or []]

    def list_shows(self, artist_id: Optional[str] = None, venue_id: Optional[str] = None) -> List[Show]:
        body = self._request('GET', '/api/shows', params={'artistId': artist_id, 'venueId': venue_id})
        return [adapters.show_from_api(item) for item in self._unwrap(body, 'shows') or []]

    def list_artist_offers(self, artist_id: str) -> List[VenueOffer]:
        body = self._request('GET', f'/api/artists/{artist_id}/offers')
        return [adapters.venue_offer_from_api(item) for item in self._unwrap(body, 'offers') or []]

    # -------------------------------------------------------------------------
    # media embeds
    # -------------------------------------------------------------------------

    def list_embeds(self, entity_type: str, entity_id: str) -> List[MediaEmbed]:
        body = self._request('GET', f'/api/{_entity_path(entity_type)}/{entity_id}/embeds')
        return [adapters.embed_from_api(item) for item in body or []]

    def add_embed(self, embed: MediaEmbed) -> MediaEmbed:
        body = self._request('POST', f'/api/{_entity_path(embed.entity_type)}/{embed.entity_id}/embeds', json={
            'url': embed.url,
            'title': embed.title,
            'description': embed.description,
            'isFeatured': embed.is_featured,
        })
        return adapters.embed_from_api(body)

    def update_embed(self, entity_type: str, entity_id: str, embed_id: str, changes: Dict[str, Any]) -> MediaEmbed:
        body = self._request('PUT', f'/api/{_entity_path(entity_type)}/{entity_id}/embeds',
                             params={'embedId': embed_id}, json=adapters.to_api(changes))
        return adapters.embed_from_api(body)

    def delete_embed(self, entity_type: str, entity_id: str, embed_id: str) -> None:
        self._request('DELETE', f'/api/{_entity_path(entity_type)}/{entity_id}/embeds', params={'embedId': embed_id})

    # -------------------------------------------------------------------------
    # favorites (same interface as DatabaseFavoritesClient)
    # -------------------------------------------------------------------------

    def list_favorites(self, entity_type: Optional[str] = None) -> List[Favorite]:
        body = self._request('GET', '/api/favorites', params={'entityType': entity_type})
        return [adapters.favorite_from_api(item) for item in self._unwrap(body, 'favorites') or []]

    def add_favorite(self, entity_type: str, entity_id: str) -> Favorite:
        body = self._request('POST', '/api/favorites', json={'entityType': entity_type, 'entityId': entity_id})
        return adapters.favorite_from_api(body)

    def remove_favorite(self, entity_type: str, entity_id: str) -> bool:
        self._request('DELETE', '/api/favorites', params={'entityType': entity_type, 'entityId': entity_id})
        return True

    # -------------------------------------------------------------------------
    # messages
    # -------------------------------------------------------------------------

    def list_conversations(self) -> List[Dict[str, Any]]:
        return self._request('GET', '/api/messages/conversations') or []

    def start_conversation(self, recipient_id: str, recipient_name: str, recipient_type: str) -> str:
        """Returns the conversation id (existing or new)."""
        body = self._request('POST', '/api/messages/conversations', json={
            'recipientId': recipient_id,
            'recipientName': recipient_name,
            'recipientType': recipient_type,
        })
        return body['conversationId']

    def list_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        return self._request('GET', f'/api/messages/{conversation_id}') or []

    def send_message(self, conversation_id: str, content: str, sender_id: str,
                     sender_name: str, sender_type: str) -> Dict[str, Any]:
        if not content or not content.strip():
            raise ValueError("Message content is required")
        return self._request('POST', f'/api/messages/{conversation_id}', json={
            'content': content,
            'senderId': sender_id,
            'senderName': sender_name,
            'senderType': sender_type,
        })
