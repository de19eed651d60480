"""
Unit tests for the REST client (bookyr/engine/api_client.py).
The requests Session is real; only Session.request is replaced.
"""

import pytest
import requests
from unittest.mock import MagicMock, patch

from bookyr.models import BookingOpportunity, HoldRequest, MediaEmbed
from bookyr.engine.api_client import (
    ApiError,
    AuthenticationError,
    PermissionDeniedError,
    BookingApiClient,
)


def make_response(status_code=200, body=None, text=''):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.content = b'x' if body is not None else b''
    response.reason = 'Reason'
    response.text = text
    if body is None:
        response.json.side_effect = ValueError('no json')
    else:
        response.json.return_value = body
    return response


def make_client(response=None, **kwargs):
    session = requests.Session()
    session.request = MagicMock(return_value=response or make_response(body={}))
    kwargs.setdefault('base_url', 'http://api.test/')
    kwargs.setdefault('session_token', 'tok')
    client = BookingApiClient(session=session, **kwargs)
    return client, session.request


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

def test_session_token_sent_as_cookie():
    client, _ = make_client()
    assert client.session.cookies.get('auth-token') == 'tok'
    assert client.base_url == 'http://api.test'


def test_debug_header_ignored_unless_enabled():
    with patch('bookyr.engine.api_client.config.ALLOW_DEBUG_IDENTITY', False):
        client, _ = make_client(debug_user='debug-venue-1')
    assert 'x-debug-user' not in client.session.headers


def test_debug_header_sent_when_enabled():
    with patch('bookyr.engine.api_client.config.ALLOW_DEBUG_IDENTITY', True):
        client, _ = make_client(debug_user='debug-venue-1')
    assert client.session.headers['x-debug-user'] == 'debug-venue-1'


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

def test_401_raises_authentication_error():
    client, _ = make_client(make_response(401, {'error': 'Authentication required'}))
    with pytest.raises(AuthenticationError) as exc:
        client.list_favorites()
    assert exc.value.status_code == 401


def test_403_raises_permission_denied():
    client, _ = make_client(make_response(403, {'error': 'Not your venue'}))
    with pytest.raises(PermissionDeniedError, match='Not your venue'):
        client.respond_to_hold('hold-1', 'approve')


def test_other_errors_carry_status():
    client, _ = make_client(make_response(409, {'message': 'Hold already exists'}))
    with pytest.raises(ApiError, match='Hold already exists') as exc:
        client.create_hold_request(HoldRequest(show_request_id='req-1', reason='Routing'))
    assert exc.value.status_code == 409


def test_non_json_error_body_uses_text():
    client, _ = make_client(make_response(500, None, text='boom'))
    with pytest.raises(ApiError, match='boom'):
        client.list_shows(artist_id='a1')


def test_network_error_wrapped():
    client, request = make_client()
    request.side_effect = requests.exceptions.ConnectionError('refused')
    with pytest.raises(ApiError, match='Network error'):
        client.list_favorites()


def test_api_error_is_runtime_error():
    assert issubclass(AuthenticationError, RuntimeError)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

def test_list_booking_opportunities_params_and_unwrap():
    body = {'opportunities': [{'id': 'opp-1', 'artistId': 'a1', 'venueId': 'v1',
                               'proposedDate': '2025-08-15', 'status': 'PENDING'}]}
    client, request = make_client(make_response(body=body))

    result = client.list_booking_opportunities('VENUE', 'v1', statuses=['PENDING', 'OPEN'])

    method, url = request.call_args[0]
    assert (method, url) == ('GET', 'http://api.test/api/booking-opportunities')
    assert request.call_args[1]['params'] == {'perspective': 'VENUE', 'venueId': 'v1', 'status': 'PENDING,OPEN'}
    assert [o.id for o in result] == ['opp-1']


def test_list_booking_opportunities_needs_perspective():
    client, request = make_client()
    with pytest.raises(ValueError):
        client.list_booking_opportunities('FAN', 'x')
    request.assert_not_called()


def test_unwrapped_payloads_accepted():
    client, _ = make_client(make_response(body=[{'id': 'h1', 'status': 'ACTIVE'}]))
    assert [h.id for h in client.list_hold_requests(show_request_id='req-1')] == ['h1']


def test_respond_to_hold_rejects_unknown_action():
    client, request = make_client()
    with pytest.raises(ValueError):
        client.respond_to_hold('hold-1', 'extend')
    request.assert_not_called()


def test_create_opportunity_sends_camel_case():
    client, request = make_client(make_response(body={'opportunity': {'id': 'opp-9'}}))
    created = client.create_booking_opportunity(BookingOpportunity(artist_id='a1', venue_id='v1',
                                                                   proposed_date='2025-08-15'))
    assert request.call_args[1]['json']['artistId'] == 'a1'
    assert created.id == 'opp-9'


def test_embed_paths():
    client, request = make_client(make_response(body={'id': 'e1', 'url': 'https://youtu.be/x'}))
    client.add_embed(MediaEmbed(entity_type='VENUE', entity_id='v1', url='https://youtu.be/x'))
    assert request.call_args[0][1] == 'http://api.test/api/venues/v1/embeds'

    with pytest.raises(ValueError):
        client.list_embeds('SHOW', 'x')


def test_empty_response_body_returns_none():
    client, _ = make_client(make_response(body=None))
    assert client.remove_favorite('ARTIST', 'a1') is True


def test_send_message_requires_content():
    client, request = make_client()
    with pytest.raises(ValueError):
        client.send_message('c1', '   ', 'u1', 'Me', 'artist')
    request.assert_not_called()
