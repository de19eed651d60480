"""
Unit tests for bookyr/engine/permissions.py.
"""

import pytest
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

from bookyr.models import BookingOpportunity, HoldRequest
from bookyr.engine.permissions import Identity, is_party_to, perspective_for, load_identity

DOCUMENT = BookingOpportunity(id='opp-1', artist_id='artist-1', venue_id='venue-1')


def test_member_of_artist_is_party():
    identity = Identity('u1', artist_ids=frozenset({'artist-1'}))
    assert is_party_to(identity, DOCUMENT)
    assert perspective_for(identity, DOCUMENT) == 'ARTIST'


def test_member_of_venue_is_party():
    identity = Identity('u2', venue_ids=frozenset({'venue-1'}))
    assert is_party_to(identity, DOCUMENT)
    assert perspective_for(identity, DOCUMENT) == 'VENUE'


def test_solo_artist_profile_id_is_user_id():
    identity = Identity('artist-1')
    assert identity.acts_for_artist('artist-1')
    assert is_party_to(identity, DOCUMENT)


def test_user_id_never_matches_a_venue():
    assert not Identity('venue-1').acts_for_venue('venue-1')


def test_stranger_is_not_party():
    identity = Identity('u3', artist_ids=frozenset({'artist-2'}), venue_ids=frozenset({'venue-2'}))
    assert not is_party_to(identity, DOCUMENT)
    assert perspective_for(identity, DOCUMENT) is None


def test_empty_ids_never_match():
    identity = Identity('u1', artist_ids=frozenset({''}))
    assert not identity.acts_for_artist('')
    assert not identity.acts_for_artist(None)


def test_acts_for_profile():
    identity = Identity('u1', artist_ids=frozenset({'artist-1'}), venue_ids=frozenset({'venue-1'}))
    assert identity.acts_for('ARTIST', 'artist-1')
    assert identity.acts_for('VENUE', 'venue-1')
    assert not identity.acts_for('VENUE', 'artist-1')
    assert not identity.acts_for('PROMOTER', 'artist-1')


def test_documents_without_parties():
    # Holds carry no artist/venue of their own
    assert not is_party_to(Identity('u1'), HoldRequest(show_request_id='opp-1'))


def test_load_identity_reads_memberships():
    cur = MagicMock()
    cur.fetchall.side_effect = [[{'artist_id': 'artist-1'}], [{'venue_id': 'venue-1'}, {'venue_id': 'venue-2'}]]

    @contextmanager
    def _mock_ctx():
        yield cur

    with patch('bookyr.engine.permissions.get_db_cursor', _mock_ctx):
        identity = load_identity('u1')

    assert identity == Identity('u1', frozenset({'artist-1'}), frozenset({'venue-1', 'venue-2'}))
    assert cur.execute.call_args_list[0][0][1] == ('u1',)


def test_load_identity_requires_user():
    with pytest.raises(ValueError):
        load_identity('')
