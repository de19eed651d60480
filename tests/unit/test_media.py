"""
Unit tests for media embeds (bookyr/engine/media.py).
"""

import pytest
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

from bookyr.models import MediaEmbed
from bookyr.engine.media import (
    UnsupportedMediaError,
    detect_platform,
    validate_embed_url,
    default_title,
    build_embed_url,
    list_embeds,
    get_embed,
    add_embed,
    update_embed,
    delete_embed,
)
from bookyr.bus.events import EVENT_EMBED_ADDED, EVENT_EMBED_REMOVED


def make_cursor(fetchone=None, fetchall=None, rowcount=1):
    cur = MagicMock()
    cur.fetchone.return_value = fetchone
    cur.fetchall.return_value = fetchall if fetchall is not None else []
    cur.rowcount = rowcount
    return cur


def cursor_patch(cur):
    @contextmanager
    def _mock_ctx():
        yield cur

    return patch('bookyr.engine.media.get_db_cursor', _mock_ctx)


def embed_row(**overrides):
    row = {'id': 'embed-1', 'entity_type': 'ARTIST', 'entity_id': 'artist-1',
           'url': 'https://youtu.be/abc123', 'title': 'Video', 'description': None,
           'is_featured': False, 'order': 1, 'created_at': None, 'updated_at': None}
    row.update(overrides)
    return row


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize('url, platform', [
    ('https://www.youtube.com/watch?v=abc123', 'youtube'),
    ('https://youtu.be/abc123', 'youtube'),
    ('https://open.spotify.com/album/xyz', 'spotify'),
    ('https://soundcloud.com/band/song', 'soundcloud'),
    ('https://band.bandcamp.com/album/record', 'bandcamp'),
    ('https://vimeo.com/123', None),
    ('ftp://youtube.com/watch?v=abc', None),
    ('https://notyoutube.com/watch?v=abc', None),
    ('', None),
])
def test_detect_platform(url, platform):
    assert detect_platform(url) == platform


def test_validate_embed_url_rejects_unsupported():
    with pytest.raises(UnsupportedMediaError, match='YouTube, Spotify, SoundCloud, or Bandcamp'):
        validate_embed_url('https://vimeo.com/123')


def test_unsupported_media_is_a_value_error():
    assert issubclass(UnsupportedMediaError, ValueError)


def test_default_titles():
    assert default_title('https://youtu.be/abc') == 'Video'
    assert default_title('https://open.spotify.com/track/1') == 'Music'
    assert default_title('https://soundcloud.com/a/b') == 'Audio'
    assert default_title('https://x.bandcamp.com/track/y') == 'Release'


def test_youtube_player_url():
    assert build_embed_url('https://www.youtube.com/watch?v=abc123&t=10') == \
        'https://www.youtube.com/embed/abc123?rel=0&modestbranding=1'
    assert build_embed_url('https://youtu.be/abc123', autoplay=True).endswith('&autoplay=1&mute=1')


def test_spotify_player_url():
    assert build_embed_url('https://open.spotify.com/playlist/p1') == \
        'https://open.spotify.com/embed/playlist/p1?utm_source=generator&theme=0'


def test_soundcloud_player_url_encodes_source():
    player = build_embed_url('https://soundcloud.com/band/song')
    assert player.startswith('https://w.soundcloud.com/player/?url=https%3A%2F%2Fsoundcloud.com%2Fband%2Fsong')


def test_bandcamp_player_url():
    player = build_embed_url('https://band.bandcamp.com/album/record')
    assert player.startswith('https://bandcamp.com/EmbeddedPlayer/album=record/')


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def test_list_embeds_orders_featured_first():
    cur = make_cursor(fetchall=[embed_row()])
    with cursor_patch(cur):
        embeds = list_embeds('ARTIST', 'artist-1')
    assert 'ORDER BY is_featured DESC' in cur.execute.call_args[0][0]
    assert embeds[0].id == 'embed-1'


def test_get_embed():
    cur = make_cursor(fetchone=embed_row())
    with cursor_patch(cur):
        embed = get_embed('embed-1')
    assert embed.entity_type == 'ARTIST'
    assert embed.entity_id == 'artist-1'
    assert cur.execute.call_args[0][1] == ('embed-1',)


def test_get_missing_embed():
    cur = make_cursor(fetchone=None)
    with cursor_patch(cur):
        assert get_embed('nope') is None


def test_add_embed_numbers_after_last():
    cur = make_cursor()
    cur.fetchone.side_effect = [{'last_order': 2}, embed_row(order=3)]
    with cursor_patch(cur), patch('bookyr.engine.media.bus.emit') as emit:
        created = add_embed(MediaEmbed(entity_type='ARTIST', entity_id='artist-1', url='https://youtu.be/abc123'))

    assert created.order == 3
    insert_params = cur.execute.call_args_list[-1][0][1]
    assert insert_params[4] == 'Video'
    assert insert_params[7] == 3
    assert emit.call_args[0][0] == EVENT_EMBED_ADDED


def test_add_featured_embed_unfeatures_others():
    cur = make_cursor()
    cur.fetchone.side_effect = [{'last_order': 0}, embed_row(is_featured=True)]
    with cursor_patch(cur), patch('bookyr.engine.media.bus.emit'):
        add_embed(MediaEmbed(entity_type='ARTIST', entity_id='artist-1',
                             url='https://youtu.be/abc123', is_featured=True))

    first_query = cur.execute.call_args_list[0][0][0]
    assert 'SET is_featured = FALSE' in first_query


def test_add_embed_rejects_bad_url_before_db():
    cur = make_cursor()
    with cursor_patch(cur), pytest.raises(UnsupportedMediaError):
        add_embed(MediaEmbed(entity_type='ARTIST', entity_id='artist-1', url='https://vimeo.com/1'))
    cur.execute.assert_not_called()


def test_update_embed_rejects_unknown_fields():
    with pytest.raises(ValueError, match='Invalid embed fields'):
        update_embed('embed-1', {'entity_id': 'other'})


def test_update_embed_empty_is_noop():
    assert update_embed('embed-1', {}) is False


def test_update_embed_featured_unfeatures_siblings():
    cur = make_cursor(rowcount=1)
    with cursor_patch(cur):
        assert update_embed('embed-1', {'is_featured': True}) is True
    assert cur.execute.call_count == 2


def test_delete_embed():
    cur = make_cursor(rowcount=1)
    with cursor_patch(cur), patch('bookyr.engine.media.bus.emit') as emit:
        assert delete_embed('embed-1') is True
    emit.assert_called_once_with(EVENT_EMBED_REMOVED, {'embed_id': 'embed-1'})


def test_delete_missing_embed():
    cur = make_cursor(rowcount=0)
    with cursor_patch(cur):
        assert delete_embed('nope') is False
