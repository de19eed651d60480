"""
Unit tests for favorites storage and FavoritesCache (bookyr/engine/favorites.py).
"""

import pytest
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

from bookyr.models import Favorite
from bookyr.engine.favorites import (
    list_favorites,
    add_favorite,
    remove_favorite,
    DatabaseFavoritesClient,
    FavoritesCache,
)
from bookyr.bus.events import EVENT_FAVORITE_ADDED, EVENT_FAVORITE_REMOVED

FAVORITE_ROW = {'id': 'fav-1', 'user_id': 'user-1', 'entity_type': 'VENUE',
                'entity_id': 'venue-1', 'created_at': None}


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

    return patch('bookyr.engine.favorites.get_db_cursor', _mock_ctx)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FakeClient:
    def __init__(self, favorites=None):
        self.favorites = list(favorites or [])
        self.list_calls = 0
        self.fail_with = None

    def list_favorites(self, entity_type=None):
        self.list_calls += 1
        return list(self.favorites)

    def add_favorite(self, entity_type, entity_id):
        if self.fail_with:
            raise self.fail_with
        favorite = Favorite(id=f'fav-{entity_id}', entity_type=entity_type, entity_id=entity_id)
        self.favorites.append(favorite)
        return favorite

    def remove_favorite(self, entity_type, entity_id):
        if self.fail_with:
            raise self.fail_with
        self.favorites = [f for f in self.favorites if f.entity_id != entity_id]
        return True


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def test_list_favorites_filters_by_type():
    cur = make_cursor(fetchall=[FAVORITE_ROW])
    with cursor_patch(cur):
        result = list_favorites('user-1', 'VENUE')

    query, params = cur.execute.call_args[0]
    assert 'entity_type = %s' in query
    assert params == ['user-1', 'VENUE']
    assert result == [Favorite(**FAVORITE_ROW)]


def test_add_favorite_emits_event():
    cur = make_cursor(fetchone=FAVORITE_ROW)
    with cursor_patch(cur), patch('bookyr.engine.favorites.bus.emit') as emit:
        favorite = add_favorite('user-1', 'VENUE', 'venue-1')

    assert favorite.id == 'fav-1'
    assert 'ON CONFLICT' in cur.execute.call_args[0][0]
    emit.assert_called_once_with(EVENT_FAVORITE_ADDED,
                                 {'user_id': 'user-1', 'entity_type': 'VENUE', 'entity_id': 'venue-1'})


def test_add_favorite_twice_raises():
    cur = make_cursor(fetchone=None)
    with cursor_patch(cur), pytest.raises(ValueError, match='Already favorited'):
        add_favorite('user-1', 'VENUE', 'venue-1')


@pytest.mark.parametrize('entity_type, entity_id', [('SHOW', 'x'), ('VENUE', '')])
def test_add_favorite_validates_entity(entity_type, entity_id):
    cur = make_cursor()
    with cursor_patch(cur), pytest.raises(ValueError):
        add_favorite('user-1', entity_type, entity_id)
    cur.execute.assert_not_called()


def test_remove_favorite():
    cur = make_cursor(rowcount=1)
    with cursor_patch(cur), patch('bookyr.engine.favorites.bus.emit') as emit:
        assert remove_favorite('user-1', 'ARTIST', 'artist-1') is True
    emit.assert_called_once()
    assert emit.call_args[0][0] == EVENT_FAVORITE_REMOVED


def test_remove_missing_favorite_returns_false():
    cur = make_cursor(rowcount=0)
    with cursor_patch(cur), patch('bookyr.engine.favorites.bus.emit') as emit:
        assert remove_favorite('user-1', 'ARTIST', 'artist-1') is False
    emit.assert_not_called()


def test_database_client_binds_user():
    with patch('bookyr.engine.favorites.add_favorite') as add:
        DatabaseFavoritesClient('user-7').add_favorite('ARTIST', 'artist-1')
    add.assert_called_once_with('user-7', 'ARTIST', 'artist-1')


# ---------------------------------------------------------------------------
# FavoritesCache
# ---------------------------------------------------------------------------

def test_load_is_skipped_while_fresh():
    clock, client = FakeClock(), FakeClient([Favorite(entity_type='VENUE', entity_id='venue-1')])
    cache = FavoritesCache(client, ttl=30, clock=clock)

    cache.load()
    clock.now += 29
    cache.load()
    assert client.list_calls == 1

    clock.now += 2
    cache.load()
    assert client.list_calls == 2


def test_force_and_invalidate_reload():
    clock, client = FakeClock(), FakeClient()
    cache = FavoritesCache(client, ttl=30, clock=clock)
    cache.load()
    cache.load(force=True)
    cache.invalidate()
    cache.load()
    assert client.list_calls == 3


def test_load_skipped_while_in_flight():
    client = FakeClient()
    cache = FavoritesCache(client, ttl=30, clock=FakeClock())
    cache.loading = True
    cache.load()
    assert client.list_calls == 0


def test_failed_load_clears_loading_flag():
    client = MagicMock()
    client.list_favorites.side_effect = RuntimeError('down')
    cache = FavoritesCache(client, ttl=30, clock=FakeClock())
    with pytest.raises(RuntimeError):
        cache.load()
    assert cache.loading is False
    assert not cache.is_fresh


def test_toggle_twice_restores_state():
    cache = FavoritesCache(FakeClient(), ttl=30, clock=FakeClock())
    cache.load()

    assert cache.toggle('ARTIST', 'artist-1') is True
    assert cache.is_favorited('artist-1')
    assert [f.entity_id for f in cache.get_by_type('ARTIST')] == ['artist-1']

    assert cache.toggle('ARTIST', 'artist-1') is False
    assert not cache.is_favorited('artist-1')
    assert cache.favorites == []


def test_toggle_rolls_back_when_add_fails():
    client = FakeClient()
    client.fail_with = RuntimeError('network')
    cache = FavoritesCache(client, ttl=30, clock=FakeClock())

    with pytest.raises(RuntimeError):
        cache.toggle('VENUE', 'venue-1')
    assert not cache.is_favorited('venue-1')


def test_toggle_rolls_back_when_remove_fails():
    client = FakeClient([Favorite(entity_type='VENUE', entity_id='venue-1')])
    cache = FavoritesCache(client, ttl=30, clock=FakeClock())
    cache.load()
    client.fail_with = RuntimeError('network')

    with pytest.raises(RuntimeError):
        cache.toggle('VENUE', 'venue-1')
    assert cache.is_favorited('venue-1')
    assert len(cache.favorites) == 1


def test_toggle_rejects_unknown_type():
    cache = FavoritesCache(FakeClient(), ttl=30, clock=FakeClock())
    with pytest.raises(ValueError):
        cache.toggle('SHOW', 'x')
