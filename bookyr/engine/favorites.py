"""
Favorites - saved venues and artists per user.

Storage functions talk to the favorites table. FavoritesCache sits in front
of any favorites client (the REST client or DatabaseFavoritesClient) and
re-fetches at most once per TTL window.
"""

import logging
import time
import uuid
from typing import Callable, List, Optional, Set

from bookyr.config import config
from bookyr.db.connection import get_db_cursor
from bookyr.models import Favorite, ENTITY_TYPES
from bookyr.bus.events import bus, EVENT_FAVORITE_ADDED, EVENT_FAVORITE_REMOVED
from bookyr.logging_config import log_call

logger = logging.getLogger(__name__)


def _validate_entity(entity_type: str, entity_id: str) -> None:
    if entity_type not in ENTITY_TYPES:
        raise ValueError(f"entity_type must be one of {ENTITY_TYPES}, got {entity_type!r}")
    if not entity_id:
        raise ValueError("entity_type and entity_id are required")


# =============================================================================
# STORAGE
# =============================================================================

def list_favorites(user_id: str, entity_type: Optional[str] = None) -> List[Favorite]:
    """A user's favorites, newest first."""
    query = "SELECT id, user_id, entity_type, entity_id, created_at FROM favorites WHERE user_id = %s"
    params = [user_id]
    if entity_type:
        query += " AND entity_type = %s"
        params.append(entity_type)
    query += " ORDER BY created_at DESC"

    with get_db_cursor() as cur:
        cur.execute(query, params)
        return [Favorite(**row) for row in cur.fetchall()]


@log_call
def add_favorite(user_id: str, entity_type: str, entity_id: str) -> Favorite:
    """
    Favorite a venue or artist.
    Raises ValueError if it is already favorited.
    """
    _validate_entity(entity_type, entity_id)

    with get_db_cursor() as cur:
        cur.execute("""
            INSERT INTO favorites (id, user_id, entity_type, entity_id, created_at)
            VALUES (%s, %s, %s, %s, NOW())
            ON CONFLICT (user_id, entity_type, entity_id) DO NOTHING
            RETURNING id, user_id, entity_type, entity_id, created_at
        """, (str(uuid.uuid4()), user_id, entity_type, entity_id))

        row = cur.fetchone()
        if not row:
            raise ValueError("Already favorited")

        favorite = Favorite(**row)
        logger.info(f"User {user_id} favorited {entity_type} {entity_id}")
        bus.emit(EVENT_FAVORITE_ADDED, {'user_id': user_id, 'entity_type': entity_type, 'entity_id': entity_id})
        return favorite


@log_call
def remove_favorite(user_id: str, entity_type: str, entity_id: str) -> bool:
    """Returns: True if a favorite was removed"""
    _validate_entity(entity_type, entity_id)

    with get_db_cursor() as cur:
        cur.execute("""
            DELETE FROM favorites
            WHERE user_id = %s AND entity_type = %s AND entity_id = %s
        """, (user_id, entity_type, entity_id))

        if cur.rowcount > 0:
            logger.info(f"User {user_id} unfavorited {entity_type} {entity_id}")
            bus.emit(EVENT_FAVORITE_REMOVED, {'user_id': user_id, 'entity_type': entity_type, 'entity_id': entity_id})
            return True
        return False


class DatabaseFavoritesClient:
    """Favorites client backed directly by the database, for one user."""

    def __init__(self, user_id: str):
        self.user_id = user_id

    def list_favorites(self, entity_type: Optional[str] = None) -> List[Favorite]:
        return list_favorites(self.user_id, entity_type)

    def add_favorite(self, entity_type: str, entity_id: str) -> Favorite:
        return add_favorite(self.user_id, entity_type, entity_id)

    def remove_favorite(self, entity_type: str, entity_id: str) -> bool:
        return remove_favorite(self.user_id, entity_type, entity_id)


# =============================================================================
# CLIENT-SIDE CACHE
# =============================================================================

class FavoritesCache:
    """
    Favorites for the current user with a freshness window.

    load() is a no-op while a load is already running or while the last load is
    younger than ttl seconds. toggle() flips local state first and puts it back
    if the client call fails.
    """

    def __init__(self, client, ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.ttl = config.FAVORITES_CACHE_TTL_SECONDS if ttl is None else ttl
        self._clock = clock
        self.favorites: List[Favorite] = []
        self._ids: Set[str] = set()
        self._loaded_at: Optional[float] = None
        self.loading = False

    @property
    def is_fresh(self) -> bool:
        return self._loaded_at is not None and self._clock() - self._loaded_at < self.ttl

    def load(self, force: bool = False) -> List[Favorite]:
        if self.loading:
            logger.debug("FavoritesCache.load skipped: load already in flight")
            return self.favorites
        if self.is_fresh and not force:
            return self.favorites

        self.loading = True
        try:
            favorites = self.client.list_favorites()
        finally:
            self.loading = False

        self.favorites = list(favorites)
        self._ids = {f.entity_id for f in self.favorites}
        self._loaded_at = self._clock()
        logger.debug(f"FavoritesCache loaded {len(self.favorites)} favorites")
        return self.favorites

    def invalidate(self) -> None:
        self._loaded_at = None

    def is_favorited(self, entity_id: str) -> bool:
        return entity_id in self._ids

    def get_by_type(self, entity_type: str) -> List[Favorite]:
        return [f for f in self.favorites if f.entity_type == entity_type]

    def toggle(self, entity_type: str, entity_id: str) -> bool:
        """Flip favorite status. Returns True if the entity is now favorited."""
        _validate_entity(entity_type, entity_id)

        if entity_id in self._ids:
            self._ids.discard(entity_id)
            try:
                self.client.remove_favorite(entity_type, entity_id)
            except Exception:
                self._ids.add(entity_id)
                raise
            self.favorites = [f for f in self.favorites
                              if not (f.entity_id == entity_id and f.entity_type == entity_type)]
            return False

        self._ids.add(entity_id)
        try:
            favorite = self.client.add_favorite(entity_type, entity_id)
        except Exception:
            self._ids.discard(entity_id)
            raise
        if not isinstance(favorite, Favorite):
            favorite = Favorite(entity_type=entity_type, entity_id=entity_id)
        self.favorites = [favorite] + self.favorites
        return True
