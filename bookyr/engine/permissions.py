"""
Permissions - who may act for which artist or venue.

An Identity is a user id plus the artists and venues that user is a member of.
Ownership checks are explicit membership tests; there is no debug override.
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from bookyr.db.connection import get_db_cursor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    artist_ids: FrozenSet[str] = field(default_factory=frozenset)
    venue_ids: FrozenSet[str] = field(default_factory=frozenset)

    def acts_for_artist(self, artist_id: Optional[str]) -> bool:
        # A solo artist's profile id may be the user id itself
        return bool(artist_id) and (artist_id == self.user_id or artist_id in self.artist_ids)

    def acts_for_venue(self, venue_id: Optional[str]) -> bool:
        return bool(venue_id) and venue_id in self.venue_ids

    def acts_for(self, entity_type: str, entity_id: Optional[str]) -> bool:
        """Profile ownership: entity_type is ARTIST or VENUE."""
        if entity_type == 'ARTIST':
            return self.acts_for_artist(entity_id)
        if entity_type == 'VENUE':
            return self.acts_for_venue(entity_id)
        return False


def is_party_to(identity: Identity, document) -> bool:
    """True if identity acts for the document's artist or its venue."""
    return (identity.acts_for_artist(getattr(document, 'artist_id', None))
            or identity.acts_for_venue(getattr(document, 'venue_id', None)))


def perspective_for(identity: Identity, document) -> Optional[str]:
    """'ARTIST' or 'VENUE' depending on which side identity is on, None if neither."""
    if identity.acts_for_artist(getattr(document, 'artist_id', None)):
        return 'ARTIST'
    if identity.acts_for_venue(getattr(document, 'venue_id', None)):
        return 'VENUE'
    return None


def load_identity(user_id: str) -> Identity:
    """Build an Identity from artist_members and venue_members."""
    if not user_id:
        raise ValueError("user_id is required")

    with get_db_cursor() as cur:
        cur.execute("SELECT artist_id FROM artist_members WHERE user_id = %s", (user_id,))
        artist_ids = frozenset(row['artist_id'] for row in cur.fetchall())

        cur.execute("SELECT venue_id FROM venue_members WHERE user_id = %s", (user_id,))
        venue_ids = frozenset(row['venue_id'] for row in cur.fetchall())

    logger.debug(f"load_identity: {user_id} artists={sorted(artist_ids)} venues={sorted(venue_ids)}")
    return Identity(user_id=user_id, artist_ids=artist_ids, venue_ids=venue_ids)
