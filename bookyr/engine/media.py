"""
Media Embeds - YouTube, Spotify, SoundCloud and Bandcamp links on artist and venue profiles.

URL helpers are pure; storage keeps at most one featured embed per profile and
numbers new embeds after the last one.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlparse

from bookyr.db.connection import get_db_cursor
from bookyr.models import MediaEmbed, ENTITY_TYPES
from bookyr.bus.events import bus, EVENT_EMBED_ADDED, EVENT_EMBED_REMOVED
from bookyr.logging_config import log_call

logger = logging.getLogger(__name__)

YOUTUBE = 'youtube'
SPOTIFY = 'spotify'
SOUNDCLOUD = 'soundcloud'
BANDCAMP = 'bandcamp'

# platform -> hosts (suffix match)
SUPPORTED_PLATFORMS = {
    YOUTUBE: ('youtube.com', 'youtu.be'),
    SPOTIFY: ('spotify.com',),
    SOUNDCLOUD: ('soundcloud.com',),
    BANDCAMP: ('bandcamp.com',),
}

DEFAULT_TITLES = {
    YOUTUBE: 'Video',
    SPOTIFY: 'Music',
    SOUNDCLOUD: 'Audio',
    BANDCAMP: 'Release',
}

SPOTIFY_CONTENT_TYPES = ('track', 'album', 'playlist', 'artist')

_EMBED_COLUMNS = {'url', 'title', 'description', 'is_featured', 'order'}


class UnsupportedMediaError(ValueError):
    def __init__(self, url: str):
        super().__init__(
            f"Unsupported media URL {url!r}. Please use YouTube, Spotify, SoundCloud, or Bandcamp links."
        )
        self.url = url


# =============================================================================
# URL HELPERS (pure)
# =============================================================================

def detect_platform(url: str) -> Optional[str]:
    """Platform name for url, or None if it is not a supported http(s) link."""
    if not url:
        return None
    parsed = urlparse(url.strip())
    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        return None
    host = parsed.hostname.lower()
    for platform, domains in SUPPORTED_PLATFORMS.items():
        if any(host == d or host.endswith('.' + d) for d in domains):
            return platform
    return None


def validate_embed_url(url: str) -> str:
    """Returns the platform. Raises UnsupportedMediaError."""
    platform = detect_platform(url)
    if platform is None:
        raise UnsupportedMediaError(url)
    return platform


def default_title(url: str) -> str:
    return DEFAULT_TITLES.get(detect_platform(url), 'Media')


def _youtube_video_id(parsed) -> str:
    if parsed.hostname and parsed.hostname.lower().endswith('youtu.be'):
        return parsed.path.lstrip('/').split('/')[0]
    for part in parsed.query.split('&'):
        if part.startswith('v='):
            return part[2:]
    return ''


def build_embed_url(url: str, autoplay: bool = False) -> str:
    """Player URL for an iframe. Raises UnsupportedMediaError."""
    platform = validate_embed_url(url)
    parsed = urlparse(url.strip())
    segments = [s for s in parsed.path.split('/') if s]

    if platform == YOUTUBE:
        autoplay_params = '&autoplay=1&mute=1' if autoplay else ''
        return f"https://www.youtube.com/embed/{_youtube_video_id(parsed)}?rel=0&modestbranding=1{autoplay_params}"

    if platform == SPOTIFY:
        content_type = next((s for s in segments if s in SPOTIFY_CONTENT_TYPES), 'track')
        spotify_id = segments[-1] if segments else ''
        return f"https://open.spotify.com/embed/{content_type}/{spotify_id}?utm_source=generator&theme=0"

    if platform == SOUNDCLOUD:
        return (
            f"https://w.soundcloud.com/player/?url={quote(url.strip(), safe='')}"
            "&color=%23ff5500&auto_play=false&hide_related=false&show_comments=true"
            "&show_user=true&show_reposts=false&show_teaser=true&visual=true"
        )

    # Bandcamp
    kind = 'album' if 'album' in segments else 'track'
    position = segments.index(kind) + 1 if kind in segments else len(segments)
    item_id = segments[position] if position < len(segments) else ''
    return (
        f"https://bandcamp.com/EmbeddedPlayer/{kind}={item_id}/size=large/bgcol=ffffff"
        "/linkcol=0687f5/tracklist=false/artwork=small/transparent=true/"
    )


# =============================================================================
# STORAGE
# =============================================================================

def _validate_entity(entity_type: str, entity_id: str) -> None:
    if entity_type not in ENTITY_TYPES:
        raise ValueError(f"entity_type must be one of {ENTITY_TYPES}, got {entity_type!r}")
    if not entity_id:
        raise ValueError("entity_id is required")


def list_embeds(entity_type: str, entity_id: str, featured_only: bool = False) -> List[MediaEmbed]:
    """Featured first, then by order, then newest."""
    _validate_entity(entity_type, entity_id)
    query = "SELECT * FROM media_embeds WHERE entity_type = %s AND entity_id = %s"
    if featured_only:
        query += " AND is_featured"

    with get_db_cursor() as cur:
        cur.execute(query + ' ORDER BY is_featured DESC, "order" ASC, created_at DESC', (entity_type, entity_id))
        return [MediaEmbed(**row) for row in cur.fetchall()]


def get_embed(embed_id: str) -> Optional[MediaEmbed]:
    with get_db_cursor() as cur:
        cur.execute("SELECT * FROM media_embeds WHERE id = %s", (embed_id,))
        row = cur.fetchone()
        return MediaEmbed(**row) if row else None


@log_call
def add_embed(embed: MediaEmbed) -> MediaEmbed:
    """
    Add an embed to a profile. A featured embed unfeatures the others.
    Raises UnsupportedMediaError for URLs no player supports.
    """
    _validate_entity(embed.entity_type, embed.entity_id)
    validate_embed_url(embed.url)
    title = (embed.title or '').strip() or default_title(embed.url)

    with get_db_cursor() as cur:
        if embed.is_featured:
            cur.execute("""
                UPDATE media_embeds SET is_featured = FALSE, updated_at = NOW()
                WHERE entity_type = %s AND entity_id = %s AND is_featured
            """, (embed.entity_type, embed.entity_id))

        cur.execute("""
            SELECT COALESCE(MAX("order"), 0) AS last_order FROM media_embeds
            WHERE entity_type = %s AND entity_id = %s
        """, (embed.entity_type, embed.entity_id))
        next_order = cur.fetchone()['last_order'] + 1

        cur.execute("""
            INSERT INTO media_embeds (
                id, entity_type, entity_id, url, title, description, is_featured,
                "order", created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
            RETURNING *
        """, (
            str(uuid.uuid4()), embed.entity_type, embed.entity_id, embed.url.strip(), title,
            embed.description, embed.is_featured, next_order,
        ))

        created = MediaEmbed(**cur.fetchone())
        logger.info(f"Added {detect_platform(created.url)} embed {created.id} to {created.entity_type} {created.entity_id}")
        bus.emit(EVENT_EMBED_ADDED, {'embed_id': created.id, 'embed': created})
        return created


def update_embed(embed_id: str, updates: Dict[str, Any]) -> bool:
    """
    Update embed fields.
    Returns: True if updated, False if not found
    """
    if not updates:
        return False

    invalid = set(updates) - _EMBED_COLUMNS
    if invalid:
        raise ValueError(f"Invalid embed fields: {invalid}")
    if 'url' in updates:
        validate_embed_url(updates['url'])

    set_clause = ', '.join(f'"{key}" = %({key})s' for key in updates)
    params = dict(updates, embed_id=embed_id)

    with get_db_cursor() as cur:
        if updates.get('is_featured'):
            cur.execute("""
                UPDATE media_embeds SET is_featured = FALSE, updated_at = NOW()
                WHERE is_featured AND id <> %(embed_id)s
                  AND (entity_type, entity_id) = (
                      SELECT entity_type, entity_id FROM media_embeds WHERE id = %(embed_id)s
                  )
            """, params)

        cur.execute(f"""
            UPDATE media_embeds
            SET {set_clause}, updated_at = NOW()
            WHERE id = %(embed_id)s
        """, params)

        if cur.rowcount > 0:
            logger.info(f"Updated embed {embed_id}: {list(updates.keys())}")
            return True
        return False


@log_call
def delete_embed(embed_id: str) -> bool:
    with get_db_cursor() as cur:
        cur.execute("DELETE FROM media_embeds WHERE id = %s", (embed_id,))
        if cur.rowcount > 0:
            logger.info(f"Deleted embed {embed_id}")
            bus.emit(EVENT_EMBED_REMOVED, {'embed_id': embed_id})
            return True
        return False
