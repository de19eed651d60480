"""
Book Yr Life Configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Application configuration."""

    # Database — must be set in .env; never hardcode credentials here
    DATABASE_URL = os.getenv('DATABASE_URL')
    if not DATABASE_URL:
        _logger.critical("DATABASE_URL is not set — cannot start. Copy .env.example to .env and configure it.")
        raise ValueError("DATABASE_URL environment variable is not set. Copy .env.example to .env and configure it.")
    DB_CONNECT_TIMEOUT_SECONDS = int(os.getenv('DB_CONNECT_TIMEOUT_SECONDS', '10'))

    # Timezone used when rendering "today" for month tabs
    TIMEZONE = os.getenv('TIMEZONE', 'America/Chicago')

    # Marketplace REST API
    API_BASE_URL = os.getenv('API_BASE_URL', 'http://localhost:3000').rstrip('/')
    API_TIMEOUT_SECONDS = float(os.getenv('API_TIMEOUT_SECONDS', '15'))
    SESSION_TOKEN = os.getenv('SESSION_TOKEN', '')

    # Test harness only: sends x-debug-user instead of a real session
    ALLOW_DEBUG_IDENTITY = _env_flag('ALLOW_DEBUG_IDENTITY')
    DEBUG_USER = os.getenv('DEBUG_USER', '')

    # Favorites are re-fetched at most once per window
    FAVORITES_CACHE_TTL_SECONDS = int(os.getenv('FAVORITES_CACHE_TTL_SECONDS', '30'))

    # Holds
    HOLD_MAX_DURATION_HOURS = int(os.getenv('HOLD_MAX_DURATION_HOURS', '168'))
    HOLD_DECLINED_CLEAR_SECONDS = int(os.getenv('HOLD_DECLINED_CLEAR_SECONDS', '3'))

    # Timeline
    TIMELINE_MONTHS = int(os.getenv('TIMELINE_MONTHS', '12'))

    # AI Configuration (booking inquiry drafts)
    ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', '')
    DEEPSEEK_API_KEY = os.getenv('DEEPSEEK_API_KEY', '')
    DEEPSEEK_BASE_URL = os.getenv('DEEPSEEK_BASE_URL', 'https://api.deepseek.com')
    DEFAULT_AI_MODEL = os.getenv('DEFAULT_AI_MODEL', 'claude')


# Singleton instance
config = Config()
