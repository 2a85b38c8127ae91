"""
Configuration settings for the scheduling engine.
Load configuration from environment variables or a .env file.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
env_file = Path(__file__).parent.parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)


class Settings:
    """Engine settings loaded from environment variables."""

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # ============================================================================
    # Calendar
    # ============================================================================
    # Max consecutive non-working days searched before giving up
    CALENDAR_SEARCH_LIMIT = int(os.getenv('CALENDAR_SEARCH_LIMIT', '1000'))

    # ============================================================================
    # Scheduling defaults (explicit arguments always win)
    # ============================================================================
    ANCHOR_MODE = os.getenv('ANCHOR_MODE', 'start')
    DANGLING_POLICY = os.getenv('DANGLING_POLICY', 'fallback')
    HISTORY_LIMIT = int(os.getenv('HISTORY_LIMIT', '50'))

    @classmethod
    def validate_settings(cls) -> list[str]:
        """
        Check settings for values the engine cannot use.
        Returns list of problems (empty when everything is fine).
        """
        problems = []

        if cls.CALENDAR_SEARCH_LIMIT < 1:
            problems.append('CALENDAR_SEARCH_LIMIT must be >= 1')
        if cls.ANCHOR_MODE not in ('start', 'go_live'):
            problems.append(f"ANCHOR_MODE must be 'start' or 'go_live', got {cls.ANCHOR_MODE!r}")
        if cls.DANGLING_POLICY not in ('fallback', 'reject'):
            problems.append(f"DANGLING_POLICY must be 'fallback' or 'reject', got {cls.DANGLING_POLICY!r}")
        if cls.HISTORY_LIMIT < 1:
            problems.append('HISTORY_LIMIT must be >= 1')

        return problems


# Create settings instance
settings = Settings()
