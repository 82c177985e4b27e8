"""Application configuration module.

- **settings.py**: Environment-based settings (Pydantic BaseSettings)
  - Database URL and pool sizing, transaction timeouts
  - Timezone and locale defaults used by day inference and display names
  - Loaded from .env file via pydantic-settings
"""
from gym_tracker.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
